"""Include/exclude filtering of view names."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable

from .errors import InvalidPatternType

PatternLike = str | re.Pattern[str] | None


def compile_pattern(value: PatternLike) -> re.Pattern[str] | None:
    """Return a compiled pattern from text or an existing pattern.

    ``None`` clears the rule. Compiled byte patterns and any other object are
    rejected with :class:`InvalidPatternType`.
    """

    if value is None:
        return None
    if isinstance(value, re.Pattern):
        if not isinstance(value.pattern, str):
            raise InvalidPatternType(value)
        return value
    if isinstance(value, str):
        return re.compile(value)
    raise InvalidPatternType(value)


@dataclass(frozen=True, slots=True)
class PatternFilter:
    """Include narrows first, exclude narrows second."""

    include: re.Pattern[str] | None = None
    exclude: re.Pattern[str] | None = None

    def apply(self, names: Iterable[str]) -> list[str]:
        views = list(names)
        if self.include is not None:
            views = [name for name in views if self.include.search(name)]
        if self.exclude is not None:
            views = [name for name in views if not self.exclude.search(name)]
        return views


__all__ = ["PatternFilter", "PatternLike", "compile_pattern"]
