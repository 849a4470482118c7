"""Plain module star-imported into generated classes."""

__all__ = ["MockPluginLoaded", "describe"]

MockPluginLoaded = True


def describe(cls) -> str:  # type: ignore[no-untyped-def]
    return f"{cls.__qualname__} over {cls.__view__}"
