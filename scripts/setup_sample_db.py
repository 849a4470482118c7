"""Utility that launches a sample PostgreSQL Docker container with views for viewloader."""

from __future__ import annotations

import argparse
import subprocess
import sys
import time
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from viewloader.config import CONFIG_FILE, LoaderProfile, load_config, save_config

DEFAULT_CONTAINER = "viewloader-sample-db"
DEFAULT_PORT = 5544
DEFAULT_PASSWORD = "viewloader"
DEFAULT_DB = "viewloader_demo"
DEFAULT_USER = "viewloader"
DOCKER_IMAGE = "postgres:16-alpine"
PROFILE_NAME = "docker-sample"


def run(cmd: list[str], *, check: bool = True, **kwargs) -> subprocess.CompletedProcess[str]:
    print("$", " ".join(cmd))
    return subprocess.run(cmd, check=check, text=True, **kwargs)


def container_exists(name: str) -> bool:
    result = subprocess.run(
        ["docker", "ps", "-a", "--filter", f"name={name}", "--format", "{{.ID}}"],
        text=True,
        capture_output=True,
    )
    return bool(result.stdout.strip())


def start_container(name: str, port: int, password: str, database: str, user: str) -> None:
    if container_exists(name):
        print(f"Container '{name}' already exists. Reusing it.")
        run(["docker", "start", name], check=False)
    else:
        run(
            [
                "docker",
                "run",
                "-d",
                "--name",
                name,
                "-e",
                f"POSTGRES_PASSWORD={password}",
                "-e",
                f"POSTGRES_DB={database}",
                "-e",
                f"POSTGRES_USER={user}",
                "-p",
                f"{port}:5432",
                DOCKER_IMAGE,
            ]
        )
    wait_for_start(name, user)


def wait_for_start(name: str, user: str, retries: int = 15, delay: float = 1.0) -> None:
    for _ in range(retries):
        result = subprocess.run(["docker", "exec", name, "pg_isready", "-U", user], text=True)
        if result.returncode == 0:
            return
        time.sleep(delay)
    print("Warning: database did not report ready state; continuing anyway.")


def seed_views(name: str, database: str, user: str) -> None:
    sql = """
    CREATE TABLE IF NOT EXISTS accounts (
        id SERIAL PRIMARY KEY,
        email TEXT NOT NULL UNIQUE,
        region TEXT NOT NULL
    );
    CREATE TABLE IF NOT EXISTS orders (
        id SERIAL PRIMARY KEY,
        account_id INTEGER REFERENCES accounts(id),
        total NUMERIC(10,2) NOT NULL,
        status TEXT NOT NULL DEFAULT 'pending'
    );
    INSERT INTO accounts (email, region) VALUES
        ('anna@example.com', 'north'),
        ('ben@example.com', 'south'),
        ('cara@example.com', 'north')
    ON CONFLICT DO NOTHING;
    INSERT INTO orders (account_id, total, status)
    SELECT id, (random()*100)::numeric(10,2), 'complete'
    FROM accounts
    ON CONFLICT DO NOTHING;
    CREATE OR REPLACE VIEW live_region_totals AS
        SELECT a.region, o.status, sum(o.total) AS total
        FROM orders o JOIN accounts a ON a.id = o.account_id
        GROUP BY a.region, o.status;
    CREATE OR REPLACE VIEW live_accounts AS
        SELECT email, region FROM accounts;
    CREATE OR REPLACE VIEW temp_pending AS
        SELECT id, account_id FROM orders WHERE status = 'pending';
    """.strip()

    run(
        [
            "docker",
            "exec",
            "-i",
            name,
            "psql",
            "-U",
            user,
            "-d",
            database,
            "-v",
            "ON_ERROR_STOP=1",
        ],
        input=sql,
    )


def update_config(port: int, user: str, database: str, password: str) -> None:
    config = load_config()
    if any(profile.name == PROFILE_NAME for profile in config.profiles):
        print(f"Profile '{PROFILE_NAME}' already present in config; leaving as-is.")
        return
    profile = LoaderProfile(
        name=PROFILE_NAME,
        dsn=f"dbi:Pg:dbname={database};host=localhost;port={port}",
        username=user,
        password=password,
        namespace="demo.views",
        exclude=r"^te(?:st|mp)_",
    )
    save_config(config.with_profile(profile))
    print(f"Added '{PROFILE_NAME}' profile to {CONFIG_FILE}.")


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--container", default=DEFAULT_CONTAINER, help="Docker container name")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT, help="Host port to expose Postgres on")
    parser.add_argument("--password", default=DEFAULT_PASSWORD, help="Postgres password")
    parser.add_argument("--database", default=DEFAULT_DB, help="Database name to create")
    parser.add_argument("--user", default=DEFAULT_USER, help="Database user")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv or sys.argv[1:])
    try:
        start_container(args.container, args.port, args.password, args.database, args.user)
        seed_views(args.container, args.database, args.user)
    except FileNotFoundError:
        print("Docker is not installed or not on PATH.")
        return 1
    update_config(args.port, args.user, args.database, args.password)
    print(
        f"Sample database is ready. Load its views with ViewLoader.from_profile({PROFILE_NAME!r}) or the DSN "
        f"dbi:Pg:dbname={args.database};host=localhost;port={args.port}"
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
