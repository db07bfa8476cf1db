"""Configuration service for db-ai-mcp.

This module resolves the declarative database target descriptor
(``.db-ai/dbConfig.json``), validates it, and centralizes the environment
variable handling used by the rest of the gateway.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
import threading
from typing import Any, Final

from fastmcp.utilities.logging import get_logger
from pydantic import ValidationError

from db_ai_mcp.exceptions import ConfigInvalid, ConfigNotFound
from db_ai_mcp.models import DatabaseTarget

CONFIG_DIR_NAME: Final[str] = ".db-ai"
CONFIG_FILE_NAME: Final[str] = "dbConfig.json"
CONFIG_DIR_ENV: Final[str] = "DB_AI_CONFIG_DIR"
ECHO_SQL_ENV: Final[str] = "DB_AI_ECHO_SQL"

DEFAULT_CONFIG: Final[dict[str, Any]] = {
    "provider": "postgresql",
    "host": "localhost",
    "port": 5432,
    "user": "postgres",
    "password": "postgres",
    "database": "mydb",
    "schema": "public",
    "OPERATIONS_ALLOWED": ["SELECT"],
    "outputFileName": "output.log",
}

NOTES_FILE_NAME: Final[str] = "CONFIG_NOTES.md"

CONFIG_NOTES: Final[str] = """\
# db-ai configuration notes

## provider

One of `postgresql`, `mysql`, `sqlite` or `sqlserver`. Install the matching
driver extra:

- PostgreSQL: `pip install "db-ai-mcp[postgres]"` (psycopg2)
- MySQL: `pip install "db-ai-mcp[mysql]"` (mysqlclient)
- SQL Server: `pip install "db-ai-mcp[mssql]"` (pyodbc plus the ODBC Driver 18)
- SQLite: built in; `database` is the path of the database file

## schema

- PostgreSQL: defaults to `public`; sets the connection's `search_path`
- SQL Server: e.g. `dbo` or `sales`
- MySQL and SQLite: usually not needed

## OPERATIONS_ALLOWED

Statement kinds the gateway will run: `SELECT`, `INSERT`, `UPDATE`, `DELETE`,
`CREATE`, `DROP`, `ALTER`. Anything else is classified as `UNKNOWN` and denied
unless `UNKNOWN` is listed. The default is `["SELECT"]`.

## outputFileName

Audit log file inside this folder. Every executed statement is appended with
its timestamp and result. Leave it empty to disable the log.
"""

_TRUTHY: Final[frozenset[str]] = frozenset({"1", "true", "yes", "on"})

_logger = get_logger(__name__)


def _format_validation_error(exc: ValidationError) -> list[str]:
    """Flatten pydantic errors to ``field: message`` strings using JSON keys."""
    problems: list[str] = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err.get("loc", ())) or "config"
        if err.get("type") == "missing":
            problems.append(f"Missing required field in config: {loc}")
        else:
            problems.append(f"{loc}: {err.get('msg', 'invalid value')}")
    return problems


class ConfigService:
    """Service for loading the database target and related settings."""

    def __init__(self, config_dir: Path | str | None = None, *, cache: bool = False) -> None:
        """Create a resolver rooted at ``config_dir``.

        Args:
            config_dir: Directory holding ``dbConfig.json``. Defaults to
                ``$DB_AI_CONFIG_DIR`` or ``<cwd>/.db-ai``.
            cache: Reuse the parsed target until the file's mtime or size changes.
        """
        self._config_dir = Path(config_dir) if config_dir is not None else None
        self._cache_enabled = cache
        self._cached: tuple[tuple[int, int], DatabaseTarget] | None = None
        self._lock = threading.Lock()

    @property
    def config_dir(self) -> Path:
        if self._config_dir is not None:
            return self._config_dir
        override = os.getenv(CONFIG_DIR_ENV)
        if override:
            return Path(override)
        return Path.cwd() / CONFIG_DIR_NAME

    @property
    def config_path(self) -> Path:
        return self.config_dir / CONFIG_FILE_NAME

    def load(self) -> DatabaseTarget:
        """Load and validate the database target.

        Returns:
            The immutable `DatabaseTarget` described by ``dbConfig.json``

        Raises:
            ConfigNotFound: If the descriptor file does not exist
            ConfigInvalid: If the file is unreadable, not a JSON object, or
                fails field validation
        """
        path = self.config_path
        try:
            stat = path.stat()
        except FileNotFoundError:
            raise ConfigNotFound(path) from None
        except OSError as exc:
            raise ConfigInvalid(path, [f"cannot stat file: {exc}"]) from exc

        fingerprint = (stat.st_mtime_ns, stat.st_size)
        if self._cache_enabled:
            with self._lock:
                if self._cached is not None and self._cached[0] == fingerprint:
                    _logger.debug("Using cached configuration from %s", path)
                    return self._cached[1]

        target = self._parse(path)
        _logger.info(
            "Loaded database target (provider=%s, database=%s, allowed=%s)",
            target.provider,
            target.database,
            ",".join(sorted(target.operations_allowed)) or "-",
        )

        if self._cache_enabled:
            with self._lock:
                self._cached = (fingerprint, target)
        return target

    def invalidate(self) -> None:
        """Drop any cached target so the next `load` re-reads the file."""
        with self._lock:
            self._cached = None

    def output_path(self, target: DatabaseTarget) -> Path | None:
        """Return the audit log path for ``target`` or None when unconfigured."""
        if not target.output_file_name:
            return None
        return self.config_dir / target.output_file_name

    @property
    def notes_path(self) -> Path:
        return self.config_dir / NOTES_FILE_NAME

    def init(self, *, force: bool = False) -> bool:
        """Scaffold the configuration folder; safe to re-run.

        Creates the folder, writes ``CONFIG_NOTES.md`` when it is missing and
        writes the template ``dbConfig.json`` unless one already exists.

        Returns:
            True if the template configuration was written, False if an
            existing configuration was left untouched
        """
        self.config_dir.mkdir(parents=True, exist_ok=True)
        if not self.notes_path.exists():
            self.notes_path.write_text(CONFIG_NOTES, encoding="utf-8")

        path = self.config_path
        if path.exists() and not force:
            _logger.info("Configuration already exists at %s; leaving it unchanged", path)
            return False
        path.write_text(json.dumps(DEFAULT_CONFIG, indent=2) + "\n", encoding="utf-8")
        self.invalidate()
        _logger.info("Wrote template configuration to %s", path)
        return True

    # ---- internal ------------------------------------------------------------

    @staticmethod
    def _parse(path: Path) -> DatabaseTarget:
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError) as exc:
            raise ConfigInvalid(path, [f"cannot read file: {exc}"]) from exc
        except json.JSONDecodeError as exc:
            raise ConfigInvalid(path, [f"malformed JSON: {exc}"]) from exc

        if not isinstance(raw, dict):
            raise ConfigInvalid(path, ["top-level value must be a JSON object"])

        try:
            return DatabaseTarget.model_validate(raw)
        except ValidationError as exc:
            raise ConfigInvalid(path, _format_validation_error(exc)) from exc

    # ---- environment ---------------------------------------------------------

    @staticmethod
    def echo_sql() -> bool:
        """Whether SQLAlchemy should echo statements (``DB_AI_ECHO_SQL``)."""
        return os.getenv(ECHO_SQL_ENV, "").strip().lower() in _TRUTHY
