"""Connection string construction for database targets.

`build_connection_string` produces the provider-specific URI that is exported
as ``DATABASE_URL``. `sqlalchemy_url` and `connect_args` express the same
target for the SQLAlchemy client family.
"""

from __future__ import annotations

from urllib.parse import quote

from sqlalchemy.engine import URL

from db_ai_mcp.models import DatabaseTarget

# Provider aliases (case-insensitive) -> SQLAlchemy drivername
SQLALCHEMY_DRIVERS: dict[str, str] = {
    "postgresql": "postgresql",
    "postgres": "postgresql",
    "mysql": "mysql",
    "sqlite": "sqlite",
    "sqlserver": "mssql+pyodbc",
    "mssql": "mssql+pyodbc",
}


def _encoded_schema(target: DatabaseTarget) -> str | None:
    if not target.schema_name:
        return None
    return quote(target.schema_name, safe="")


def build_connection_string(target: DatabaseTarget) -> str:
    """Return the connection URI for ``target``.

    Unknown providers fall back to ``<provider>://user:password@host:port/database``
    rather than raising.
    """
    provider = target.provider.lower()
    schema = _encoded_schema(target)
    creds = f"{target.user}:{target.password}@{target.host}:{target.port}/{target.database}"

    if provider == "sqlite":
        return f"file:{target.database}"
    if provider in {"sqlserver", "mssql"}:
        uri = (
            f"sqlserver://{target.host}:{target.port};database={target.database};"
            f"user={target.user};password={target.password}"
        )
        return f"{uri};schema={schema}" if schema else uri

    if provider in {"postgresql", "postgres"}:
        scheme = "postgresql"
    elif provider == "mysql":
        scheme = "mysql"
    else:
        scheme = target.provider
    uri = f"{scheme}://{creds}"
    return f"{uri}?schema={schema}" if schema else uri


def sqlalchemy_url(target: DatabaseTarget) -> URL:
    """Return a SQLAlchemy URL for ``target``.

    Unknown providers are passed through as the SQLAlchemy dialect name, so
    installed third-party dialects keep working.
    """
    provider = target.provider.lower()
    drivername = SQLALCHEMY_DRIVERS.get(provider, provider)
    if drivername == "sqlite":
        return URL.create("sqlite", database=target.database)

    query: dict[str, str] = {}
    if drivername == "mssql+pyodbc":
        query["driver"] = "ODBC Driver 18 for SQL Server"
    return URL.create(
        drivername,
        username=target.user,
        password=target.password,
        host=target.host,
        port=target.port,
        database=target.database,
        query=query,
    )


def connect_args(target: DatabaseTarget) -> dict[str, object]:
    """Dialect-specific DBAPI connect arguments for ``target``."""
    provider = target.provider.lower()
    if provider == "sqlite":
        return {"check_same_thread": False}
    if provider in {"postgresql", "postgres"} and target.schema_name:
        # libpq splits options on unescaped whitespace
        schema = target.schema_name.replace("\\", "\\\\").replace(" ", "\\ ")
        return {"options": f"-csearch_path={schema}"}
    return {}
