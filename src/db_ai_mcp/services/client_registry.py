"""Database client adapter and per-target client registry.

The gateway talks to databases only through the `SqlClient` protocol.
`SqlAlchemyClient` implements it for every provider family SQLAlchemy has a
dialect for. `ClientRegistry` owns the live handles: one per distinct
connection string, created lazily and released on `close()`.
"""

from __future__ import annotations

from collections.abc import Callable
import os
import threading
from types import TracebackType
from typing import Any, Protocol, runtime_checkable

from fastmcp.utilities.logging import get_logger
import sqlalchemy as sa
from sqlalchemy.exc import SQLAlchemyError

from db_ai_mcp.exceptions import DatabaseError
from db_ai_mcp.models import DatabaseTarget
from db_ai_mcp.services.config_service import ConfigService
from db_ai_mcp.services.connection import (
    build_connection_string,
    connect_args,
    sqlalchemy_url,
)

DATABASE_URL_ENV = "DATABASE_URL"

_logger = get_logger(__name__)


@runtime_checkable
class SqlClient(Protocol):
    """Capability interface the gateway dispatches through."""

    def execute_read(self, sql: str) -> list[dict[str, Any]]: ...

    def execute_write(self, sql: str) -> int: ...

    def disconnect(self) -> None: ...


ClientFactory = Callable[[DatabaseTarget, str], SqlClient]


def create_database_engine(
    url: sa.URL | str, *, connect_args: dict[str, object] | None = None, echo: bool = False
) -> sa.Engine:
    """Create a SQLAlchemy engine.

    Args:
        url: Database connection URL
        connect_args: DBAPI connect arguments
        echo: Log every statement through SQLAlchemy

    Returns:
        SQLAlchemy Engine instance
    """
    return sa.create_engine(
        url,
        echo=echo,
        connect_args=connect_args or {},
        pool_pre_ping=True,
    )


class SqlAlchemyClient:
    """`SqlClient` backed by a SQLAlchemy engine.

    Statements go through ``exec_driver_sql`` so the caller's text reaches the
    driver verbatim, without bind-parameter parsing.
    """

    def __init__(self, engine: sa.Engine) -> None:
        self.engine = engine

    @classmethod
    def from_target(cls, target: DatabaseTarget, _connection_string: str) -> SqlAlchemyClient:
        try:
            engine = create_database_engine(
                sqlalchemy_url(target),
                connect_args=connect_args(target),
                echo=ConfigService.echo_sql(),
            )
        except (SQLAlchemyError, ImportError) as exc:
            msg = f"Could not create database client for provider '{target.provider}': {exc}"
            raise DatabaseError(msg) from exc
        return cls(engine)

    def execute_read(self, sql: str) -> list[dict[str, Any]]:
        try:
            with self.engine.connect() as conn:
                result = conn.exec_driver_sql(sql)
                if not result.returns_rows:
                    return []
                return [dict(row) for row in result.mappings()]
        except SQLAlchemyError as exc:
            raise DatabaseError(str(exc)) from exc

    def execute_write(self, sql: str) -> int:
        try:
            with self.engine.begin() as conn:
                result = conn.exec_driver_sql(sql)
                # DBAPI reports -1 when the count is unknown (DDL)
                return max(result.rowcount, 0)
        except SQLAlchemyError as exc:
            raise DatabaseError(str(exc)) from exc

    def disconnect(self) -> None:
        self.engine.dispose()


class ClientRegistry:
    """Owns one `SqlClient` per distinct connection string."""

    def __init__(self, factory: ClientFactory | None = None) -> None:
        self._factory: ClientFactory = factory or SqlAlchemyClient.from_target
        self._clients: dict[str, SqlClient] = {}
        self._lock = threading.Lock()

    def get_client(self, target: DatabaseTarget) -> SqlClient:
        """Return the client for ``target``, constructing it on first use."""
        connection_string = build_connection_string(target)
        with self._lock:
            client = self._clients.get(connection_string)
            if client is not None:
                return client
            os.environ[DATABASE_URL_ENV] = connection_string
            _logger.info("Creating database client (provider=%s)", target.provider)
            client = self._factory(target, connection_string)
            self._clients[connection_string] = client
            return client

    def invalidate(self, target: DatabaseTarget) -> None:
        """Disconnect and forget the client bound to ``target``, if any."""
        with self._lock:
            client = self._clients.pop(build_connection_string(target), None)
        if client is not None:
            client.disconnect()

    def close(self) -> None:
        """Disconnect every client; the registry stays usable afterwards."""
        with self._lock:
            clients = list(self._clients.values())
            self._clients.clear()
        for client in clients:
            try:
                client.disconnect()
            except (SQLAlchemyError, OSError) as exc:
                _logger.warning("Error while disconnecting database client: %s", exc)
        if clients:
            _logger.info("Released %d database client(s)", len(clients))

    def __len__(self) -> int:
        return len(self._clients)

    def __enter__(self) -> ClientRegistry:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()
