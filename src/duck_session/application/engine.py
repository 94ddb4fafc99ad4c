"""Engine handle: one open database instance.

The handle owns the engine's root connection and hands out sessions,
each with its own connection to the same instance. Sessions share the
catalog, storage and transaction manager but keep independent client
state, so different threads may each drive their own session.

Release order:
    sessions -> engine
"""

from __future__ import annotations

import itertools
import threading
import time
from collections.abc import Mapping
from typing import Any

from duck_session.application.lifecycle import Resource
from duck_session.application.session import Session
from duck_session.domain.errors import ResourceMisuseError, SessionError
from duck_session.domain.value_objects import SessionId
from duck_session.infrastructure.config import Config, ExecutionConfig
from duck_session.infrastructure.logging import get_logger
from duck_session.infrastructure.metrics import MetricsRegistry, get_metrics
from duck_session.ports.outbound import EngineDriver, NativeConnection


logger = get_logger(__name__)


class EngineHandle(Resource):
    """An open engine instance.

    Usage:
        with EngineHandle.open({"threads": "2"}) as engine:
            with engine.connect() as session:
                session.run_script("SELECT 42")

    Thread Safety:
        connect() and close() may be called from any thread. Each
        Session must stay on one thread.
    """

    _kind = "engine"

    def __init__(
        self,
        root: NativeConnection,
        driver: EngineDriver,
        database: str,
        options: Mapping[str, str],
        read_only: bool,
        settings: ExecutionConfig,
        metrics: MetricsRegistry,
    ) -> None:
        super().__init__()
        self._root = root
        self._driver = driver
        self._database = database
        self._options = dict(options)
        self._read_only = read_only
        self._settings = settings
        self._metrics = metrics
        self._lock = threading.Lock()
        self._closing = False
        self._sessions: dict[SessionId, Session] = {}
        self._session_ids = itertools.count(1)
        self._sessions_opened = 0
        self._opened_at = time.time()

    @classmethod
    def open(
        cls,
        options: Mapping[str, str] | None = None,
        database: str = ":memory:",
        read_only: bool = False,
        *,
        settings: ExecutionConfig | None = None,
        metrics: MetricsRegistry | None = None,
        driver: EngineDriver | None = None,
    ) -> EngineHandle:
        """Open an engine instance.

        Args:
            options: Engine options by name (e.g. ``{"threads": "2"}``).
            database: File path, or ``:memory:`` for a transient database.
            read_only: Open an existing database file read-only.
            settings: Chunking and polling settings for sessions.
            metrics: Metrics registry; defaults to the global one.
            driver: Engine driver; defaults to the DuckDB driver.

        Raises:
            ConfigError: If an option name or value is rejected.
            OpenError: If the database cannot be opened.
        """
        if driver is None:
            from duck_session.adapters.outbound import DuckDBDriver

            driver = DuckDBDriver()
        options = dict(options or {})
        metrics = metrics or get_metrics()
        settings = settings or ExecutionConfig()

        try:
            root = driver.open_database(database, options, read_only)
        except SessionError as exc:
            logger.error("engine_open_failed", database=database, error=str(exc))
            raise

        metrics.engines_open.inc()
        logger.info(
            "engine_opened",
            database=database,
            read_only=read_only,
            options=sorted(options),
            engine_version=driver.version,
        )
        return cls(root, driver, database, options, read_only, settings, metrics)

    @classmethod
    def from_config(
        cls,
        config: Config,
        *,
        metrics: MetricsRegistry | None = None,
        driver: EngineDriver | None = None,
    ) -> EngineHandle:
        """Open an engine instance from the application configuration."""
        return cls.open(
            config.engine.options,
            database=config.engine.database,
            read_only=config.engine.read_only,
            settings=config.execution,
            metrics=metrics,
            driver=driver,
        )

    @property
    def database(self) -> str:
        return self._database

    @property
    def options(self) -> dict[str, str]:
        return dict(self._options)

    @property
    def read_only(self) -> bool:
        return self._read_only

    @property
    def version(self) -> str:
        return self._driver.version

    @property
    def sessions(self) -> int:
        """Number of open sessions."""
        with self._lock:
            return len(self._sessions)

    def connect(self) -> Session:
        """Open a new session on this engine.

        Raises:
            ConnectError: If the engine refuses the connection.
            ResourceMisuseError: If the engine handle is closed or closing.
        """
        with self._lock:
            self._ensure_open()
            if self._closing:
                raise ResourceMisuseError("engine is closing")
            conn = self._driver.cursor(self._root)
            session_id = SessionId(next(self._session_ids))
            session = Session(self, session_id, conn, self._driver, self._settings, self._metrics)
            self._sessions[session_id] = session
            self._sessions_opened += 1

        self._metrics.sessions_active.inc()
        self._metrics.sessions_total.inc()
        logger.info("session_connected", session_id=session_id, database=self._database)
        return session

    def _session_closed(self, session: Session) -> None:
        with self._lock:
            removed = self._sessions.pop(session.session_id, None)
        if removed is not None:
            self._metrics.sessions_active.dec()

    def close(self) -> None:
        """Close every remaining session, then the engine instance.

        Raises:
            ResourceMisuseError: If the handle was already closed.
        """
        with self._lock:
            if self._closed or self._closing:
                raise ResourceMisuseError("engine is already closed")
            # connect() refuses new sessions from here on.
            self._closing = True
            remaining = list(self._sessions.values())

        errors: list[Exception] = []
        for session in remaining:
            if session.closed:
                continue
            try:
                session.close()
            except Exception as exc:
                errors.append(exc)

        with self._lock:
            self._mark_closed()
            self._driver.close(self._root)

        self._metrics.engines_open.dec()
        logger.info(
            "engine_closed",
            database=self._database,
            sessions_closed=len(remaining),
            uptime_seconds=round(time.time() - self._opened_at, 3),
        )
        if errors:
            raise errors[0]

    def get_stats(self) -> dict[str, Any]:
        """Get engine statistics."""
        with self._lock:
            active = len(self._sessions)
            busy = sum(1 for s in self._sessions.values() if s.busy)
        return {
            "database": self._database,
            "engine_version": self._driver.version,
            "closed": self._closed,
            "sessions_active": active,
            "sessions_busy": busy,
            "sessions_opened": self._sessions_opened,
            "uptime_seconds": time.time() - self._opened_at,
        }

    def __repr__(self) -> str:
        state = "closed" if self._closed else f"{len(self._sessions)} session(s)"
        return f"EngineHandle({self._database!r}, {state})"
