"""SQLAlchemy unit of work for the shipment ledger.

``startup`` binds one process-wide engine (migrated to the latest schema) and every
:class:`SqlAlchemyLedgerUnitOfWork` opens a fresh session from it. Reconciliation runs
each tracking number in its own unit of work on a worker thread, so sessions are never
shared between units.
"""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING, Literal

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from shipsync.adapters.sqlalchemy.mappings import start_mappers
from shipsync.adapters.sqlalchemy.migrations import upgrade_head
from shipsync.adapters.sqlalchemy.repositories import (
    SqlAlchemyIncomeRepository,
    SqlAlchemyPolicyStore,
    SqlAlchemyShipmentRepository,
    SqlAlchemyStatusEventRepository,
)
from shipsync.config.storage import DatabaseConfig, get_database_config
from shipsync.domain.ports.unit_of_work import LedgerRepositories

if TYPE_CHECKING:
    from types import TracebackType

    from sqlalchemy.engine import Engine

log = getLogger(__name__)


class StartupError(RuntimeError):
    """Raised when the ledger database is used before ``startup`` or reconfigured twice."""


class _LedgerDatabase:
    engine: Engine | None = None
    sessions: sessionmaker[Session] | None = None

    @classmethod
    def bind(cls, engine: Engine | None) -> None:
        cls.engine = engine
        # Entities stay readable after commit; the engine reports on them post-commit.
        cls.sessions = sessionmaker(bind=engine, expire_on_commit=False) if engine else None

    @classmethod
    def open_session_factory(cls) -> sessionmaker[Session]:
        if cls.sessions is None:
            raise StartupError(
                "Ledger database not started; call "
                "shipsync.adapters.sqlalchemy.unit_of_work.startup() first"
            )
        return cls.sessions


def startup(
    *,
    engine: Engine | None = None,
    database_uri: str | None = None,
    force: bool = False,
) -> None:
    """Open the ledger engine, map the domain classes and migrate to the latest schema."""

    if _LedgerDatabase.engine is not None and not force:
        raise StartupError("Ledger database already started; pass force=True to rebind it")

    if engine is None:
        config = DatabaseConfig(uri=database_uri) if database_uri else get_database_config()
        engine = create_engine(config.uri, **config.engine_options())
    start_mappers()
    upgrade_head(engine=engine)
    _LedgerDatabase.bind(engine)
    log.info("Ledger database ready at %s", engine.url.render_as_string(hide_password=True))


def configured_engine() -> Engine | None:
    return _LedgerDatabase.engine


def is_started() -> bool:
    return _LedgerDatabase.engine is not None


def shutdown() -> None:
    """Dispose the ledger engine so the next ``startup`` begins from scratch."""

    if _LedgerDatabase.engine is not None:
        _LedgerDatabase.engine.dispose()
    _LedgerDatabase.bind(None)


class SqlAlchemyLedgerUnitOfWork:
    """One transaction over shipments, status events, income and subsidiary policies.

    Leaving the ``with`` block closes the session; writes that were not committed are
    discarded, and an exception rolls back explicitly before closing.
    """

    def __init__(self) -> None:
        self._sessions = _LedgerDatabase.open_session_factory()
        self._session: Session | None = None
        self._repositories: LedgerRepositories | None = None

    def __enter__(self) -> SqlAlchemyLedgerUnitOfWork:
        if self._session is not None:
            raise StartupError("Unit of work is already open")
        self._session = self._sessions()
        self._repositories = LedgerRepositories(
            shipments=SqlAlchemyShipmentRepository(self._session),
            status_events=SqlAlchemyStatusEventRepository(self._session),
            incomes=SqlAlchemyIncomeRepository(self._session),
            policies=SqlAlchemyPolicyStore(self._session),
        )
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> Literal[False]:
        try:
            if exc_type is not None:
                self.rollback()
        finally:
            self.session.close()
            self._session = None
            self._repositories = None
        return False

    @property
    def session(self) -> Session:
        if self._session is None:
            raise StartupError("Unit of work has no open session")
        return self._session

    @property
    def repositories(self) -> LedgerRepositories:
        if self._repositories is None:
            raise StartupError("Unit of work has no open session")
        return self._repositories

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()


if TYPE_CHECKING:
    from shipsync.domain.ports.unit_of_work import LedgerUnitOfWork

    _uow_check: LedgerUnitOfWork = SqlAlchemyLedgerUnitOfWork()
