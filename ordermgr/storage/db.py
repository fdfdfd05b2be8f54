# ordermgr/storage/db.py
from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Iterator, Optional

from fastapi import Request
from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import (
    DBAPIError,
    InterfaceError,
    OperationalError,
    SQLAlchemyError,
    TimeoutError as PoolTimeoutError,
)
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from ordermgr.config import Settings
from ordermgr.core.errors import PersistenceError, TransientConnectionError
from ordermgr.storage.auth import CommandTokenProvider, TokenProvider

log = logging.getLogger(__name__)


# === BASE ORM ===
class Base(DeclarativeBase):
    """Clase base para los modelos ORM."""
    pass


def translate_error(err: SQLAlchemyError) -> Exception:
    """Traduce un error de SQLAlchemy a la taxonomia del servicio."""
    if isinstance(err, PoolTimeoutError):
        return TransientConnectionError("Connection pool exhausted, retry later")
    if isinstance(err, DBAPIError) and err.connection_invalidated:
        return TransientConnectionError()
    if isinstance(err, (OperationalError, InterfaceError)):
        return TransientConnectionError()
    return PersistenceError()


class Database:
    """
    Handle explicito de la BD: engine + pool + fabrica de sesiones.

    El engine se crea en el primer uso y una sola vez, aunque varios hilos
    lleguen a la vez (doble chequeo bajo lock).
    """

    def __init__(
        self,
        url: str,
        *,
        pool_size: int = 10,
        max_overflow: int = 20,
        pool_timeout: float = 2.0,
        pool_recycle: int = 1800,
        isolation_level: Optional[str] = "READ COMMITTED",
        statement_timeout_ms: int = 0,
        echo: bool = False,
        token_provider: Optional[TokenProvider] = None,
    ):
        self.url = make_url(url)
        self.pool_size = pool_size
        self.max_overflow = max_overflow
        self.pool_timeout = pool_timeout
        self.pool_recycle = pool_recycle
        self.isolation_level = isolation_level
        self.statement_timeout_ms = statement_timeout_ms
        self.echo = echo
        self.token_provider = token_provider

        self._engine: Optional[Engine] = None
        self._sessionmaker: Optional[sessionmaker] = None
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        provider = None
        if settings.auth_token_command:
            provider = CommandTokenProvider(settings.auth_token_command)
        return cls(
            settings.database_url,
            pool_size=settings.pool_size,
            max_overflow=settings.max_overflow,
            pool_timeout=settings.pool_timeout,
            pool_recycle=settings.pool_recycle,
            isolation_level=settings.isolation_level,
            statement_timeout_ms=settings.statement_timeout_ms,
            echo=settings.echo,
            token_provider=provider,
        )

    @property
    def is_sqlite(self) -> bool:
        return self.url.get_backend_name() == "sqlite"

    # === ENGINE ===
    @property
    def engine(self) -> Engine:
        if self._engine is None:
            with self._lock:
                if self._engine is None:
                    engine = self._create_engine()
                    self._sessionmaker = sessionmaker(
                        bind=engine,
                        autoflush=False,
                        expire_on_commit=False,
                    )
                    # se publica al final: otro hilo nunca ve un engine sin sessionmaker
                    self._engine = engine
        return self._engine

    @property
    def initialized(self) -> bool:
        return self._engine is not None

    def _create_engine(self) -> Engine:
        kwargs = {
            "echo": self.echo,
            "pool_pre_ping": True,  # Verifica conexiones antes de usarlas
        }
        connect_args = {}

        in_memory = self.is_sqlite and self.url.database in (None, "", ":memory:")
        if not in_memory:
            kwargs.update(
                pool_size=self.pool_size,
                max_overflow=self.max_overflow,
                pool_timeout=self.pool_timeout,   # espera maxima por una conexion
                pool_recycle=self.pool_recycle,   # vida maxima de una conexion
            )
        if self.is_sqlite:
            connect_args["check_same_thread"] = False
        else:
            if self.isolation_level:
                kwargs["isolation_level"] = self.isolation_level
            if self.statement_timeout_ms:
                connect_args["options"] = f"-c statement_timeout={self.statement_timeout_ms}"
        if connect_args:
            kwargs["connect_args"] = connect_args

        engine = create_engine(self.url, **kwargs)

        if self.is_sqlite:
            @event.listens_for(engine, "connect")
            def _enable_foreign_keys(dbapi_connection, connection_record):
                cursor = dbapi_connection.cursor()
                cursor.execute("PRAGMA foreign_keys=ON")
                cursor.close()

        if self.token_provider is not None:
            provider = self.token_provider

            @event.listens_for(engine, "do_connect")
            def _inject_token(dialect, conn_rec, cargs, cparams):
                cparams["password"] = provider()

        log.info(
            f"Engine creado para {self.url.render_as_string(hide_password=True)} "
            f"(pool_size={self.pool_size}, pool_timeout={self.pool_timeout}s)"
        )
        return engine

    # === SESION ===
    def session(self) -> Session:
        self.engine  # inicializa el engine si hace falta
        return self._sessionmaker()

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        """
        Contexto transaccional: commit al salir, rollback ante cualquier error
        y cierre de la sesion (devuelve la conexion al pool) siempre.
        """
        session = self.session()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as err:
            session.rollback()
            log.error(f"Transaccion revertida por error de BD: {err!r}")
            raise translate_error(err) from err
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def create_schema(self) -> None:
        from ordermgr.storage import models  # noqa: F401  # registra los modelos
        try:
            Base.metadata.create_all(bind=self.engine)
        except SQLAlchemyError as err:
            raise translate_error(err) from err

    def ping(self) -> None:
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError as err:
            raise translate_error(err) from err

    def dispose(self) -> None:
        with self._lock:
            if self._engine is not None:
                engine, self._engine = self._engine, None
                engine.dispose()
                self._sessionmaker = None


# === DEPENDENCIA PARA FASTAPI ===
def get_database(request: Request) -> Database:
    """Devuelve el handle de BD que la app creo al arrancar."""
    return request.app.state.database
