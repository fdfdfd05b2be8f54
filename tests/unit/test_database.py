"""Unit tests: handle de BD, inicializacion unica, traduccion de errores."""
import threading
import time
from unittest.mock import patch

import pytest
from sqlalchemy import exc as sa_exc
from sqlalchemy import text

from ordermgr.config import Settings
from ordermgr.core.errors import PersistenceError, TransientConnectionError, ValidationError
from ordermgr.core.orders import OrderTransactionManager
from ordermgr.storage import db as db_module
from ordermgr.storage.auth import CommandTokenProvider
from ordermgr.storage.db import Database, translate_error


class TestLazyInitialization:

    def test_engine_not_created_until_first_use(self, tmp_path):
        database = Database(f"sqlite:///{tmp_path / 'lazy.db'}")
        assert not database.initialized
        database.engine
        assert database.initialized
        database.dispose()

    def test_concurrent_first_use_creates_one_engine(self, tmp_path):
        database = Database(f"sqlite:///{tmp_path / 'race.db'}")
        real_create_engine = db_module.create_engine
        calls = []

        def slow_create_engine(*args, **kwargs):
            calls.append(1)
            time.sleep(0.05)
            return real_create_engine(*args, **kwargs)

        engines = []
        barrier = threading.Barrier(8)

        def worker():
            barrier.wait()
            engines.append(database.engine)

        with patch.object(db_module, "create_engine", side_effect=slow_create_engine):
            threads = [threading.Thread(target=worker) for _ in range(8)]
            for t in threads:
                t.start()
            for t in threads:
                t.join()

        assert len(calls) == 1
        assert len({id(e) for e in engines}) == 1
        database.dispose()

    def test_dispose_allows_reinitialization(self, tmp_path):
        database = Database(f"sqlite:///{tmp_path / 'again.db'}")
        first = database.engine
        database.dispose()
        assert not database.initialized
        assert database.engine is not first
        database.dispose()

    def test_from_settings(self):
        settings = Settings(
            database_url="postgresql+psycopg://u:p@db:5432/orders",
            pool_size=3,
            pool_timeout=1.5,
            auth_token_command="echo token",
        )
        database = Database.from_settings(settings)
        assert database.pool_size == 3
        assert database.pool_timeout == 1.5
        assert isinstance(database.token_provider, CommandTokenProvider)
        assert not database.initialized


class TestTranslateError:

    def test_pool_timeout_is_transient(self):
        assert isinstance(translate_error(sa_exc.TimeoutError("pool")), TransientConnectionError)

    def test_operational_is_transient(self):
        err = sa_exc.OperationalError("SELECT 1", {}, Exception("server closed the connection"))
        assert isinstance(translate_error(err), TransientConnectionError)

    def test_integrity_is_persistence(self):
        err = sa_exc.IntegrityError("INSERT ...", {}, Exception("duplicate key"))
        translated = translate_error(err)
        assert isinstance(translated, PersistenceError)
        assert "INSERT" not in translated.message

    def test_disconnect_is_transient(self):
        err = sa_exc.DBAPIError("SELECT 1", {}, Exception("gone"), connection_invalidated=True)
        assert isinstance(translate_error(err), TransientConnectionError)


class TestSessionScope:

    def test_rollback_on_error(self, database):
        database.engine  # crea el pool
        with pytest.raises(RuntimeError):
            with database.session_scope() as session:
                session.execute(text("INSERT INTO customers (id, name) VALUES ('X1', 'Temp')"))
                raise RuntimeError("boom")
        with database.session_scope() as session:
            assert session.execute(text("SELECT COUNT(*) FROM customers")).scalar_one() == 0

    def test_connection_released_on_every_path(self, database, manager, seed):
        pool = database.engine.pool
        with pytest.raises(ValidationError):
            manager.create_order("C1", "Weekly", [])
        with pytest.raises(PersistenceError):
            with database.session_scope() as session:
                session.execute(text("INSERT INTO customers (id, name) VALUES ('C1', 'Dup')"))
        manager.create_order("C1", "Weekly", [{"product_id": "P1", "quantity": 1, "weight_oz": 1, "unit_price": 4}])
        assert pool.checkedout() == 0

    def test_pool_exhaustion_is_transient(self, tmp_path):
        database = Database(f"sqlite:///{tmp_path / 'tiny.db'}", pool_size=1, max_overflow=0, pool_timeout=0.2)
        database.create_schema()
        manager = OrderTransactionManager(database)
        held = database.engine.connect()
        try:
            with pytest.raises(TransientConnectionError) as exc:
                manager.create_order("C1", "Weekly", [{"product_id": "P1", "quantity": 1, "unit_price": 1}])
            assert exc.value.retryable
            # la validacion no necesita conexion
            with pytest.raises(ValidationError):
                manager.create_order("C1", "Weekly", [])
        finally:
            held.close()
            database.dispose()


class TestTokenProviders:

    def test_command_provider_returns_stdout(self):
        assert CommandTokenProvider("echo tok-123")() == "tok-123"

    def test_command_failure_is_transient(self):
        with pytest.raises(TransientConnectionError):
            CommandTokenProvider("false")()

    def test_missing_command_is_transient(self):
        with pytest.raises(TransientConnectionError):
            CommandTokenProvider("/nonexistent/token-tool --region x")()

    def test_provider_failure_blocks_writes(self, seed, database):
        def broken():
            raise TransientConnectionError("Could not obtain database credentials")

        other = Database(str(database.url), token_provider=broken)
        with pytest.raises(TransientConnectionError):
            OrderTransactionManager(other).create_order(
                "C1", "Weekly", [{"product_id": "P1", "quantity": 1, "unit_price": 1}]
            )
        other.dispose()
