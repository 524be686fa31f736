"""Tests del registro de sensores y del writer relacional.

Usa SQLite en archivo temporal como backend: mismo SQL, misma semántica
transaccional (BEGIN/COMMIT/ROLLBACK) que Postgres para estos casos.

Ejecutar:
    pytest tests/test_postgres_writer.py -v
"""

from datetime import datetime, timedelta, timezone
from typing import List

import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import ArgumentError

from scrape_ingest.core.domain.errors import (
    NotConnectedError,
    NotPreparedError,
    QueryError,
    TransactionError,
)
from scrape_ingest.core.domain.sink_interface import SinkState
from scrape_ingest.persistence.postgres_writer import (
    PostgresReadingWriter,
    PostgresWriterConfig,
    build_insert_statement,
    to_utc,
)
from scrape_ingest.persistence.sensor_registry import SensorRegistry

TS = datetime(2025, 3, 1, 12, 0, 15, tzinfo=timezone.utc)


# =============================================================================
# FIXTURES
# =============================================================================

def _create_schema(engine: Engine, sensors) -> None:
    with engine.begin() as conn:
        conn.execute(text("CREATE TABLE sensors (id INTEGER PRIMARY KEY, name TEXT NOT NULL)"))
        conn.execute(text(
            "CREATE TABLE sensor_readings ("
            " ts TEXT NOT NULL,"
            " sensor INTEGER NOT NULL,"
            " reading INTEGER CHECK (reading < 1000000),"
            " value INTEGER)"
        ))
        for sensor_id, name in sensors:
            conn.execute(
                text("INSERT INTO sensors (id, name) VALUES (:id, :name)"),
                {"id": sensor_id, "name": name},
            )


@pytest.fixture
def engine(tmp_path) -> Engine:
    engine = create_engine(f"sqlite:///{tmp_path / 'senstore.db'}")
    _create_schema(engine, [(1, "cpu_temp")])
    yield engine
    engine.dispose()


@pytest.fixture
def factory_calls() -> List[str]:
    return []


@pytest.fixture
def writer(engine, factory_calls) -> PostgresReadingWriter:
    def factory(connect_string: str) -> Engine:
        factory_calls.append(connect_string)
        return engine

    return PostgresReadingWriter(
        PostgresWriterConfig(connect_string="postgresql://u:pw@db/senstore"),
        engine_factory=factory,
    )


def stored_rows(engine: Engine, column: str = "reading"):
    with engine.connect() as conn:
        return conn.execute(
            text(f"SELECT sensor, {column} FROM sensor_readings ORDER BY sensor")
        ).fetchall()


# =============================================================================
# REGISTRO DE SENSORES
# =============================================================================

class TestSensorRegistry:

    def test_load_returns_name_keyed_map(self, engine):
        registry = SensorRegistry()
        with engine.connect() as conn:
            sensors = registry.load(conn)

        assert dict(sensors) == {"cpu_temp": 1}
        assert registry.loaded is True
        assert registry.resolve("cpu_temp") == 1
        assert registry.resolve("humidity") is None

    def test_loaded_map_is_read_only(self, engine):
        registry = SensorRegistry()
        with engine.connect() as conn:
            sensors = registry.load(conn)
        with pytest.raises(TypeError):
            sensors["humidity"] = 2

    def test_resolve_before_load(self):
        with pytest.raises(NotPreparedError):
            SensorRegistry().resolve("cpu_temp")

    def test_query_failure(self, tmp_path):
        empty = create_engine(f"sqlite:///{tmp_path / 'empty.db'}")
        registry = SensorRegistry()
        with empty.connect() as conn:
            with pytest.raises(QueryError):
                registry.load(conn)
        assert registry.loaded is False
        empty.dispose()


# =============================================================================
# CONEXIÓN LAZY
# =============================================================================

class TestLazyConnect:

    def test_starts_disconnected(self, writer, factory_calls):
        assert writer.state is SinkState.DISCONNECTED
        assert factory_calls == []

    def test_first_write_connects_and_prepares(self, writer, factory_calls):
        writer.write(TS, {"cpu_temp": 23500})
        writer.write(TS + timedelta(seconds=15), {"cpu_temp": 23600})

        assert writer.state is SinkState.READY
        assert len(factory_calls) == 1

    def test_missing_connect_string(self):
        writer = PostgresReadingWriter(PostgresWriterConfig(connect_string=""))
        with pytest.raises(NotConnectedError):
            writer.write(TS, {"cpu_temp": 1})

    def test_engine_failure_not_cached(self, engine):
        """Un fallo de conexión no deja estado roto: el siguiente uso reintenta."""
        attempts = []

        def flaky_factory(connect_string):
            attempts.append(connect_string)
            if len(attempts) == 1:
                raise ArgumentError("bad url")
            return engine

        writer = PostgresReadingWriter(
            PostgresWriterConfig(connect_string="postgresql://db/x"),
            engine_factory=flaky_factory,
        )
        with pytest.raises(NotConnectedError):
            writer.write(TS, {"cpu_temp": 1})
        assert writer.state is SinkState.DISCONNECTED

        writer.write(TS, {"cpu_temp": 1})
        assert writer.state is SinkState.READY
        assert len(attempts) == 2

    @pytest.mark.parametrize("connect_string", [
        "postgresql://u@db:notaport/senstore",
        "not a url://",
    ])
    def test_malformed_url_is_not_connected(self, connect_string):
        """Un connection string inválido se reporta como NotConnectedError."""
        writer = PostgresReadingWriter(PostgresWriterConfig(connect_string=connect_string))
        with pytest.raises(NotConnectedError):
            writer.write(TS, {"cpu_temp": 1})
        assert writer.state is SinkState.DISCONNECTED

    def test_registry_failure_leaves_disconnected(self, tmp_path):
        empty = create_engine(f"sqlite:///{tmp_path / 'empty.db'}")
        writer = PostgresReadingWriter(
            PostgresWriterConfig(connect_string="postgresql://db/x"),
            engine_factory=lambda _: empty,
        )
        with pytest.raises(QueryError):
            writer.write(TS, {"cpu_temp": 1})
        assert writer.state is SinkState.DISCONNECTED

    def test_write_requires_loaded_registry(self, writer):
        store = writer.connect()
        store.registry.clear()
        with pytest.raises(NotPreparedError):
            writer.write(TS, {"cpu_temp": 1})

    def test_reconnect_reloads_registry(self, writer, engine, factory_calls):
        writer.connect()
        with engine.begin() as conn:
            conn.execute(text("INSERT INTO sensors (id, name) VALUES (2, 'humidity')"))

        # Sin reconexión explícita el registro sigue viejo
        writer.write(TS, {"humidity": 55})
        assert stored_rows(engine) == []

        writer.reconnect()
        writer.write(TS, {"humidity": 55})
        assert stored_rows(engine) == [(2, 55)]
        assert len(factory_calls) == 2


# =============================================================================
# ESCRITURA TRANSACCIONAL
# =============================================================================

class TestWrite:

    def test_unknown_sensor_skipped(self, writer, engine):
        """Registro {cpu_temp: 1}: solo se inserta (ts, 1, 23500)."""
        writer.write(TS, {"cpu_temp": 23500, "humidity": 55})

        assert stored_rows(engine) == [(1, 23500)]
        stats = writer.get_stats()
        assert stats["rows_written"] == 1
        assert stats["rows_skipped"] == 1
        assert stats["last_row_count"] == 1

    def test_timestamp_stored_in_utc(self, writer, engine):
        local = TS.astimezone(timezone(timedelta(hours=2)))
        writer.write(local, {"cpu_temp": 1})

        with engine.connect() as conn:
            ts = conn.execute(text("SELECT ts FROM sensor_readings")).scalar_one()
        assert str(ts).startswith("2025-03-01 12:00:15")

    def test_only_unknown_sensors_is_noop(self, writer, engine):
        writer.write(TS, {"humidity": 55})
        assert stored_rows(engine) == []

    def test_insert_failure_rolls_back_batch(self, tmp_path):
        """Fallo en la fila 2 de 3 → ninguna fila del lote persiste."""
        engine = create_engine(f"sqlite:///{tmp_path / 'atomic.db'}")
        _create_schema(engine, [(1, "cpu_temp"), (2, "temperature_room"), (3, "humidity")])
        writer = PostgresReadingWriter(
            PostgresWriterConfig(connect_string="postgresql://db/x"),
            engine_factory=lambda _: engine,
        )

        readings = {"cpu_temp": 23500, "temperature_room": 5_000_000, "humidity": 55}
        with pytest.raises(TransactionError, match="row 2/3"):
            writer.write(TS, readings)

        assert stored_rows(engine) == []
        assert writer.get_stats()["rows_written"] == 0
        engine.dispose()

    def test_configured_column(self, engine):
        writer = PostgresReadingWriter(
            PostgresWriterConfig(connect_string="postgresql://db/x", reading_column="value"),
            engine_factory=lambda _: engine,
        )
        writer.write(TS, {"cpu_temp": 7})
        assert stored_rows(engine, "value") == [(1, 7)]


class TestColumnAllowList:

    def test_default_statement(self):
        stmt = build_insert_statement("reading")
        assert str(stmt) == "INSERT INTO sensor_readings (ts, sensor, reading) VALUES (:ts, :sensor, :value)"

    @pytest.mark.parametrize("column", ["reading; DROP TABLE sensors", "ts", "", "Reading"])
    def test_rejects_unknown_column(self, column):
        with pytest.raises(ValueError):
            PostgresReadingWriter(PostgresWriterConfig(connect_string="x", reading_column=column))


def test_to_utc_naive_is_utc():
    assert to_utc(datetime(2025, 1, 1, 10, 0)) == datetime(2025, 1, 1, 10, 0, tzinfo=timezone.utc)
