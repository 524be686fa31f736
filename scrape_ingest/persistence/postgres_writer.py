"""Escritura transaccional de lecturas en Postgres.

Ciclo de vida del handle:
- DISCONNECTED: sin engine (estado inicial, o tras un fallo de conexión)
- READY: engine abierto + registro de sensores cargado

Conectar y preparar es un único paso: una conexión sin registro cargado
no se considera utilizable, y un fallo no deja estado "roto" cacheado.

Esquema esperado:
    sensors(id INTEGER, name TEXT)
    sensor_readings(ts TIMESTAMPTZ, sensor INTEGER, <columna> ...)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, List, Mapping, Optional

from sqlalchemy import DateTime, bindparam, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.sql.elements import TextClause

from common.db import create_store_engine, describe_connect_string

from ..core.domain.errors import (
    NotConnectedError,
    NotPreparedError,
    TransactionError,
)
from ..core.domain.sink_interface import IReadingSink, SinkState
from .sensor_registry import SensorRegistry

logger = logging.getLogger(__name__)

DEFAULT_READING_COLUMN = "reading"

# El nombre de columna se interpola en el SQL: solo se aceptan estos.
ALLOWED_READING_COLUMNS = frozenset({"reading", "value", "reading_raw", "reading_scaled"})


def build_insert_statement(column: str) -> TextClause:
    if column not in ALLOWED_READING_COLUMNS:
        raise ValueError(
            f"reading column {column!r} not allowed (allowed: {sorted(ALLOWED_READING_COLUMNS)})"
        )
    return text(
        f"INSERT INTO sensor_readings (ts, sensor, {column}) VALUES (:ts, :sensor, :value)"
    ).bindparams(bindparam("ts", type_=DateTime(timezone=True)))


def to_utc(ts: datetime) -> datetime:
    """Normaliza a UTC; un datetime naive se interpreta como UTC."""
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


@dataclass(frozen=True)
class PostgresWriterConfig:
    connect_string: str
    reading_column: str = DEFAULT_READING_COLUMN


@dataclass(frozen=True)
class ReadyStore:
    """Handle listo para escribir: engine + registro cargado."""
    engine: Engine
    registry: SensorRegistry


class PostgresReadingWriter(IReadingSink):
    """Escribe el reading set de cada tick en una sola transacción."""

    name = "postgres"

    def __init__(
        self,
        config: PostgresWriterConfig,
        engine_factory: Callable[[str], Engine] = create_store_engine,
    ):
        self._config = config
        self._engine_factory = engine_factory
        self._insert = build_insert_statement(config.reading_column)
        self._store: Optional[ReadyStore] = None

        # Métricas
        self._ticks_written = 0
        self._rows_written = 0
        self._rows_skipped = 0
        self._last_row_count = 0

    @property
    def reading_column(self) -> str:
        return self._config.reading_column

    @property
    def state(self) -> SinkState:
        return SinkState.READY if self._store is not None else SinkState.DISCONNECTED

    def connect(self) -> ReadyStore:
        """Conecta y carga el registro de sensores (lazy, idempotente).

        Raises:
            NotConnectedError: Sin connection string o conexión fallida
            QueryError: Fallo al cargar el catálogo de sensores
        """
        if self._store is not None:
            return self._store

        if not self._config.connect_string:
            raise NotConnectedError("postgres connection string not set")

        # make_url lanza ValueError con un puerto no numérico
        try:
            logger.info(
                "[DB] Connecting conn=%s",
                describe_connect_string(self._config.connect_string),
            )
            engine = self._engine_factory(self._config.connect_string)
        except (SQLAlchemyError, ValueError) as e:
            raise NotConnectedError(f"failed to create engine: {e}") from e

        registry = SensorRegistry()
        try:
            with engine.connect() as conn:
                registry.load(conn)
        except SQLAlchemyError as e:
            engine.dispose()
            raise NotConnectedError(f"failed to connect to db: {e}") from e
        except Exception:
            engine.dispose()
            raise

        self._store = ReadyStore(engine=engine, registry=registry)
        logger.info("[DB] Ready column=%s sensors=%d", self.reading_column, len(registry))
        return self._store

    def disconnect(self) -> None:
        """Vuelve a DISCONNECTED liberando el engine."""
        store, self._store = self._store, None
        if store is not None:
            store.registry.clear()
            store.engine.dispose()
            logger.info("[DB] Disconnected")

    def reconnect(self) -> ReadyStore:
        """Ciclo explícito de recarga: desconecta, reconecta y recarga el registro."""
        self.disconnect()
        return self.connect()

    def write(self, timestamp: datetime, readings: Mapping[str, int]) -> None:
        """Inserta las lecturas resolubles del tick en una transacción.

        Los sensores que no están en el registro se descartan con warning
        (no es un fallo del lote). Cualquier fallo de insert aborta el lote
        completo: no hay commits parciales.

        Raises:
            NotConnectedError: Sin connection string o conexión fallida
            NotPreparedError: Registro de sensores no cargado
            QueryError: Fallo al cargar el registro en la conexión lazy
            TransactionError: Fallo al abrir, insertar o hacer commit
        """
        store = self.connect()
        if not store.registry.loaded:
            raise NotPreparedError("writer not prepared")

        ts_utc = to_utc(timestamp)
        rows: List[Dict[str, object]] = []
        skipped = 0
        for name, value in readings.items():
            sensor_id = store.registry.resolve(name)
            if sensor_id is None:
                logger.warning("[DB] unknown sensor: %s", name)
                skipped += 1
                continue
            rows.append({"ts": ts_utc, "sensor": sensor_id, "value": value})

        self._rows_skipped += skipped
        if not rows:
            self._last_row_count = 0
            logger.info("[DB] Nothing to write ts=%s skipped=%d", ts_utc.isoformat(), skipped)
            return

        try:
            with store.engine.begin() as conn:
                for index, row in enumerate(rows, start=1):
                    try:
                        conn.execute(self._insert, row)
                    except SQLAlchemyError as e:
                        raise TransactionError(
                            f"failed to insert row {index}/{len(rows)} (sensor={row['sensor']}): {e}"
                        ) from e
        except TransactionError:
            raise
        except SQLAlchemyError as e:
            raise TransactionError(f"transaction failed: {e}") from e

        self._ticks_written += 1
        self._rows_written += len(rows)
        self._last_row_count = len(rows)
        logger.info(
            "[DB] Committed transaction ts=%s count=%d skipped=%d",
            ts_utc.isoformat(), len(rows), skipped,
        )

    def get_stats(self) -> dict:
        """Retorna estadísticas del writer."""
        return {
            "state": self.state.value,
            "column": self.reading_column,
            "ticks_written": self._ticks_written,
            "rows_written": self._rows_written,
            "rows_skipped": self._rows_skipped,
            "last_row_count": self._last_row_count,
        }
