"""Registro de sensores: nombre de métrica → sensor_id.

Se carga de una sola vez por ciclo de conexión. No se refresca solo: si
el catálogo cambia, hace falta un ciclo explícito de reconexión.
"""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Dict, Mapping, Optional

from sqlalchemy import text
from sqlalchemy.engine import Connection
from sqlalchemy.exc import SQLAlchemyError

from ..core.domain.errors import NotPreparedError, QueryError

logger = logging.getLogger(__name__)

SENSOR_CATALOG_QUERY = "SELECT id, name FROM sensors"


class SensorRegistry:
    """Mapa de solo lectura nombre → sensor_id."""

    def __init__(self) -> None:
        self._sensors: Optional[Mapping[str, int]] = None

    @property
    def loaded(self) -> bool:
        return self._sensors is not None

    def load(self, conn: Connection) -> Mapping[str, int]:
        """Carga todo el catálogo de sensores.

        Args:
            conn: Conexión SQLAlchemy abierta

        Returns:
            Mapping de solo lectura nombre → sensor_id

        Raises:
            QueryError: Fallo en la consulta o al leer las filas
        """
        sensors: Dict[str, int] = {}
        try:
            rows = conn.execute(text(SENSOR_CATALOG_QUERY)).fetchall()
        except SQLAlchemyError as e:
            raise QueryError(f"failed to query sensor catalog: {e}") from e

        for row in rows:
            try:
                sensor_id, name = int(row[0]), str(row[1])
            except (TypeError, ValueError, IndexError) as e:
                raise QueryError(f"failed to scan sensor row {row!r}: {e}") from e
            if name in sensors:
                logger.warning(
                    "[DB] duplicate sensor name %s (ids %d, %d), keeping last",
                    name, sensors[name], sensor_id,
                )
            sensors[name] = sensor_id

        self._sensors = MappingProxyType(sensors)
        logger.info("[DB] Loaded %d sensors: %s", len(sensors), dict(sensors))
        return self._sensors

    def resolve(self, name: str) -> Optional[int]:
        """sensor_id para un nombre, o None si el sensor no está en el catálogo."""
        if self._sensors is None:
            raise NotPreparedError("sensor registry not loaded")
        return self._sensors.get(name)

    def snapshot(self) -> Mapping[str, int]:
        if self._sensors is None:
            raise NotPreparedError("sensor registry not loaded")
        return self._sensors

    def clear(self) -> None:
        self._sensors = None

    def __len__(self) -> int:
        return len(self._sensors) if self._sensors is not None else 0
