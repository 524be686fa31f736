"""Publicador del reading set a un topic Kafka.

Un único productor de larga vida, creado en el primer uso. Cada tick
publica exactamente un mensaje:
- key: ``b"readings"``
- value: reading set serializado (JSON)
- timestamp: hora del tick (create-time, no la del broker)

Por defecto es fire-and-forget: el envío solo se encola y los delivery
reports se registran fuera de banda. Con ``wait_for_delivery`` se hace
flush tras cada mensaje y un mensaje no confirmado es un PublishError.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Mapping, Optional

from confluent_kafka import KafkaException, Producer

from ..core.domain.errors import ProducerCreationError, PublishError
from ..core.domain.reading_set import serialize_readings
from ..core.domain.sink_interface import IReadingSink, SinkState

logger = logging.getLogger(__name__)

MESSAGE_KEY = b"readings"
DEFAULT_CLIENT_ID = "senstore-client"


@dataclass(frozen=True)
class KafkaWriterConfig:
    bootstrap: str
    topic: str
    sa_key: str = ""
    sa_secret: str = ""
    client_id: str = DEFAULT_CLIENT_ID
    wait_for_delivery: bool = False
    flush_timeout_seconds: float = 10.0


def build_producer_config(config: KafkaWriterConfig) -> Dict[str, Any]:
    return {
        "bootstrap.servers": config.bootstrap,
        "sasl.username": config.sa_key,
        "sasl.password": config.sa_secret,
        "security.protocol": "SASL_SSL",
        "sasl.mechanisms": "PLAIN",
        "client.id": config.client_id,
    }


def to_epoch_millis(ts: datetime) -> int:
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return int(ts.timestamp() * 1000)


class KafkaReadingWriter(IReadingSink):
    """Publica un mensaje por tick al topic configurado."""

    name = "kafka"

    def __init__(
        self,
        config: KafkaWriterConfig,
        producer_factory: Callable[[Dict[str, Any]], Producer] = Producer,
    ):
        self._config = config
        self._producer_factory = producer_factory
        self._producer: Optional[Producer] = None

        # Métricas (los delivery reports llegan por callback)
        self._produced = 0
        self._delivered = 0
        self._delivery_failed = 0

    @property
    def topic(self) -> str:
        return self._config.topic

    @property
    def state(self) -> SinkState:
        return SinkState.READY if self._producer is not None else SinkState.DISCONNECTED

    def _ensure_producer(self) -> Producer:
        if self._producer is not None:
            return self._producer

        try:
            producer = self._producer_factory(build_producer_config(self._config))
        except (KafkaException, TypeError, ValueError) as e:
            raise ProducerCreationError(f"failed to create producer: {e}") from e

        self._producer = producer
        logger.info(
            "[KAFKA] Producer created bootstrap=%s topic=%s sa_key=%s",
            self._config.bootstrap, self._config.topic, self._config.sa_key,
        )
        return producer

    def _on_delivery(self, err, msg) -> None:
        """Callback de delivery report (fuera de banda)."""
        if err is not None:
            self._delivery_failed += 1
            logger.error("[KAFKA] Delivery failed topic=%s: %s", self._config.topic, err)
            return
        self._delivered += 1
        logger.debug(
            "[KAFKA] Delivered topic=%s partition=%s offset=%s",
            msg.topic(), msg.partition(), msg.offset(),
        )

    def produce(self, timestamp: datetime, payload: bytes) -> None:
        """Encola un mensaje con el payload ya serializado.

        Raises:
            ProducerCreationError: El productor no pudo crearse
            PublishError: El mensaje no pudo encolarse (o confirmarse)
        """
        producer = self._ensure_producer()

        try:
            producer.produce(
                self._config.topic,
                key=MESSAGE_KEY,
                value=payload,
                timestamp=to_epoch_millis(timestamp),
                on_delivery=self._on_delivery,
            )
        except (BufferError, KafkaException) as e:
            raise PublishError(f"failed to enqueue message to {self._config.topic!r}: {e}") from e

        # Atiende delivery reports pendientes sin bloquear
        producer.poll(0)
        self._produced += 1

        if self._config.wait_for_delivery:
            remaining = producer.flush(self._config.flush_timeout_seconds)
            if remaining > 0:
                raise PublishError(
                    f"{remaining} message(s) not acknowledged after "
                    f"{self._config.flush_timeout_seconds:.1f}s"
                )

    def write(self, timestamp: datetime, readings: Mapping[str, int]) -> None:
        payload = serialize_readings(readings)
        self.produce(timestamp, payload)
        logger.info(
            "[KAFKA] Produced topic=%s ts=%s bytes=%d",
            self._config.topic, timestamp.isoformat(), len(payload),
        )

    def close(self, timeout: float = 5.0) -> int:
        """Flush de mensajes pendientes al apagar. Retorna los no entregados."""
        if self._producer is None:
            return 0
        remaining = self._producer.flush(timeout)
        if remaining:
            logger.warning("[KAFKA] %d message(s) still queued at shutdown", remaining)
        return remaining

    def get_stats(self) -> dict:
        """Retorna estadísticas del writer."""
        return {
            "state": self.state.value,
            "topic": self._config.topic,
            "produced": self._produced,
            "delivered": self._delivered,
            "delivery_failed": self._delivery_failed,
        }
