"""Broker - Publicación del reading set a Kafka."""

from .kafka_writer import KafkaReadingWriter, KafkaWriterConfig

__all__ = ["KafkaReadingWriter", "KafkaWriterConfig"]
