"""CLI entry point for the scrape → sinks daemon."""

from __future__ import annotations

import argparse
import logging
import signal
import sys
import threading
from typing import List, Optional, Sequence

from common.config import Settings, apply_overrides, get_settings
from scrape_ingest.broker.kafka_writer import KafkaReadingWriter, KafkaWriterConfig
from scrape_ingest.core.domain.errors import IngestError
from scrape_ingest.core.domain.sink_interface import IReadingSink
from scrape_ingest.persistence.postgres_writer import PostgresReadingWriter, PostgresWriterConfig
from scrape_ingest.scrape.exposition import ExpositionRules
from scrape_ingest.scrape.scraper import MetricsScraper

from .config import TickConfig
from .runner import TickLoop
from .schedule import TickSchedule

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="senstore",
        description="daemon to push sensor data to a data sink (postgres / kafka)",
    )
    # Sin defaults: un flag vacío o ausente deja el valor del entorno
    p.add_argument("-s", "--scrape-address", help="address to scrape readings")
    p.add_argument("-c", "--postgres-column", help="database column to write readings to")
    p.add_argument("-p", "--postgres-connect-string", help="postgres connection string")
    p.add_argument("--kafka-bootstrap", help="kafka bootstrap servers")
    p.add_argument("--kafka-topic", help="kafka topic")
    p.add_argument("--period-seconds", type=float, help="seconds between ticks")
    p.add_argument("--once", action="store_true", help="run a single tick and exit")
    return p


def settings_from_args(args: argparse.Namespace, settings: Optional[Settings] = None) -> Settings:
    return apply_overrides(
        settings or get_settings(),
        scrape_address=args.scrape_address,
        postgres_column=args.postgres_column,
        postgres_connect_string=args.postgres_connect_string,
        kafka_bootstrap=args.kafka_bootstrap,
        kafka_topic=args.kafka_topic,
        tick_period_seconds=args.period_seconds,
    )


def build_sinks(settings: Settings) -> List[IReadingSink]:
    """Sinks configurados, relacional primero."""
    sinks: List[IReadingSink] = []

    if settings.postgres_enabled:
        db_writer = PostgresReadingWriter(
            PostgresWriterConfig(
                connect_string=settings.postgres_connect_string,
                reading_column=settings.postgres_column,
            )
        )
        logger.info("using postgres writer column=%s", db_writer.reading_column)
        sinks.append(db_writer)

    if settings.kafka_enabled:
        kafka_writer = KafkaReadingWriter(
            KafkaWriterConfig(
                bootstrap=settings.kafka_bootstrap,
                topic=settings.kafka_topic,
                sa_key=settings.kafka_sa_key,
                sa_secret=settings.kafka_sa_secret,
                client_id=settings.kafka_client_id,
                wait_for_delivery=settings.kafka_wait_for_delivery,
                flush_timeout_seconds=settings.kafka_flush_timeout_seconds,
            )
        )
        logger.info(
            "using kafka writer topic=%s bootstrap=%s sa_key=%s",
            settings.kafka_topic, settings.kafka_bootstrap, settings.kafka_sa_key,
        )
        sinks.append(kafka_writer)

    if not sinks:
        logger.warning("no sink configured, readings will only be scraped")
    return sinks


def build_loop(
    settings: Settings,
    cfg: TickConfig,
    cancel_event: Optional[threading.Event] = None,
) -> TickLoop:
    rules = ExpositionRules(
        ignored_prefixes=settings.ignored_prefixes,
        scaled_prefixes=settings.scaled_prefixes,
        scale_factor=settings.scale_factor,
    )
    scraper = MetricsScraper(
        settings.scrape_address,
        rules=rules,
        timeout=settings.scrape_timeout_seconds,
    )
    return TickLoop(
        scraper,
        build_sinks(settings),
        TickSchedule(cfg.period_seconds),
        cancel_event=cancel_event,
        once=cfg.once,
    )


def _install_signal_handlers(cancel_event: threading.Event) -> None:
    def _handler(signum, frame):
        logger.info("received signal %d, stopping after current tick", signum)
        cancel_event.set()

    signal.signal(signal.SIGINT, _handler)
    signal.signal(signal.SIGTERM, _handler)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        settings = settings_from_args(args)
    except ValueError as e:
        logging.basicConfig(level=logging.INFO)
        logger.error("invalid configuration: %s", e)
        return 2

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler()],
    )

    cfg = TickConfig(period_seconds=settings.tick_period_seconds, once=bool(args.once))
    cancel_event = threading.Event()
    _install_signal_handlers(cancel_event)

    logger.info("senstore started scrape=%s period=%.1fs", settings.scrape_address, cfg.period_seconds)
    try:
        loop = build_loop(settings, cfg, cancel_event)
    except ValueError as e:
        logger.error("invalid configuration: %s", e)
        return 2

    try:
        outcome = loop.run()
    except IngestError as e:
        logger.error("failed to execute command: %s", e)
        return 1
    finally:
        for sink in loop.sinks:
            if isinstance(sink, KafkaReadingWriter):
                sink.close()

    logger.info("senstore stopped: %s stats=%s", outcome.value, loop.get_stats())
    return 0


if __name__ == "__main__":
    sys.exit(main())
