from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Optional, Tuple

from dotenv import load_dotenv


DEFAULT_SCRAPE_ADDRESS = "http://127.0.0.1:9000/metrics"
DEFAULT_READING_COLUMN = "reading"


def _default_env_file() -> str:
    # .env junto al directorio de trabajo; las variables reales siempre ganan.
    return str(Path.cwd() / ".env")


def _split_prefixes(raw: str) -> Tuple[str, ...]:
    return tuple(p.strip() for p in raw.split(",") if p.strip())


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    scrape_address: str
    scrape_timeout_seconds: float
    ignored_prefixes: Tuple[str, ...]
    scaled_prefixes: Tuple[str, ...]
    scale_factor: int

    postgres_connect_string: str
    postgres_column: str

    kafka_bootstrap: str
    kafka_topic: str
    kafka_sa_key: str
    kafka_sa_secret: str
    kafka_client_id: str
    kafka_wait_for_delivery: bool
    kafka_flush_timeout_seconds: float

    tick_period_seconds: float
    log_level: str

    @property
    def postgres_enabled(self) -> bool:
        return bool(self.postgres_connect_string)

    @property
    def kafka_enabled(self) -> bool:
        return bool(self.kafka_bootstrap)


def get_settings() -> Settings:
    # Carga el .env (si existe) sin pisar variables de entorno reales.
    env_file = os.getenv("SENSTORE_ENV_FILE", _default_env_file())
    if env_file and Path(env_file).exists():
        load_dotenv(env_file, override=False)

    return Settings(
        scrape_address=os.getenv("SCRAPE_ADDRESS", "") or DEFAULT_SCRAPE_ADDRESS,
        scrape_timeout_seconds=float(os.getenv("SCRAPE_TIMEOUT_SECONDS", "10")),
        ignored_prefixes=_split_prefixes(
            os.getenv("SCRAPE_IGNORED_PREFIXES", "go_,promhttp_,process_")
        ),
        scaled_prefixes=_split_prefixes(
            os.getenv("SCRAPE_SCALED_PREFIXES", "temperature_,pressure_")
        ),
        scale_factor=int(os.getenv("SCRAPE_SCALE_FACTOR", "1000")),
        postgres_connect_string=os.getenv("POSTGRES_CONNECT_STRING", ""),
        postgres_column=os.getenv("POSTGRES_COLUMN", "") or DEFAULT_READING_COLUMN,
        kafka_bootstrap=os.getenv("KAFKA_BOOTSTRAP", ""),
        kafka_topic=os.getenv("KAFKA_TOPIC", ""),
        kafka_sa_key=os.getenv("KAFKA_SA_KEY", ""),
        kafka_sa_secret=os.getenv("KAFKA_SA_SECRET", ""),
        kafka_client_id=os.getenv("KAFKA_CLIENT_ID", "senstore-client"),
        kafka_wait_for_delivery=_env_bool("KAFKA_WAIT_FOR_DELIVERY"),
        kafka_flush_timeout_seconds=float(os.getenv("KAFKA_FLUSH_TIMEOUT_SECONDS", "10")),
        tick_period_seconds=float(os.getenv("TICK_PERIOD_SECONDS", "15")),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )


def apply_overrides(settings: Settings, **flags: Optional[object]) -> Settings:
    """Aplica flags de línea de comandos sobre la configuración de entorno.

    Un flag solo gana si está definido y no vacío; ``None`` y ``""``
    dejan el valor del entorno intacto.
    """
    changes = {
        name: value
        for name, value in flags.items()
        if value is not None and value != ""
    }
    if not changes:
        return settings
    return replace(settings, **changes)
