from __future__ import annotations

import logging

from sqlalchemy import create_engine
from sqlalchemy.engine import URL, Engine, make_url


logger = logging.getLogger(__name__)

# Esquemas de lib/pq que SQLAlchemy 2.x ya no reconoce como dialecto
_LEGACY_SCHEMES = ("postgres",)
DEFAULT_DRIVERNAME = "postgresql+psycopg2"


def is_url_dsn(connect_string: str) -> bool:
    return "://" in connect_string


def normalize_url(connect_string: str) -> URL:
    """URL lista para ``create_engine``; ``postgres://`` pasa a psycopg2."""
    url = make_url(connect_string)
    if url.drivername in _LEGACY_SCHEMES:
        return url.set(drivername=DEFAULT_DRIVERNAME)
    return url


def describe_connect_string(connect_string: str) -> str:
    """Versión del connection string apta para logs (sin contraseña)."""
    if is_url_dsn(connect_string):
        return make_url(connect_string).render_as_string(hide_password=True)

    parts = []
    for token in connect_string.split():
        key, sep, _ = token.partition("=")
        if sep and key.lower() == "password":
            parts.append(f"{key}=***")
        else:
            parts.append(token)
    return " ".join(parts)


def create_store_engine(connect_string: str) -> Engine:
    # Acepta tanto URLs (postgres[ql]://user:pw@host/db) como DSN libpq
    # en formato key=value (host=... dbname=...), que se pasan a psycopg2 tal cual.
    logger.info("[DB] Creating engine conn=%s", describe_connect_string(connect_string))

    if is_url_dsn(connect_string):
        return create_engine(normalize_url(connect_string), pool_pre_ping=True, future=True)

    return create_engine(
        f"{DEFAULT_DRIVERNAME}://",
        connect_args={"dsn": connect_string},
        pool_pre_ping=True,
        future=True,
    )
