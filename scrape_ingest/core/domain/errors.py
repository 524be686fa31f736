"""Errores del pipeline scrape → sinks.

Todos son fatales para el proceso: el loop de ticks no reintenta, se
registra el error y el supervisor reinicia el proceso. Los problemas por
línea (split inválido, número no parseable) y los sensores desconocidos
NO son errores: se registran como warning y se descartan.
"""

from __future__ import annotations


class IngestError(Exception):
    """Base de todos los errores del pipeline."""


# --- Scrape ---------------------------------------------------------------

class TransportError(IngestError):
    """Endpoint inaccesible o respuesta con status no exitoso."""


class RequestError(IngestError):
    """La petición no pudo construirse (URL inválida, cancelada antes de enviar)."""


# --- Relacional -----------------------------------------------------------

class NotConnectedError(IngestError):
    """No hay connection string configurado o la conexión no pudo abrirse."""


class NotPreparedError(IngestError):
    """El registro de sensores no está cargado."""


class QueryError(IngestError):
    """Fallo al consultar el catálogo de sensores."""


class TransactionError(IngestError):
    """Fallo en cualquier paso de la transacción de escritura."""


# --- Broker ---------------------------------------------------------------

class ProducerCreationError(IngestError):
    """El productor no pudo instanciarse (configuración inválida)."""


class PublishError(IngestError):
    """El mensaje no pudo encolarse (o confirmarse, si se espera entrega)."""
