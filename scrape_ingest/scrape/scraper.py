"""Scraper HTTP del endpoint de métricas."""

from __future__ import annotations

import logging
import threading
from typing import Dict, Optional

import requests

from ..core.domain.errors import RequestError, TransportError
from .exposition import ExpositionRules, ParseStats, parse_exposition

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10.0

_MALFORMED_REQUEST_ERRORS = (
    requests.exceptions.MissingSchema,
    requests.exceptions.InvalidSchema,
    requests.exceptions.InvalidURL,
    requests.exceptions.URLRequired,
)


class MetricsScraper:
    """Obtiene el payload de exposición y lo convierte en reading set.

    No reintenta: cualquier fallo de red sale inmediatamente al caller.
    """

    def __init__(
        self,
        endpoint: str,
        rules: Optional[ExpositionRules] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        session: Optional[requests.Session] = None,
    ):
        self.endpoint = endpoint
        self.rules = rules or ExpositionRules()
        self.timeout = timeout
        self._session = session or requests.Session()

    def scrape(self, cancel_event: Optional[threading.Event] = None) -> Dict[str, int]:
        """Ejecuta un scrape completo.

        Args:
            cancel_event: Si ya está activo antes de enviar, no se envía la petición

        Returns:
            Reading set del scrape

        Raises:
            RequestError: URL inválida o scrape cancelado antes de enviar
            TransportError: Endpoint inaccesible, timeout o status no 2xx
        """
        if cancel_event is not None and cancel_event.is_set():
            raise RequestError("scrape cancelled before request was sent")

        try:
            response = self._session.get(self.endpoint, timeout=self.timeout)
        except _MALFORMED_REQUEST_ERRORS as e:
            raise RequestError(f"failed to create request for {self.endpoint!r}: {e}") from e
        except requests.exceptions.RequestException as e:
            raise TransportError(f"failed to execute request to {self.endpoint!r}: {e}") from e

        try:
            if not 200 <= response.status_code < 300:
                raise TransportError(
                    f"unexpected status {response.status_code} from {self.endpoint!r}"
                )

            # Prometheus suele declarar charset; si no, asumir utf-8
            if not response.encoding:
                response.encoding = "utf-8"
            body = response.text
        finally:
            response.close()

        stats = ParseStats()
        readings = parse_exposition(body.splitlines(), self.rules, stats)
        logger.debug("[SCRAPE] %s stats=%s", self.endpoint, stats.as_dict())
        return readings

    def close(self) -> None:
        self._session.close()
