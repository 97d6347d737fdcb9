"""Maximum insurable income (versicherter Verdienst) lookup."""

import logging
from datetime import date
from typing import Any, Callable, Optional

import httpx

from clients.base import ServiceClient
from engines.base import IncomeCeilingService

logger = logging.getLogger(__name__)


def parse_income_ceiling(data: Any) -> Optional[float]:
    """Extract the ceiling from the service's response.

    Accepts a bare number, a numeric string, a list whose first element
    carries ``versverdienst``, or a dict with ``versverdienst``.
    """
    if isinstance(data, bool):
        return None
    if isinstance(data, (int, float)):
        return float(data)
    if isinstance(data, str):
        try:
            return float(int(data.strip()))
        except ValueError:
            logger.warning(f"Income ceiling is not a number: {data!r}")
            return None
    if isinstance(data, list):
        return parse_income_ceiling(data[0]) if data else None
    if isinstance(data, dict) and "versverdienst" in data:
        return parse_income_ceiling(data["versverdienst"])
    return None


class IncomeCeilingClient(ServiceClient, IncomeCeilingService):
    """Calls GET /api/admin/versverdienst/searchVersVerdienst."""

    service_name = "Income ceiling service"
    SEARCH_PATH = "/api/admin/versverdienst/searchVersVerdienst"

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout: float = 30.0,
        client: Optional[httpx.Client] = None,
        today: Optional[Callable[[], date]] = None,
    ):
        super().__init__(base_url, api_key, timeout, client)
        self._today = today or date.today

    def max_insured_income(self) -> Optional[float]:
        data = self.request(
            "GET", self.SEARCH_PATH, params={"gueltab": self._today().isoformat()}
        )
        ceiling = parse_income_ceiling(data)
        if ceiling is None:
            logger.warning("Income ceiling response carried no value")
        return ceiling


class CachedIncomeCeiling(IncomeCeilingService):
    """Fetches the ceiling once and serves it from memory afterwards.

    A failed or empty lookup is not cached, so the next call retries.
    """

    def __init__(self, service: IncomeCeilingService):
        self.service = service
        self._value: Optional[float] = None

    def max_insured_income(self) -> Optional[float]:
        if self._value is None:
            self._value = self.service.max_insured_income()
            if self._value is not None:
                logger.info(f"Income ceiling: {self._value:,.0f}")
        return self._value

    def clear(self) -> None:
        self._value = None
