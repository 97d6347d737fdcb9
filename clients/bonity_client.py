"""HTTP client for the bonity (creditworthiness) person lookup."""

import logging
from typing import Optional

import httpx
from pydantic import ValidationError

from clients.base import ServiceClient
from clients.schemas import BonitySearchResponse
from engines.base import BonityResult, BonityService, PersonQuery, RemoteServiceError

logger = logging.getLogger(__name__)


class BonityClient(ServiceClient, BonityService):
    """Calls GET /api/crif/searchPerson."""

    service_name = "Bonity service"
    SEARCH_PATH = "/api/crif/searchPerson"

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout: float = 30.0,
        client: Optional[httpx.Client] = None,
    ):
        super().__init__(base_url, api_key, timeout, client)

    def search_person(self, query: PersonQuery) -> BonityResult:
        data = self.request("GET", self.SEARCH_PATH, params=query.to_payload())
        if not data:
            raise RemoteServiceError("Keine Bonitätsauskunft erhalten")

        try:
            result = BonitySearchResponse.model_validate(data)
        except ValidationError as e:
            raise RemoteServiceError("Ungültige Bonitätsauskunft", detail=str(e)) from e

        return BonityResult(
            colour=result.bonitaet,
            comment=result.bonitaet_kommentar or "",
            audit=result.audit_flag,
            report_id=None if result.report_id is None else str(result.report_id),
        )
