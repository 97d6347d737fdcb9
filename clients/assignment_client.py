"""HTTP client for the technical assignment calculation."""

import logging
from typing import Any, Dict, Optional

import httpx
from pydantic import ValidationError

from clients.base import ServiceClient
from clients.schemas import CalculatedBBResponse
from engines.base import (
    AssignmentEntry,
    AssignmentService,
    RemoteServiceError,
    TechnicalAssignment,
    TechnicalBasis,
)
from engines.formulas import to_number

logger = logging.getLogger(__name__)


class AssignmentClient(ServiceClient, AssignmentService):
    """Calls POST /api/offerte/fuvbb/calculateFuvBB."""

    service_name = "Technical assignment service"
    CALCULATE_PATH = "/api/offerte/fuvbb/calculateFuvBB"

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout: float = 30.0,
        client: Optional[httpx.Client] = None,
    ):
        super().__init__(base_url, api_key, timeout, client)

    def calculate(
        self, quote_id: int, basis: TechnicalBasis, requested_by: str
    ) -> TechnicalAssignment:
        payload = build_calculation_request(quote_id, basis, requested_by)
        logger.debug(f"Calculation request: {payload}")
        data = self.request("POST", self.CALCULATE_PATH, json=payload)

        results = data if isinstance(data, list) else [data] if data else []
        if not results:
            raise RemoteServiceError("Berechnung lieferte kein Ergebnis")

        try:
            result = CalculatedBBResponse.model_validate(results[0])
        except ValidationError as e:
            raise RemoteServiceError("Ungültige Antwort der Berechnung", detail=str(e)) from e

        return to_technical_assignment(result)


def build_calculation_request(
    quote_id: int, basis: TechnicalBasis, requested_by: str
) -> Dict[str, Any]:
    return {
        "offerte_id": quote_id,
        "updatedby": requested_by,
        "stellenprozente": to_number(basis.work_percentage),
        "anzahlma": "" if basis.headcount is None else str(basis.headcount),
        "bb2merkmal": [
            {
                "merkmal_boid": activity.activity_id,
                "prozent": to_number(activity.percentage),
                "merkmal_internalname": activity.activity_code,
            }
            for activity in basis.activities
        ],
    }


def to_technical_assignment(result: CalculatedBBResponse) -> TechnicalAssignment:
    return TechnicalAssignment(
        base_premium_rate=result.nettopraemiensatz or 0.0,
        base_level=result.basisstufe,
        entries=[
            AssignmentEntry(
                assignment_type=row.type,
                risk_class=row.klasse or "",
                class_portion=row.anteil,
                subclass_part=row.ukt or "",
            )
            for row in result.bbtezu
        ],
        admin_cost_rate=result.vksatz,
        agency_competence=result.agenturkompetenz,
    )
