"""Underwriting checklist (Checkliste) validity and bonity lookup."""

import logging
from datetime import date
from typing import List, Optional, Tuple

from config import Config, get_config
from engines.assignment import InFlightGuard, remote_error_detail
from engines.base import (
    BonityService,
    Checklist,
    Engine,
    Finding,
    InsuredPerson,
    PersonQuery,
    Quote,
    RemoteServiceError,
    Severity,
    ValidationEngine,
)
from knowledge.codes import (
    APPROVED_TYPES,
    BONITY_HIGH,
    BONITY_LOW,
    BONITY_MEDIUM,
    MALUS_QUOTE_TYPES,
)

logger = logging.getLogger(__name__)

BONITY_LOOKUP_FAILED = "Die Bonitätsabfrage ist fehlgeschlagen."


def map_bonity_colour(colour: Optional[str]) -> str:
    """Map the bureau's traffic light colour to a bonity tier.

    GREEN is high, anything with RED is low (YELLOW_RED included),
    YELLOW and YELLOW_GREEN are medium. Unknown colours count as medium.
    """
    upper = (colour or "").strip().upper()
    if upper == "GREEN":
        return BONITY_HIGH
    if "RED" in upper:
        return BONITY_LOW
    if "YELLOW" in upper:
        return BONITY_MEDIUM
    logger.warning(f"Unknown bonity colour {colour!r}, using {BONITY_MEDIUM}")
    return BONITY_MEDIUM


def insured_age(birth_date: Optional[date], reference: Optional[date]) -> Optional[int]:
    """Age in full years at the reference date."""
    if birth_date is None or reference is None:
        return None
    age = reference.year - birth_date.year
    if (reference.month, reference.day) < (birth_date.month, birth_date.day):
        age -= 1
    return age


def accident_flags(
    accident_count: Optional[int], open_accident_count: Optional[int]
) -> Tuple[bool, bool]:
    """(more than one accident, any open accident) from backend counts."""
    return (accident_count or 0) > 1, (open_accident_count or 0) > 0


def comment_required(checklist: Checklist) -> bool:
    return checklist.bonity_external == BONITY_LOW or checklist.audit


def is_checklist_valid(checklist: Checklist, quote_type: Optional[str]) -> bool:
    """Validity of a checklist; evaluated in order, first match decides."""
    # Expert approval overrides everything
    if checklist.approval_type in APPROVED_TYPES:
        return True

    # Accident history
    if checklist.multiple_accidents or checklist.open_accidents:
        return False

    # Malus only counts on contract renewals
    if quote_type in MALUS_QUOTE_TYPES and (checklist.malus_surcharge or 0) > 0:
        return False

    if comment_required(checklist) and not (checklist.bonity_external_comment or "").strip():
        return False

    return True


def update_checklist(checklist: Checklist, quote_type: Optional[str]) -> bool:
    """Recompute the derived valid flag in place."""
    checklist.valid = is_checklist_valid(checklist, quote_type)
    return checklist.valid


def prepare_checklist(
    checklist: Checklist, person: InsuredPerson, valid_from: Optional[date]
) -> Checklist:
    """Fill age and accident flags from the person's data."""
    checklist.valid_from = valid_from or checklist.valid_from
    age = insured_age(person.birth_date, checklist.valid_from)
    if age is not None:
        checklist.insured_age = age
    if person.accident_count is not None or person.open_accident_count is not None:
        checklist.multiple_accidents, checklist.open_accidents = accident_flags(
            person.accident_count, person.open_accident_count
        )
    return checklist


class BonityRefresher:
    """Refreshes the external bonity of a checklist from the lookup service."""

    def __init__(self, service: BonityService, guard: Optional[InFlightGuard] = None):
        self.service = service
        self.guard = guard or InFlightGuard("Bonity lookup")
        self.error: Optional[str] = None  # Message of the last failed lookup

    def refresh(self, checklist: Checklist, person: InsuredPerson) -> bool:
        """Look up the person; returns True when the checklist was updated.

        Lookup failures leave the checklist untouched; their message is
        kept in ``error``.
        """
        self.error = None
        if not person.first_name or not person.last_name:
            logger.debug("Bonity lookup skipped: no person data")
            return False

        with self.guard.hold() as acquired:
            if not acquired:
                return False
            try:
                result = self.service.search_person(PersonQuery.from_person(person))
            except RemoteServiceError as exc:
                logger.warning(f"Bonity lookup failed: {exc}")
                self.error = f"{BONITY_LOOKUP_FAILED} Details: {remote_error_detail(exc)}"
                return False

        checklist.bonity_external = map_bonity_colour(result.colour)
        checklist.bonity_external_comment = result.comment or ""
        checklist.audit = bool(result.audit)
        checklist.report_id = result.report_id
        logger.info(f"Bonity lookup: {result.colour} -> {checklist.bonity_external}")
        return True


class UnderwritingEngine(ValidationEngine):
    """
    Underwriting checklist.

    Validates:
    - K-001: Mehr als ein Unfall
    - K-002: Laufende Unfälle
    - K-003: Malus bei Vertragsverlängerung
    - K-004: Bemerkung fehlt (tiefe Bonität oder Audit)
    - K-005: Versicherte Person älter als das Höchstalter
    """

    def __init__(self, config: Optional[Config] = None):
        self.config = config or get_config()

    @property
    def engine_type(self) -> Engine:
        return Engine.CHECKLIST

    def validate(self, quote: Quote) -> List[Finding]:
        """Validate the quote's checklist and refresh its valid flag."""
        if quote.checklist is None:
            return []
        update_checklist(quote.checklist, quote.quote_type)
        return self.evaluate(quote.checklist, quote.quote_type, quote.number)

    def evaluate(
        self, checklist: Checklist, quote_type: Optional[str], quote_number: str = ""
    ) -> List[Finding]:
        """Findings explaining why the checklist is not valid."""
        findings = []

        def add(severity, code, label, value, description, expected=""):
            findings.append(Finding(
                severity=severity,
                engine=Engine.CHECKLIST,
                code=code,
                label=label,
                value=str(value),
                description=description,
                expected=expected,
                quote=quote_number,
            ))

        # K-005: Age is informative and shown even with expert approval
        if checklist.insured_age is not None and checklist.insured_age > self.config.max_insured_age:
            add(Severity.WARNUNG, "K-005", "alter_versicherter", checklist.insured_age,
                f"Versicherte Person ist älter als {self.config.max_insured_age} Jahre",
                f"<= {self.config.max_insured_age}")

        if checklist.approval_type in APPROVED_TYPES:
            return findings

        # K-001, K-002: Accident history
        if checklist.multiple_accidents:
            add(Severity.FEHLER, "K-001", "anzahl_unfaelle", True,
                "Mehr als ein Unfall erfasst, Expertengenehmigung erforderlich")
        if checklist.open_accidents:
            add(Severity.FEHLER, "K-002", "laufende_unfaelle", True,
                "Laufende Unfälle vorhanden, Expertengenehmigung erforderlich")

        # K-003: Malus on renewals
        if quote_type in MALUS_QUOTE_TYPES and (checklist.malus_surcharge or 0) > 0:
            add(Severity.FEHLER, "K-003", "bt_malus", checklist.malus_surcharge,
                "Malus bei Vertragsverlängerung, Expertengenehmigung erforderlich", "0")

        # K-004: Comment for low bonity or audit
        if comment_required(checklist) and not (checklist.bonity_external_comment or "").strip():
            reason = "tiefer Bonität" if checklist.bonity_external == BONITY_LOW else "Audit"
            add(Severity.FEHLER, "K-004", "bonitaet_crif_bemerkung", "",
                f"Bemerkung ist bei {reason} erforderlich")

        return findings
