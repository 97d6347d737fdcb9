"""Technical assignment (TeZu) dirty tracking.

The technical assignment is expensive to compute and only depends on the
activity composition, the work percentage and the headcount. A hash of
those inputs is stored with the quote; the remote calculation is only
triggered again when the hash changes or no assignment exists.
"""

import hashlib
import json
import logging
import re
from contextlib import contextmanager
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Iterator, Optional, Tuple

from engines.base import (
    AssignmentService,
    Quote,
    QuoteEngineError,
    QuoteMeta,
    RemoteServiceError,
    TechnicalAssignment,
    TechnicalBasis,
)
from engines.store import QuoteStore
from knowledge.code_tables import CodeTables

logger = logging.getLogger(__name__)

CALCULATION_FAILED = "Die Berechnung der technischen Zuweisung ist fehlgeschlagen."

_SIGNED_INT = re.compile(r"^-?\d+$")


def _canonical_number(value: Any) -> str:
    """Render 60, "60" and 60.0 identically."""
    if value is None or isinstance(value, bool):
        return ""
    text = str(value).strip()
    if not text:
        return ""
    try:
        number = Decimal(text)
    except InvalidOperation:
        return text
    if not number.is_finite():
        return text
    if number == number.to_integral_value():
        return str(int(number))
    return format(number.normalize(), "f")


def composition_fingerprint(basis: TechnicalBasis) -> str:
    """Canonical, order-sensitive serialization of the calculation inputs."""
    payload = {
        "taetigkeiten": [
            {
                "merkmal_boid": str(activity.activity_id or ""),
                "prozent": _canonical_number(activity.percentage),
                "merkmal_internalname": str(activity.activity_code or ""),
            }
            for activity in basis.activities
        ],
        "stellenprozente": _canonical_number(basis.work_percentage),
        "anzahlMitarbeiter": _canonical_number(basis.headcount),
    }
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def composition_hash(basis: TechnicalBasis) -> Optional[str]:
    """SHA-256 of the fingerprint; None for an empty composition."""
    if not basis.activities:
        return None
    return hashlib.sha256(composition_fingerprint(basis).encode("utf-8")).hexdigest()


def assignment_is_current(quote: Quote, meta: QuoteMeta) -> bool:
    """Whether the quote's assignment may be used for pricing.

    An assignment without stored hash predates hashing and is accepted.
    """
    if quote.assignment is None:
        return False
    return not meta.stored_hash or meta.stored_hash == composition_hash(quote.basis)


def needs_recalculation(
    stored_hash: Optional[str], current_hash: Optional[str], has_existing_assignment: bool
) -> bool:
    """Whether the technical assignment must be calculated again.

    An existing assignment without a stored hash (older quotes) counts as
    valid; its hash is backfilled instead.
    """
    if not has_existing_assignment:
        return True
    return bool(stored_hash) and stored_hash != current_hash


def describe_remote_error(error: BaseException) -> str:
    """Best-effort user message for a failed calculation."""
    detail = remote_error_detail(error)
    if detail:
        return f"{CALCULATION_FAILED} Details: {detail}"
    return CALCULATION_FAILED


def remote_error_detail(error: BaseException) -> str:
    """Detail of a remote failure: body message, error message or HTTP status."""
    detail = getattr(error, "detail", None)
    if isinstance(detail, dict):
        for key in ("result", "message"):
            if detail.get(key):
                return str(detail[key])
    elif isinstance(detail, str) and detail.strip():
        return detail.strip()

    message = getattr(error, "message", None)
    if isinstance(message, str) and message:
        return message

    status = getattr(error, "status_code", None)
    if status:
        return f"HTTP {status}"

    return str(error)


def resolve_agency_competence(
    raw: Any, code_tables: CodeTables, default_code: Optional[str] = None
) -> Optional[Tuple[str, int]]:
    """Resolve an agency competence given as code ("COD_-2") or number (-2).

    Returns (code, value), falling back to default_code, or None.
    """
    if raw is None or raw == "":
        if default_code:
            return default_code, code_tables.agency_competence_value(default_code)
        return None

    is_number = isinstance(raw, int) and not isinstance(raw, bool)
    if not is_number and not _SIGNED_INT.match(str(raw)):
        code = str(raw)
        return code, code_tables.agency_competence_value(code)

    value = int(raw)
    code = code_tables.agency_competence_code(value)
    if code:
        return code, value
    if default_code:
        return default_code, code_tables.agency_competence_value(default_code)
    return None


class InFlightGuard:
    """Single in-flight flag for a remote call of one quote."""

    def __init__(self, name: str):
        self.name = name
        self._active = False

    @property
    def active(self) -> bool:
        return self._active

    @contextmanager
    def hold(self) -> Iterator[bool]:
        """Yield True when the call may proceed, False if one is outstanding."""
        if self._active:
            logger.warning(f"{self.name} already in progress, skipping duplicate call")
            yield False
            return
        self._active = True
        try:
            yield True
        finally:
            self._active = False


class AssignmentOutcome(Enum):
    """What ensure() did."""

    LOADED = "LOADED"  # Stored assignment is current
    BACKFILLED = "BACKFILLED"  # Stored assignment kept, hash written
    RECALCULATED = "RECALCULATED"
    SKIPPED = "SKIPPED"  # Another calculation is outstanding
    FAILED = "FAILED"


class AssignmentCoordinator:
    """Decides between reusing, backfilling and recalculating the assignment."""

    def __init__(
        self,
        store: QuoteStore,
        service: AssignmentService,
        code_tables: Optional[CodeTables] = None,
        guard: Optional[InFlightGuard] = None,
    ):
        self.store = store
        self.service = service
        self.code_tables = code_tables or CodeTables()
        self.guard = guard or InFlightGuard("Technical assignment calculation")

    @property
    def current_hash(self) -> Optional[str]:
        return composition_hash(self.store.quote.basis)

    def is_current(self) -> bool:
        """Whether the quote's assignment may be used for pricing."""
        return assignment_is_current(self.store.quote, self.store.meta)

    def ensure(self, requested_by: Optional[str]) -> AssignmentOutcome:
        """Make sure the quote carries an assignment matching its activities."""
        quote, meta = self.store.quote, self.store.meta
        current = self.current_hash
        has_existing = quote.assignment is not None

        if has_existing and not meta.stored_hash:
            self.store.update_meta(stored_hash=current)
            logger.info(f"Quote {quote.number}: backfilled assignment hash")
            return AssignmentOutcome.BACKFILLED

        if not needs_recalculation(meta.stored_hash, current, has_existing):
            logger.debug(f"Quote {quote.number}: assignment is current")
            return AssignmentOutcome.LOADED

        return self.recalculate(requested_by)

    def recalculate(self, requested_by: Optional[str]) -> AssignmentOutcome:
        """Call the remote calculation and store its result with the new hash."""
        quote = self.store.quote
        if quote.id is None:
            raise QuoteEngineError("Offerte konnte nicht automatisch synchronisiert werden")
        if not requested_by:
            raise QuoteEngineError("Kein Benutzer für die Berechnung angegeben")
        if not quote.basis.activities:
            raise QuoteEngineError("Unvollständige Tätigkeitsdaten")

        with self.guard.hold() as acquired:
            if not acquired:
                return AssignmentOutcome.SKIPPED

            basis = quote.basis
            current = composition_hash(basis)
            self.store.update_meta(assignment_error=None)
            logger.info(f"Quote {quote.number}: calculating technical assignment")

            try:
                assignment = self.service.calculate(quote.id, basis, requested_by)
            except RemoteServiceError as exc:
                message = describe_remote_error(exc)
                logger.error(f"Quote {quote.number}: assignment calculation failed: {exc}")
                self.store.update_meta(assignment_error=message)
                return AssignmentOutcome.FAILED

            quote_changes = {"assignment": assignment, "basis": basis}
            competence = self._competence_code(assignment)
            if competence:
                quote_changes["agency_competence_code"] = competence

            self.store.commit(quote_changes, {"stored_hash": current, "assignment_error": None})
            logger.info(
                f"Quote {quote.number}: assignment calculated "
                f"(rate {assignment.base_premium_rate}, level {assignment.base_level})"
            )
            return AssignmentOutcome.RECALCULATED

    def _competence_code(self, assignment: TechnicalAssignment) -> Optional[str]:
        """Agency competence suggested by the calculation; never clears an existing one."""
        if assignment.agency_competence in (None, ""):
            return None
        resolved = resolve_agency_competence(
            assignment.agency_competence,
            self.code_tables,
            default_code=self.code_tables.agency_competence_code(0),
        )
        if resolved is None:
            logger.warning(
                f"No agency competence code for {assignment.agency_competence!r}, keeping current value"
            )
            return None
        return resolved[0]
