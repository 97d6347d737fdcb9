"""Contract duration, end date correction and activity form checks.

A contract always ends on 31 December, the start year counting as the
first contract year, with a duration of one to four years. Example: start
15.03.2024, four years, end 31.12.2027.
"""

import logging
import math
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, List, Optional

from config import Config, get_config
from engines.base import (
    DateOrigin,
    Engine,
    Finding,
    Notice,
    NoticeKind,
    Quote,
    QuoteMeta,
    Severity,
    ValidationEngine,
)
from engines.store import NoticeBoard
from knowledge.code_tables import CodeTables

logger = logging.getLogger(__name__)


def contract_end_date(start: Optional[date], years: int) -> Optional[date]:
    """31 December of the last contract year; the start year is the first."""
    if start is None:
        return None
    return date(start.year + years - 1, 12, 31)


def years_between(start: Optional[date], end: Optional[date]) -> int:
    """Number of calendar years covered; 0 when a date is missing."""
    if start is None or end is None:
        return 0
    return end.year - start.year + 1


def format_swiss_date(value: Optional[date]) -> str:
    return value.strftime("%d.%m.%Y") if value else ""


@dataclass
class EndDateCheck:
    """Outcome of comparing an end date with the selected duration."""

    should_correct: bool
    expected_end: Optional[date] = None
    original_end: Optional[date] = None


def check_end_date(
    start: Optional[date],
    end: Optional[date],
    duration_code: Optional[str],
    years_for_code: Callable[[Optional[str]], Optional[int]],
    read_only: bool = False,
) -> EndDateCheck:
    """Check whether the end date matches the duration code."""
    if read_only or start is None or end is None or not duration_code:
        return EndDateCheck(should_correct=False)

    years = years_for_code(duration_code)
    if years is None:
        return EndDateCheck(should_correct=False)

    expected = contract_end_date(start, years)
    if end == expected:
        return EndDateCheck(should_correct=False, expected_end=expected)

    return EndDateCheck(should_correct=True, expected_end=expected, original_end=end)


def end_date_for_duration(
    start: Optional[date], duration_code: Optional[str], code_tables: CodeTables
) -> Optional[date]:
    """End date after the user picked a duration."""
    years = code_tables.duration_years(duration_code)
    if years is None:
        return None
    return contract_end_date(start, years)


def duration_code_for_dates(
    start: Optional[date], end: Optional[date], code_tables: CodeTables
) -> Optional[str]:
    """Duration code after the user edited the end date."""
    return code_tables.duration_code(years_between(start, end))


def apply_date_defaults(
    quote: Quote,
    meta: QuoteMeta,
    today: Optional[date] = None,
    code_tables: Optional[CodeTables] = None,
    config: Optional[Config] = None,
) -> bool:
    """Default the contract dates of a new quote; returns True if applied.

    Quotes that already carry dates are marked as loaded instead.
    """
    if meta.date_origin != DateOrigin.NOT_INITIALIZED:
        return False

    if not quote.is_new or quote.start_date is not None:
        meta.date_origin = DateOrigin.LOADED
        return False

    config = config or get_config()
    today = today or date.today()
    years = None
    if code_tables is not None:
        years = code_tables.duration_years(config.default_duration_code)

    quote.start_date = today
    quote.duration_code = config.default_duration_code
    quote.end_date = contract_end_date(today, years or max(config.allowed_durations))
    meta.date_origin = DateOrigin.DEFAULTED
    logger.debug(f"Defaulted contract dates {quote.start_date} - {quote.end_date}")
    return True


class ContractDateCorrector:
    """Corrects stored or edited end dates that do not match the duration."""

    def __init__(self, code_tables: CodeTables, notices: NoticeBoard):
        self.code_tables = code_tables
        self.notices = notices

    def apply(self, quote: Quote, meta: QuoteMeta) -> EndDateCheck:
        """Correct the end date in place when required."""
        eligible = meta.date_origin == DateOrigin.LOADED or meta.dates_changed_by_user
        if not eligible:
            return EndDateCheck(should_correct=False)

        check = check_end_date(
            quote.start_date,
            quote.end_date,
            quote.duration_code,
            self.code_tables.duration_years,
            read_only=quote.read_only,
        )
        if not check.should_correct:
            return check

        quote.end_date = check.expected_end
        logger.info(
            f"Quote {quote.number}: end date corrected from {check.original_end} "
            f"to {check.expected_end}"
        )
        self.notices.post(
            Notice(
                kind=NoticeKind.DATE_CORRECTED,
                message=(
                    f"Das Vertragsende wurde von {format_swiss_date(check.original_end)} "
                    f"auf {format_swiss_date(check.expected_end)} korrigiert, "
                    f"damit es zur gewählten Vertragsdauer passt."
                ),
                details={
                    "original": format_swiss_date(check.original_end),
                    "corrected": format_swiss_date(check.expected_end),
                },
            )
        )
        return check


def _parse_percentage(value: Any) -> Optional[float]:
    """Strict number parsing; None when the value is not a number."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else None
    try:
        parsed = float(Decimal(str(value).strip()))
    except (InvalidOperation, ValueError):
        return None
    return parsed if math.isfinite(parsed) else None


class ContractFormValidator(ValidationEngine):
    """
    Checks of the activity (Tätigkeit) step.

    Validates:
    - C-001: Vertragsbeginn fehlt
    - C-002: Vertragsbeginn liegt in der Vergangenheit (nur neue Offerten)
    - C-003: Vertragsende fehlt
    - C-004: Vertragsende liegt nicht nach Vertragsbeginn
    - C-005: Vertragsende ist nicht der 31.12. nach 1 bis 4 Jahren
    - C-006: Vertragsdauer fehlt
    - C-007: Stellung im Betrieb fehlt
    - C-008: Arbeitspensum fehlt
    - C-009: Keine Tätigkeit erfasst
    - C-010: Tätigkeit ohne Auswahl
    - C-011: Prozentanteil ungültig (keine Zahl oder ausserhalb 0-100)
    - C-012: Prozentanteile ergeben nicht 100%
    - C-013: Stellenprozente fehlen oder sind ungültig
    - C-014: Anzahl Mitarbeiter fehlt
    """

    MAX_WORK_PERCENTAGE = 9999

    def __init__(self, config: Optional[Config] = None, today: Optional[date] = None):
        self.config = config or get_config()
        self.today = today

    @property
    def engine_type(self) -> Engine:
        return Engine.CONTRACT

    def validate(self, quote: Quote) -> List[Finding]:
        """Validate the contract and activity data of a quote."""
        findings = []

        # C-001..C-006: Contract dates and duration
        findings.extend(self._check_dates(quote))

        # C-007, C-008: Position and workload
        findings.extend(self._check_position(quote))

        # C-009..C-012: Activity composition
        findings.extend(self._check_activities(quote))

        # C-013, C-014: Company size
        findings.extend(self._check_company(quote))

        return findings

    def _finding(self, quote: Quote, code: str, label: str, value: Any,
                 description: str, expected: str = "") -> Finding:
        return Finding(
            severity=Severity.FEHLER,
            engine=Engine.CONTRACT,
            code=code,
            label=label,
            value="" if value is None else str(value),
            description=description,
            expected=expected,
            quote=quote.number,
        )

    def _check_dates(self, quote: Quote) -> List[Finding]:
        findings = []
        start, end = quote.start_date, quote.end_date
        today = self.today or date.today()

        if start is None:
            findings.append(self._finding(
                quote, "C-001", "vertragGueltigAb", None,
                "Vertragsbeginn ist erforderlich",
            ))
        elif quote.is_new and start < today:
            findings.append(self._finding(
                quote, "C-002", "vertragGueltigAb", format_swiss_date(start),
                "Vertragsbeginn darf nicht in der Vergangenheit liegen",
                f"Ab {format_swiss_date(today)}",
            ))

        if end is None:
            findings.append(self._finding(
                quote, "C-003", "vertragGueltigBis", None,
                "Vertragsende ist erforderlich",
            ))
        elif start is not None:
            if end <= start:
                findings.append(self._finding(
                    quote, "C-004", "vertragGueltigBis", format_swiss_date(end),
                    "Vertragsende muss nach dem Vertragsbeginn liegen",
                ))
            else:
                allowed = [contract_end_date(start, y) for y in self.config.allowed_durations]
                if end not in allowed:
                    findings.append(self._finding(
                        quote, "C-005", "vertragGueltigBis", format_swiss_date(end),
                        "Der Vertrag muss am 31.12. nach 1 bis 4 vollen Jahren enden",
                        ", ".join(format_swiss_date(d) for d in allowed),
                    ))

        if not quote.duration_code:
            findings.append(self._finding(
                quote, "C-006", "vertragsdauer", None,
                "Vertragsdauer ist erforderlich",
            ))

        return findings

    def _check_position(self, quote: Quote) -> List[Finding]:
        findings = []
        if not quote.position_code:
            findings.append(self._finding(
                quote, "C-007", "stellungImBetrieb", None,
                "Stellung im Betrieb ist erforderlich",
            ))
        if not quote.workload_code:
            findings.append(self._finding(
                quote, "C-008", "arbeitspensum", None,
                "Arbeitspensum ist erforderlich",
            ))
        return findings

    def _check_activities(self, quote: Quote) -> List[Finding]:
        findings = []
        activities = quote.basis.activities

        if not activities:
            findings.append(self._finding(
                quote, "C-009", "taetigkeiten", None,
                "Mindestens eine Tätigkeit ist erforderlich",
            ))
            return findings

        total = Decimal("0")
        for index, activity in enumerate(activities):
            if not str(activity.activity_id or "").strip():
                findings.append(self._finding(
                    quote, "C-010", f"taetigkeiten.{index}.taetigkeit", None,
                    f"Tätigkeit {index + 1}: Auswahl ist erforderlich",
                ))

            percentage = _parse_percentage(activity.percentage)
            if percentage is None:
                findings.append(self._finding(
                    quote, "C-011", f"taetigkeiten.{index}.prozent", activity.percentage,
                    f"Tätigkeit {index + 1}: Prozentanteil muss eine Zahl sein",
                ))
                continue
            if percentage < 0 or percentage > 100:
                findings.append(self._finding(
                    quote, "C-011", f"taetigkeiten.{index}.prozent", activity.percentage,
                    f"Tätigkeit {index + 1}: Prozentanteil muss zwischen 0 und 100 liegen",
                    "0-100",
                ))
            total += Decimal(str(percentage))

        if abs(total - 100) > Decimal(str(self.config.percentage_tolerance)):
            findings.append(self._finding(
                quote, "C-012", "taetigkeiten", f"{float(total):g}%",
                f"Die Prozentanteile der Tätigkeiten ergeben {float(total):g}% statt 100%",
                "100%",
            ))

        return findings

    def _check_company(self, quote: Quote) -> List[Finding]:
        findings = []
        work = quote.basis.work_percentage
        parsed = _parse_percentage(work) if work not in (None, "") else None
        if parsed is None:
            findings.append(self._finding(
                quote, "C-013", "stellenprozente", work,
                "Stellenprozente sind erforderlich und müssen eine Zahl sein",
            ))
        elif parsed < 0 or parsed > self.MAX_WORK_PERCENTAGE:
            findings.append(self._finding(
                quote, "C-013", "stellenprozente", work,
                f"Stellenprozente müssen zwischen 0 und {self.MAX_WORK_PERCENTAGE} liegen",
            ))

        if quote.basis.headcount in (None, "") or not str(quote.basis.headcount).strip():
            findings.append(self._finding(
                quote, "C-014", "anzahlMitarbeiter", None,
                "Anzahl Mitarbeiter ist erforderlich",
            ))
        return findings


def validate_contract_form(
    quote: Quote, today: Optional[date] = None, config: Optional[Config] = None
) -> List[Finding]:
    """Convenience function for the activity step checks."""
    return ContractFormValidator(config, today=today).validate(quote)
