"""Income threshold validation for variant annual incomes."""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Optional

from config import Config, get_config
from knowledge.code_tables import CodeTables
from knowledge.codes import FAMILY_MEMBER_CODES, GROUP_POSITION, OWNER_CODES


class IncomeErrorType(Enum):
    """Why an annual income was rejected."""

    FAMILY_MEMBER_MINIMUM = "familyMemberMinimum"
    OWNER_MINIMUM = "ownerMinimum"
    NEGATIVE_VALUE = "negativeValue"
    MAX_EXCEEDED = "maxExceeded"


@dataclass
class IncomeError:
    """A rejected annual income with the limit it violated."""

    error_type: IncomeErrorType
    min_value: Optional[int] = None
    max_value: Optional[float] = None
    percentage: Optional[float] = None
    position_label: Optional[str] = None


def scaled_minimum(base_minimum: int, percentage: float) -> int:
    """Minimum income at the given workload, rounded half-up to whole francs."""
    scaled = Decimal(base_minimum) * Decimal(str(percentage)) / 100
    return int(scaled.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def validate_annual_income(
    value: float,
    is_family_member: bool,
    is_owner: bool,
    percentage: float = 100,
    absolute_max: Optional[float] = None,
    config: Optional[Config] = None,
    position_label: Optional[str] = None,
) -> Optional[IncomeError]:
    """Validate an annual income against role minimums and the ceiling.

    Returns None when the income is acceptable. A family member is never
    also checked against the owner minimum.
    """
    config = config or get_config()

    if is_family_member and value > 0:
        minimum = scaled_minimum(config.min_income_family_member, percentage)
        if value < minimum:
            return IncomeError(
                IncomeErrorType.FAMILY_MEMBER_MINIMUM,
                min_value=minimum,
                percentage=percentage,
                position_label=position_label,
            )
    elif is_owner and value > 0:
        minimum = scaled_minimum(config.min_income_owner, percentage)
        if value < minimum:
            return IncomeError(
                IncomeErrorType.OWNER_MINIMUM,
                min_value=minimum,
                percentage=percentage,
                position_label=position_label,
            )

    if value < 0:
        return IncomeError(IncomeErrorType.NEGATIVE_VALUE)

    if absolute_max is not None and value > absolute_max:
        return IncomeError(IncomeErrorType.MAX_EXCEEDED, max_value=absolute_max)

    return None


def format_chf(amount: Optional[float]) -> str:
    """Format an amount the Swiss way: CHF 44'460."""
    if amount is None:
        return "CHF -"
    if float(amount).is_integer():
        return "CHF " + f"{amount:,.0f}".replace(",", "'")
    return "CHF " + f"{amount:,.2f}".replace(",", "'")


def _format_percentage(percentage: Optional[float]) -> str:
    if percentage is None:
        return "100%"
    if float(percentage).is_integer():
        return f"{int(percentage)}%"
    return f"{percentage}%".replace(".", ",")


def describe_income_error(error: Optional[IncomeError]) -> str:
    """German user message for an income error."""
    if error is None:
        return "Ungültiger Jahresverdienst"

    if error.error_type == IncomeErrorType.FAMILY_MEMBER_MINIMUM:
        label = error.position_label or "Mitarbeitende Familienmitglieder"
        return (
            f"{label}: Der Jahresverdienst bei einem Pensum von "
            f"{_format_percentage(error.percentage)} muss mindestens "
            f"{format_chf(error.min_value)} betragen"
        )
    if error.error_type == IncomeErrorType.OWNER_MINIMUM:
        label = error.position_label or "Betriebsinhaber"
        return (
            f"{label}: Der Jahresverdienst bei einem Pensum von "
            f"{_format_percentage(error.percentage)} muss mindestens "
            f"{format_chf(error.min_value)} betragen"
        )
    if error.error_type == IncomeErrorType.MAX_EXCEEDED:
        return f"Maximaler versicherter Verdienst ist {format_chf(error.max_value)}"
    if error.error_type == IncomeErrorType.NEGATIVE_VALUE:
        return "Der Jahresverdienst darf nicht negativ sein"
    return "Ungültiger Jahresverdienst"


class IncomeThresholdValidator:
    """Income validation bound to the position and workload of a quote."""

    def __init__(
        self,
        code_tables: CodeTables,
        position_code: Optional[str] = None,
        workload_code: Optional[str] = None,
        max_insured_income: Optional[float] = None,
        config: Optional[Config] = None,
    ):
        self.config = config or get_config()
        self.code_tables = code_tables
        self.position_code = position_code
        self.workload_code = workload_code
        self.max_insured_income = max_insured_income

    @property
    def is_family_member(self) -> bool:
        return self.position_code in FAMILY_MEMBER_CODES

    @property
    def is_owner(self) -> bool:
        return self.position_code in OWNER_CODES

    @property
    def percentage(self) -> float:
        """Workload percentage from the workload code label, 100 when unknown."""
        percentage = self.code_tables.workload_percentage(self.workload_code)
        return percentage if percentage is not None else 100.0

    @property
    def position_label(self) -> Optional[str]:
        entry = self.code_tables.get(GROUP_POSITION, self.position_code)
        return entry.label if entry else None

    def minimum_income(self) -> int:
        """Minimum income for the quote's position; 0 when none applies."""
        if self.is_family_member:
            return scaled_minimum(self.config.min_income_family_member, self.percentage)
        if self.is_owner:
            return scaled_minimum(self.config.min_income_owner, self.percentage)
        return 0

    def check(self, value: float) -> Optional[IncomeError]:
        return validate_annual_income(
            value,
            is_family_member=self.is_family_member,
            is_owner=self.is_owner,
            percentage=self.percentage,
            absolute_max=self.max_insured_income,
            config=self.config,
            position_label=self.position_label,
        )

    def error_message(self, value: float) -> Optional[str]:
        """German error message for the value, or None when it is valid."""
        error = self.check(value)
        return describe_income_error(error) if error else None
