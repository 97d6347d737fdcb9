"""Base classes and data structures for the FUV quote engines."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class Severity(Enum):
    """Severity levels for validation findings."""

    FEHLER = "FEHLER"  # Error - blocks the quote step
    WARNUNG = "WARNUNG"  # Warning - should be reviewed
    INFO = "INFO"  # Informational - for awareness


class Engine(Enum):
    """Engines producing findings."""

    INCOME = 1  # Income thresholds
    CONTRACT = 2  # Contract dates and activity composition
    ASSIGNMENT = 3  # Technical assignment (TeZu)
    VARIANTS = 4  # Variant pricing step
    CHECKLIST = 5  # Underwriting checklist


class QuoteEngineError(ValueError):
    """Raised when an engine is used on a quote it cannot process."""


class RemoteServiceError(RuntimeError):
    """Raised by remote service clients when a call fails."""

    def __init__(
        self,
        message: str,
        detail: Any = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.detail = detail
        self.status_code = status_code


@dataclass
class Finding:
    """A single validation finding."""

    severity: Severity
    engine: Engine
    code: str  # e.g., "V-003"
    label: str  # Field key, e.g., "varianteA.verdienst"
    value: str  # Offending value as entered
    description: str  # Human-readable description
    expected: str = ""  # Expected value or format
    quote: str = ""  # Quote number, e.g., "O.0259777000.001"

    def to_dict(self) -> Dict[str, Any]:
        """Convert finding to dictionary."""
        return {
            "severity": self.severity.value,
            "engine": self.engine.name,
            "code": self.code,
            "label": self.label,
            "value": self.value,
            "description": self.description,
            "expected": self.expected,
            "quote": self.quote,
        }


class NoticeKind(Enum):
    """One-time correction notices shown to the user."""

    DATE_CORRECTED = "DATE_CORRECTED"
    TERMS_CORRECTED = "TERMS_CORRECTED"


@dataclass
class Notice:
    """A correction notice that stays until dismissed."""

    kind: NoticeKind
    message: str
    details: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind.value, "message": self.message, "details": dict(self.details)}


# =============================================================================
# Quote data
# =============================================================================


@dataclass(frozen=True)
class ActivityShare:
    """One insured activity (Tätigkeit) and its share of the work."""

    activity_id: str  # merkmal_boid
    percentage: Any  # As entered: 60, "60" or 60.0
    activity_code: str = ""  # merkmal_internalname


@dataclass(frozen=True)
class TechnicalBasis:
    """Inputs of the technical assignment calculation."""

    activities: Tuple[ActivityShare, ...] = ()
    work_percentage: Any = None  # stellenprozente
    headcount: Any = None  # anzahl Mitarbeiter


@dataclass
class AssignmentEntry:
    """One risk class assignment (HZ main, NZ secondary)."""

    assignment_type: str
    risk_class: str = ""
    class_portion: Optional[float] = None
    subclass_part: str = ""


@dataclass
class TechnicalAssignment:
    """Result of the remote technical assignment (TeZu) calculation."""

    base_premium_rate: float = 0.0  # Netto-Prämiensatz
    base_level: Optional[int] = None  # Basisstufe
    entries: List[AssignmentEntry] = field(default_factory=list)
    admin_cost_rate: Optional[float] = None  # VK-Satz in percent
    agency_competence: Any = None  # Code or number suggested by the backend


class VariantSlot(Enum):
    """The three variant slots of a quote."""

    A = 1
    B = 2
    C = 3

    @property
    def letter(self) -> str:
        return self.name

    @classmethod
    def from_letter(cls, letter: str) -> "VariantSlot":
        return cls[letter.upper()]


class VariantState(Enum):
    """Pricing progress of a variant slot."""

    EMPTY = "EMPTY"
    HAS_INCOME = "HAS_INCOME"
    HAS_DEFERRAL = "HAS_DEFERRAL"
    PRICED = "PRICED"


@dataclass
class VariantFigures:
    """Derived figures of a variant; always replaced as a whole."""

    monthly_income: float = 0.0
    deferral_discount: int = 0
    annual_benefit: float = 0.0
    monthly_benefit: float = 0.0
    annual_pension: float = 0.0
    monthly_pension: float = 0.0
    gross_premium: float = 0.0
    discount_amount: float = 0.0
    net_annual_premium: float = 0.0
    net_monthly_premium: float = 0.0


@dataclass
class Variant:
    """A variant slot with its inputs and derived figures."""

    slot: VariantSlot
    annual_income: float = 0.0
    deferral_code: Optional[str] = None
    figures: VariantFigures = field(default_factory=VariantFigures)
    error: Optional[str] = None
    record_id: Optional[int] = None

    @property
    def state(self) -> VariantState:
        if self.annual_income <= 0:
            return VariantState.EMPTY
        if not self.deferral_code:
            return VariantState.HAS_INCOME
        if self.figures.gross_premium <= 0:
            return VariantState.HAS_DEFERRAL
        return VariantState.PRICED


@dataclass
class PaymentDetails:
    """Premium payment (Prämienzahlung) and bank details."""

    frequency: Optional[str] = None
    bank_name: Optional[str] = None
    postcode: Optional[str] = None
    town: Optional[str] = None
    iban: Optional[str] = None
    account_holder: Optional[str] = None


@dataclass
class InsuredPerson:
    """The insured person."""

    first_name: str = ""
    last_name: str = ""
    birth_date: Optional[date] = None
    country: str = "CH"
    city: str = ""
    street: str = ""
    house_number: str = ""
    zipcode: str = ""
    # Claim history as delivered by the backend
    accident_count: Optional[int] = None
    open_accident_count: Optional[int] = None


@dataclass
class Checklist:
    """Underwriting checklist (Checkliste); one live instance per quote."""

    valid_from: Optional[date] = None
    insured_age: Optional[int] = None
    multiple_accidents: bool = False
    open_accidents: bool = False
    bonity_internal: Optional[str] = None  # bonitaet_syrius
    bonity_external: Optional[str] = None  # bonitaet_crif
    bonity_external_comment: str = ""
    audit: bool = False
    malus_surcharge: float = 0.0  # bt_malus
    approval_type: Optional[str] = None  # genehmigung_art
    report_id: Optional[str] = None
    id: Optional[int] = None
    valid: bool = False  # Derived, see engines.checklist


@dataclass
class Quote:
    """An FUV quote (Offerte)."""

    id: Optional[int] = None
    number: str = ""
    quote_type: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    duration_code: Optional[str] = None
    terms_code: Optional[str] = None
    position_code: Optional[str] = None
    workload_code: Optional[str] = None
    basis: TechnicalBasis = field(default_factory=TechnicalBasis)
    assignment: Optional[TechnicalAssignment] = None
    agency_competence_code: Optional[str] = None
    variant_records: List[Dict[str, Any]] = field(default_factory=list)
    payment: PaymentDetails = field(default_factory=PaymentDetails)
    person: InsuredPerson = field(default_factory=InsuredPerson)
    checklist: Optional[Checklist] = None
    read_only: bool = False

    @property
    def is_new(self) -> bool:
        return self.id is None


class DateOrigin(Enum):
    """Where the contract dates of a quote came from."""

    NOT_INITIALIZED = "NOT_INITIALIZED"
    DEFAULTED = "DEFAULTED"
    LOADED = "LOADED"


@dataclass
class QuoteMeta:
    """Engine bookkeeping kept next to the quote."""

    stored_hash: Optional[str] = None
    date_origin: DateOrigin = DateOrigin.NOT_INITIALIZED
    start_changed: bool = False
    end_changed: bool = False
    duration_changed: bool = False
    assignment_error: Optional[str] = None
    bonity_error: Optional[str] = None

    @property
    def dates_changed_by_user(self) -> bool:
        return self.start_changed or self.end_changed or self.duration_changed


# =============================================================================
# Remote services
# =============================================================================


@dataclass
class PersonQuery:
    """Person search request for the bonity lookup."""

    first_name: str
    last_name: str
    birth_date: Optional[date]
    country: str = "CH"
    city: str = ""
    street: str = ""
    house_number: str = ""
    zipcode: str = ""

    @classmethod
    def from_person(cls, person: InsuredPerson) -> "PersonQuery":
        return cls(
            first_name=person.first_name,
            last_name=person.last_name,
            birth_date=person.birth_date,
            country=person.country,
            city=person.city,
            street=person.street,
            house_number=person.house_number,
            zipcode=person.zipcode,
        )

    def to_payload(self) -> Dict[str, str]:
        return {
            "firstname": self.first_name,
            "lastname": self.last_name,
            "date_of_birth": self.birth_date.isoformat() if self.birth_date else "",
            "country": self.country,
            "city": self.city,
            "street": self.street,
            "house_number": self.house_number,
            "zipcode": self.zipcode,
        }


@dataclass
class BonityResult:
    """Result of the bonity lookup."""

    colour: Optional[str] = None  # GREEN, YELLOW, RED, ...
    comment: str = ""
    audit: bool = False
    report_id: Optional[str] = None


class AssignmentService(ABC):
    """Remote technical assignment (TeZu) calculation."""

    @abstractmethod
    def calculate(
        self, quote_id: int, basis: TechnicalBasis, requested_by: str
    ) -> TechnicalAssignment:
        """Calculate the technical assignment. Raises RemoteServiceError."""
        pass


class BonityService(ABC):
    """Remote bonity (creditworthiness) lookup."""

    @abstractmethod
    def search_person(self, query: PersonQuery) -> BonityResult:
        """Look up a person. Raises RemoteServiceError."""
        pass


class IncomeCeilingService(ABC):
    """Remote source of the maximum insurable income."""

    @abstractmethod
    def max_insured_income(self) -> Optional[float]:
        pass


# =============================================================================
# Engines and results
# =============================================================================


class ValidationEngine(ABC):
    """Abstract base class for quote validation engines."""

    @property
    @abstractmethod
    def engine_type(self) -> Engine:
        """Return the engine type."""
        pass

    @abstractmethod
    def validate(self, quote: Quote) -> List[Finding]:
        """Validate a quote and return findings."""
        pass


@dataclass
class ValidationResult:
    """Result of evaluating a quote."""

    findings: List[Finding] = field(default_factory=list)
    notices: List[Notice] = field(default_factory=list)
    variants: List[Variant] = field(default_factory=list)
    selected: Optional[VariantSlot] = None
    step_complete: bool = False
    checklist_valid: Optional[bool] = None
    quote: Optional[Quote] = None  # State after corrections and recalculation
    meta: Optional[QuoteMeta] = None

    @property
    def is_valid(self) -> bool:
        """Check if evaluation passed (no FEHLER findings)."""
        return not any(f.severity == Severity.FEHLER for f in self.findings)

    def get_summary(self) -> str:
        """Get human-readable summary."""
        if self.is_valid and self.step_complete:
            return "✅ OFFERTE VOLLSTÄNDIG\nAlle Prüfungen bestanden."
        return (
            f"❌ OFFERTE UNVOLLSTÄNDIG\n"
            f"Fehler: {self.get_error_count()}\n"
            f"Warnungen: {self.get_warning_count()}\n"
            f"Bitte alle Fehler korrigieren."
        )

    def get_error_count(self) -> int:
        """Get count of FEHLER findings."""
        return sum(1 for f in self.findings if f.severity == Severity.FEHLER)

    def get_warning_count(self) -> int:
        """Get count of WARNUNG findings."""
        return sum(1 for f in self.findings if f.severity == Severity.WARNUNG)

    def get_info_count(self) -> int:
        """Get count of INFO findings."""
        return sum(1 for f in self.findings if f.severity == Severity.INFO)
