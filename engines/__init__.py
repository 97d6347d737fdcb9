"""Computation and validation engines for FUV quotes."""

from .base import (
    Severity,
    Engine,
    Finding,
    Notice,
    NoticeKind,
    Quote,
    QuoteMeta,
    QuoteEngineError,
    RemoteServiceError,
    ValidationEngine,
    ValidationResult,
    VariantSlot,
)

from .assignment import (
    AssignmentCoordinator,
    AssignmentOutcome,
    InFlightGuard,
    composition_hash,
    needs_recalculation,
)

from .checklist import (
    BonityRefresher,
    UnderwritingEngine,
    is_checklist_valid,
)

from .contract_dates import (
    ContractDateCorrector,
    ContractFormValidator,
    check_end_date,
)

from .income import IncomeThresholdValidator, validate_annual_income
from .pipeline import QuotePipeline, evaluate_quote
from .store import NoticeBoard, QuoteStore
from .terms import check_terms_version
from .variants import VariantManager

__all__ = [
    # Base classes
    "Severity",
    "Engine",
    "Finding",
    "Notice",
    "NoticeKind",
    "Quote",
    "QuoteMeta",
    "QuoteEngineError",
    "RemoteServiceError",
    "ValidationEngine",
    "ValidationResult",
    "VariantSlot",
    # Technical assignment
    "AssignmentCoordinator",
    "AssignmentOutcome",
    "InFlightGuard",
    "composition_hash",
    "needs_recalculation",
    # Checklist
    "BonityRefresher",
    "UnderwritingEngine",
    "is_checklist_valid",
    # Contract dates and form
    "ContractDateCorrector",
    "ContractFormValidator",
    "check_end_date",
    # Income and variants
    "IncomeThresholdValidator",
    "validate_annual_income",
    "VariantManager",
    # Terms
    "check_terms_version",
    # Orchestration
    "NoticeBoard",
    "QuoteStore",
    "QuotePipeline",
    "evaluate_quote",
]
