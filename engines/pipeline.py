"""
Quote evaluation pipeline.

Runs the engines in data-flow order on one quote:

1. Contract date defaulting and end date correction
2. Terms version correction
3. Technical assignment (recalculated only when the activities changed)
4. Variant pricing and income thresholds
5. Underwriting checklist
6. Contract form rules
"""

import logging
from datetime import date
from typing import Any, Dict, List, Optional, Tuple

from config import Config, get_config
from engines.assignment import (
    AssignmentCoordinator,
    AssignmentOutcome,
    InFlightGuard,
    assignment_is_current,
)
from engines.base import (
    AssignmentService,
    BonityService,
    Engine,
    Finding,
    IncomeCeilingService,
    Quote,
    QuoteEngineError,
    QuoteMeta,
    RemoteServiceError,
    Severity,
    ValidationResult,
)
from engines.checklist import BonityRefresher, UnderwritingEngine, prepare_checklist
from engines.contract_dates import (
    ContractDateCorrector,
    ContractFormValidator,
    apply_date_defaults,
)
from engines.income import IncomeThresholdValidator
from engines.store import NoticeBoard, QuoteStore
from engines.terms import apply_terms_correction
from engines.variants import VariantManager
from knowledge.code_tables import CodeTables

logger = logging.getLogger(__name__)

ASSIGNMENT_OUTDATED = (
    "Die technische Zuweisung passt nicht mehr zu den Tätigkeiten. "
    "Die Prämien werden erst nach der Neuberechnung ausgewiesen."
)


class QuotePipeline:
    """Evaluates quotes against the code tables and optional remote services."""

    def __init__(
        self,
        code_tables: CodeTables,
        config: Optional[Config] = None,
        assignment_service: Optional[AssignmentService] = None,
        bonity_service: Optional[BonityService] = None,
        income_ceiling: Optional[IncomeCeilingService] = None,
        today: Optional[date] = None,
    ):
        self.config = config or get_config()
        self.code_tables = code_tables
        self.assignment_service = assignment_service
        self.bonity_service = bonity_service
        self.income_ceiling = income_ceiling
        self.today = today
        self._guards: Dict[Tuple[str, Any], InFlightGuard] = {}

    def guard(self, name: str, quote: Quote) -> InFlightGuard:
        """In-flight guard for one kind of remote call on one quote."""
        key = (name, quote.id if quote.id is not None else quote.number)
        if key not in self._guards:
            self._guards[key] = InFlightGuard(f"{name} for quote {key[1]}")
        return self._guards[key]

    def evaluate(
        self,
        quote: Quote,
        meta: Optional[QuoteMeta] = None,
        requested_by: Optional[str] = None,
    ) -> ValidationResult:
        """Apply corrections and derived state, then collect all findings."""
        store = QuoteStore(quote, meta)
        notices = NoticeBoard()
        findings: List[Finding] = []
        today = self.today or date.today()
        requested_by = requested_by or self.config.default_user

        logger.info(f"Evaluating quote {quote.number or quote.id or '(new)'}")

        # Corrections mutate the quote in place and are pushed through the store
        quote, meta = store.quote, store.meta
        apply_date_defaults(quote, meta, today, self.code_tables, self.config)
        ContractDateCorrector(self.code_tables, notices).apply(quote, meta)
        apply_terms_correction(quote, self.code_tables.terms_entries(), notices)
        store.commit(
            {
                "start_date": quote.start_date,
                "end_date": quote.end_date,
                "duration_code": quote.duration_code,
                "terms_code": quote.terms_code,
            },
            {"date_origin": meta.date_origin},
        )

        findings.extend(self._run_assignment(store, requested_by))
        quote = store.quote

        # Premiums are only derived from an assignment that matches the activities
        outdated = quote.assignment is not None and not assignment_is_current(quote, store.meta)
        if outdated:
            logger.warning(f"Quote {quote.number}: technical assignment is outdated, premiums not computed")
            findings.append(self._service_finding(
                quote, Engine.ASSIGNMENT, Severity.FEHLER, "A-003", "bb", ASSIGNMENT_OUTDATED
            ))

        manager = self._build_variants(quote, use_assignment=not outdated)
        has_checklist = quote.checklist is not None
        findings.extend(manager.validate(has_checklist, quote.number))

        # Priced slots are written back as variant records
        if manager.premium_rate > 0:
            assignment = quote.assignment
            quote = store.update_quote(variant_records=manager.to_records(
                existing=quote.variant_records,
                updated_by=requested_by,
                minimum_income=manager.income_validator.minimum_income(),
                admin_cost_rate=assignment.admin_cost_rate if assignment else None,
            ))

        checklist_valid = None
        if quote.checklist is not None:
            prepare_checklist(quote.checklist, quote.person, quote.start_date)
            if self.bonity_service is not None:
                findings.extend(self._refresh_bonity(store, quote))
            checklist_findings = UnderwritingEngine(self.config).validate(quote)
            findings.extend(checklist_findings)
            checklist_valid = quote.checklist.valid

        findings.extend(ContractFormValidator(self.config, today).validate(quote))

        result = ValidationResult(
            findings=findings,
            notices=notices.notices,
            variants=list(manager.variants),
            selected=manager.selected,
            step_complete=manager.is_step_complete(has_checklist),
            checklist_valid=checklist_valid,
            quote=quote,
            meta=store.meta,
        )
        logger.info(
            f"Quote {quote.number}: {result.get_error_count()} errors, "
            f"{result.get_warning_count()} warnings"
        )
        return result

    def _run_assignment(self, store: QuoteStore, requested_by: str) -> List[Finding]:
        quote = store.quote
        if self.assignment_service is None:
            if quote.assignment is None:
                logger.warning(f"Quote {quote.number}: no technical assignment and no service configured")
            return []

        coordinator = AssignmentCoordinator(
            store,
            self.assignment_service,
            self.code_tables,
            guard=self.guard("Technical assignment calculation", quote),
        )
        try:
            outcome = coordinator.ensure(requested_by)
        except QuoteEngineError as exc:
            logger.warning(f"Quote {quote.number}: assignment not calculated: {exc}")
            return [self._service_finding(
                quote, Engine.ASSIGNMENT, Severity.WARNUNG, "A-001", "bb", str(exc)
            )]

        if outcome == AssignmentOutcome.FAILED:
            return [self._service_finding(
                quote, Engine.ASSIGNMENT, Severity.FEHLER, "A-002", "bb", store.meta.assignment_error or ""
            )]
        return []

    def _refresh_bonity(self, store: QuoteStore, quote: Quote) -> List[Finding]:
        refresher = BonityRefresher(self.bonity_service, self.guard("Bonity lookup", quote))
        refresher.refresh(quote.checklist, quote.person)
        store.update_meta(bonity_error=refresher.error)
        if refresher.error is None:
            return []
        return [self._service_finding(
            quote, Engine.CHECKLIST, Severity.WARNUNG, "K-006", "bonitaet_crif", refresher.error
        )]

    @staticmethod
    def _service_finding(
        quote: Quote, engine: Engine, severity: Severity, code: str, label: str, message: str
    ) -> Finding:
        return Finding(
            severity=severity,
            engine=engine,
            code=code,
            label=label,
            value="",
            description=message,
            quote=quote.number,
        )

    def _build_variants(self, quote: Quote, use_assignment: bool = True) -> VariantManager:
        ceiling = None
        if self.income_ceiling is not None:
            try:
                ceiling = self.income_ceiling.max_insured_income()
            except RemoteServiceError as exc:
                logger.warning(f"Income ceiling lookup failed: {exc}")

        validator = IncomeThresholdValidator(
            self.code_tables,
            position_code=quote.position_code,
            workload_code=quote.workload_code,
            max_insured_income=ceiling,
            config=self.config,
        )
        manager = VariantManager(validator, config=self.config)

        assignment = quote.assignment
        if use_assignment and assignment is not None and assignment.base_premium_rate:
            competence = self.code_tables.agency_competence_value(quote.agency_competence_code)
            manager.set_premium_rate(assignment.base_premium_rate, competence)

        manager.from_records(quote.variant_records, stored_figures=use_assignment)
        manager.load_payment_frequency(quote.payment.frequency)
        manager.set_iban(quote.payment.iban)
        return manager


def evaluate_quote(
    quote: Quote,
    code_tables: CodeTables,
    meta: Optional[QuoteMeta] = None,
    config: Optional[Config] = None,
    today: Optional[date] = None,
) -> ValidationResult:
    """Evaluate a quote without remote services."""
    return QuotePipeline(code_tables, config=config, today=today).evaluate(quote, meta)
