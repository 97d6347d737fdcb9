"""Variant pricing step: three variant slots, selection and payment details."""

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from config import Config, get_config
from engines.base import (
    Engine,
    Finding,
    Severity,
    Variant,
    VariantFigures,
    VariantSlot,
)
from engines.formulas import (
    admin_cost_premium,
    compute_variant_figures,
    gross_premium_rate,
    to_number,
)
from engines.income import IncomeThresholdValidator
from knowledge.codes import PAYMENT_FREQUENCIES, PAYMENT_YEARLY

logger = logging.getLogger(__name__)

IBAN_PATTERN = re.compile(r"^[A-Z]{2}\d{2}[A-Z0-9]{1,30}$")
SWISS_IBAN_LENGTH = 21


@dataclass
class IbanCheck:
    """Result of an IBAN format check."""

    success: bool
    formatted: Optional[str] = None
    error: Optional[str] = None
    is_swiss: bool = False


def validate_iban(iban: Optional[str]) -> IbanCheck:
    """Check the IBAN format and format it in groups of four."""
    cleaned = re.sub(r"\s+", "", iban or "").upper()
    if not IBAN_PATTERN.match(cleaned):
        return IbanCheck(
            success=False,
            error=(
                "Ungültiges IBAN-Format. IBAN muss mit 2-Buchstaben-Ländercode beginnen "
                "(z.B. CH13 0077 8180 2388 9200)"
            ),
        )

    formatted = " ".join(cleaned[i:i + 4] for i in range(0, len(cleaned), 4))
    is_swiss = cleaned.startswith("CH") and len(cleaned) == SWISS_IBAN_LENGTH
    return IbanCheck(success=True, formatted=formatted, is_swiss=is_swiss)


@dataclass
class PaymentFrequencyCheck:
    """Result of cleaning a stored payment frequency."""

    valid: bool
    cleaned: Optional[str] = None
    warning: Optional[str] = None


def validate_payment_frequency(value: Optional[str]) -> PaymentFrequencyCheck:
    """Unknown stored values are dropped with a warning."""
    if not value or not value.strip():
        return PaymentFrequencyCheck(valid=True)
    if value in PAYMENT_FREQUENCIES:
        return PaymentFrequencyCheck(valid=True, cleaned=value)
    return PaymentFrequencyCheck(
        valid=False,
        warning=f"Unbekannte Zahlungsweise '{value.strip()}' wurde zurückgesetzt",
    )


def _is_selected_status(status: Any) -> bool:
    return status is True or status == 1 or status == "1"


def figures_from_record(record: Dict[str, Any]) -> VariantFigures:
    """Stored figures of a variant record."""
    return VariantFigures(
        monthly_income=to_number(record.get("monatsverdienst")),
        deferral_discount=int(to_number(record.get("taggeldaufschubrabatt"))),
        annual_benefit=to_number(record.get("taggeldj")),
        monthly_benefit=to_number(record.get("taggeldm")),
        annual_pension=to_number(record.get("ivrentej")),
        monthly_pension=to_number(record.get("ivrentem")),
        gross_premium=to_number(record.get("jahrespraemie_ohne_rabatt")),
        discount_amount=to_number(record.get("rabatt")),
        net_annual_premium=to_number(record.get("jahrespraemie")),
        net_monthly_premium=to_number(record.get("nettopraemie")),
    )


class VariantManager:
    """
    State of the three variants A, B and C.

    Each slot moves EMPTY -> HAS_INCOME -> HAS_DEFERRAL -> PRICED as
    income, deferral period and premium rate become known. Setting an
    input re-prices that slot only. At most one slot is selected.
    """

    def __init__(
        self,
        income_validator: IncomeThresholdValidator,
        premium_rate: float = 0.0,
        config: Optional[Config] = None,
    ):
        self.config = config or get_config()
        self.income_validator = income_validator
        self.premium_rate = premium_rate
        self.variants: Tuple[Variant, Variant, Variant] = (
            Variant(VariantSlot.A),
            Variant(VariantSlot.B),
            Variant(VariantSlot.C),
        )
        self.selected: Optional[VariantSlot] = None
        self.payment_frequency: Optional[str] = None
        self.payment_warning: Optional[str] = None
        self.iban: Optional[str] = None
        self.iban_check: Optional[IbanCheck] = None

    def variant(self, slot: VariantSlot) -> Variant:
        return self.variants[slot.value - 1]

    # Inputs

    def set_income(self, slot: VariantSlot, value: Any) -> None:
        """Set the annual income of a slot, validate and re-price it."""
        variant = self.variant(slot)
        variant.annual_income = to_number(value)
        if not self._validate_income(slot):
            logger.warning(f"Variant {slot.letter} has an invalid annual income")
        self._price(slot)

    def set_deferral(self, slot: VariantSlot, code: Optional[str]) -> None:
        variant = self.variant(slot)
        variant.deferral_code = (code or "").strip() or None
        self._price(slot)

    def copy_from_a(self) -> None:
        """Copy income and deferral period of A to B and C."""
        source = self.variant(VariantSlot.A)
        for slot in (VariantSlot.B, VariantSlot.C):
            target = self.variant(slot)
            target.annual_income = source.annual_income
            target.deferral_code = source.deferral_code
            self._validate_income(slot)
            self._price(slot)

    def toggle_selection(self, slot: VariantSlot) -> None:
        """Select a slot, or deselect it when it is already selected."""
        previous = self.selected
        self.selected = None if previous == slot else slot

        # Leaving a slot drops its income error but keeps its figures
        if previous is not None and previous != slot:
            self.variant(previous).error = None

        if slot != previous and self.variant(slot).annual_income > 0:
            self._validate_income(slot)

    def set_premium_rate(self, base_rate: Any, agency_competence: Any) -> None:
        """Re-price every slot with income after a rate or competence change."""
        self.premium_rate = gross_premium_rate(base_rate, agency_competence)
        for variant in self.variants:
            if variant.annual_income > 0:
                self._price(variant.slot)

    def set_income_ceiling(self, value: Optional[float]) -> None:
        """Store the shared income ceiling and re-check the selected slot."""
        self.income_validator.max_insured_income = value
        if self.selected is not None and self.variant(self.selected).annual_income > 0:
            self._validate_income(self.selected)

    def toggle_payment_frequency(self, value: str) -> None:
        if value not in PAYMENT_FREQUENCIES:
            raise ValueError(f"Unknown payment frequency: {value}")
        self.payment_frequency = None if self.payment_frequency == value else value

    def load_payment_frequency(self, value: Optional[str]) -> PaymentFrequencyCheck:
        """Take over a stored payment frequency, dropping unknown values."""
        check = validate_payment_frequency(value)
        self.payment_frequency = check.cleaned
        self.payment_warning = check.warning
        if check.warning:
            logger.warning(check.warning)
        return check

    def set_iban(self, iban: Optional[str]) -> Optional[IbanCheck]:
        """Store the IBAN; empty input clears it."""
        if not iban or not iban.strip():
            self.iban = None
            self.iban_check = None
            return None
        self.iban_check = validate_iban(iban)
        self.iban = self.iban_check.formatted if self.iban_check.success else iban
        return self.iban_check

    # Derived state

    def _validate_income(self, slot: VariantSlot) -> bool:
        variant = self.variant(slot)
        variant.error = self.income_validator.error_message(variant.annual_income)
        return variant.error is None

    def _price(self, slot: VariantSlot) -> None:
        variant = self.variant(slot)
        variant.figures = compute_variant_figures(
            variant.annual_income, variant.deferral_code, self.premium_rate, self.config
        )

    @property
    def has_blocking_errors(self) -> bool:
        """Income errors on any slot with income, or an invalid IBAN."""
        for variant in self.variants:
            if variant.annual_income != 0 and variant.error:
                return True
        return self.iban_check is not None and not self.iban_check.success

    def is_step_complete(self, has_checklist: bool) -> bool:
        """Whether the pricing step may be left."""
        if self.selected is None:
            return False
        variant = self.variant(self.selected)
        if variant.annual_income <= 0 or not variant.deferral_code:
            return False
        if self.has_blocking_errors:
            return False
        if not self.payment_frequency:
            return False
        if self.payment_frequency != PAYMENT_YEARLY and not has_checklist:
            return False
        return True

    def validate(self, has_checklist: bool, quote_number: str = "") -> List[Finding]:
        """
        Explain every failed gate of the pricing step.

        Validates:
        - V-001: Keine Variante ausgewählt
        - V-002: Ausgewählte Variante ohne Jahresverdienst
        - V-003: Ausgewählte Variante ohne Taggeldaufschub
        - V-004: Jahresverdienst ausserhalb der Grenzen
        - V-005: Zahlungsweise fehlt
        - V-006: Unbekannte Zahlungsweise zurückgesetzt
        - V-007: Checkliste fehlt bei unterjähriger Zahlung
        - V-008: IBAN ungültig
        """
        findings = []

        def add(severity, code, label, value, description, expected="", engine=Engine.VARIANTS):
            findings.append(Finding(
                severity=severity,
                engine=engine,
                code=code,
                label=label,
                value="" if value is None else str(value),
                description=description,
                expected=expected,
                quote=quote_number,
            ))

        # V-001..V-003: Selected variant
        if self.selected is None:
            add(Severity.FEHLER, "V-001", "selectedVariante", None,
                "Ausgewählte Variante ist erforderlich", "A, B oder C")
        else:
            variant = self.variant(self.selected)
            key = f"variante{self.selected.letter}"
            if variant.annual_income <= 0:
                add(Severity.FEHLER, "V-002", f"{key}.verdienst", variant.annual_income,
                    f"Variante {self.selected.letter}: Jahresverdienst ist erforderlich")
            if not variant.deferral_code:
                add(Severity.FEHLER, "V-003", f"{key}.taggeld", None,
                    f"Variante {self.selected.letter}: Taggeld ab ist erforderlich")

        # V-004: Income errors on any populated slot
        for variant in self.variants:
            if variant.annual_income != 0 and variant.error:
                add(Severity.FEHLER, "V-004", f"variante{variant.slot.letter}.verdienst",
                    f"{variant.annual_income:g}", variant.error, engine=Engine.INCOME)

        # V-005, V-006: Payment frequency
        if not self.payment_frequency:
            add(Severity.FEHLER, "V-005", "praemienzahlung", None,
                "Prämienzahlung ist erforderlich", ", ".join(PAYMENT_FREQUENCIES))
        if self.payment_warning:
            add(Severity.WARNUNG, "V-006", "praemienzahlung", None, self.payment_warning,
                ", ".join(PAYMENT_FREQUENCIES))

        # V-007: Non-yearly payment needs a checklist
        if (
            self.payment_frequency
            and self.payment_frequency != PAYMENT_YEARLY
            and not has_checklist
        ):
            add(Severity.FEHLER, "V-007", "praemienzahlung", self.payment_frequency,
                "Für unterjährige Zahlung muss eine Checkliste vorhanden sein")

        # V-008: IBAN format
        if self.iban_check is not None and not self.iban_check.success:
            add(Severity.FEHLER, "V-008", "iban", self.iban, self.iban_check.error,
                "z.B. CH13 0077 8180 2388 9200")

        return findings

    # Persistence

    def to_records(
        self,
        existing: Sequence[Dict[str, Any]] = (),
        updated_by: Optional[str] = None,
        minimum_income: float = 0,
        admin_cost_rate: Optional[float] = None,
    ) -> List[Dict[str, Any]]:
        """Map the slots to variant records, reusing ids of existing records."""
        by_number = {record.get("variante"): record for record in existing}
        records = []

        for variant in self.variants:
            previous = by_number.get(variant.slot.value, {})
            figures = variant.figures
            net_monthly = figures.net_monthly_premium or to_number(previous.get("nettopraemie"))
            discount = figures.discount_amount or to_number(previous.get("rabatt"))
            net_annual = figures.net_annual_premium or to_number(previous.get("jahrespraemie"))
            gross = figures.gross_premium or to_number(previous.get("jahrespraemie_ohne_rabatt"))
            without_minimum = to_number(previous.get("jahrespraemie_ohne_minimal")) or net_annual

            records.append({
                "id": previous.get("id", variant.record_id),
                "variante": variant.slot.value,
                "verdienst": variant.annual_income or 0,
                "mind_verdienst": minimum_income or 0,
                "taggeld": variant.deferral_code,
                "taggeldaufschubrabatt": figures.deferral_discount,
                "taggeldj": figures.annual_benefit,
                "taggeldm": figures.monthly_benefit,
                "ivrentej": figures.annual_pension,
                "ivrentem": figures.monthly_pension,
                "jahrespraemie_ohne_rabatt": gross,
                "jahrespraemie_ohne_minimal": without_minimum,
                "verwaltungskostenpraemie": admin_cost_premium(
                    net_monthly, discount, admin_cost_rate, self.config
                ),
                "rabatt": discount,
                "jahrespraemie": net_annual,
                "nettopraemie": net_monthly,
                "status": self.selected == variant.slot,
                "updatedby": updated_by,
            })

        return records

    def from_records(
        self, records: Sequence[Dict[str, Any]], stored_figures: bool = True
    ) -> None:
        """Restore slots and selection from stored variant records.

        Without a premium rate the stored figures are kept unless
        ``stored_figures`` is False; then only the benefits are recomputed.
        """
        self.selected = None
        for record in records:
            try:
                slot = VariantSlot(int(to_number(record.get("variante"))))
            except ValueError:
                logger.warning(f"Ignoring variant record with number {record.get('variante')!r}")
                continue

            variant = self.variant(slot)
            variant.record_id = record.get("id")
            variant.annual_income = to_number(record.get("verdienst"))
            taggeld = record.get("taggeld")
            variant.deferral_code = (str(taggeld).strip() or None) if taggeld else None

            if self.premium_rate > 0 or not stored_figures:
                self._price(slot)
            else:
                variant.figures = figures_from_record(record)

            if variant.annual_income != 0:
                self._validate_income(slot)

            if _is_selected_status(record.get("status")):
                self.selected = slot
