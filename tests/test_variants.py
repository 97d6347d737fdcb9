"""Tests for the variant pricing step."""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest
from config import Config
from engines.base import Engine, VariantSlot, VariantState
from engines.income import IncomeThresholdValidator
from engines.variants import VariantManager, validate_iban, validate_payment_frequency
from knowledge.code_tables import load_code_tables

A, B, C = VariantSlot.A, VariantSlot.B, VariantSlot.C


@pytest.fixture
def config():
    return Config()


@pytest.fixture
def code_tables(config):
    return load_code_tables(config)


@pytest.fixture
def manager(code_tables, config):
    validator = IncomeThresholdValidator(code_tables, position_code="COD_EHEGATTE", config=config)
    manager = VariantManager(validator, config=config)
    manager.set_premium_rate(1.5, 0)
    return manager


class TestVariantInputs:
    """Test pricing and state progression."""

    def test_state_progression(self, code_tables, config):
        """Test EMPTY -> HAS_INCOME -> HAS_DEFERRAL -> PRICED."""
        manager = VariantManager(IncomeThresholdValidator(code_tables, config=config), config=config)
        assert manager.variant(A).state == VariantState.EMPTY

        manager.set_income(A, 60000)
        assert manager.variant(A).state == VariantState.HAS_INCOME

        manager.set_deferral(A, "COD_15_TAGE")
        assert manager.variant(A).state == VariantState.HAS_DEFERRAL

        manager.set_premium_rate(1.5, 0)
        assert manager.variant(A).state == VariantState.PRICED

    def test_priced_figures(self, manager):
        """Test a priced slot carries all figures."""
        manager.set_income(A, "60'000")
        manager.set_deferral(A, "COD_15_TAGE")

        figures = manager.variant(A).figures
        assert figures.gross_premium == 900.0
        assert figures.net_annual_premium == 720.0
        assert figures.net_monthly_premium == 60.0

    def test_only_edited_slot_is_repriced(self, manager):
        """Test setting B leaves A alone."""
        manager.set_income(A, 60000)
        before = manager.variant(A).figures

        manager.set_income(B, 80000)

        assert manager.variant(A).figures is before
        assert manager.variant(B).figures.gross_premium == 1200.0

    def test_agency_competence_reprices(self, manager):
        """Test a competence change re-prices every slot with income."""
        manager.set_income(A, 60000)
        manager.set_income(C, 80000)

        manager.set_premium_rate(1.5, -2)

        assert manager.variant(A).figures.gross_premium == 882.0
        assert manager.variant(C).figures.gross_premium == 1176.0
        assert manager.variant(B).state == VariantState.EMPTY

    def test_income_error(self, manager):
        """Test a family member below the minimum gets an error."""
        manager.set_income(A, 44459)
        assert "CHF 44'460" in manager.variant(A).error
        assert manager.has_blocking_errors

        manager.set_income(A, 44460)
        assert manager.variant(A).error is None

    def test_income_error_finding_belongs_to_income_engine(self, manager):
        """Test income threshold findings are reported by the income engine."""
        manager.set_income(A, 44459)

        findings = [f for f in manager.validate(True) if f.code == "V-004"]

        assert [f.engine for f in findings] == [Engine.INCOME]
        assert findings[0].label == "varianteA.verdienst"

    def test_copy_from_a(self, manager):
        """Test income and deferral are copied to B and C."""
        manager.set_income(A, 60000)
        manager.set_deferral(A, "COD_30_TAGE")

        manager.copy_from_a()

        for slot in (B, C):
            assert manager.variant(slot).annual_income == 60000
            assert manager.variant(slot).deferral_code == "COD_30_TAGE"
            assert manager.variant(slot).figures == manager.variant(A).figures


class TestSelection:
    """Test the single selection."""

    def test_toggle(self, manager):
        """Test at most one slot is selected."""
        manager.toggle_selection(A)
        manager.toggle_selection(B)
        assert manager.selected == B

        manager.toggle_selection(B)
        assert manager.selected is None

    def test_step_complete(self, manager):
        """Test the step needs selection, income, deferral and payment."""
        manager.set_income(A, 60000)
        manager.set_deferral(A, "COD_3_TAGE")
        assert not manager.is_step_complete(has_checklist=False)

        manager.toggle_selection(A)
        assert not manager.is_step_complete(has_checklist=False)

        manager.toggle_payment_frequency("jaehrlich")
        assert manager.is_step_complete(has_checklist=False)

    def test_non_yearly_payment_needs_checklist(self, manager):
        """Test monthly payment requires a checklist."""
        manager.set_income(A, 60000)
        manager.set_deferral(A, "COD_3_TAGE")
        manager.toggle_selection(A)
        manager.toggle_payment_frequency("monatlich")

        assert not manager.is_step_complete(has_checklist=False)
        assert manager.is_step_complete(has_checklist=True)
        assert "V-007" in [f.code for f in manager.validate(has_checklist=False)]

    def test_findings_for_empty_step(self, manager):
        """Test missing selection and payment are reported."""
        codes = [f.code for f in manager.validate(has_checklist=False)]
        assert "V-001" in codes
        assert "V-005" in codes

    def test_unknown_payment_frequency(self, manager):
        """Test toggling an unknown value is misuse."""
        with pytest.raises(ValueError):
            manager.toggle_payment_frequency("woechentlich")


class TestPaymentDetails:
    """Test stored payment details."""

    def test_unknown_stored_frequency_is_dropped(self):
        """Test unknown values are reset with a warning."""
        check = validate_payment_frequency("woechentlich")
        assert not check.valid
        assert check.cleaned is None
        assert "woechentlich" in check.warning

    def test_swiss_iban(self):
        """Test a Swiss IBAN is formatted in groups of four."""
        check = validate_iban("ch93 0076 2011 6238 5295 7")
        assert check.success
        assert check.is_swiss
        assert check.formatted == "CH93 0076 2011 6238 5295 7"

    def test_invalid_iban_blocks(self, manager):
        """Test an invalid IBAN is a blocking error."""
        manager.set_iban("1234")
        assert manager.has_blocking_errors
        assert "V-008" in [f.code for f in manager.validate(has_checklist=True)]

        manager.set_iban("")
        assert manager.iban is None
        assert not manager.has_blocking_errors


class TestRecords:
    """Test persistence of variant records."""

    def test_records_keep_ids_and_selection(self, manager):
        """Test records reuse ids and mark the selected slot."""
        manager.set_income(A, 60000)
        manager.set_deferral(A, "COD_15_TAGE")
        manager.toggle_selection(A)

        records = manager.to_records(
            existing=[{"id": 11, "variante": 1}], updated_by="jdoe", minimum_income=44460
        )

        assert [r["variante"] for r in records] == [1, 2, 3]
        assert records[0]["id"] == 11
        assert records[0]["status"] is True
        assert records[1]["status"] is False
        assert records[0]["jahrespraemie"] == 720.0
        assert records[0]["mind_verdienst"] == 44460
        assert records[0]["updatedby"] == "jdoe"

    def test_restore_from_records(self, manager, code_tables, config):
        """Test records restore slots and the selection."""
        manager.set_income(B, 60000)
        manager.set_deferral(B, "COD_30_TAGE")
        manager.toggle_selection(B)
        records = manager.to_records()

        restored = VariantManager(
            IncomeThresholdValidator(code_tables, position_code="COD_EHEGATTE", config=config),
            config=config,
        )
        restored.set_premium_rate(1.5, 0)
        restored.from_records(records)

        assert restored.selected == B
        assert restored.variant(B).deferral_code == "COD_30_TAGE"
        assert restored.variant(B).figures == manager.variant(B).figures

    def test_restore_without_rate_keeps_stored_figures(self, manager, code_tables, config):
        """Test stored figures are used when no rate is known."""
        restored = VariantManager(IncomeThresholdValidator(code_tables, config=config), config=config)
        restored.from_records([
            {"variante": 1, "verdienst": 60000, "taggeld": "COD_3_TAGE",
             "jahrespraemie_ohne_rabatt": 900, "jahrespraemie": 900, "nettopraemie": 75, "status": "1"},
        ])

        assert restored.variant(A).figures.gross_premium == 900.0
        assert restored.variant(A).figures.net_monthly_premium == 75.0
        assert restored.selected == A

    def test_restore_without_stored_figures(self, code_tables, config):
        """Test stored premiums are dropped and benefits recomputed."""
        restored = VariantManager(IncomeThresholdValidator(code_tables, config=config), config=config)
        restored.from_records([
            {"variante": 1, "verdienst": 60000, "taggeld": "COD_3_TAGE",
             "jahrespraemie_ohne_rabatt": 900, "jahrespraemie": 900, "nettopraemie": 75, "status": "1"},
        ], stored_figures=False)

        figures = restored.variant(A).figures
        assert figures.gross_premium == 0.0
        assert figures.net_monthly_premium == 0.0
        assert figures.annual_benefit == 48000.0
        assert restored.selected == A
