"""Tests for contract date correction and the contract form rules."""

import sys
from datetime import date
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest
from config import Config
from engines.base import (
    ActivityShare,
    DateOrigin,
    NoticeKind,
    Quote,
    QuoteMeta,
    TechnicalBasis,
)
from engines.contract_dates import (
    ContractDateCorrector,
    ContractFormValidator,
    apply_date_defaults,
    check_end_date,
    contract_end_date,
    duration_code_for_dates,
    end_date_for_duration,
)
from engines.store import NoticeBoard
from knowledge.code_tables import load_code_tables


@pytest.fixture
def code_tables():
    return load_code_tables(Config())


def make_quote(**overrides):
    values = dict(
        id=1,
        number="O.0259777000.001",
        start_date=date(2024, 3, 15),
        end_date=date(2027, 12, 31),
        duration_code="Ablauf_4",
        position_code="COD_INHABER_BETRIEB",
        workload_code="COD_100_Prozent",
        basis=TechnicalBasis(
            activities=(ActivityShare("101", 60), ActivityShare("102", 40)),
            work_percentage=100,
            headcount=3,
        ),
    )
    values.update(overrides)
    return Quote(**values)


class TestEndDate:
    """Test end date rules."""

    def test_end_is_31_december(self):
        """Test 15.03.2024 + 4 years ends on 31.12.2027."""
        assert contract_end_date(date(2024, 3, 15), 4) == date(2027, 12, 31)
        assert contract_end_date(date(2024, 3, 15), 1) == date(2024, 12, 31)

    def test_matching_end_needs_no_correction(self, code_tables):
        """Test a correct end date is left alone."""
        check = check_end_date(
            date(2024, 3, 15), date(2027, 12, 31), "Ablauf_4", code_tables.duration_years
        )
        assert not check.should_correct

    def test_mismatch_is_corrected(self, code_tables):
        """Test a wrong end date is corrected to the duration."""
        check = check_end_date(
            date(2024, 3, 15), date(2027, 6, 30), "Ablauf_4", code_tables.duration_years
        )
        assert check.should_correct
        assert check.expected_end == date(2027, 12, 31)
        assert check.original_end == date(2027, 6, 30)

    def test_read_only_is_never_corrected(self, code_tables):
        """Test read-only quotes are not touched."""
        check = check_end_date(
            date(2024, 3, 15), date(2028, 3, 14), "Ablauf_4", code_tables.duration_years,
            read_only=True,
        )
        assert not check.should_correct

    def test_unknown_duration(self, code_tables):
        """Test an unknown duration code disables the correction."""
        check = check_end_date(
            date(2024, 3, 15), date(2028, 3, 14), "Ablauf_9", code_tables.duration_years
        )
        assert not check.should_correct

    def test_derivations(self, code_tables):
        """Test duration and end date derive from each other."""
        assert end_date_for_duration(date(2024, 3, 15), "Ablauf_2", code_tables) == date(2025, 12, 31)
        assert duration_code_for_dates(date(2024, 3, 15), date(2026, 12, 31), code_tables) == "Ablauf_3"


class TestDateDefaults:
    """Test defaulting and the correction notice."""

    def test_new_quote_gets_defaults(self, code_tables):
        """Test a new quote starts today and runs four years."""
        quote = Quote()
        meta = QuoteMeta()

        applied = apply_date_defaults(quote, meta, today=date(2025, 6, 1), code_tables=code_tables)

        assert applied
        assert quote.start_date == date(2025, 6, 1)
        assert quote.end_date == date(2028, 12, 31)
        assert quote.duration_code == "Ablauf_4"
        assert meta.date_origin == DateOrigin.DEFAULTED

    def test_stored_quote_is_marked_loaded(self, code_tables):
        """Test stored dates are never replaced by defaults."""
        quote = make_quote()
        meta = QuoteMeta()

        assert not apply_date_defaults(quote, meta, today=date(2025, 6, 1), code_tables=code_tables)
        assert quote.start_date == date(2024, 3, 15)
        assert meta.date_origin == DateOrigin.LOADED

    def test_loaded_quote_is_corrected_with_notice(self, code_tables):
        """Test a loaded quote with a wrong end date gets a notice."""
        notices = NoticeBoard()
        quote = make_quote(end_date=date(2028, 3, 14))
        meta = QuoteMeta(date_origin=DateOrigin.LOADED)

        ContractDateCorrector(code_tables, notices).apply(quote, meta)

        assert quote.end_date == date(2027, 12, 31)
        assert notices.is_active(NoticeKind.DATE_CORRECTED)
        notice = notices.notices[0]
        assert notice.details == {"original": "14.03.2028", "corrected": "31.12.2027"}

    def test_defaulted_dates_are_not_corrected(self, code_tables):
        """Test the corrector only runs for loaded or user-edited dates."""
        notices = NoticeBoard()
        quote = make_quote(end_date=date(2028, 3, 14))
        meta = QuoteMeta(date_origin=DateOrigin.DEFAULTED)

        ContractDateCorrector(code_tables, notices).apply(quote, meta)

        assert quote.end_date == date(2028, 3, 14)
        assert notices.notices == []


class TestContractFormValidator:
    """Test the activity step rules."""

    @pytest.fixture
    def engine(self):
        return ContractFormValidator(Config(), today=date(2024, 1, 1))

    def codes(self, findings):
        return [f.code for f in findings]

    def test_valid_quote(self, engine):
        """Test 60% + 40% passes."""
        assert engine.validate(make_quote()) == []

    def test_composition_must_total_100(self, engine):
        """Test 60% + 30% fails."""
        quote = make_quote(basis=TechnicalBasis(
            activities=(ActivityShare("101", 60), ActivityShare("102", 30)),
            work_percentage=100,
            headcount=3,
        ))
        assert "C-012" in self.codes(engine.validate(quote))

    def test_composition_tolerance_is_inclusive(self, engine):
        """Test a total off by exactly the tolerance still passes."""
        def total_of(first, second):
            return make_quote(basis=TechnicalBasis(
                activities=(ActivityShare("101", first), ActivityShare("102", second)),
                work_percentage=100,
                headcount=3,
            ))

        assert "C-012" not in self.codes(engine.validate(total_of(60.001, 40)))
        assert "C-012" not in self.codes(engine.validate(total_of("59.999", "40")))
        assert "C-012" in self.codes(engine.validate(total_of(60.002, 40)))

    def test_percentage_strings_and_tolerance(self, engine):
        """Test string percentages and fractional shares."""
        quote = make_quote(basis=TechnicalBasis(
            activities=(ActivityShare("101", "33.3333"), ActivityShare("102", "66.6667")),
            work_percentage="100",
            headcount="3",
        ))
        assert engine.validate(quote) == []

    def test_invalid_percentage(self, engine):
        """Test non-numeric and out-of-range shares."""
        quote = make_quote(basis=TechnicalBasis(
            activities=(ActivityShare("101", "abc"), ActivityShare("", 120)),
            work_percentage=100,
            headcount=3,
        ))
        codes = self.codes(engine.validate(quote))
        assert codes.count("C-011") == 2
        assert "C-010" in codes

    def test_no_activities(self, engine):
        """Test at least one activity is required."""
        quote = make_quote(basis=TechnicalBasis(work_percentage=100, headcount=3))
        assert "C-009" in self.codes(engine.validate(quote))

    def test_end_date_rules(self, engine):
        """Test end date must be a 31.12. after 1-4 years."""
        codes = self.codes(engine.validate(make_quote(end_date=date(2029, 12, 31))))
        assert "C-005" in codes

        codes = self.codes(engine.validate(make_quote(end_date=date(2024, 1, 1))))
        assert "C-004" in codes

    def test_past_start_only_for_new_quotes(self):
        """Test the past start date check skips stored quotes."""
        engine = ContractFormValidator(Config(), today=date(2025, 1, 1))

        assert "C-002" not in self.codes(engine.validate(make_quote()))
        assert "C-002" in self.codes(engine.validate(make_quote(id=None)))

    def test_missing_fields(self, engine):
        """Test required fields."""
        quote = make_quote(
            start_date=None,
            end_date=None,
            duration_code=None,
            position_code=None,
            workload_code=None,
            basis=TechnicalBasis(activities=(ActivityShare("101", 100),)),
        )
        codes = self.codes(engine.validate(quote))
        for code in ("C-001", "C-003", "C-006", "C-007", "C-008", "C-013", "C-014"):
            assert code in codes

    def test_work_percentage_range(self, engine):
        """Test Stellenprozente above 9999 are rejected."""
        quote = make_quote(basis=TechnicalBasis(
            activities=(ActivityShare("101", 100),), work_percentage=10000, headcount=1
        ))
        assert "C-013" in self.codes(engine.validate(quote))
