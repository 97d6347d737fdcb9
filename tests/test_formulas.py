"""Tests for the premium and benefit formulas."""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest
from config import Config
from engines import formulas


class TestNumberParsing:
    """Test lenient number parsing of user input."""

    def test_swiss_thousands_separator(self):
        """Test apostrophes are ignored."""
        assert formulas.to_number("120'000") == 120000.0

    def test_invalid_input_is_zero(self):
        """Test garbage and booleans become 0."""
        assert formulas.to_number("abc") == 0.0
        assert formulas.to_number(None) == 0.0
        assert formulas.to_number(True) == 0.0

    def test_round_to_step(self):
        """Test rounding to 5 Rappen."""
        assert formulas.round_to_step(10.02) == 10.0
        assert formulas.round_to_step(10.025) == 10.05
        assert formulas.round_to_step(10.07) == 10.05


class TestBenefits:
    """Test benefit and pension figures."""

    @pytest.fixture
    def config(self):
        return Config()

    def test_benefit_and_pension_factors(self, config):
        """Test 80% daily benefit and 90% pension of the annual income."""
        assert formulas.annual_benefit(60000, config) == 48000.0
        assert formulas.annual_pension(60000, config) == 54000.0
        assert formulas.monthly_pension(54000) == 4500.0
        assert formulas.monthly_income(60000) == 5000.0

    def test_monthly_income_and_pension_are_not_rounded(self):
        """Test monthly income and pension are exact twelfths."""
        assert formulas.monthly_income(100000) == 100000 / 12
        assert formulas.monthly_pension(63000.9) == pytest.approx(5250.075)
        assert formulas.monthly_pension(63000.9) == 63000.9 / 12

    @pytest.mark.parametrize("income", [30000, 44460, 60000, 73333, 100000, 123456.78, 148200])
    def test_monthly_benefit_covers_annual_benefit(self, config, income):
        """Test the rounded-up monthly benefit is a 0.05 multiple covering the year."""
        annual = formulas.annual_benefit(income, config)
        monthly = formulas.monthly_benefit(annual, config)

        assert monthly * 12 >= annual - 1e-9
        assert round(monthly * 20) == pytest.approx(monthly * 20)
        assert monthly - annual / 12 < 0.05

    def test_monthly_benefit_rounds_up(self, config):
        """Test the monthly benefit is rounded up to the next 0.05."""
        # 40002.12 / 12 = 3333.51
        assert formulas.monthly_benefit(40002.12, config) == 3333.55

    def test_zero_income_yields_zero(self, config):
        """Test missing income gives neutral figures."""
        assert formulas.annual_benefit(0, config) == 0.0
        assert formulas.monthly_benefit(-5, config) == 0.0
        assert formulas.monthly_income("") == 0.0


class TestPremiums:
    """Test premium computation."""

    @pytest.fixture
    def config(self):
        return Config()

    def test_agency_competence_applies_to_rate(self):
        """Test the competence percentage scales the rate."""
        assert formulas.gross_premium_rate(1.5, -2) == pytest.approx(1.47)
        assert formulas.gross_premium_rate(1.5, 0) == pytest.approx(1.5)
        assert formulas.gross_premium_rate(0, 4) == 0.0

    def test_level_is_additive(self):
        """Test the level is shifted by the competence."""
        assert formulas.level(10, -2) == 8
        assert formulas.level(10, 4) == 14

    def test_deferral_discount(self):
        """Test discount percent per deferral period."""
        assert formulas.deferral_discount("COD_3_TAGE") == 0
        assert formulas.deferral_discount("COD_15_TAGE") == 20
        assert formulas.deferral_discount("30. Tag") == 40
        assert formulas.deferral_discount("unknown") == 0
        assert formulas.deferral_discount(None) == 0

    def test_variant_figures(self, config):
        """Test a complete variant computation."""
        figures = formulas.compute_variant_figures(60000, "COD_15_TAGE", 1.5, config)

        assert figures.gross_premium == 900.0
        assert figures.deferral_discount == 20
        assert figures.discount_amount == 180.0
        assert figures.net_annual_premium == 720.0
        assert figures.net_monthly_premium == 60.0
        assert figures.monthly_benefit == 4000.0

    def test_net_premium_identity(self, config):
        """Test net = gross - discount and all premiums are 0.05 multiples."""
        figures = formulas.compute_variant_figures(73333, "COD_30_TAGE", 1.234, config)

        assert figures.net_annual_premium == pytest.approx(
            figures.gross_premium - figures.discount_amount
        )
        for amount in (figures.gross_premium, figures.discount_amount, figures.net_monthly_premium):
            assert round(amount * 20) == pytest.approx(amount * 20)

    def test_no_rate_no_premium(self, config):
        """Test a missing rate leaves the premium at 0 but computes benefits."""
        figures = formulas.compute_variant_figures(60000, "COD_3_TAGE", 0, config)

        assert figures.gross_premium == 0.0
        assert figures.net_monthly_premium == 0.0
        assert figures.annual_benefit == 48000.0

    def test_admin_cost_premium(self, config):
        """Test the admin cost share uses the monthly discount."""
        # (60 - 120 / 12) * 10% = 5.0
        assert formulas.admin_cost_premium(60, 120, 10, config) == 5.0
        assert formulas.admin_cost_premium(60, 0, None, config) == 0.0
