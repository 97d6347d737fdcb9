"""Tests for the quote document parser."""

import json
import sys
from datetime import date
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest
from engines.base import DateOrigin, QuoteEngineError
from parser.quote_parser import load_quote, parse_date, parse_quote


def quote_document():
    return {
        "id": 4711,
        "offertenr": "O.0259777000.001",
        "art": "OfferteArtVerl",
        "gueltab": "15.03.2024",
        "gueltbis": "2027-12-31",
        "vertragsdauer": "Ablauf_4",
        "avb": "COD_FUV_AVB_01_2024",
        "stellung_im_betrieb": "COD_EHEGATTE",
        "beschaeft_grad": "COD_50_Prozent",
        "agenturkompetenz": "COD_-2",
        "bb": {
            "bb2merkmal": [
                {"merkmal_boid": 101, "prozent": "60", "merkmal_internalname": "BUERO"},
                {"merkmal_boid": 102, "prozent": 40, "merkmal_internalname": "BAU"},
            ],
            "stellenprozente": 100,
            "anzahlma": 3,
            "nettopraemiensatz": 1.5,
            "basisstufe": 10,
            "vksatz": 12.5,
            "bbtezu": [{"type": "HZ", "klasse": "A0", "anteil": 60}],
        },
        "variante": [{"id": 1, "variante": 1, "verdienst": 60000, "taggeld": "COD_15_TAGE", "status": True}],
        "praemienzahlung": "monatlich",
        "iban": "CH9300762011623852957",
        "person": {"vorname": "Anna", "name": "Muster", "geburtsdatum": "1980-05-01T00:00:00Z", "plz": 3000},
        "checkliste": {"id": 5, "bt_malus": None, "bonitaet_crif": "CRIF_HOCH", "report_id": 99},
        "meta": {"tezuHash": "abc", "datumHerkunft": "loaded"},
    }


class TestParseDate:
    """Test date formats."""

    def test_formats(self):
        """Test ISO, ISO with time and Swiss dates."""
        assert parse_date("2024-03-15") == date(2024, 3, 15)
        assert parse_date("2024-03-15T10:00:00Z") == date(2024, 3, 15)
        assert parse_date("15.03.2024") == date(2024, 3, 15)
        assert parse_date("") is None
        assert parse_date(None) is None


class TestParseQuote:
    """Test mapping a document onto the engine data."""

    def test_quote_fields(self):
        """Test the main quote fields."""
        quote, meta = parse_quote(quote_document())

        assert quote.id == 4711
        assert quote.number == "O.0259777000.001"
        assert quote.start_date == date(2024, 3, 15)
        assert quote.end_date == date(2027, 12, 31)
        assert quote.duration_code == "Ablauf_4"
        assert quote.position_code == "COD_EHEGATTE"
        assert quote.agency_competence_code == "COD_-2"
        assert quote.payment.frequency == "monatlich"
        assert not quote.is_new

    def test_basis_and_assignment(self):
        """Test activities and the stored calculation."""
        quote, _ = parse_quote(quote_document())

        assert quote.basis.activities[0].activity_id == "101"
        assert quote.basis.activities[0].percentage == "60"
        assert quote.basis.headcount == 3
        assert quote.assignment.base_premium_rate == 1.5
        assert quote.assignment.entries[0].assignment_type == "HZ"

    def test_person_and_checklist(self):
        """Test person and checklist mapping."""
        quote, _ = parse_quote(quote_document())

        assert quote.person.birth_date == date(1980, 5, 1)
        assert quote.person.zipcode == "3000"
        assert quote.checklist.malus_surcharge == 0.0
        assert quote.checklist.report_id == "99"

    def test_meta(self):
        """Test the stored hash and date origin."""
        _, meta = parse_quote(quote_document())

        assert meta.stored_hash == "abc"
        assert meta.date_origin == DateOrigin.LOADED

    def test_minimal_document(self):
        """Test an empty document is a new quote."""
        quote, meta = parse_quote({})

        assert quote.is_new
        assert quote.assignment is None
        assert quote.checklist is None
        assert meta.date_origin == DateOrigin.NOT_INITIALIZED

    def test_invalid_document(self):
        """Test invalid values raise QuoteEngineError."""
        with pytest.raises(QuoteEngineError):
            parse_quote({"gueltab": "31.02.2024"})


class TestLoadQuote:
    """Test loading from file."""

    def test_load(self, tmp_path):
        """Test a JSON file is loaded."""
        path = tmp_path / "quote.json"
        path.write_text(json.dumps(quote_document()), encoding="utf-8")

        quote, _ = load_quote(path)
        assert quote.number == "O.0259777000.001"

    def test_invalid_json(self, tmp_path):
        """Test broken JSON is reported."""
        path = tmp_path / "quote.json"
        path.write_text("{", encoding="utf-8")

        with pytest.raises(QuoteEngineError):
            load_quote(path)
