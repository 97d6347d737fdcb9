"""Tests for the terms version correction."""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest
from engines.base import NoticeKind, Quote
from engines.store import NoticeBoard
from engines.terms import apply_terms_correction, check_terms_version, latest_terms_code
from knowledge.code_tables import CodeTableEntry
from knowledge.codes import GROUP_TERMS


@pytest.fixture
def entries():
    return [
        CodeTableEntry("COD_FUV_AVB_01_2020", GROUP_TERMS, sorter=1, active=False),
        CodeTableEntry("COD_FUV_AVB_01_2024", GROUP_TERMS, sorter=2),
        CodeTableEntry("COD_FUV_AVB_01_2026", GROUP_TERMS, sorter=3),
    ]


class TestTermsVersion:
    """Test terms version checks."""

    def test_latest_is_highest_active_sorter(self, entries):
        """Test the newest active version wins."""
        assert latest_terms_code(entries) == "COD_FUV_AVB_01_2026"

    def test_inactive_latest_is_ignored(self, entries):
        """Test inactive entries are never chosen."""
        entries[2].active = False
        assert latest_terms_code(entries) == "COD_FUV_AVB_01_2024"

    def test_outdated_version_is_updated(self, entries):
        """Test an old version is replaced."""
        check = check_terms_version("COD_FUV_AVB_01_2020", entries)
        assert check.should_update
        assert check.latest_code == "COD_FUV_AVB_01_2026"

    def test_current_version_stays(self, entries):
        """Test the latest version is kept."""
        assert not check_terms_version("COD_FUV_AVB_01_2026", entries).should_update

    def test_no_code_or_read_only(self, entries):
        """Test quotes without terms or read-only quotes are left alone."""
        assert not check_terms_version(None, entries).should_update
        assert not check_terms_version("COD_FUV_AVB_01_2020", entries, read_only=True).should_update
        assert not check_terms_version("COD_FUV_AVB_01_2020", []).should_update

    def test_correction_posts_notice_once(self, entries):
        """Test the quote is updated and a single notice posted."""
        notices = NoticeBoard()
        quote = Quote(terms_code="COD_FUV_AVB_01_2020")

        apply_terms_correction(quote, entries, notices)
        apply_terms_correction(Quote(terms_code="COD_FUV_AVB_01_2024"), entries, notices)

        assert quote.terms_code == "COD_FUV_AVB_01_2026"
        assert len(notices.notices) == 1
        assert notices.notices[0].kind == NoticeKind.TERMS_CORRECTED
