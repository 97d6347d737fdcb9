"""Tests for the quote store and notice board."""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from engines.base import Notice, NoticeKind, Quote, QuoteMeta
from engines.store import NoticeBoard, QuoteStore


class TestQuoteStore:
    """Test updates and notifications."""

    def test_update_notifies_subscribers(self):
        """Test subscribers see the new state."""
        store = QuoteStore(Quote(number="O.1"))
        seen = []
        store.subscribe(lambda quote, meta: seen.append(quote.terms_code))

        store.update_quote(terms_code="COD_FUV_AVB_01_2026")

        assert seen == ["COD_FUV_AVB_01_2026"]
        assert store.quote.terms_code == "COD_FUV_AVB_01_2026"

    def test_commit_notifies_once(self):
        """Test quote and meta changes are written with one notification."""
        store = QuoteStore(Quote(), QuoteMeta())
        seen = []
        store.subscribe(lambda quote, meta: seen.append((quote.number, meta.stored_hash)))

        store.commit({"number": "O.2"}, {"stored_hash": "abc"})

        assert seen == [("O.2", "abc")]

    def test_unsubscribe(self):
        """Test an unsubscribed listener is not called."""
        store = QuoteStore(Quote())
        seen = []
        unsubscribe = store.subscribe(lambda quote, meta: seen.append(1))

        unsubscribe()
        store.update_meta(stored_hash="x")

        assert seen == []
        assert store.meta.stored_hash == "x"


class TestNoticeBoard:
    """Test one-time notices."""

    def test_notice_stays_until_dismissed(self):
        """Test a second notice of the same kind is not posted."""
        board = NoticeBoard()

        assert board.post(Notice(NoticeKind.DATE_CORRECTED, "first"))
        assert not board.post(Notice(NoticeKind.DATE_CORRECTED, "second"))
        assert board.notices[0].message == "first"

        board.dismiss(NoticeKind.DATE_CORRECTED)
        assert not board.is_active(NoticeKind.DATE_CORRECTED)
        assert board.post(Notice(NoticeKind.DATE_CORRECTED, "third"))
