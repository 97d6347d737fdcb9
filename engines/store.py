"""In-memory quote store and notice board.

The quote record itself is owned by the caller; the store only holds the
current version and tells subscribers when it changes.
"""

import dataclasses
import logging
from typing import Any, Callable, Dict, List, Optional

from engines.base import Notice, NoticeKind, Quote, QuoteMeta

logger = logging.getLogger(__name__)

Listener = Callable[[Quote, QuoteMeta], None]


class QuoteStore:
    """Holds one quote and its engine metadata."""

    def __init__(self, quote: Quote, meta: Optional[QuoteMeta] = None):
        self._quote = quote
        self._meta = meta or QuoteMeta()
        self._listeners: List[Listener] = []

    @property
    def quote(self) -> Quote:
        return self._quote

    @property
    def meta(self) -> QuoteMeta:
        return self._meta

    def update_quote(self, **changes) -> Quote:
        """Replace fields of the quote in one step and notify subscribers."""
        self._quote = dataclasses.replace(self._quote, **changes)
        logger.debug(f"Quote {self._quote.number or self._quote.id} updated: {sorted(changes)}")
        self._notify()
        return self._quote

    def update_meta(self, **changes) -> QuoteMeta:
        self._meta = dataclasses.replace(self._meta, **changes)
        self._notify()
        return self._meta

    def commit(
        self,
        quote_changes: Optional[Dict[str, Any]] = None,
        meta_changes: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Write quote and metadata changes together with a single notification."""
        if quote_changes:
            self._quote = dataclasses.replace(self._quote, **quote_changes)
        if meta_changes:
            self._meta = dataclasses.replace(self._meta, **meta_changes)
        self._notify()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a change listener; returns a function that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self._quote, self._meta)


class NoticeBoard:
    """One-time correction notices, one per kind."""

    def __init__(self):
        self._notices: Dict[NoticeKind, Notice] = {}

    def post(self, notice: Notice) -> bool:
        """Post a notice unless one of the same kind is still shown."""
        if notice.kind in self._notices:
            return False
        self._notices[notice.kind] = notice
        logger.info(f"Notice posted: {notice.kind.value}")
        return True

    def dismiss(self, kind: NoticeKind) -> None:
        self._notices.pop(kind, None)

    def is_active(self, kind: NoticeKind) -> bool:
        return kind in self._notices

    @property
    def notices(self) -> List[Notice]:
        return list(self._notices.values())
