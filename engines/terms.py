"""Terms version (AVB) correction."""

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from engines.base import Notice, NoticeKind, Quote
from engines.store import NoticeBoard
from knowledge.code_tables import CodeTableEntry

logger = logging.getLogger(__name__)


@dataclass
class TermsCheck:
    """Outcome of comparing the quote's terms code with the latest version."""

    should_update: bool
    latest_code: Optional[str] = None
    current_code: Optional[str] = None


def latest_terms_code(entries: Iterable[CodeTableEntry]) -> Optional[str]:
    """Active terms entry with the highest sorter."""
    active = [entry for entry in entries if entry.active]
    if not active:
        return None
    return max(active, key=lambda entry: entry.sorter).internal_name


def check_terms_version(
    current_code: Optional[str],
    entries: Iterable[CodeTableEntry],
    read_only: bool = False,
) -> TermsCheck:
    """Check whether the quote must move to the latest terms version.

    Quotes without a terms code are left alone; the code is only set when
    the quote is first saved.
    """
    entries = list(entries)
    if read_only or not current_code or not entries:
        return TermsCheck(should_update=False, current_code=current_code)

    latest = latest_terms_code(entries)
    if not latest or latest == current_code:
        return TermsCheck(
            should_update=False,
            latest_code=latest or current_code,
            current_code=current_code,
        )

    return TermsCheck(should_update=True, latest_code=latest, current_code=current_code)


def apply_terms_correction(
    quote: Quote, entries: Iterable[CodeTableEntry], notices: NoticeBoard
) -> TermsCheck:
    """Move the quote to the latest terms version and post a notice."""
    check = check_terms_version(quote.terms_code, entries, quote.read_only)
    if not check.should_update:
        return check

    quote.terms_code = check.latest_code
    logger.info(f"Quote {quote.number}: terms {check.current_code} replaced by {check.latest_code}")
    notices.post(
        Notice(
            kind=NoticeKind.TERMS_CORRECTED,
            message=(
                f"Die AVB {check.current_code} sind nicht mehr gültig und wurden "
                f"durch {check.latest_code} ersetzt."
            ),
            details={"original": check.current_code or "", "corrected": check.latest_code or ""},
        )
    )
    return check
