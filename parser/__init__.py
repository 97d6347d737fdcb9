"""Quote document parsing."""

from .quote_parser import QuoteDocument, load_quote, parse_date, parse_quote

__all__ = [
    "QuoteDocument",
    "load_quote",
    "parse_date",
    "parse_quote",
]
