"""Knowledge base for the FUV quote engine."""

from .code_tables import (
    CodeTableEntry,
    CodeTables,
    build_code_tables,
    load_code_tables,
    parse_percentage_label,
)

__all__ = [
    "CodeTableEntry",
    "CodeTables",
    "build_code_tables",
    "load_code_tables",
    "parse_percentage_label",
]
