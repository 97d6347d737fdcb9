"""Loader for FUV code tables (Codetabellen)."""

import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from config import Config, get_config
from knowledge.codes import (
    GROUP_AGENCY_COMPETENCE,
    GROUP_DURATION,
    GROUP_TERMS,
    GROUP_WORKLOAD,
)

logger = logging.getLogger(__name__)

PERCENT_LABEL_PATTERN = re.compile(r"(\d+(?:[.,]\d+)?)\s*%")


@dataclass
class CodeTableEntry:
    """A single code table entry."""

    internal_name: str
    group: str
    label: str = ""
    sorter: int = 0
    active: bool = True


@dataclass
class CodeTables:
    """Code table entries indexed by group and internal name."""

    _groups: Dict[str, Dict[str, CodeTableEntry]] = field(default_factory=dict, repr=False)

    def add(self, entry: CodeTableEntry) -> None:
        """Register an entry."""
        self._groups.setdefault(entry.group, {})[entry.internal_name] = entry

    def get(self, group: str, internal_name: Optional[str]) -> Optional[CodeTableEntry]:
        """Get an entry by group and internal name."""
        if not internal_name:
            return None
        return self._groups.get(group, {}).get(internal_name)

    def entries(self, group: str, active_only: bool = False) -> List[CodeTableEntry]:
        """Get all entries of a group."""
        entries = list(self._groups.get(group, {}).values())
        if active_only:
            entries = [e for e in entries if e.active]
        return entries

    # Contract duration: the sorter holds the number of years

    def duration_years(self, code: Optional[str]) -> Optional[int]:
        """Get the duration in years for a duration code."""
        entry = self.get(GROUP_DURATION, code)
        return entry.sorter if entry else None

    def duration_code(self, years: Optional[int]) -> Optional[str]:
        """Get the active duration code for a number of years."""
        if years is None:
            return None
        for entry in self.entries(GROUP_DURATION, active_only=True):
            if entry.sorter == years:
                return entry.internal_name
        return None

    def terms_entries(self) -> List[CodeTableEntry]:
        return self.entries(GROUP_TERMS)

    def workload_percentage(self, code: Optional[str]) -> Optional[float]:
        """Parse the workload percentage out of the code's label ("80 %")."""
        entry = self.get(GROUP_WORKLOAD, code)
        if not entry:
            return None
        return parse_percentage_label(entry.label)

    # Agency competence: stored as code, label holds the signed number

    def agency_competence_value(self, code: Optional[str]) -> int:
        entry = self.get(GROUP_AGENCY_COMPETENCE, code)
        if not entry:
            return 0
        try:
            return int(entry.label.strip())
        except ValueError:
            logger.warning(f"Agency competence code {code} has non-numeric label {entry.label!r}")
            return 0

    def agency_competence_code(self, value: int) -> Optional[str]:
        for entry in self.entries(GROUP_AGENCY_COMPETENCE):
            try:
                if int(entry.label.strip()) == value:
                    return entry.internal_name
            except ValueError:
                continue
        return None


def parse_percentage_label(label: Optional[str]) -> Optional[float]:
    """Extract a percentage from a display label like "62,5 %"."""
    if not label:
        return None
    match = PERCENT_LABEL_PATTERN.search(label)
    if not match:
        return None
    return float(match.group(1).replace(",", "."))


def build_code_tables(entries: Iterable[dict]) -> CodeTables:
    """Build code tables from raw entries (code table API format)."""
    tables = CodeTables()
    for data in entries:
        sorter = data.get("sorter", 0)
        try:
            sorter = int(sorter)
        except (TypeError, ValueError):
            sorter = 0
        tables.add(
            CodeTableEntry(
                internal_name=data.get("internal_name", ""),
                group=data.get("gruppe", ""),
                label=str(data.get("bezeichnungdt", "") or ""),
                sorter=sorter,
                active=bool(data.get("aktiv", True)),
            )
        )
    return tables


def load_code_tables(
    config: Optional[Config] = None, path: Optional[Path] = None
) -> CodeTables:
    """Load code tables from a JSON file."""
    config = config or get_config()
    path = Path(path) if path else config.code_tables_path

    if not path.exists():
        logger.warning(f"Code table file not found: {path}")
        return CodeTables()

    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)

    # Either a plain list or {"codes": [...]}
    entries = data.get("codes", []) if isinstance(data, dict) else data
    tables = build_code_tables(entries)
    logger.debug(f"Loaded {len(entries)} code table entries from {path}")
    return tables
