"""JSON reporter for evaluated quotes."""

import json
from collections import Counter
from dataclasses import asdict
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from engines.base import Finding, ValidationResult


class JSONReporter:
    """Generate JSON output for an evaluated quote."""

    def __init__(self, pretty: bool = True):
        self.pretty = pretty

    def generate(
        self,
        result: ValidationResult,
        source_file: str = "",
        metadata: Optional[Dict[str, Any]] = None,
    ) -> str:
        """Generate JSON report string."""
        report = self._build_report(result, source_file, metadata)

        if self.pretty:
            return json.dumps(report, indent=2, ensure_ascii=False)
        else:
            return json.dumps(report, ensure_ascii=False)

    def write(
        self,
        result: ValidationResult,
        output_path: Union[str, Path],
        source_file: str = "",
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Write JSON report to file."""
        json_content = self.generate(result, source_file, metadata)

        path = Path(output_path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w", encoding="utf-8") as f:
            f.write(json_content)

    def _build_report(
        self,
        result: ValidationResult,
        source_file: str,
        metadata: Optional[Dict[str, Any]],
    ) -> Dict[str, Any]:
        report = {
            "validator": "fuv-quote-engine",
            "version": "1.0.0",
            "timestamp": datetime.now().isoformat(),
            "source_file": source_file,
            "complete": result.is_valid and result.step_complete,
            "step_complete": result.step_complete,
            "checklist_valid": result.checklist_valid,
            "selected_variant": result.selected.letter if result.selected else None,
            "variants": [
                {
                    "variant": v.slot.letter,
                    "state": v.state.value,
                    "annual_income": v.annual_income,
                    "deferral_code": v.deferral_code,
                    "error": v.error,
                    **asdict(v.figures),
                }
                for v in result.variants
            ],
            "notices": [n.to_dict() for n in result.notices],
            "summary": self._build_summary(result.findings),
            "findings": [f.to_dict() for f in result.findings],
        }

        if metadata:
            report["metadata"] = metadata

        return report

    def _build_summary(self, findings: List[Finding]) -> Dict[str, Any]:
        severity_counts = Counter(f.severity.value for f in findings)
        engine_counts = Counter(f.engine.name for f in findings)

        return {
            "total": len(findings),
            "by_severity": dict(severity_counts),
            "by_engine": dict(engine_counts),
        }


def report_to_json(
    result: ValidationResult,
    output_path: Optional[Union[str, Path]] = None,
    source_file: str = "",
) -> str:
    """Convenience function to generate JSON report."""
    reporter = JSONReporter()

    if output_path:
        reporter.write(result, output_path, source_file)

    return reporter.generate(result, source_file)
