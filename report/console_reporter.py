"""Console reporter with Rich formatting."""

from collections import defaultdict
from typing import Dict, List

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from engines.base import Engine, Finding, Notice, Severity, ValidationResult, Variant


class ConsoleReporter:
    """Generate rich console output for an evaluated quote."""

    # Severity colors
    SEVERITY_COLORS = {
        Severity.FEHLER: "red",
        Severity.WARNUNG: "yellow",
        Severity.INFO: "blue",
    }

    # Severity symbols
    SEVERITY_SYMBOLS = {
        Severity.FEHLER: "[red]X[/red]",
        Severity.WARNUNG: "[yellow]![/yellow]",
        Severity.INFO: "[blue]i[/blue]",
    }

    ENGINE_NAMES = {
        Engine.INCOME: "Verdienst",
        Engine.CONTRACT: "Vertrag & Tätigkeiten",
        Engine.ASSIGNMENT: "Technische Zuordnung",
        Engine.VARIANTS: "Varianten",
        Engine.CHECKLIST: "Checkliste",
    }

    def __init__(self, console: Console = None):
        self.console = console or Console()

    def report(self, result: ValidationResult, source_file: str = "") -> None:
        """Generate and print the report."""
        self._print_header(source_file)
        self._print_notices(result.notices)
        self._print_variants(result)

        if not result.findings:
            self.console.print("[green]Keine Befunde - Offerte vollständig![/green]")
            return

        self._print_summary(result.findings)
        self._print_findings(result.findings)

    def _print_header(self, source_file: str) -> None:
        title = "FUV Offerte - Prüfbericht"
        if source_file:
            title += f"\n[dim]{source_file}[/dim]"

        self.console.print()
        self.console.print(Panel(title, style="bold blue"))
        self.console.print()

    def _print_notices(self, notices: List[Notice]) -> None:
        for notice in notices:
            self.console.print(Panel(notice.message, title="Korrektur", style="yellow"))
        if notices:
            self.console.print()

    def _print_variants(self, result: ValidationResult) -> None:
        """Print the three variants side by side."""
        if not any(v.annual_income for v in result.variants):
            return

        table = Table(title="Varianten", show_header=True)
        table.add_column("", style="bold")
        for variant in result.variants:
            header = f"Variante {variant.slot.letter}"
            if result.selected == variant.slot:
                header = f"[green]{header} *[/green]"
            table.add_column(header, justify="right")

        rows = [
            ("Jahresverdienst", lambda v: _chf(v.annual_income)),
            ("Monatsverdienst", lambda v: _chf(v.figures.monthly_income)),
            ("Taggeld ab", lambda v: v.deferral_code or "-"),
            ("Taggeld pro Monat", lambda v: _chf(v.figures.monthly_benefit)),
            ("IV-Rente pro Monat", lambda v: _chf(v.figures.monthly_pension)),
            ("Jahresprämie brutto", lambda v: _chf(v.figures.gross_premium)),
            ("Rabatt", lambda v: _chf(v.figures.discount_amount)),
            ("Jahresprämie netto", lambda v: _chf(v.figures.net_annual_premium)),
            ("Prämie pro Monat", lambda v: _chf(v.figures.net_monthly_premium)),
        ]
        for label, value in rows:
            table.add_row(label, *(value(v) for v in result.variants))

        table.add_section()
        table.add_row("Status", *(_state(v) for v in result.variants))

        self.console.print(table)
        self.console.print()

    def _print_summary(self, findings: List[Finding]) -> None:
        """Print summary statistics."""
        severity_counts: Dict[Severity, int] = defaultdict(int)
        engine_counts: Dict[Engine, int] = defaultdict(int)
        for f in findings:
            severity_counts[f.severity] += 1
            engine_counts[f.engine] += 1

        table = Table(title="Zusammenfassung", show_header=True)
        table.add_column("Kategorie", style="bold")
        table.add_column("Anzahl", justify="right")

        for severity in [Severity.FEHLER, Severity.WARNUNG, Severity.INFO]:
            color = self.SEVERITY_COLORS[severity]
            table.add_row(f"[{color}]{severity.value}[/{color}]", str(severity_counts[severity]))

        table.add_section()
        for engine, name in self.ENGINE_NAMES.items():
            if engine_counts[engine] > 0:
                table.add_row(name, str(engine_counts[engine]))

        table.add_section()
        table.add_row("[bold]Total[/bold]", f"[bold]{len(findings)}[/bold]")

        self.console.print(table)
        self.console.print()

    def _print_findings(self, findings: List[Finding]) -> None:
        table = Table(show_header=True, header_style="bold", box=None, padding=(0, 1))
        table.add_column("", width=3)
        table.add_column("Code", style="cyan")
        table.add_column("Feld")
        table.add_column("Problem")

        for f in findings:
            problem = f.description
            if len(problem) > 70:
                problem = problem[:67] + "..."
            table.add_row(self.SEVERITY_SYMBOLS[f.severity], f.code, f.label, problem)

        self.console.print(table)
        self.console.print()

    def report_detailed(self, findings: List[Finding]) -> None:
        """Print detailed report with full information per finding."""
        if not findings:
            self.console.print("[green]Keine Befunde.[/green]")
            return

        for f in findings:
            color = self.SEVERITY_COLORS[f.severity]

            panel_content = f"""
[bold]Offerte:[/bold] {f.quote}
[bold]Feld:[/bold] {f.label}
[bold]Wert:[/bold] {f.value}

[bold]Beschreibung:[/bold]
{f.description}
"""
            if f.expected:
                panel_content += f"\n[bold]Erwartet:[/bold]\n{f.expected}\n"
            title = f"[{color}]{f.severity.value}[/{color}] {f.code} - {self.ENGINE_NAMES[f.engine]}"
            self.console.print(Panel(panel_content.strip(), title=title))
            self.console.print()


def _chf(amount: float) -> str:
    return f"{amount:,.2f}".replace(",", "'") if amount else "-"


def _state(variant: Variant) -> str:
    if variant.error:
        return "[red]Fehler[/red]"
    return variant.state.value


def report_to_console(result: ValidationResult, source_file: str = "") -> None:
    """Convenience function to report a result to the console."""
    reporter = ConsoleReporter()
    reporter.report(result, source_file)
