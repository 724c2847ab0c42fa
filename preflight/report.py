"""Render evaluation reports for the operator."""

import json
from typing import Any, Dict, Mapping, Optional

from rich.console import Console
from rich.table import Table

from preflight.engine import CheckResult, EvaluationReport

TITLES = {
    'composer': "Composer package manager",
    'contao4': "Contao 4.x",
}


def report_to_dict(reports: Mapping[str, EvaluationReport]) -> Dict[str, Any]:
    """Convert named reports to a JSON-serializable dictionary."""
    return {
        'evaluations': [
            {'name': name, **report.to_dict()}
            for name, report in reports.items()
        ],
        'can_proceed': all(report.verdict for report in reports.values()),
    }


def _verdict_text(report: EvaluationReport) -> str:
    return "requirements met" if report.verdict else "requirements NOT met"


def _render_plain(reports: Mapping[str, EvaluationReport]) -> None:
    for name, report in reports.items():
        print(f"\n🔍 {TITLES.get(name, name)}: {_verdict_text(report)}\n")

        for result in report.results:
            print(str(result))
            if result.error:
                print(f"   💡 {result.error}")

        for result in report.informational:
            print(f"ℹ️ {result.description or result.name}: {'yes' if result.value else 'no'}")

    print()


def _result_row(result: CheckResult) -> tuple[str, str, str]:
    if result.passed:
        return "[green]✅[/green]", f"[bold]{result.description}[/bold]", "[green]OK[/green]"
    message = result.error or "not met"
    return "[red]❌[/red]", f"[bold]{result.description}[/bold]", f"[red]{message}[/red]"


def _render_rich(reports: Mapping[str, EvaluationReport], console: Console) -> None:
    for name, report in reports.items():
        style = "green" if report.verdict else "red"
        console.print(f"\n[bold cyan]🔍 {TITLES.get(name, name)}[/bold cyan] "
                      f"[{style}]{_verdict_text(report)}[/{style}]\n")

        table = Table(show_header=False, box=None, padding=(0, 1))
        table.add_column("Status", width=3)
        table.add_column("Check", ratio=2)
        table.add_column("Result", ratio=1)

        for result in report.results:
            table.add_row(*_result_row(result))

        for result in report.informational:
            table.add_row("[blue]ℹ️[/blue]", f"[bold]{result.description}[/bold]",
                          f"[blue]{'yes' if result.value else 'no'}[/blue]")

        console.print(table)

    console.print()


def render(reports: Mapping[str, EvaluationReport],
           fmt: str = 'rich',
           console: Optional[Console] = None) -> None:
    """
    Display reports.

    Args:
        reports: Reports keyed by evaluation name ('composer', 'contao4')
        fmt: 'rich', 'plain' or 'json'
        console: Rich console instance (created if None)
    """
    if fmt == 'json':
        print(json.dumps(report_to_dict(reports), indent=2))
    elif fmt == 'plain':
        _render_plain(reports)
    else:
        _render_rich(reports, console or Console())
