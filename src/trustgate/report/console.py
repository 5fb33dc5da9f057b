"""
Console reporter for trustgate.

Prints a Rich panel in place of a blocked fragment's output. The panel
shows the full digest so the operator can copy it into a trust list.
"""

from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.text import Text

from trustgate.report.base import Reporter

ICON_DENIED = "[yellow]⊘[/yellow]"


class ConsoleReporter(Reporter):
    """
    Renders denials to a Rich console.

    Attributes:
        console: Rich Console to print to
    """

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console(stderr=True)

    def report_denied(self, location: Any, digest: str, integration: str) -> None:
        body = Text()
        body.append("This code block hash does not match any trusted hash.\n")
        body.append("Hash: ", style="dim")
        body.append(digest, style="bold")
        if location is not None:
            body.append("\nLocation: ", style="dim")
            body.append(str(location), style="cyan")

        self.console.print(
            Panel(
                body,
                title=f"{ICON_DENIED} Untrusted {integration} Code",
                title_align="left",
                border_style="yellow",
                expand=False,
            )
        )
