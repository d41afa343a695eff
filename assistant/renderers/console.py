"""Rich console rendering for the assistants."""

import json

from rich.console import Console
from rich.markdown import Markdown
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from assistant.models.llm import AgentLoopResult, ToolCallRequest, ToolCallResult
from assistant.models.papers import RatedPaper


def rating_style(rating: int) -> str:
    """Colour for a relevance rating: 1 red, 2-3 yellow, 4-5 green, unrated white."""
    if rating >= 4:
        return "green"
    if rating >= 2:
        return "yellow"
    if rating >= 1:
        return "red"
    return "white"


class ConsoleRenderer:
    """Writes streamed text, tool activity and tables to a rich Console."""

    def __init__(self, console: Console | None = None):
        self.console = console or Console()
        self._streaming = False

    def intro(self, title: str, message: str) -> None:
        self.console.print(
            Panel.fit(
                f"[bold blue]{escape(title)}[/bold blue]\n{escape(message)}\nCommands: /help, /quit",
                border_style="blue",
            )
        )

    def assistant_delta(self, text: str) -> None:
        if not self._streaming:
            self.console.print("[bold green]Assistant:[/bold green] ", end="")
            self._streaming = True
        self.console.print(text, end="", markup=False, highlight=False)

    def assistant_done(self) -> None:
        if self._streaming:
            self.console.print()
            self._streaming = False

    def tool_started(self, call: ToolCallRequest) -> None:
        self.assistant_done()
        self.console.print(f"[dim]Calling {escape(call.name)} with {escape(call.arguments)}[/dim]")

    def tool_finished(self, result: ToolCallResult) -> None:
        self.assistant_done()
        if result.is_error:
            self.error(result.output)
            return
        self.console.print(Panel(self._tool_output(result.output), title=f"[cyan]{escape(result.name)}[/cyan]"))

    def error(self, message: str) -> None:
        self.assistant_done()
        self.console.print(f"[red]{escape(message)}[/red]")

    def assistant_result(self, result: AgentLoopResult) -> None:
        """Render a finished assistant run."""
        for tool_result in result.tool_results:
            self.tool_finished(tool_result)
        self.console.print(
            Panel(
                Markdown(result.text or "_No response_"),
                title="[bold green]Assistant[/bold green]",
                border_style="green",
                padding=(1, 2),
            )
        )

    def ratings_table(self, rated: list[RatedPaper]) -> None:
        if not rated:
            self.console.print("[dim]No items today...[/dim]")
            return

        table = Table(show_header=True, header_style="bold", show_lines=True)
        table.add_column("Rating", justify="center")
        table.add_column("Updated", style="dim")
        table.add_column("Title")
        table.add_column("Authors")
        table.add_column("Link", style="cyan")
        for item in rated:
            style = rating_style(item.rating)
            table.add_row(
                f"[{style}]{item.rating}[/{style}]",
                item.paper.updated.strftime("%Y-%m-%d %H:%M"),
                escape(item.paper.title),
                escape(item.paper.authors_display),
                escape(item.paper.pdf_link or ""),
            )
        self.console.print(table)

    @staticmethod
    def _tool_output(output: str) -> str:
        try:
            return escape(json.dumps(json.loads(output), indent=2))
        except ValueError:
            return escape(output)
