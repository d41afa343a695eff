"""Console entry point for the assistants."""

import argparse
import asyncio
import sys
from collections.abc import Callable
from datetime import UTC, date, datetime

from rich.console import Console
from rich.panel import Panel
from rich.prompt import Prompt

from assistant.config import Settings, load_settings
from assistant.demos import DEMO_NAMES, Services, build_demo
from assistant.exceptions import AssistantError, ConfigurationError, ModelCallError
from assistant.models.papers import SearchCategory
from assistant.renderers.console import ConsoleRenderer
from assistant.services.conversation import AssistantRunSession, ConversationLoop
from assistant.services.rating import RatingService
from assistant.utils.logging import LogConfig, get_logger, setup_logging

logger = get_logger(__name__)

QUIT_COMMANDS = {"/quit", "/exit", "quit", "exit"}


class ChatCLI:
    """Interactive chat with one of the assistants."""

    def __init__(
        self,
        settings: Settings,
        demo_name: str,
        mode: str = "chat",
        console: Console | None = None,
        read_line: Callable[[], str] | None = None,
    ):
        """Initialize chat CLI.

        Args:
            settings: Loaded settings
            demo_name: "arxiv" or "concerts"
            mode: "chat" streams with one tool call per turn, "run" executes every tool call
            console: Output console
            read_line: Source of user input (defaults to a rich prompt)
        """
        self.settings = settings
        self.demo_name = demo_name
        self.mode = mode
        self.console = console or Console()
        self.renderer = ConsoleRenderer(self.console)
        self.read_line = read_line or (lambda: Prompt.ask("\n[bold cyan]You[/bold cyan]", console=self.console))

    async def start(self) -> int:
        """Run the chat until the user quits."""
        services = Services.from_settings(self.settings)
        demo = build_demo(self.demo_name, services)
        self.renderer.intro(demo.title, demo.intro)

        if self.mode == "run":
            session = AssistantRunSession(services.llm, demo.tools, demo.instructions, self.settings.max_turns)
            handle = self._run_handler(session)
        else:
            loop = ConversationLoop(
                services.client,
                demo.tools,
                demo.new_history(self.settings.history_limit),
                self.renderer,
                max_turns=self.settings.max_turns,
            )
            handle = loop.handle_user_input

        try:
            while True:
                try:
                    user_input = self.read_line()
                except EOFError:
                    break

                if user_input.strip().lower() in QUIT_COMMANDS:
                    break
                if user_input.strip().lower() == "/help":
                    self._show_help()
                    continue
                if not user_input.strip():
                    continue

                await handle(user_input)

        except KeyboardInterrupt:
            pass
        finally:
            self.console.print("\n[yellow]Goodbye![/yellow]")
            await services.aclose()
        return 0

    def _run_handler(self, session: AssistantRunSession):
        async def handle(text: str) -> None:
            try:
                with self.console.status("[dim]Thinking...[/dim]"):
                    result = await session.ask(text)
            except ModelCallError as e:
                self.renderer.error(str(e))
                return
            self.renderer.assistant_result(result)

        return handle

    def _show_help(self) -> None:
        help_text = """
[bold]Available Commands:[/bold]
- /help - Show this help message
- /quit or /exit - Exit the chat (Ctrl-C works too)

[bold]ArXiv examples:[/bold]
- "Show me quantum computing papers from yesterday"
- "Summarize paper 2403.01234"

[bold]Concert examples:[/bold]
- "Are there any Iron Maiden concerts in Zurich?"
- "Book a ticket for concert 2"
        """
        self.console.print(Panel(help_text.strip(), title="[cyan]Help[/cyan]", border_style="cyan"))


async def run_rating(settings: Settings, category: SearchCategory, day: date, console: Console) -> int:
    """Fetch, rate and print a day's papers. Returns the exit code."""
    services = Services.from_settings(settings)
    renderer = ConsoleRenderer(console)
    rating = RatingService(services.papers, services.llm, top_p=settings.top_p)
    try:
        with console.status(f"[dim]Rating {category} papers for {day.isoformat()}...[/dim]"):
            rated = await rating.rate(category, day)
    except AssistantError as e:
        logger.error(f"Rating run failed: {e}")
        renderer.error(str(e))
        return 1
    finally:
        await services.aclose()

    renderer.ratings_table(rated)
    return 0


def parse_day(value: str) -> date:
    """Accept YYYYMMDD or YYYY-MM-DD."""
    for fmt in ("%Y%m%d", "%Y-%m-%d"):
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            continue
    raise argparse.ArgumentTypeError(f"invalid date {value!r}, expected YYYYMMDD")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="assistant", description="Tool-calling console assistants")
    subparsers = parser.add_subparsers(dest="command")
    parser.set_defaults(command="chat", demo=None)

    for command, help_text in (
        ("chat", "Streaming chat, one tool call per model turn"),
        ("run", "Assistant run that executes every requested tool call"),
    ):
        sub = subparsers.add_parser(command, help=help_text)
        sub.add_argument("demo", nargs="?", choices=DEMO_NAMES, help="Assistant to run")

    rate = subparsers.add_parser("rate", help="Rate a day's papers for quantum software engineers")
    rate.add_argument("--date", dest="day", type=parse_day, default=None, help="Submission date, YYYYMMDD")
    rate.add_argument(
        "--category",
        type=SearchCategory,
        choices=list(SearchCategory),
        default=SearchCategory.QUANTUM_PHYSICS,
    )
    return parser


def choose_demo(console: Console) -> str:
    return Prompt.ask("Choose the [green]example[/green] to run", choices=list(DEMO_NAMES), console=console)


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    console = Console()

    try:
        settings = load_settings()
    except ConfigurationError as e:
        console.print(f"[red]Configuration error: {e}[/red]")
        return 2

    setup_logging(LogConfig(level=settings.log_level))

    if args.command == "rate":
        day = args.day or datetime.now(UTC).date()
        return asyncio.run(run_rating(settings, args.category, day, console))

    try:
        demo_name = args.demo or choose_demo(console)
    except (KeyboardInterrupt, EOFError):
        return 0

    try:
        return asyncio.run(ChatCLI(settings, demo_name, mode=args.command, console=console).start())
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
