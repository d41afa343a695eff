"""The two assistants: their instructions, intros and tools."""

from dataclasses import dataclass
from datetime import date, timedelta

from assistant.clients.anthropic import AnthropicClient
from assistant.clients.arxiv import ArxivClient
from assistant.config import Settings
from assistant.models.messages import AssistantMessage
from assistant.services.concerts import InMemoryConcertService
from assistant.services.history import MessageHistory
from assistant.services.llm import LLMService
from assistant.services.papers import PaperService
from assistant.tools.registry import ToolsRegistry, create_arxiv_registry, create_concert_registry

ARXIV_INTRO = (
    "I'm an Arxiv AI Assistant! Ask me about quantum computing/physics papers from a given day, "
    "or ask me to summarize a paper!"
)
CONCERTS_INTRO = "I'm a Concert Booking AI assistant! Ask me concerts and I can help you find them and book tickets!"


def _long_date(day: date) -> str:
    return f"{day:%A}, {day:%B} {day.day}, {day.year}"


def arxiv_instructions(today: date) -> str:
    return f"""You are an AI assistant designed to support users in navigating the ArXiv browser application, \
focusing on functions related to quantum physics and quantum computing research.
The application features specific functions that allow users to fetch papers and summarize them based on precise \
criteria. Adhere to the following rules rigorously:

1. **Direct Parameter Requirement:**
When a user requests an action, directly related to the functions, you must never infer or generate parameter \
values, especially paper IDs, on your own.
If a parameter is needed for a function call and the user has not provided it, you must explicitly ask the user to \
provide this specific information.

2. **Mandatory Explicit Parameters:**
For the function `SummarizePaper`, the `paperId` parameter is mandatory and must be provided explicitly by the user.
If a user asks for a paper summary without providing a `paperId`, you must ask the user to provide the paper ID.

3. **Avoid Assumptions:**
Do not make assumptions about parameter values.
If the user's request lacks clarity or omits necessary details for function execution, you are required to ask \
follow-up questions to clarify parameter values.

4. **User Clarification:**
If a user's request is ambiguous or incomplete, you should not proceed with function invocation.
Instead, ask for the missing information to ensure the function can be executed accurately and effectively.

5. **Grounding in Time:**
Today is {_long_date(today)}. When the user asks about papers from today, you will use that date.
Yesterday was {_long_date(today - timedelta(days=1))}. You will correctly infer past dates.
Tomorrow will be {_long_date(today + timedelta(days=1))}. You will ignore requests for papers from the future.
"""


def concert_instructions(today: date) -> str:
    return f"""You are an AI assistant designed to support users in searching and booking concert tickets. \
Adhere to the following rules rigorously:

1. **Direct Parameter Requirement:**
When a user requests an action, directly related to the functions, you must never infer or generate parameter \
values, especially IDs, band names or locations on your own.
If a parameter is needed for a function call and the user has not provided it, you must explicitly ask the user to \
provide this specific information.

2. **Avoid Assumptions:**
Do not make assumptions about parameter values.
If the user's request lacks clarity or omits necessary details for function execution, you are required to ask \
follow-up questions to clarify parameter values.

3. **User Clarification:**
If a user's request is ambiguous or incomplete, you should not proceed with function invocation.
Instead, ask for the missing information to ensure the function can be executed accurately and effectively.

4. **Grounding in Time:**
Today is {_long_date(today)}.
Yesterday was {_long_date(today - timedelta(days=1))}. You will correctly infer past dates.
Tomorrow will be {_long_date(today + timedelta(days=1))}.
"""


@dataclass
class Demo:
    """Everything needed to run one assistant."""

    name: str
    title: str
    intro: str
    instructions: str
    tools: ToolsRegistry

    def new_history(self, limit: int) -> MessageHistory:
        return MessageHistory(self.instructions, limit=limit, seed=[AssistantMessage(content=self.intro)])


@dataclass
class Services:
    """Shared clients built once from settings."""

    client: AnthropicClient
    llm: LLMService
    feed: ArxivClient
    papers: PaperService

    @classmethod
    def from_settings(cls, settings: Settings) -> "Services":
        client = AnthropicClient.from_settings(settings)
        llm = LLMService(client)
        feed = ArxivClient(api_url=settings.arxiv_api_url, max_results=settings.arxiv_max_results)
        return cls(client=client, llm=llm, feed=feed, papers=PaperService(feed, llm))

    async def aclose(self) -> None:
        await self.feed.aclose()


DEMO_NAMES = ("arxiv", "concerts")


def build_demo(name: str, services: Services, today: date | None = None) -> Demo:
    """Assemble a demo by name.

    Raises:
        ValueError: If the name is not one of DEMO_NAMES
    """
    today = today or date.today()
    if name == "arxiv":
        return Demo(
            name=name,
            title="ArXiv Assistant",
            intro=ARXIV_INTRO,
            instructions=arxiv_instructions(today),
            tools=create_arxiv_registry(services.papers),
        )
    if name == "concerts":
        return Demo(
            name=name,
            title="Concert Booking Assistant",
            intro=CONCERTS_INTRO,
            instructions=concert_instructions(today),
            tools=create_concert_registry(InMemoryConcertService()),
        )
    raise ValueError(f"Unknown demo: {name}")
