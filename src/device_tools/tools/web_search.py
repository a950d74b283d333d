"""Web search through the Exa API."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, ClassVar, Mapping, Protocol, runtime_checkable

import httpx
from pydantic import Field, field_validator

from device_tools.config import Settings, get_settings
from device_tools.exceptions import ArgumentError, ArgumentErrorKind, ErrorKind, ToolError
from device_tools.tools.base import AdapterTool, echo_text
from device_tools.tools.output import DomainResult, ToolOutput, encode_error
from device_tools.tools.schema import ArgumentSchema, FieldSpec, FieldType

logger = logging.getLogger(__name__)

SUMMARY_RESULTS = 3
TEXT_PREVIEW_CHARS = 300
CATEGORIES = (
    "company",
    "research paper",
    "news",
    "pdf",
    "github",
    "tweet",
    "personal site",
    "linkedin profile",
    "financial report",
)


class WebSearchErrorKind(ErrorKind):
    """Failures of the web search tool."""

    MISSING_REQUIRED_FIELD = ("missingRequiredField", "A required argument is missing")
    INVALID_FIELD_VALUE = ("invalidFieldValue", "Invalid argument value")
    EMPTY_QUERY = ("emptyQuery", "Search query cannot be empty")
    INVALID_URL = ("invalidURL", "Invalid search URL")
    API_ERROR = ("apiError", "Web search API request failed")
    NO_RESULTS = ("noResults", "No search results found")
    MISSING_API_KEY = ("missingAPIKey", "Exa API key is required. Please configure it in Settings.")
    EXA_SERVICE_ERROR = ("exaServiceError", "Exa API error")
    NETWORK_ERROR = ("networkError", "Network error")


class ExaServiceError(Exception):
    """The Exa API answered, but not with a usable result."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


@dataclass
class SearchRequest:
    """Normalized search parameters."""

    query: str
    num_results: int = 5
    type: str = "neural"
    include_contents: bool = True
    category: str | None = None


@dataclass
class SearchResult:
    """A single search result from Exa."""

    title: str
    url: str
    author: str | None = None
    text: str | None = None
    summary: str | None = None
    score: float = 0.0


@dataclass
class SearchResponse:
    """Response from an Exa search."""

    query: str
    results: list[SearchResult] = field(default_factory=list)


@runtime_checkable
class SearchProvider(Protocol):
    """Authenticated web search backend."""

    async def search(self, request: SearchRequest, api_key: str) -> SearchResponse: ...


class ExaClient:
    """Wrapper for the Exa search API."""

    def __init__(self, settings: Settings | None = None) -> None:
        settings = settings or get_settings()
        self.url = settings.exa_api_url
        self.timeout = settings.http_timeout

    async def search(self, request: SearchRequest, api_key: str) -> SearchResponse:
        """Execute a web search using Exa.

        Args:
            request: The normalized search parameters
            api_key: Exa API key

        Returns:
            SearchResponse with results

        Raises:
            ExaServiceError: If Exa answers with an error status or an unreadable body
            httpx.HTTPError: If the request fails in transport
        """
        payload: dict[str, Any] = {
            "query": request.query,
            "numResults": request.num_results,
            "type": request.type,
        }
        if request.include_contents:
            payload["contents"] = {"text": {"maxCharacters": 2000}, "summary": True}
        if request.category:
            payload["category"] = request.category

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(
                self.url,
                headers={"x-api-key": api_key, "Content-Type": "application/json"},
                json=payload,
            )

        if response.status_code != 200:
            raise ExaServiceError(
                f"HTTP {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )
        try:
            data = response.json()
        except ValueError as e:
            raise ExaServiceError("Response could not be decoded") from e

        results = [
            SearchResult(
                title=r.get("title") or "",
                url=r.get("url") or "",
                author=r.get("author"),
                text=r.get("text"),
                summary=r.get("summary"),
                score=r.get("score") or 0.0,
            )
            for r in data.get("results", [])
        ]
        return SearchResponse(query=request.query, results=results)


def summarize_results(response: SearchResponse, query: str) -> str:
    """Readable digest of the top results."""
    header = f"Information about '{query}':\n\n"
    if not response.results:
        return header + "No results found for this query."

    parts: list[str] = []
    for result in response.results[:SUMMARY_RESULTS]:
        if result.summary:
            parts.append(result.summary)
        elif result.text:
            parts.append(f"{result.text[:TEXT_PREVIEW_CHARS]}...")

    if not parts:
        return header + "No detailed text content available."
    return header + "\n\n".join(parts)


class SearchData(DomainResult):
    """Flattened view of a search response."""

    # One title per line; titles are collapsed onto a single line
    list_separator: ClassVar[str] = "\n"

    query: str = ""
    abstract: str = ""
    abstract_source: str = ""
    abstract_url: str = Field("", alias="abstractURL")
    related_topics: list[str] = Field(default_factory=list)
    related_topics_count: int = 0
    summary: str = ""

    @field_validator("related_topics")
    @classmethod
    def _single_line_titles(cls, topics: list[str]) -> list[str]:
        return [" ".join(topic.split()) for topic in topics]


class WebSearchTool(AdapterTool):
    """Search the web for relevant content using Exa."""

    name = "searchWeb"
    description = "Search the web for relevant content and information using Exa"
    capabilities = frozenset({"web_search"})
    schema = ArgumentSchema(
        FieldSpec("query", FieldType.STRING, "The search query to execute", required=True),
        FieldSpec(
            "numResults",
            FieldType.INTEGER,
            "Number of results to return (default: 5, max: 10)",
            default=5,
            minimum=1,
            maximum=10,
        ),
        FieldSpec(
            "type",
            FieldType.STRING,
            "Type of search: 'neural' or 'keyword' (default: 'neural')",
            default="neural",
            choices=("neural", "keyword"),
        ),
        FieldSpec(
            "includeContents",
            FieldType.BOOLEAN,
            "Whether to include page contents (default: true)",
            default=True,
        ),
        FieldSpec(
            "category",
            FieldType.STRING,
            "Category filter (e.g., 'news', 'research paper', 'company', 'tweet')",
            choices=CATEGORIES,
        ),
    )
    result_type = SearchData
    fallback_error = WebSearchErrorKind.NETWORK_ERROR

    def __init__(
        self,
        provider: SearchProvider | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.provider = provider or ExaClient(self.settings)

    def validate(self, raw: Mapping[str, Any]) -> dict[str, Any]:
        # The key check comes first so a misconfigured tool fails the same way for any query
        if not self.settings.exa_api_key.strip():
            raise ToolError(WebSearchErrorKind.MISSING_API_KEY)
        return super().validate(raw)

    async def execute(self, args: dict[str, Any]) -> tuple[SearchData, str]:
        query = args["query"]
        request = SearchRequest(
            query=query,
            num_results=args["numResults"],
            type=args["type"],
            include_contents=args["includeContents"],
            category=args["category"],
        )
        try:
            response = await self.provider.search(request, self.settings.exa_api_key.strip())
        except ExaServiceError as e:
            raise ToolError(WebSearchErrorKind.EXA_SERVICE_ERROR, e) from e
        except Exception as e:
            raise ToolError(WebSearchErrorKind.NETWORK_ERROR, e) from e

        first = response.results[0] if response.results else None
        topics = [r.title or r.url for r in response.results[:SUMMARY_RESULTS]]
        result = SearchData(
            query=query,
            abstract=(first.summary or first.text or "") if first else "",
            abstract_source=(first.author or first.title or "") if first else "",
            abstract_url=first.url if first else "",
            related_topics=topics,
            related_topics_count=len(topics),
            summary=summarize_results(response, query),
        )
        return result, f"Found {len(response.results)} result(s) for '{query}'"

    def map_argument_error(self, error: ArgumentError) -> ToolError:
        if error.field == "query" and error.kind is ArgumentErrorKind.MISSING_REQUIRED_FIELD:
            return ToolError(WebSearchErrorKind.EMPTY_QUERY)
        return ToolError(WebSearchErrorKind.INVALID_FIELD_VALUE, f"{error.field}: {error.detail}")

    def encode_error(self, error: ToolError, raw: Mapping[str, Any]) -> ToolOutput:
        query = echo_text(raw, "query")
        return encode_error(
            error,
            SearchData,
            message=f"Search failed for query: '{query}'",
            echo={"query": query, "summary": f"Search failed for query: '{query}'"},
            error_prefix="Unable to perform web search: ",
        )
