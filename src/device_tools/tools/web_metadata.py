"""Web page metadata extraction and social media summaries."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Mapping, Protocol, runtime_checkable

import httpx
from bs4 import BeautifulSoup
from pydantic import Field

from device_tools.config import Settings, get_settings
from device_tools.exceptions import ArgumentError, ArgumentErrorKind, ErrorKind, ToolError
from device_tools.tools.base import AdapterTool, echo_text
from device_tools.tools.claude import ClaudeClient, TextGenerator
from device_tools.tools.output import DomainResult, ToolOutput, encode_error
from device_tools.tools.schema import ArgumentSchema, FieldSpec, FieldType

logger = logging.getLogger(__name__)

USER_AGENT = "Mozilla/5.0 (compatible; DeviceTools/0.1; +metadata)"

PLATFORM_LIMITS = {
    "twitter": "280 characters",
    "linkedin": "3000 characters (but keep it concise, around 150-300 characters)",
    "facebook": "500 characters",
    "general": "200-300 characters",
}

_HASHTAG = re.compile(r"#\w+")


class WebMetadataErrorKind(ErrorKind):
    """Failures of the web metadata tool."""

    MISSING_REQUIRED_FIELD = ("missingRequiredField", "A required argument is missing")
    INVALID_FIELD_VALUE = ("invalidFieldValue", "Invalid argument value")
    EMPTY_URL = ("emptyURL", "URL cannot be empty")
    INVALID_URL = ("invalidURL", "Invalid URL format")
    FETCH_FAILED = ("fetchFailed", "Failed to fetch metadata")
    SUMMARY_GENERATION_FAILED = ("summaryGenerationFailed", "Failed to generate social media summary")


@dataclass(frozen=True)
class LinkMetadata:
    """What a fetcher could learn about a page."""

    url: str
    title: str | None = None
    description: str | None = None
    image_url: str | None = None
    content: str = ""


@runtime_checkable
class MetadataFetcher(Protocol):
    """Fetches link metadata for a URL."""

    async def fetch(self, url: str) -> LinkMetadata: ...


class HtmlMetadataFetcher:
    """Fetches a page over HTTP and reads its Open Graph and HTML metadata."""

    def __init__(self, settings: Settings | None = None) -> None:
        settings = settings or get_settings()
        self.timeout = settings.http_timeout

    async def fetch(self, url: str) -> LinkMetadata:
        """Download and parse a page.

        Raises:
            httpx.HTTPError: If the request fails or returns an error status
        """
        async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True) as client:
            response = await client.get(url, headers={"User-Agent": USER_AGENT})
            response.raise_for_status()

        return parse_html_metadata(response.text, str(response.url))


def parse_html_metadata(html: str, url: str) -> LinkMetadata:
    """Extract title, description, preview image and visible text from HTML."""
    soup = BeautifulSoup(html, "html.parser")

    def meta(*keys: str) -> str | None:
        for key in keys:
            tag = soup.find("meta", attrs={"property": key}) or soup.find(
                "meta", attrs={"name": key}
            )
            if tag and tag.get("content", "").strip():
                return tag["content"].strip()
        return None

    title = meta("og:title", "twitter:title")
    if title is None and soup.title and soup.title.string:
        title = soup.title.string.strip() or None

    image = meta("og:image", "og:image:url", "twitter:image")
    if image:
        image = str(httpx.URL(url).join(image))

    for element in soup(["script", "style", "nav", "footer", "noscript"]):
        element.decompose()
    body = soup.body or soup
    lines = [line.strip() for line in body.get_text(separator="\n").split("\n") if line.strip()]

    return LinkMetadata(
        url=url,
        title=title,
        description=meta("og:description", "description", "twitter:description"),
        image_url=image,
        content="\n".join(lines),
    )


def extract_hashtags(text: str) -> list[str]:
    return _HASHTAG.findall(text)


def build_summary_prompt(
    title: str,
    description: str,
    content: str,
    platform: str,
    include_hashtags: bool,
) -> str:
    """Prompt asking for a shareable summary sized for the platform."""
    limit = PLATFORM_LIMITS.get(platform.lower(), PLATFORM_LIMITS["general"])
    lines = [
        "Create a compelling social media post summary for the following webpage:",
        "",
        f"Title: {title}",
        f"Description: {description}",
    ]
    if content:
        lines.append(f"Content: {content}")
    lines += [
        "",
        "Requirements:",
        f"- Platform: {platform}",
        f"- Character limit: {limit}",
        "- Make it engaging and shareable",
        "- Include a call-to-action if appropriate",
        "- Focus on the key takeaway or most interesting aspect",
    ]
    if include_hashtags:
        lines.append("- Include 3-5 relevant hashtags at the end")
    else:
        lines.append("- Do not include hashtags")
    return "\n".join(lines)


class WebMetadata(DomainResult):
    """Page metadata plus a generated summary."""

    url: str = ""
    title: str = ""
    description: str = ""
    image_url: str = Field("", alias="imageURL")
    summary: str = ""
    hashtags: list[str] = Field(default_factory=list)
    platform: str = ""
    content: str = ""


class WebMetadataTool(AdapterTool):
    """Extract metadata from a web page and summarize it for sharing."""

    name = "getWebMetadata"
    description = (
        "Extract metadata and content from web pages including title, description, "
        "and text content"
    )
    capabilities = frozenset({"web_metadata"})
    schema = ArgumentSchema(
        FieldSpec("url", FieldType.STRING, "The URL to extract metadata from", required=True),
        FieldSpec(
            "includeContent",
            FieldType.BOOLEAN,
            "Whether to include the page text content (default: false)",
            default=False,
        ),
        FieldSpec(
            "maxContentLength",
            FieldType.INTEGER,
            "Maximum content length to return (default: 1000 characters)",
            default=1000,
            minimum=1,
            maximum=20000,
        ),
        FieldSpec(
            "platform",
            FieldType.STRING,
            "Platform the summary is written for: 'general', 'twitter', 'linkedin', 'facebook'",
            default="general",
            choices=tuple(PLATFORM_LIMITS),
        ),
        FieldSpec(
            "includeHashtags",
            FieldType.BOOLEAN,
            "Whether the summary should end with hashtags (default: true)",
            default=True,
        ),
    )
    result_type = WebMetadata
    fallback_error = WebMetadataErrorKind.FETCH_FAILED

    def __init__(
        self,
        fetcher: MetadataFetcher | None = None,
        generator: TextGenerator | None = None,
        settings: Settings | None = None,
    ) -> None:
        settings = settings or get_settings()
        self.fetcher = fetcher or HtmlMetadataFetcher(settings)
        self.generator = generator or ClaudeClient(settings)

    async def execute(self, args: dict[str, Any]) -> tuple[WebMetadata, str]:
        url = self._check_url(args["url"])

        try:
            metadata = await self.fetcher.fetch(url)
        except Exception as e:
            raise ToolError(WebMetadataErrorKind.FETCH_FAILED, e) from e

        title = metadata.title or "Untitled"
        description = metadata.description or ""
        content = metadata.content[: args["maxContentLength"]] if args["includeContent"] else ""

        prompt = build_summary_prompt(
            title=title,
            description=description,
            content=content,
            platform=args["platform"],
            include_hashtags=args["includeHashtags"],
        )
        try:
            summary = (await self.generator.complete(prompt)).strip()
        except Exception as e:
            raise ToolError(WebMetadataErrorKind.SUMMARY_GENERATION_FAILED, e) from e
        if not summary:
            raise ToolError(WebMetadataErrorKind.SUMMARY_GENERATION_FAILED)

        result = WebMetadata(
            url=metadata.url or url,
            title=title,
            description=description,
            image_url=metadata.image_url or "",
            summary=summary,
            hashtags=extract_hashtags(summary) if args["includeHashtags"] else [],
            platform=args["platform"],
            content=content,
        )
        return result, "Successfully generated social media summary"

    def _check_url(self, value: str) -> str:
        try:
            url = httpx.URL(value)
        except httpx.InvalidURL as e:
            raise ToolError(WebMetadataErrorKind.INVALID_URL, e) from e
        if url.scheme not in ("http", "https") or not url.host:
            raise ToolError(WebMetadataErrorKind.INVALID_URL)
        return value

    def map_argument_error(self, error: ArgumentError) -> ToolError:
        if error.field == "url" and error.kind is ArgumentErrorKind.MISSING_REQUIRED_FIELD:
            return ToolError(WebMetadataErrorKind.EMPTY_URL)
        return ToolError(WebMetadataErrorKind.INVALID_FIELD_VALUE, f"{error.field}: {error.detail}")

    def encode_error(self, error: ToolError, raw: Mapping[str, Any]) -> ToolOutput:
        return encode_error(
            error,
            WebMetadata,
            message="Failed to fetch metadata or generate summary",
            echo={"url": echo_text(raw, "url")},
        )
