"""Tests for the web metadata tool."""

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

import httpx

from device_tools.tools.web_metadata import (
    HtmlMetadataFetcher,
    LinkMetadata,
    WebMetadata,
    WebMetadataTool,
    build_summary_prompt,
    extract_hashtags,
    parse_html_metadata,
)

PAGE = """
<html>
  <head>
    <title>Fallback Title</title>
    <meta property="og:title" content="Swift Concurrency, Explained">
    <meta name="description" content="A tour of async/await and actors.">
    <meta property="og:image" content="/images/cover.png">
    <script>var tracking = true;</script>
  </head>
  <body>
    <nav>Home | Blog</nav>
    <h1>Swift Concurrency</h1>
    <p>Structured concurrency keeps tasks in a tree.</p>
    <footer>Copyright</footer>
  </body>
</html>
"""

SUMMARY = "Async/await made simple. Read the full guide! #Swift #Concurrency #iOSDev"


@pytest.fixture
def fetcher():
    stub = MagicMock()
    stub.fetch = AsyncMock(return_value=LinkMetadata(
        url="https://example.com/post",
        title="Swift Concurrency, Explained",
        description="A tour of async/await and actors.",
        image_url="https://example.com/images/cover.png",
        content="Structured concurrency keeps tasks in a tree.",
    ))
    return stub


@pytest.fixture
def generator():
    stub = MagicMock()
    stub.complete = AsyncMock(return_value=SUMMARY)
    return stub


@pytest.fixture
def tool(fetcher, generator, settings):
    return WebMetadataTool(fetcher=fetcher, generator=generator, settings=settings)


# ---------------------------------------------------------------------------
# TestParsing
# ---------------------------------------------------------------------------

class TestParsing:

    def test_open_graph_preferred(self):
        metadata = parse_html_metadata(PAGE, "https://example.com/post")
        assert metadata.title == "Swift Concurrency, Explained"
        assert metadata.description == "A tour of async/await and actors."
        assert metadata.image_url == "https://example.com/images/cover.png"

    def test_visible_text_only(self):
        metadata = parse_html_metadata(PAGE, "https://example.com/post")
        assert "Structured concurrency keeps tasks in a tree." in metadata.content
        assert "tracking" not in metadata.content
        assert "Home | Blog" not in metadata.content
        assert "Copyright" not in metadata.content

    def test_title_fallback(self):
        metadata = parse_html_metadata("<html><head><title> Plain </title></head></html>", "https://x.io")
        assert metadata.title == "Plain"
        assert metadata.description is None
        assert metadata.image_url is None

    def test_extract_hashtags(self):
        assert extract_hashtags(SUMMARY) == ["#Swift", "#Concurrency", "#iOSDev"]
        assert extract_hashtags("no tags here") == []

    def test_prompt_platform_limit(self):
        prompt = build_summary_prompt("T", "D", "", "twitter", include_hashtags=True)
        assert "Character limit: 280 characters" in prompt
        assert "Include 3-5 relevant hashtags" in prompt
        assert "Content:" not in prompt

    def test_prompt_without_hashtags(self):
        prompt = build_summary_prompt("T", "D", "body", "general", include_hashtags=False)
        assert "Content: body" in prompt
        assert "Do not include hashtags" in prompt


# ---------------------------------------------------------------------------
# TestWebMetadataTool
# ---------------------------------------------------------------------------

class TestWebMetadataTool:

    @pytest.mark.asyncio
    async def test_success(self, tool, fetcher, generator):
        output = await tool.call({"url": " https://example.com/post "})

        assert output["status"] == "success"
        assert output["url"] == "https://example.com/post"
        assert output["title"] == "Swift Concurrency, Explained"
        assert output["imageURL"] == "https://example.com/images/cover.png"
        assert output["summary"] == SUMMARY
        assert output["hashtags"] == "#Swift #Concurrency #iOSDev"
        assert output["platform"] == "general"
        assert output["content"] == ""
        assert output["message"] == "Successfully generated social media summary"
        fetcher.fetch.assert_awaited_once_with("https://example.com/post")
        generator.complete.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_platform_and_content_honored(self, tool, generator):
        output = await tool.call({
            "url": "https://example.com/post",
            "platform": "LinkedIn",
            "includeContent": True,
            "maxContentLength": 10,
            "includeHashtags": False,
        })

        prompt = generator.complete.await_args.args[0]
        assert "Platform: linkedin" in prompt
        assert "Content: Structured" in prompt
        assert output["platform"] == "linkedin"
        assert output["content"] == "Structured"
        assert output["hashtags"] == ""

    @pytest.mark.asyncio
    async def test_missing_title_is_untitled(self, tool, fetcher):
        fetcher.fetch.return_value = LinkMetadata(url="https://example.com/post")
        output = await tool.call({"url": "https://example.com/post"})
        assert output["title"] == "Untitled"
        assert output["description"] == ""
        assert output["imageURL"] == ""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("url,kind", [
        ("", "emptyURL"),
        ("   ", "emptyURL"),
        ("not a url", "invalidURL"),
        ("ftp://example.com/file", "invalidURL"),
        ("https://", "invalidURL"),
    ])
    async def test_bad_urls_never_fetch(self, tool, fetcher, generator, url, kind):
        output = await tool.call({"url": url})

        assert output["status"] == "error"
        assert output["errorKind"] == kind
        assert output["summary"] == ""
        assert output["message"] == "Failed to fetch metadata or generate summary"
        fetcher.fetch.assert_not_awaited()
        generator.complete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_fetch_failure(self, tool, fetcher, generator):
        fetcher.fetch.side_effect = httpx.ConnectError("connection refused")
        output = await tool.call({"url": "https://example.com/post"})

        assert output["errorKind"] == "fetchFailed"
        assert output["error"] == "Failed to fetch metadata: connection refused"
        assert output["url"] == "https://example.com/post"
        generator.complete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_generation_failure(self, tool, generator):
        generator.complete.side_effect = RuntimeError("model unavailable")
        output = await tool.call({"url": "https://example.com/post"})
        assert output["errorKind"] == "summaryGenerationFailed"

    @pytest.mark.asyncio
    async def test_empty_generation(self, tool, generator):
        generator.complete.return_value = "   "
        output = await tool.call({"url": "https://example.com/post"})
        assert output["errorKind"] == "summaryGenerationFailed"

    @pytest.mark.asyncio
    async def test_payload_decodes(self, tool):
        output = await tool.call({"url": "https://example.com/post"})
        metadata = WebMetadata.from_payload(output.to_payload())
        assert metadata.hashtags == ["#Swift", "#Concurrency", "#iOSDev"]
        assert metadata.image_url == "https://example.com/images/cover.png"


# ---------------------------------------------------------------------------
# TestHtmlMetadataFetcher
# ---------------------------------------------------------------------------

class TestHtmlMetadataFetcher:

    @pytest.mark.asyncio
    async def test_fetch(self, settings):
        response = MagicMock()
        response.text = PAGE
        response.url = httpx.URL("https://example.com/post")

        with patch("device_tools.tools.web_metadata.httpx.AsyncClient") as mock_client_cls:
            mock_client = AsyncMock()
            mock_client.get.return_value = response
            mock_client.__aenter__ = AsyncMock(return_value=mock_client)
            mock_client.__aexit__ = AsyncMock(return_value=False)
            mock_client_cls.return_value = mock_client

            metadata = await HtmlMetadataFetcher(settings).fetch("https://example.com/post")

        assert metadata.url == "https://example.com/post"
        assert metadata.title == "Swift Concurrency, Explained"
        assert mock_client_cls.call_args.kwargs["follow_redirects"] is True
