"""Tests for RSS parsing, front-page scraping and source aggregation."""
import httpx

from newsbot.sources import fetch_news_articles
from newsbot.sources.rss import parse_feed, strip_tags
from newsbot.sources.scraper import ScrapeSite, parse_page

FEED_URL = "https://feeds.example.com/world.rss"

RSS = b"""<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
  <channel>
    <title>Example World News</title>
    <link>https://example.com</link>
    <item>
      <title>Storm hits the coast</title>
      <link>https://example.com/storm</link>
      <description>&lt;p&gt;Heavy &lt;b&gt;rain&lt;/b&gt; expected.&lt;/p&gt;</description>
      <pubDate>Mon, 06 Jan 2025 10:00:00 GMT</pubDate>
    </item>
    <item>
      <title>Election results announced</title>
      <link>https://example.com/election</link>
      <description>Turnout was high.</description>
      <pubDate>Mon, 06 Jan 2025 08:00:00 GMT</pubDate>
    </item>
  </channel>
</rss>
"""

SITE = {
    "name": "Example Front",
    "url": "https://front.example.com/world/",
    "selector": {
        "article": "div.card",
        "title": "h3",
        "description": "p",
        "link": "a",
    },
}

PAGE = """
<html><body>
  <div class="card">
    <a href="/world/chip-deal"><h3>Chip deal signed</h3></a>
    <p>Two tech firms agree.</p>
  </div>
  <div class="card">
    <a href="https://other.example.com/abs"><h3>Absolute link story</h3></a>
  </div>
  <div class="card">
    <p>A card without a headline.</p>
  </div>
</body></html>
"""


def test_strip_tags():
    assert strip_tags("<p>Heavy <b>rain</b></p> ") == "Heavy rain"
    assert strip_tags(None) == ""


def test_parse_feed_builds_articles_in_order():
    articles = parse_feed(RSS, FEED_URL, limit=10)

    assert [a.id for a in articles] == [f"{FEED_URL}-0", f"{FEED_URL}-1"]
    first = articles[0]
    assert first.title == "Storm hits the coast"
    assert first.description == "Heavy rain expected."
    assert first.link == "https://example.com/storm"
    assert first.pub_date == "Mon, 06 Jan 2025 10:00:00 GMT"
    assert first.source == "Example World News"
    assert first.full_text == "Storm hits the coast Heavy rain expected."


def test_parse_feed_respects_limit():
    assert len(parse_feed(RSS, FEED_URL, limit=1)) == 1


def test_parse_page_resolves_links_and_skips_incomplete_cards():
    articles = parse_page(PAGE, ScrapeSite.from_config(SITE), limit=10)

    assert [a.title for a in articles] == ["Chip deal signed", "Absolute link story"]
    assert articles[0].link == "https://front.example.com/world/chip-deal"
    assert articles[0].description == "Two tech firms agree."
    assert articles[0].source == "Example Front"
    assert articles[1].link == "https://other.example.com/abs"
    # no description falls back to the title
    assert articles[1].description == "Absolute link story"


def test_parse_page_truncates_long_titles():
    page = f'<html><body><div class="card"><a href="/x"><h3>{"x" * 300}</h3></a></div></body></html>'

    articles = parse_page(page, ScrapeSite.from_config(SITE))

    assert len(articles[0].title) == 200


async def test_fetch_news_articles_combines_sources_and_caps():
    def handler(request):
        if request.url.host == "feeds.example.com":
            return httpx.Response(200, content=RSS)
        if request.url.host == "front.example.com":
            return httpx.Response(200, text=PAGE)
        return httpx.Response(500)

    articles = await fetch_news_articles(
        feeds=[FEED_URL, "https://broken.example.com/feed"],
        sites=[SITE],
        max_articles=3,
        scrape_delay=0,
        transport=httpx.MockTransport(handler),
    )

    assert [a.title for a in articles] == [
        "Storm hits the coast",
        "Election results announced",
        "Chip deal signed",
    ]


async def test_fetch_news_articles_survives_unreachable_sources():
    def handler(request):
        raise httpx.ConnectError("offline", request=request)

    articles = await fetch_news_articles(
        feeds=[FEED_URL],
        sites=[SITE],
        scrape_delay=0,
        transport=httpx.MockTransport(handler),
    )

    assert articles == []
