"""RSS feed fetching."""
import re
from typing import List

import feedparser
import httpx
import structlog

from newsbot import config
from newsbot.models import Article

logger = structlog.get_logger()

_TAG_RE = re.compile(r"<[^>]*>")


def strip_tags(text: str) -> str:
    return _TAG_RE.sub("", text or "").strip()


def parse_feed(content: bytes, feed_url: str, limit: int = None) -> List[Article]:
    """Parse RSS/Atom content into articles.

    Args:
        content: Raw feed document
        feed_url: Feed URL, used to build article IDs
        limit: Maximum number of entries to keep

    Returns:
        Articles in feed order
    """
    limit = limit or config.RSS_ITEMS_PER_FEED
    feed = feedparser.parse(content)
    source = strip_tags(feed.feed.get("title", "")) or "RSS Feed"

    articles = []
    for index, entry in enumerate(feed.entries[:limit]):
        title = strip_tags(entry.get("title", ""))
        description = strip_tags(entry.get("summary", ""))
        articles.append(
            Article(
                id=f"{feed_url}-{index}",
                title=title,
                description=description,
                link=entry.get("link", ""),
                pub_date=entry.get("published") or entry.get("updated") or "",
                full_text=f"{title} {description}".strip(),
                source=source,
            )
        )
    return articles


async def fetch_rss_feed(client: httpx.AsyncClient, feed_url: str, limit: int = None) -> List[Article]:
    """Fetch and parse a single RSS feed.

    A failing feed is logged and contributes no articles.
    """
    try:
        response = await client.get(feed_url, timeout=config.SOURCE_TIMEOUT)
        response.raise_for_status()
        articles = parse_feed(response.content, feed_url, limit)
    except Exception as e:
        logger.error("rss_fetch_failed", feed_url=feed_url, error=str(e))
        return []

    logger.info("rss_feed_fetched", host=httpx.URL(feed_url).host, articles=len(articles))
    return articles
