"""News article sources: RSS feeds and scraped front pages."""
import asyncio
from typing import Dict, List, Optional, Sequence

import httpx
import structlog

from newsbot import config
from newsbot.models import Article
from newsbot.sources.rss import fetch_rss_feed
from newsbot.sources.scraper import ScrapeSite, scrape_site

logger = structlog.get_logger()

__all__ = ["fetch_news_articles", "ScrapeSite"]


async def fetch_news_articles(
    feeds: Optional[Sequence[str]] = None,
    sites: Optional[Sequence[Dict]] = None,
    max_articles: int = None,
    scrape_delay: float = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> List[Article]:
    """Fetch articles from all feeds, then all scraped sites, in order.

    Args:
        feeds: RSS feed URLs (default from config)
        sites: Scrape site configs (default from config)
        max_articles: Cap on the combined list (default from config)
        scrape_delay: Seconds between scraped sites (default from config)
        transport: Optional httpx transport (used by tests)

    Returns:
        At most ``max_articles`` articles
    """
    feeds = config.NEWS_FEEDS if feeds is None else feeds
    sites = config.SCRAPE_SITES if sites is None else sites
    max_articles = max_articles or config.MAX_ARTICLES
    scrape_delay = config.SCRAPE_DELAY if scrape_delay is None else scrape_delay

    logger.info("fetching_news_articles", feeds=len(feeds), sites=len(sites))

    articles: List[Article] = []
    async with httpx.AsyncClient(follow_redirects=True, transport=transport) as client:
        for feed_url in feeds:
            articles.extend(await fetch_rss_feed(client, feed_url))

        for i, site in enumerate(sites):
            articles.extend(await scrape_site(client, ScrapeSite.from_config(site)))
            if scrape_delay > 0 and i < len(sites) - 1:
                await asyncio.sleep(scrape_delay)

    articles = articles[:max_articles]
    logger.info("news_articles_loaded", total=len(articles), feeds=len(feeds), sites=len(sites))
    return articles
