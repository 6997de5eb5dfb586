"""Article extraction from news front pages using CSS selectors."""
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional
from urllib.parse import urljoin

import httpx
import structlog
from lxml import html as lxml_html

from newsbot import config
from newsbot.models import Article

logger = structlog.get_logger()

TITLE_MAX_CHARS = 200
DESCRIPTION_MAX_CHARS = 500
FULL_TEXT_MAX_CHARS = 2000


@dataclass(frozen=True)
class ScrapeSite:
    """A front page and the selectors locating its article cards."""

    name: str
    url: str
    article: str
    title: str
    description: str
    link: str

    @classmethod
    def from_config(cls, site: Dict) -> "ScrapeSite":
        selector = site["selector"]
        return cls(
            name=site["name"],
            url=site["url"],
            article=selector["article"],
            title=selector["title"],
            description=selector["description"],
            link=selector["link"],
        )


def _first_text(element, selector: str) -> str:
    found = element.cssselect(selector)
    return found[0].text_content().strip() if found else ""


def _first_href(element, selector: str) -> Optional[str]:
    found = element.cssselect(selector)
    return found[0].get("href") if found else None


def parse_page(page: str, site: ScrapeSite, limit: int = None) -> List[Article]:
    """Extract articles from a front page.

    Cards without a title or link are skipped; relative links are resolved
    against the site URL.
    """
    limit = limit or config.SCRAPE_ITEMS_PER_SITE
    tree = lxml_html.fromstring(page)
    scraped_at = datetime.now(timezone.utc).isoformat()

    articles = []
    for index, card in enumerate(tree.cssselect(site.article)[:limit]):
        title = _first_text(card, site.title)
        description = _first_text(card, site.description)
        link = _first_href(card, site.link)

        if not title or not link:
            continue

        articles.append(
            Article(
                id=f"{site.name}-{index}",
                title=title[:TITLE_MAX_CHARS],
                description=description[:DESCRIPTION_MAX_CHARS] if description else title,
                link=urljoin(site.url, link),
                pub_date=scraped_at,
                full_text=f"{title} {description}"[:FULL_TEXT_MAX_CHARS],
                source=site.name,
            )
        )
    return articles


async def scrape_site(client: httpx.AsyncClient, site: ScrapeSite, limit: int = None) -> List[Article]:
    """Scrape one site. A failing site is logged and contributes no articles."""
    logger.info("scraping_site", site=site.name)
    try:
        response = await client.get(
            site.url,
            headers={"User-Agent": config.USER_AGENT},
            timeout=config.SOURCE_TIMEOUT,
        )
        response.raise_for_status()
        articles = parse_page(response.text, site, limit)
    except Exception as e:
        logger.error("scrape_failed", site=site.name, error=str(e))
        return []

    logger.info("site_scraped", site=site.name, articles=len(articles))
    return articles
