"""Application configuration with sensible defaults."""
import os
from pathlib import Path

# Paths
BASE_DIR = Path(__file__).parent.parent
DATA_DIR = Path(os.getenv("DATA_DIR", str(BASE_DIR / "data")))

# Ensure data directory exists
DATA_DIR.mkdir(parents=True, exist_ok=True)

# Server
PORT = int(os.getenv("PORT", "5000"))
MAX_MESSAGE_LENGTH = int(os.getenv("MAX_MESSAGE_LENGTH", "2000"))

# Embedding provider (Jina). Without a key every text uses the local fallback.
JINA_API_KEY = os.getenv("JINA_API_KEY")
JINA_API_URL = os.getenv("JINA_API_URL", "https://api.jina.ai/v1/embeddings")
JINA_MODEL = os.getenv("JINA_MODEL", "jina-embeddings-v2-base-en")
EMBEDDING_TIMEOUT = float(os.getenv("EMBEDDING_TIMEOUT", "30.0"))
EMBEDDING_MAX_INPUT_CHARS = int(os.getenv("EMBEDDING_MAX_INPUT_CHARS", "8000"))
VECTOR_SIZE = int(os.getenv("VECTOR_SIZE", "768"))

# Ingestion
EMBEDDING_BATCH_SIZE = int(os.getenv("EMBEDDING_BATCH_SIZE", "10"))
EMBEDDING_BATCH_DELAY = float(os.getenv("EMBEDDING_BATCH_DELAY", "0.5"))  # seconds
COLLECTION_NAME = os.getenv("COLLECTION_NAME", "news_articles")

# Retrieval and prompting
RETRIEVAL_TOP_K = int(os.getenv("RETRIEVAL_TOP_K", "20"))
HISTORY_WINDOW = int(os.getenv("HISTORY_WINDOW", "6"))

# Sessions
SESSION_TTL = int(os.getenv("SESSION_TTL", "3600"))            # 1 hour
SESSION_BACKEND = os.getenv("SESSION_BACKEND", "sqlite")       # sqlite | memory
SESSION_LOCKING = os.getenv("SESSION_LOCKING", "none")         # none | per_session

# Language model
LLM_PROVIDER = os.getenv("LLM_PROVIDER", "gemini")             # gemini | ollama
LLM_TIMEOUT = float(os.getenv("LLM_TIMEOUT", "60.0"))
LLM_TEMPERATURE = float(os.getenv("LLM_TEMPERATURE", "0.7"))
LLM_TOP_K = int(os.getenv("LLM_TOP_K", "40"))
LLM_TOP_P = float(os.getenv("LLM_TOP_P", "0.95"))
LLM_MAX_OUTPUT_TOKENS = int(os.getenv("LLM_MAX_OUTPUT_TOKENS", "2048"))

GEMINI_API_KEY = os.getenv("GEMINI_API_KEY")
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")
GEMINI_BASE_URL = os.getenv(
    "GEMINI_BASE_URL", "https://generativelanguage.googleapis.com/v1beta"
)

OLLAMA_BASE_URL = os.getenv("OLLAMA_BASE_URL", "http://localhost:11434")
CHAT_MODEL = os.getenv("CHAT_MODEL", "gemma3:12b")

# Article sources
MAX_ARTICLES = int(os.getenv("MAX_ARTICLES", "100"))
SOURCE_TIMEOUT = float(os.getenv("SOURCE_TIMEOUT", "10.0"))
SCRAPE_DELAY = float(os.getenv("SCRAPE_DELAY", "1.0"))        # between scraped sites
RSS_ITEMS_PER_FEED = int(os.getenv("RSS_ITEMS_PER_FEED", "20"))
SCRAPE_ITEMS_PER_SITE = int(os.getenv("SCRAPE_ITEMS_PER_SITE", "15"))
USER_AGENT = os.getenv(
    "USER_AGENT", "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"
)

_DEFAULT_FEEDS = ",".join([
    "https://rss.nytimes.com/services/xml/rss/nyt/World.xml",
    "https://rss.nytimes.com/services/xml/rss/nyt/Technology.xml",
    "https://rss.nytimes.com/services/xml/rss/nyt/Business.xml",
    "http://feeds.bbci.co.uk/news/world/rss.xml",
    "http://feeds.bbci.co.uk/news/technology/rss.xml",
])
NEWS_FEEDS = [f.strip() for f in os.getenv("NEWS_FEEDS", _DEFAULT_FEEDS).split(",") if f.strip()]

# CSS selectors per scraped site
SCRAPE_SITES = [
    {
        "name": "The Guardian",
        "url": "https://www.theguardian.com/international",
        "selector": {
            "article": "[data-component='Card']",
            "title": "[data-link-name='article'] h3, [data-link-name='article'] span",
            "description": "[data-link-name='article'] p",
            "link": "[data-link-name='article']",
        },
    },
    {
        "name": "TechCrunch",
        "url": "https://techcrunch.com",
        "selector": {
            "article": "article.post-block",
            "title": ".post-block__title",
            "description": ".post-block__content",
            "link": ".post-block__title__link",
        },
    },
    {
        "name": "Reuters",
        "url": "https://www.reuters.com/world/",
        "selector": {
            "article": "[data-testid='MediaStoryCard']",
            "title": "h3",
            "description": "p",
            "link": "a",
        },
    },
]
if os.getenv("SCRAPE_ENABLED", "true").lower() in ("0", "false", "no"):
    SCRAPE_SITES = []

# Database
DB_PATH = DATA_DIR / "newsbot.sqlite"

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
