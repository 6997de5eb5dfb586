"""Prompt construction for grounded news answers."""
from typing import List, Sequence

from newsbot import config
from newsbot.models import RetrievalResult, Turn

PREAMBLE = """You are a knowledgeable and helpful news assistant. Your task is to answer the user's question based on the provided news articles.

Guidelines:
- Provide accurate, well-informed answers based on the sources
- Use clear headings with ## for main topics
- Use bullet points (-) for lists
- Write in a conversational, friendly tone
- Cite specific sources when referencing information (e.g., "According to Source 1...")
- Keep paragraphs short (2-3 sentences max)
- If the articles don't contain enough information, acknowledge this instead of guessing"""


def render_source(index: int, result: RetrievalResult) -> str:
    """Render one retrieved article as a numbered source block (1-based)."""
    article = result.article
    return (
        f"[Source {index}] ({article.source} - Relevance: {result.relevance})\n"
        f"Title: {article.title}\n"
        f"Content: {article.description}\n"
        f"URL: {article.link}\n"
        f"Published: {article.pub_date}"
    )


def render_sources(results: Sequence[RetrievalResult]) -> str:
    """Render all results in order, separated by blank lines."""
    return "\n\n".join(render_source(i, r) for i, r in enumerate(results, 1))


def render_history(history: Sequence[Turn], window: int = None) -> str:
    """Render the most recent turns, oldest first.

    Returns an empty string when there is no history.
    """
    window = window or config.HISTORY_WINDOW
    if not history:
        return ""

    lines = [
        f"{'User' if turn.role == 'user' else 'Assistant'}: {turn.content}"
        for turn in list(history)[-window:]
    ]
    return "Previous conversation:\n" + "\n".join(lines)


class PromptComposer:
    """Builds the single prompt sent to the language model."""

    def __init__(self, history_window: int = None, preamble: str = PREAMBLE):
        self.history_window = history_window or config.HISTORY_WINDOW
        self.preamble = preamble

    def compose(
        self,
        query: str,
        results: Sequence[RetrievalResult],
        history: Sequence[Turn],
    ) -> str:
        parts: List[str] = [
            self.preamble,
            "News Sources (with relevance scores and sources):\n" + render_sources(results),
        ]

        history_block = render_history(history, self.history_window)
        if history_block:
            parts.append(history_block)

        parts.append(f"User Question: {query}")
        parts.append("Please provide a clear, well-formatted answer using markdown:")
        return "\n\n".join(parts)
