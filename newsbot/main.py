"""Main Quart application for the news chatbot."""
import time
from typing import Optional

from quart import Quart, g, jsonify, request
import structlog

from newsbot import config
from newsbot.errors import (
    GenerationError,
    RetrievalError,
    SessionStoreError,
    ValidationError,
)
from newsbot.logging_setup import configure_logging
from newsbot.services import NewsService

logger = structlog.get_logger()

PREVIEW_CHARS = 150


def _now_ms() -> int:
    return int(time.time() * 1000)


def _error(message: str, status: int):
    return jsonify({"success": False, "error": message}), status


def _validate_chat_body(data) -> tuple:
    """Return (message, session_id) or raise ValidationError."""
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")

    message = data.get("message")
    session_id = data.get("sessionId")

    if not message or not isinstance(message, str):
        raise ValidationError("Message is required and must be a string")
    if not session_id or not isinstance(session_id, str):
        raise ValidationError("Session ID is required")
    if not message.strip():
        raise ValidationError("Message cannot be empty")
    if len(message) > config.MAX_MESSAGE_LENGTH:
        raise ValidationError(f"Message too long (max {config.MAX_MESSAGE_LENGTH} characters)")

    return message, session_id


def create_app(service: Optional[NewsService] = None) -> Quart:
    """Build the app around a service context.

    Args:
        service: Service to expose (a default one is built on first use if omitted)
    """
    app = Quart(__name__)
    app.config["NEWS_SERVICE"] = service

    def news() -> NewsService:
        if app.config["NEWS_SERVICE"] is None:
            app.config["NEWS_SERVICE"] = NewsService()
        return app.config["NEWS_SERVICE"]

    @app.before_serving
    async def startup():
        """Load and index articles before accepting requests; failure halts startup."""
        logger.info("starting_news_chatbot", port=config.PORT)
        await news().initialize()

    @app.before_request
    async def start_timer():
        g.request_start = time.perf_counter()

    @app.after_request
    async def log_request(response):
        duration_ms = (time.perf_counter() - g.get("request_start", time.perf_counter())) * 1000
        logger.info(
            "http_request",
            method=request.method,
            path=request.path,
            status=response.status_code,
            duration_ms=round(duration_ms, 1),
        )
        return response

    @app.route("/")
    async def index():
        """List the available endpoints."""
        return jsonify({
            "success": True,
            "message": "News Chatbot API",
            "endpoints": {
                "health": "GET /api/health",
                "createSession": "POST /api/sessions",
                "chat": "POST /api/chat",
                "history": "GET /api/history/:sessionId",
                "clearSession": "DELETE /api/sessions/:sessionId",
                "articles": "GET /api/articles",
                "stats": "GET /api/stats",
            },
        })

    @app.route("/api/sessions", methods=["POST"])
    async def create_session():
        """Issue a new opaque session ID."""
        session_id = news().create_session()
        return jsonify({
            "success": True,
            "sessionId": session_id,
            "message": "Session created successfully",
        }), 201

    @app.route("/api/sessions/<session_id>", methods=["DELETE"])
    async def clear_session(session_id: str):
        """Delete a session's history."""
        try:
            deleted = await news().clear_session(session_id)
        except SessionStoreError as e:
            logger.error("session_delete_error", error=str(e), session_id=session_id)
            return _error("Failed to clear session", 503)

        return jsonify({
            "success": True,
            "deleted": deleted,
            "message": "Session cleared successfully" if deleted else "Session not found",
        })

    @app.route("/api/chat", methods=["POST"])
    async def chat():
        """Answer a message within a session.

        Expects JSON body:
        {
            "message": "user message text",
            "sessionId": "session-id"
        }
        """
        try:
            message, session_id = _validate_chat_body(await request.get_json(silent=True))
        except ValidationError as e:
            return _error(str(e), 400)

        logger.info(
            "chat_request_received",
            session_id=session_id,
            message_preview=message[:50],
        )

        try:
            result = await news().send_message(message, session_id)
        except (RetrievalError, GenerationError) as e:
            logger.error("chat_failed", error=str(e), error_type=type(e).__name__)
            return _error(str(e), 502)
        except SessionStoreError as e:
            logger.error("chat_history_unavailable", error=str(e))
            return _error("Session history unavailable", 503)

        return jsonify({
            "success": True,
            "response": result.answer,
            "sources": [
                {
                    "title": s.title,
                    "link": s.link,
                    "pubDate": s.pub_date,
                    "source": s.source,
                    "relevance": s.relevance,
                }
                for s in result.sources
            ],
            "timestamp": _now_ms(),
            "sessionId": session_id,
        })

    @app.route("/api/history/<session_id>", methods=["GET"])
    async def history(session_id: str):
        """Return a session's full history (empty if unknown or expired)."""
        try:
            turns = await news().get_history(session_id)
        except SessionStoreError as e:
            logger.error("history_get_error", error=str(e), session_id=session_id)
            return _error("Failed to retrieve history", 503)

        return jsonify({
            "success": True,
            "history": [turn.model_dump(mode="json", exclude_none=True) for turn in turns],
            "count": len(turns),
            "sessionId": session_id,
        })

    @app.route("/api/health", methods=["GET"])
    async def health():
        """Liveness plus article and index counts."""
        return jsonify({
            "success": True,
            "status": "healthy",
            "timestamp": _now_ms(),
            "data": {
                "articlesLoaded": len(news().get_articles()),
                "embeddingsCreated": await news().get_embeddings_count(),
                "vectorDB": "FAISS",
            },
        })

    @app.route("/api/articles", methods=["GET"])
    async def articles():
        """List loaded articles, optionally limited with ?limit=N."""
        loaded = news().get_articles()
        limit = request.args.get("limit", type=int) or len(loaded)
        shown = loaded[: max(limit, 0)]

        return jsonify({
            "success": True,
            "articles": [
                {
                    "title": a.title,
                    "link": a.link,
                    "pubDate": a.pub_date,
                    "preview": a.description[:PREVIEW_CHARS] + "...",
                }
                for a in shown
            ],
            "total": len(loaded),
            "showing": len(shown),
        })

    @app.route("/api/stats", methods=["GET"])
    async def stats():
        """Ingestion and index statistics."""
        data = await news().get_stats()
        return jsonify({
            "success": True,
            "stats": {
                "totalArticles": data["total_articles"],
                "totalEmbeddings": data["total_embeddings"],
                "vectorDB": data["vector_db"],
                "sources": data["sources"],
                "oldestArticle": data["oldest_article"],
                "newestArticle": data["newest_article"],
            },
        })

    @app.errorhandler(404)
    async def not_found(error):
        """Handle 404 errors."""
        return jsonify({
            "success": False,
            "error": "Endpoint not found",
            "path": request.path,
            "method": request.method,
        }), 404

    @app.errorhandler(500)
    async def internal_error(error):
        """Handle 500 errors."""
        logger.error("internal_server_error", error=str(error))
        return _error("Internal server error", 500)

    return app


configure_logging()
app = create_app()


if __name__ == "__main__":
    # For development - use hypercorn in production
    app.run(host="0.0.0.0", port=config.PORT, debug=True)
