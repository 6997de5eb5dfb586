"""Grounded answer generation with session history.

One ``answer`` call retrieves context, composes a prompt with the recent
conversation, asks the language model, then appends the exchange to the
session. If anything before the model's answer fails the session is left
untouched; if only the final history write fails the answer is still
returned.
"""
from typing import Optional, Protocol

import structlog

from newsbot.errors import GenerationError, ProviderUnavailableError, SessionStoreError
from newsbot.memory.manager import SessionLocks, SessionStore
from newsbot.models import Answer, AnswerSource, Turn
from newsbot.rag.prompt import PromptComposer
from newsbot.rag.retriever import Retriever

logger = structlog.get_logger()


class LanguageModel(Protocol):
    async def generate(self, prompt: str) -> str: ...


class AnswerGenerator:
    """Retrieval, prompt composition, generation and history update."""

    def __init__(
        self,
        retriever: Retriever,
        llm: LanguageModel,
        sessions: SessionStore,
        composer: Optional[PromptComposer] = None,
        locks: Optional[SessionLocks] = None,
    ):
        """Initialize the answer generator.

        Args:
            retriever: Retrieval engine for query context
            llm: Language model client with ``async generate(prompt)``
            sessions: Session history store
            composer: Prompt composer (default PromptComposer())
            locks: Per-session serialization (default from config)
        """
        self.retriever = retriever
        self.llm = llm
        self.sessions = sessions
        self.composer = composer or PromptComposer()
        self.locks = locks or SessionLocks()

    async def answer(self, query: str, session_id: str) -> Answer:
        """Answer a query grounded on retrieved articles.

        Args:
            query: User question
            session_id: Session whose history is read and extended

        Returns:
            Answer text with the caller-facing sources list

        Raises:
            RetrievalError: If context retrieval fails
            SessionStoreError: If the existing history cannot be read
            GenerationError: If the language model fails or returns nothing
        """
        async with self.locks.hold(session_id):
            results = await self.retriever.retrieve(query)
            history = await self.sessions.get(session_id)

            prompt = self.composer.compose(query, results, history)

            logger.info(
                "generating_answer",
                session_id=session_id,
                sources=len(results),
                history_turns=len(history),
                prompt_length=len(prompt),
            )
            try:
                answer = await self.llm.generate(prompt)
            except ProviderUnavailableError as e:
                logger.error("answer_generation_failed", session_id=session_id, error=str(e))
                raise GenerationError(f"Language model failed: {e}") from e

            if not answer or not answer.strip():
                logger.error("empty_llm_response", session_id=session_id)
                raise GenerationError("Language model returned an empty answer")

            updated = list(history)
            updated.append(Turn(role="user", content=query))
            updated.append(
                Turn(
                    role="assistant",
                    content=answer,
                    sources=[r.to_source_ref() for r in results],
                )
            )

            try:
                await self.sessions.set(session_id, updated)
            except SessionStoreError as e:
                logger.error("session_history_save_failed", session_id=session_id, error=str(e))

        logger.info("answer_generated", session_id=session_id, answer_length=len(answer))

        return Answer(
            answer=answer,
            sources=[AnswerSource.from_result(r) for r in results],
        )
