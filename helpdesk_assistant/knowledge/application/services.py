"""
Knowledge Application Services
==============================

Retrieval of relevant knowledge articles for a ticket being drafted, and
solutions grounded in them.

Both flows augment ticket creation; provider or webhook failures degrade to
"no answer" instead of raising.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import List, Optional

from helpdesk_assistant.infrastructure.llm import ILLMClient
from helpdesk_assistant.knowledge.domain import (
    AiSolution,
    ArticleQuery,
    ArticleSuggestion,
    KnowledgeArticle,
    RelevanceScorer,
    SolutionPromptBuilder,
    SourceArticle,
)
from helpdesk_assistant.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


# ========== Repository Interfaces (Dependency Inversion) ==========

class IArticleRepository(ABC):
    """Interface for knowledge article lookup."""

    @abstractmethod
    async def search_published(
        self,
        search_text: str,
        tokens: List[str],
        category_id: Optional[str],
        limit: int
    ) -> List[KnowledgeArticle]:
        """
        Published articles whose title or content contains ``search_text``
        or whose tags intersect ``tokens``, most recently updated first.
        """


class ISuggestionWebhook(ABC):
    """Interface for the external solution-suggestion webhook."""

    @abstractmethod
    async def fetch_solution(self, title: str, description: str) -> Optional[str]:
        """Suggested solution text, or None."""


# ========== Application Services ==========

class KnowledgeRetriever:
    """Finds and ranks the articles relevant to a problem statement."""

    def __init__(self, articles: IArticleRepository, max_results: int = 5):
        self._articles = articles
        self._max_results = max_results

    async def find_relevant_articles(self, query: ArticleQuery) -> List[KnowledgeArticle]:
        candidates = await self._articles.search_published(
            search_text=query.search_text,
            tokens=query.tokens,
            category_id=query.category_id,
            limit=self._max_results
        )
        return RelevanceScorer.rank(candidates, query)


class SolutionService:
    """
    Generates a solution grounded in the retrieved articles.

    Uses one fixed model on one provider; there is no fallback here.
    """

    def __init__(
        self,
        retriever: KnowledgeRetriever,
        llm_client: Optional[ILLMClient],
        model: str,
        temperature: float = 0.7,
        top_p: float = 0.8,
        top_k: int = 40,
        max_tokens: int = 2048,
        timeout_seconds: float = 10.0
    ):
        self._retriever = retriever
        self._llm = llm_client
        self._model = model
        self._temperature = temperature
        self._top_p = top_p
        self._top_k = top_k
        self._max_tokens = max_tokens
        self._timeout = timeout_seconds

    async def generate_ai_solution(self, query: ArticleQuery) -> AiSolution:
        """
        Answer from the knowledge base, or report that it cannot.

        Never raises for provider problems: errors, timeouts, empty replies
        and the no-answer sentinel all yield ``has_answer=False``.
        """
        if query.is_too_short:
            return AiSolution.no_answer()

        articles = await self._retriever.find_relevant_articles(query)
        if not articles:
            logger.info("No relevant articles, skipping generation", extra={"category_id": query.category_id})
            return AiSolution.no_answer()

        if self._llm is None:
            logger.warning("Grounding provider not configured, returning no answer")
            return AiSolution.no_answer()

        prompt = SolutionPromptBuilder.build(articles, query)

        try:
            result = await asyncio.wait_for(
                self._llm.chat_completion(
                    messages=[{"role": "user", "content": prompt}],
                    model=self._model,
                    temperature=self._temperature,
                    max_tokens=self._max_tokens,
                    top_p=self._top_p,
                    top_k=self._top_k,
                    operation="kb_solution"
                ),
                timeout=self._timeout
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Grounded generation timed out",
                extra={"model": self._model, "timeout_seconds": self._timeout}
            )
            return AiSolution.no_answer()
        except Exception as e:
            logger.warning(
                "Grounded generation failed",
                extra={"model": self._model, "error_type": type(e).__name__, "error": str(e)[:500]}
            )
            return AiSolution.no_answer()

        if SolutionPromptBuilder.is_no_answer(result.content):
            logger.info(
                "Knowledge base does not cover the problem",
                extra={"article_count": len(articles)}
            )
            return AiSolution.no_answer()

        return AiSolution(
            solution=result.content.strip(),
            source_articles=[SourceArticle(id=a.id, title=a.title) for a in articles],
            has_answer=True
        )


class SuggestionService:
    """Relevant articles plus an optional webhook-provided solution."""

    TITLE_THRESHOLD = 5
    DESCRIPTION_THRESHOLD = 100

    def __init__(self, retriever: KnowledgeRetriever, webhook: Optional[ISuggestionWebhook] = None):
        self._retriever = retriever
        self._webhook = webhook

    @classmethod
    def should_call_webhook(cls, query: ArticleQuery) -> bool:
        return (
            len(query.title) > cls.TITLE_THRESHOLD
            or len(query.description) > cls.DESCRIPTION_THRESHOLD
        )

    async def suggest_articles(self, query: ArticleQuery) -> ArticleSuggestion:
        articles = await self._retriever.find_relevant_articles(query)

        ai_solution = None
        if self._webhook is not None and self.should_call_webhook(query):
            ai_solution = await self._webhook.fetch_solution(query.title, query.description)

        return ArticleSuggestion(articles=articles, ai_solution=ai_solution)
