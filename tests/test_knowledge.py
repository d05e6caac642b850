"""
Test suite for the knowledge context.

Covers relevance scoring, article retrieval on SQLite, grounded solutions
with their degrade-to-no-answer behavior, and article suggestions.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from helpdesk_assistant.infrastructure.llm import ChatCompletionResult
from helpdesk_assistant.knowledge.application import (
    KnowledgeRetriever,
    SolutionService,
    SuggestionService,
)
from helpdesk_assistant.knowledge.domain import (
    ArticleQuery,
    KnowledgeArticle,
    RelevanceScorer,
    SolutionPromptBuilder,
)
from helpdesk_assistant.knowledge.infrastructure import (
    KbArticleModel,
    KbArticleTagModel,
    SQLAlchemyArticleRepository,
)

NOW = datetime(2026, 5, 1, 12, 0, tzinfo=timezone.utc)


def _article(article_id: str, title: str, content: str) -> KnowledgeArticle:
    return KnowledgeArticle(id=article_id, title=title, content=content)


async def _add_article(
    db_session,
    article_id: str,
    title: str,
    content: str,
    tags=(),
    status: str = "PUBLISHED",
    category_id=None,
    age_minutes: int = 0
) -> None:
    model = KbArticleModel(
        id=article_id,
        title=title,
        content=content,
        status=status,
        category_id=category_id,
        updated_at=NOW - timedelta(minutes=age_minutes)
    )
    model.tags = [KbArticleTagModel(article_id=article_id, tag=t) for t in tags]
    db_session.add(model)
    await db_session.commit()


@pytest.fixture
def retriever_stub() -> AsyncMock:
    """Retriever returning a fixed article list."""
    retriever = AsyncMock(spec=KnowledgeRetriever)
    retriever.find_relevant_articles = AsyncMock(return_value=[
        _article("kb-1", "Reset VPN client", "Open the VPN client and choose Reset."),
    ])
    return retriever


@pytest.fixture
def llm_stub() -> AsyncMock:
    client = AsyncMock()
    client.chat_completion = AsyncMock(return_value=ChatCompletionResult(
        content="  Hi! Open the VPN client and pick Reset.  ", model="gemini-2.5-flash", provider="gemini"
    ))
    return client


def _solution_service(retriever, llm, timeout_seconds: float = 10.0) -> SolutionService:
    return SolutionService(retriever, llm, model="gemini-2.5-flash", timeout_seconds=timeout_seconds)


class TestRelevanceScorer:
    """Re-ranking weights and stability."""

    def test_score_weights(self) -> None:
        query = ArticleQuery(title="VPN", description="connection drops")
        article = _article("a", "VPN troubleshooting", "If the VPN connection drops, restart it.")

        # Act
        score = RelevanceScorer.score(article, query)

        # Assert
        assert score == 10 + 5 + 3

    def test_rank_is_descending_and_stable(self) -> None:
        query = ArticleQuery(title="printer", description="")
        articles = [
            _article("a", "Email setup", "Configure mail"),
            _article("b", "Printer offline", "Check cable"),
            _article("c", "Shared drives", "Map the drive"),
            _article("d", "Toner", "The printer needs toner"),
        ]

        # Act
        ranked = RelevanceScorer.rank(articles, query)

        # Assert
        # Empty description matches every content (+3 for all)
        assert [a.id for a in ranked] == ["b", "d", "a", "c"]

    def test_query_tokens_and_search_text(self) -> None:
        query = ArticleQuery(title="Outlook Crash", description="outlook crash on start")
        assert query.search_text == "outlook crash outlook crash on start"
        assert query.tokens == ["outlook", "crash", "on", "start"]

    def test_short_queries(self) -> None:
        assert ArticleQuery(title="vpn", description="x").is_too_short
        assert not ArticleQuery(title="vpn", description="it does not connect").is_too_short


class TestSolutionPromptBuilder:
    """Grounding prompt and sentinel detection."""

    def test_prompt_embeds_articles_problem_and_sentinel(self) -> None:
        articles = [_article("kb-1", "Reset VPN client", "Choose Reset.")]
        query = ArticleQuery(title="VPN broken", description="Cannot connect")

        # Act
        prompt = SolutionPromptBuilder.build(articles, query)

        # Assert
        assert "Title: Reset VPN client\nContent: Choose Reset." in prompt
        assert "VPN broken\nCannot connect" in prompt
        assert '"NO_ANSWER"' in prompt

    @pytest.mark.parametrize("text,expected", [
        ("NO_ANSWER", True),
        ("  NO_ANSWER\n", True),
        ("", True),
        (None, True),
        ("Restart the router", False),
    ])
    def test_is_no_answer(self, text, expected: bool) -> None:
        assert SolutionPromptBuilder.is_no_answer(text) is expected


class TestArticleRepository:
    """Published-article lookup on SQLite."""

    @pytest.mark.asyncio
    async def test_matches_tags_and_skips_unpublished(self, db_session) -> None:
        await _add_article(db_session, "kb-1", "Mailbox full", "Archive old mail", tags=["outlook"])
        await _add_article(db_session, "kb-2", "Draft article", "Outlook tips", tags=["outlook"], status="DRAFT")
        await _add_article(db_session, "kb-3", "Wi-Fi", "Forget the network", tags=["wifi"])
        repository = SQLAlchemyArticleRepository(db_session)
        query = ArticleQuery(title="Outlook", description="mailbox says full")

        # Act
        found = await repository.search_published(query.search_text, query.tokens, None, 5)

        # Assert
        assert [a.id for a in found] == ["kb-1"]
        assert found[0].tags == ["outlook"]

    @pytest.mark.asyncio
    async def test_matches_combined_text_in_content(self, db_session) -> None:
        await _add_article(db_session, "kb-1", "Printers", "Fix: printer offline after update. Reinstall driver.")
        repository = SQLAlchemyArticleRepository(db_session)
        query = ArticleQuery(title="Printer", description="offline after update")

        # Act
        found = await repository.search_published(query.search_text, query.tokens, None, 5)

        # Assert
        assert [a.id for a in found] == ["kb-1"]

    @pytest.mark.asyncio
    async def test_category_filter_limit_and_recency(self, db_session) -> None:
        for i in range(7):
            await _add_article(
                db_session, f"kb-{i}", f"VPN guide {i}", "vpn", tags=["vpn"],
                category_id="network", age_minutes=i
            )
        await _add_article(db_session, "kb-other", "VPN", "vpn", tags=["vpn"], category_id="hardware")
        repository = SQLAlchemyArticleRepository(db_session)

        # Act
        found = await repository.search_published("vpn ", ["vpn"], "network", 5)

        # Assert
        assert [a.id for a in found] == ["kb-0", "kb-1", "kb-2", "kb-3", "kb-4"]


class TestKnowledgeRetriever:
    """Repository results are re-ranked."""

    @pytest.mark.asyncio
    async def test_results_are_reranked(self) -> None:
        repository = AsyncMock()
        repository.search_published = AsyncMock(return_value=[
            _article("recent", "Shared drives", "map the drive"),
            _article("best", "Printer offline", "printer offline steps"),
        ])
        retriever = KnowledgeRetriever(repository, max_results=5)

        # Act
        ranked = await retriever.find_relevant_articles(ArticleQuery(title="printer", description="offline"))

        # Assert
        assert [a.id for a in ranked] == ["best", "recent"]
        assert repository.search_published.await_args.kwargs["limit"] == 5


class TestSolutionService:
    """generateAiSolution."""

    @pytest.mark.asyncio
    async def test_answer_is_trimmed_with_sources(self, retriever_stub, llm_stub) -> None:
        service = _solution_service(retriever_stub, llm_stub)

        # Act
        result = await service.generate_ai_solution(ArticleQuery(title="VPN broken", description="No tunnel"))

        # Assert
        assert result.has_answer is True
        assert result.solution == "Hi! Open the VPN client and pick Reset."
        assert [(s.id, s.title) for s in result.source_articles] == [("kb-1", "Reset VPN client")]
        kwargs = llm_stub.chat_completion.await_args.kwargs
        assert kwargs["model"] == "gemini-2.5-flash"
        assert (kwargs["temperature"], kwargs["top_p"], kwargs["top_k"]) == (0.7, 0.8, 40)

    @pytest.mark.asyncio
    async def test_no_articles_means_no_provider_call(self, retriever_stub, llm_stub) -> None:
        retriever_stub.find_relevant_articles.return_value = []
        service = _solution_service(retriever_stub, llm_stub)

        # Act
        result = await service.generate_ai_solution(ArticleQuery(title="Something odd", description=""))

        # Assert
        assert result.has_answer is False
        llm_stub.chat_completion.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_sentinel_means_no_answer(self, retriever_stub, llm_stub) -> None:
        llm_stub.chat_completion.return_value = ChatCompletionResult(
            content="NO_ANSWER", model="gemini-2.5-flash", provider="gemini"
        )
        service = _solution_service(retriever_stub, llm_stub)

        # Act
        result = await service.generate_ai_solution(ArticleQuery(title="VPN broken", description=""))

        # Assert
        assert result.has_answer is False
        assert result.solution == ""
        assert result.source_articles == []

    @pytest.mark.asyncio
    async def test_provider_exception_means_no_answer(self, retriever_stub, llm_stub) -> None:
        llm_stub.chat_completion.side_effect = RuntimeError("503 UNAVAILABLE")
        service = _solution_service(retriever_stub, llm_stub)

        # Act
        result = await service.generate_ai_solution(ArticleQuery(title="VPN broken", description=""))

        # Assert
        assert result.has_answer is False

    @pytest.mark.asyncio
    async def test_timeout_means_no_answer(self, retriever_stub, llm_stub) -> None:
        async def slow(**kwargs):
            await asyncio.sleep(1)

        llm_stub.chat_completion.side_effect = slow
        service = _solution_service(retriever_stub, llm_stub, timeout_seconds=0.05)

        # Act
        result = await service.generate_ai_solution(ArticleQuery(title="VPN broken", description=""))

        # Assert
        assert result.has_answer is False

    @pytest.mark.asyncio
    async def test_short_input_skips_retrieval(self, retriever_stub, llm_stub) -> None:
        service = _solution_service(retriever_stub, llm_stub)

        # Act
        result = await service.generate_ai_solution(ArticleQuery(title="vpn", description="?"))

        # Assert
        assert result.has_answer is False
        retriever_stub.find_relevant_articles.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_provider_means_no_answer(self, retriever_stub) -> None:
        service = _solution_service(retriever_stub, None)

        # Act
        result = await service.generate_ai_solution(ArticleQuery(title="VPN broken", description=""))

        # Assert
        assert result.has_answer is False


class TestSuggestionService:
    """Article suggestions with the optional webhook."""

    @pytest.mark.asyncio
    async def test_webhook_called_for_detailed_drafts(self, retriever_stub) -> None:
        webhook = AsyncMock()
        webhook.fetch_solution = AsyncMock(return_value="Try resetting the client")
        service = SuggestionService(retriever_stub, webhook)

        # Act
        suggestion = await service.suggest_articles(ArticleQuery(title="VPN broken", description=""))

        # Assert
        assert suggestion.ai_solution == "Try resetting the client"
        assert [a.id for a in suggestion.articles] == ["kb-1"]
        webhook.fetch_solution.assert_awaited_once_with("VPN broken", "")

    @pytest.mark.asyncio
    async def test_webhook_skipped_for_terse_drafts(self, retriever_stub) -> None:
        webhook = AsyncMock()
        service = SuggestionService(retriever_stub, webhook)

        # Act
        suggestion = await service.suggest_articles(ArticleQuery(title="VPN", description="broken"))

        # Assert
        assert suggestion.ai_solution is None
        webhook.fetch_solution.assert_not_awaited()

    def test_long_description_triggers_webhook(self) -> None:
        assert SuggestionService.should_call_webhook(ArticleQuery(title="VPN", description="x" * 101))
        assert not SuggestionService.should_call_webhook(ArticleQuery(title="VPN", description="x" * 100))
