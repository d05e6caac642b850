"""
Knowledge Controllers (API Routes)
==================================

FastAPI routes used while a ticket is being drafted: relevant articles and
a solution grounded in them.
"""

from typing import List

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk_assistant.config import ProviderName, Settings
from helpdesk_assistant.infrastructure.database import get_session
from helpdesk_assistant.infrastructure.llm import ILLMClient, find_provider
from helpdesk_assistant.knowledge.application import (
    AiSolutionResponse,
    ArticleQueryRequest,
    KnowledgeRetriever,
    SolutionService,
    SuggestArticlesResponse,
    SuggestionService,
)
from helpdesk_assistant.knowledge.infrastructure import (
    HTTPSuggestionWebhook,
    SQLAlchemyArticleRepository,
)

router = APIRouter(prefix="/knowledge", tags=["Knowledge Base"])


# ========== Dependencies ==========

def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_provider_clients(request: Request) -> List[ILLMClient]:
    return getattr(request.app.state, "providers", [])


def get_retriever(
    db: AsyncSession = Depends(get_session),
    config: Settings = Depends(get_app_settings)
) -> KnowledgeRetriever:
    return KnowledgeRetriever(SQLAlchemyArticleRepository(db), max_results=config.rag_max_results)


def get_solution_service(
    retriever: KnowledgeRetriever = Depends(get_retriever),
    config: Settings = Depends(get_app_settings),
    providers: List[ILLMClient] = Depends(get_provider_clients)
) -> SolutionService:
    # Grounded answers always use Gemini; the mock stands in for local runs
    client = find_provider(providers, ProviderName.GEMINI) or find_provider(providers, ProviderName.MOCK)
    return SolutionService(
        retriever,
        client,
        model=config.rag_model,
        temperature=config.rag_temperature,
        top_p=config.rag_top_p,
        top_k=config.rag_top_k,
        max_tokens=config.rag_max_tokens,
        timeout_seconds=config.grounding_timeout_seconds
    )


def get_suggestion_service(
    retriever: KnowledgeRetriever = Depends(get_retriever),
    config: Settings = Depends(get_app_settings)
) -> SuggestionService:
    webhook = None
    if config.kb_suggestion_webhook_url:
        webhook = HTTPSuggestionWebhook(
            config.kb_suggestion_webhook_url,
            timeout_seconds=config.webhook_timeout_seconds
        )
    return SuggestionService(retriever, webhook)


# ========== Route Handlers ==========

@router.post(
    "/suggest",
    response_model=SuggestArticlesResponse,
    summary="Suggest knowledge articles for a ticket draft",
    description="""
    Published articles matching the draft's title and description, best
    match first, plus a suggested solution from the configured webhook when
    the draft is detailed enough.
    """
)
async def suggest_articles(
    payload: ArticleQueryRequest,
    service: SuggestionService = Depends(get_suggestion_service)
):
    suggestion = await service.suggest_articles(payload.to_domain())
    return SuggestArticlesResponse.from_domain(suggestion)


@router.post(
    "/ai-solution",
    response_model=AiSolutionResponse,
    summary="Generate a solution grounded in the knowledge base",
    description="""
    Answers the draft using only the retrieved articles. Returns
    `hasAnswer: false` when nothing relevant is found, the model declines,
    or the model call fails.
    """
)
async def generate_ai_solution(
    payload: ArticleQueryRequest,
    service: SolutionService = Depends(get_solution_service)
):
    result = await service.generate_ai_solution(payload.to_domain())
    return AiSolutionResponse.from_domain(result)
