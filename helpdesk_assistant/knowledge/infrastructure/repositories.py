"""
Knowledge Infrastructure Repositories
=====================================

SQLAlchemy implementation of the article lookup.
"""

from datetime import timezone
from typing import List, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk_assistant.infrastructure.database import translate_store_errors
from helpdesk_assistant.knowledge.application.services import IArticleRepository
from helpdesk_assistant.knowledge.domain import ArticleStatus, KnowledgeArticle
from helpdesk_assistant.knowledge.infrastructure.models import KbArticleModel, KbArticleTagModel


def _to_domain(model: KbArticleModel) -> KnowledgeArticle:
    updated_at = model.updated_at
    if updated_at.tzinfo is None:
        updated_at = updated_at.replace(tzinfo=timezone.utc)
    return KnowledgeArticle(
        id=model.id,
        title=model.title,
        content=model.content,
        tags=[t.tag for t in model.tags],
        category_id=model.category_id,
        status=ArticleStatus(model.status),
        updated_at=updated_at
    )


class SQLAlchemyArticleRepository(IArticleRepository):
    """Case-insensitive substring and tag matching over published articles."""

    def __init__(self, session: AsyncSession):
        self._session = session

    @translate_store_errors
    async def search_published(
        self,
        search_text: str,
        tokens: List[str],
        category_id: Optional[str],
        limit: int
    ) -> List[KnowledgeArticle]:
        matches = [
            func.lower(KbArticleModel.title).contains(search_text, autoescape=True),
            func.lower(KbArticleModel.content).contains(search_text, autoescape=True),
        ]
        if tokens:
            tagged = select(KbArticleTagModel.article_id).where(
                func.lower(KbArticleTagModel.tag).in_(tokens)
            )
            matches.append(KbArticleModel.id.in_(tagged))

        stmt = select(KbArticleModel).where(
            KbArticleModel.status == ArticleStatus.PUBLISHED.value,
            or_(*matches)
        )
        if category_id:
            stmt = stmt.where(KbArticleModel.category_id == category_id)
        stmt = stmt.order_by(KbArticleModel.updated_at.desc()).limit(limit)

        result = await self._session.execute(stmt)
        return [_to_domain(m) for m in result.scalars().all()]
