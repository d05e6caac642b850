"""
Knowledge Infrastructure Models
===============================

SQLAlchemy ORM models for knowledge articles. The articles are authored
elsewhere in the platform; this module only reads them.
"""

from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from helpdesk_assistant.infrastructure.database import Base
from helpdesk_assistant.knowledge.domain import ArticleStatus


class KbArticleModel(Base):
    """Database model for KnowledgeArticle entity."""
    __tablename__ = "kb_articles"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    category_id: Mapped[Optional[str]] = mapped_column(String(64), index=True, nullable=True)
    status: Mapped[ArticleStatus] = mapped_column(
        String(20), nullable=False, default=ArticleStatus.DRAFT.value, index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc)
    )

    tags: Mapped[List["KbArticleTagModel"]] = relationship(
        back_populates="article",
        lazy="selectin",
        cascade="all, delete-orphan"
    )


class KbArticleTagModel(Base):
    """One tag of an article."""
    __tablename__ = "kb_article_tags"

    article_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("kb_articles.id", ondelete="CASCADE"),
        primary_key=True
    )
    tag: Mapped[str] = mapped_column(String(100), primary_key=True, index=True)

    article: Mapped[KbArticleModel] = relationship(back_populates="tags")
