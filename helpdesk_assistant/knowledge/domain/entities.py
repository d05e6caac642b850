"""
Knowledge Domain Entities
=========================

Domain entities for knowledge-base retrieval and grounded solutions.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional


class ArticleStatus(str, Enum):
    """Publication state of a knowledge article."""
    DRAFT = "DRAFT"
    PUBLISHED = "PUBLISHED"
    ARCHIVED = "ARCHIVED"


@dataclass
class KnowledgeArticle:
    """A knowledge-base article as read from the shared store."""
    id: str
    title: str
    content: str
    tags: List[str] = field(default_factory=list)
    category_id: Optional[str] = None
    status: ArticleStatus = ArticleStatus.PUBLISHED
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True)
class ArticleQuery:
    """
    Problem statement of a ticket being drafted.

    ``title`` and ``description`` are matched case-insensitively.
    """
    title: str
    description: str = ""
    category_id: Optional[str] = None

    MIN_LENGTH = 5

    @property
    def search_text(self) -> str:
        return f"{self.title} {self.description}".lower()

    @property
    def tokens(self) -> List[str]:
        """Whitespace-split tokens of the search text, without duplicates."""
        return list(dict.fromkeys(self.search_text.split()))

    @property
    def is_too_short(self) -> bool:
        """Both fields shorter than the minimum; not worth a lookup."""
        return (
            len(self.title.strip()) < self.MIN_LENGTH
            and len(self.description.strip()) < self.MIN_LENGTH
        )


class RelevanceScorer:
    """
    Re-ranks retrieved articles.

    Weights: input title in article title +10, input title in article
    content +5, input description in article content +3.
    """

    TITLE_IN_TITLE = 10
    TITLE_IN_CONTENT = 5
    DESCRIPTION_IN_CONTENT = 3

    @classmethod
    def score(cls, article: KnowledgeArticle, query: ArticleQuery) -> int:
        title = query.title.lower()
        description = query.description.lower()
        article_title = article.title.lower()
        article_content = article.content.lower()

        score = 0
        if title in article_title:
            score += cls.TITLE_IN_TITLE
        if title in article_content:
            score += cls.TITLE_IN_CONTENT
        if description in article_content:
            score += cls.DESCRIPTION_IN_CONTENT
        return score

    @classmethod
    def rank(cls, articles: List[KnowledgeArticle], query: ArticleQuery) -> List[KnowledgeArticle]:
        """Descending by score; equal scores keep their incoming order."""
        return sorted(articles, key=lambda a: cls.score(a, query), reverse=True)


@dataclass(frozen=True)
class SourceArticle:
    """Article reference returned alongside a grounded solution."""
    id: str
    title: str


@dataclass
class AiSolution:
    """Result of a grounded generation attempt."""
    solution: str = ""
    source_articles: List[SourceArticle] = field(default_factory=list)
    has_answer: bool = False

    @classmethod
    def no_answer(cls) -> "AiSolution":
        return cls()


@dataclass
class ArticleSuggestion:
    """Relevant articles plus an optional solution from the suggestion webhook."""
    articles: List[KnowledgeArticle]
    ai_solution: Optional[str] = None


class SolutionPromptBuilder:
    """
    Builds the grounding prompt for knowledge-base answers.

    The model must answer from the supplied articles only, or reply with
    NO_ANSWER_SENTINEL.
    """

    NO_ANSWER_SENTINEL = "NO_ANSWER"

    PROMPT_TEMPLATE = """You are a friendly, helpful technical support assistant. Your job is to help users solve technical problems in a clear, conversational way.

AVAILABLE KNOWLEDGE BASE:
{context}

PROBLEM REPORTED BY THE USER:
{problem}

IMPORTANT INSTRUCTIONS:
1. Decide whether the KNOWLEDGE BASE contains information relevant to the USER'S PROBLEM.
2. If it does, write a CONVERSATIONAL, FRIENDLY answer, as if you were talking directly to the user.
3. Do NOT copy the documentation verbatim. Turn it into a natural explanation that is easy to follow.
4. Use simple, direct language and avoid unnecessary jargon.
5. If the knowledge base is NOT related to the problem, reply only "{sentinel}".
6. Do NOT invent information that is not in the knowledge base.

ANSWER FORMAT:
- Start by acknowledging the problem
- Explain the solution step by step
- Use Markdown only for basic formatting (bold, lists, code when needed)

Now, based on the KNOWLEDGE BASE above, answer the USER'S PROBLEM:"""

    @classmethod
    def render_context(cls, articles: List[KnowledgeArticle]) -> str:
        return "\n".join(
            f"Title: {a.title}\nContent: {a.content}\n---\n" for a in articles
        )

    @classmethod
    def build(cls, articles: List[KnowledgeArticle], query: ArticleQuery) -> str:
        return cls.PROMPT_TEMPLATE.format(
            context=cls.render_context(articles),
            problem=f"{query.title}\n{query.description}",
            sentinel=cls.NO_ANSWER_SENTINEL,
        )

    @classmethod
    def is_no_answer(cls, text: Optional[str]) -> bool:
        stripped = (text or "").strip()
        return not stripped or stripped == cls.NO_ANSWER_SENTINEL
