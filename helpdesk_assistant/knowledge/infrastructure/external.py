"""
Knowledge External Service Adapters
===================================

HTTP client for the solution-suggestion webhook (an automation workflow
that answers ticket drafts).
"""

from typing import Any, Optional

import httpx

from helpdesk_assistant.knowledge.application.services import ISuggestionWebhook
from helpdesk_assistant.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


class HTTPSuggestionWebhook(ISuggestionWebhook):
    """
    Posts ``{title, description}`` and reads the suggested solution.

    Accepted response bodies: ``{"answer": ...}``, ``{"solution": ...}`` or
    plain text. Any failure yields None; ticket creation must not wait on it.
    """

    def __init__(
        self,
        url: str,
        timeout_seconds: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self._url = url
        self._timeout = timeout_seconds
        self._transport = transport

    @staticmethod
    def extract_solution(body: Any) -> Optional[str]:
        if isinstance(body, dict):
            return body.get("answer") or body.get("solution") or None
        if isinstance(body, str):
            return body or None
        return None

    async def fetch_solution(self, title: str, description: str) -> Optional[str]:
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.post(
                    self._url,
                    json={"title": title, "description": description}
                )
                response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning(
                "Suggestion webhook failed",
                extra={"error_type": type(e).__name__, "error": str(e), "url": self._url}
            )
            return None

        try:
            body = response.json()
        except ValueError:
            body = response.text

        solution = self.extract_solution(body)
        logger.info(
            "Suggestion webhook answered",
            extra={"has_solution": solution is not None, "title_length": len(title)}
        )
        return solution
