"""
Assistant External Service Adapters
===================================

Adapters for collaborators that live outside the assistant:
- Runtime configuration file managed by administrators (YAML)
- Ticket service (HTTP)
"""

import asyncio
from pathlib import Path
from typing import Any, Dict, Optional

import httpx
import yaml

from helpdesk_assistant.assistant.application.services import (
    IRuntimeConfigProvider,
    ITicketingClient,
)
from helpdesk_assistant.assistant.domain import AssistantPolicy, CreatedTicket, TicketDraft
from helpdesk_assistant.core import ConfigurationException, TicketingException
from helpdesk_assistant.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


class YAMLRuntimeConfigProvider(IRuntimeConfigProvider):
    """
    Reads the ``assistant`` scope of the runtime configuration file.

    The file is read on every call so an administrator's change applies to
    the very next request. A missing file or scope means no restriction.

    Example file::

        assistant:
          enabled: true
          daily_limit: 20
    """

    SCOPE = "assistant"

    def __init__(self, config_path: Path):
        self._config_path = Path(config_path)

    async def get_assistant_policy(self) -> AssistantPolicy:
        data = await asyncio.to_thread(self._load_file)
        return self.parse_policy(data)

    def _load_file(self) -> Dict[str, Any]:
        if not self._config_path.exists():
            logger.debug(
                "Runtime config file not found, using defaults",
                extra={"path": str(self._config_path)}
            )
            return {}

        try:
            with open(self._config_path, "r") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationException(
                f"Malformed runtime config file: {self._config_path}",
                details={"error": str(e)}
            ) from e

        if not isinstance(data, dict):
            raise ConfigurationException(
                f"Runtime config file must contain a mapping: {self._config_path}"
            )
        return data

    @classmethod
    def parse_policy(cls, data: Dict[str, Any]) -> AssistantPolicy:
        """Build the policy from parsed file content."""
        scope = data.get(cls.SCOPE)
        if scope is None:
            return AssistantPolicy()
        if not isinstance(scope, dict):
            raise ConfigurationException(f"'{cls.SCOPE}' must be a mapping")

        enabled = scope.get("enabled", True)
        if not isinstance(enabled, bool):
            raise ConfigurationException(f"'{cls.SCOPE}.enabled' must be true or false")

        daily_limit = scope.get("daily_limit")
        if daily_limit is not None and (isinstance(daily_limit, bool) or not isinstance(daily_limit, int)):
            raise ConfigurationException(f"'{cls.SCOPE}.daily_limit' must be an integer or null")

        return AssistantPolicy(enabled=enabled, daily_limit=daily_limit)


class HTTPTicketingClient(ITicketingClient):
    """
    Client for the ticket service.

    Creates tickets with ``POST {base_url}/tickets``.
    """

    def __init__(
        self,
        base_url: str,
        api_token: Optional[str] = None,
        timeout_seconds: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self._base_url = base_url.rstrip("/")
        self._api_token = api_token
        self._timeout = timeout_seconds
        self._transport = transport

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._api_token:
            headers["Authorization"] = f"Bearer {self._api_token}"
        return headers

    async def create_ticket(self, requester_id: str, draft: TicketDraft) -> CreatedTicket:
        """
        Create a ticket on behalf of ``requester_id``.

        Raises:
            TicketingException: Ticket service unreachable or rejected the request
        """
        payload = {"requesterId": requester_id, **draft.to_payload()}

        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.post(
                    f"{self._base_url}/tickets",
                    json=payload,
                    headers=self._headers()
                )
                response.raise_for_status()
                body = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(
                "Ticket service rejected ticket",
                extra={"status_code": e.response.status_code, "team_id": draft.team_id}
            )
            raise TicketingException(
                f"Ticket service returned {e.response.status_code}",
                details={"status_code": e.response.status_code}
            ) from e
        except httpx.HTTPError as e:
            logger.error("Ticket service unreachable", extra={"error": str(e)})
            raise TicketingException(f"Ticket service unreachable: {e}") from e
        except ValueError as e:
            raise TicketingException("Ticket service returned invalid JSON") from e

        ticket = body.get("ticket", body) if isinstance(body, dict) else {}
        ticket_id = ticket.get("id") if isinstance(ticket, dict) else None
        if not ticket_id:
            raise TicketingException("Ticket service response has no ticket id")

        return CreatedTicket(id=str(ticket_id))
