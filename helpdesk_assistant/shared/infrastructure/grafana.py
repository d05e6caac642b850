"""
Grafana OTLP Metrics Exporter
==============================

Pushes generative-provider usage metrics to Grafana Cloud via OTLP.

Metrics exported:
- llm_tokens_total: Total tokens used (prompt + completion)
- llm_latency_ms: Provider call latency in milliseconds
- llm_requests_total: One data point per provider attempt, tagged with its outcome
"""

import base64
import time
from typing import Optional, Dict, Any, List

import httpx

from helpdesk_assistant.config import settings
from helpdesk_assistant.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

OTLP_METRICS_PATH = "/otlp/v1/metrics"


class GrafanaOTLPExporter:
    """
    Export provider metrics to Grafana Cloud via OTLP HTTP endpoint.

    Export is best effort: a failed push is logged and reported as False,
    never raised to the caller.
    """

    def __init__(
        self,
        host: Optional[str] = None,
        api_key: Optional[str] = None,
        instance_id: Optional[str] = None,
        timeout_seconds: float = 5.0
    ):
        self._host = host or settings.grafana_host
        self._api_key = api_key or settings.grafana_api_key
        self._instance_id = instance_id or settings.grafana_instance_id
        self._timeout = timeout_seconds
        self._enabled = bool(self._host and self._api_key and self._instance_id)

        if self._enabled:
            auth_pair = f"{self._instance_id}:{self._api_key}"
            self._auth_encoded = base64.b64encode(auth_pair.encode()).decode()
            # Don't double-append the path if host already includes it
            if OTLP_METRICS_PATH in self._host:
                self._url = self._host
            else:
                self._url = f"{self._host.rstrip('/')}{OTLP_METRICS_PATH}"
            logger.info(
                "Grafana OTLP exporter initialized",
                extra={"host": self._host, "instance_id": self._instance_id}
            )

    def is_enabled(self) -> bool:
        """Check if exporter is properly configured."""
        return self._enabled

    def build_llm_payload(
        self,
        provider: str,
        model: str,
        prompt_tokens: int,
        completion_tokens: int,
        latency_ms: int,
        operation: str,
        outcome: str,
        timestamp_ns: Optional[int] = None
    ) -> Dict[str, Any]:
        """Build the OTLP metrics document for a single provider attempt."""
        timestamp_ns = timestamp_ns or int(time.time() * 1_000_000_000)
        attributes = [
            _attribute("provider", provider),
            _attribute("model", model),
            _attribute("operation", operation),
            _attribute("outcome", outcome),
            _attribute("service", settings.app_name),
        ]

        def gauge(name: str, unit: str, description: str, value: int) -> Dict[str, Any]:
            return {
                "name": name,
                "unit": unit,
                "description": description,
                "gauge": {
                    "dataPoints": [
                        {"asInt": value, "timeUnixNano": timestamp_ns, "attributes": attributes}
                    ]
                }
            }

        metrics: List[Dict[str, Any]] = [
            gauge("llm_requests_total", "1", "Provider attempts", 1),
            gauge("llm_latency_ms", "ms", "Provider call latency in milliseconds", latency_ms),
        ]
        if outcome == "success":
            metrics.append(
                gauge(
                    "llm_tokens_total", "1", "Total tokens used in provider calls",
                    prompt_tokens + completion_tokens
                )
            )

        return {
            "resourceMetrics": [
                {
                    "resource": {
                        "attributes": [
                            _attribute("service.name", settings.app_name),
                            _attribute("service.version", settings.app_version),
                            _attribute("deployment.environment", settings.environment),
                        ]
                    },
                    "scopeMetrics": [{"metrics": metrics}]
                }
            ]
        }

    async def export_llm_metrics(
        self,
        provider: str,
        model: str,
        prompt_tokens: int = 0,
        completion_tokens: int = 0,
        latency_ms: int = 0,
        operation: str = "chat_completion",
        outcome: str = "success"
    ) -> bool:
        """
        Export provider usage metrics to Grafana.

        Returns:
            True if export succeeded, False otherwise
        """
        if not self._enabled:
            return False

        payload = self.build_llm_payload(
            provider, model, prompt_tokens, completion_tokens,
            latency_ms, operation, outcome
        )
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Basic {self._auth_encoded}",
            "X-Grafana-Org-Id": str(self._instance_id)
        }

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(self._url, headers=headers, json=payload)
        except httpx.HTTPError as e:
            logger.warning(
                "Error exporting metrics to Grafana",
                extra={"error": str(e), "provider": provider, "model": model}
            )
            return False

        if response.status_code in (200, 202):
            logger.debug(
                "LLM metrics exported to Grafana",
                extra={"provider": provider, "model": model, "outcome": outcome}
            )
            return True

        logger.warning(
            "Failed to export metrics to Grafana",
            extra={"status_code": response.status_code, "response": response.text[:500]}
        )
        return False


def _attribute(key: str, value: str) -> Dict[str, Any]:
    return {"key": key, "value": {"stringValue": str(value)}}


# Global exporter instance
_grafana_exporter: Optional[GrafanaOTLPExporter] = None


def get_grafana_exporter() -> Optional[GrafanaOTLPExporter]:
    """Get or create global Grafana exporter instance."""
    global _grafana_exporter
    if _grafana_exporter is None:
        _grafana_exporter = GrafanaOTLPExporter()
    return _grafana_exporter


def init_grafana_exporter(
    host: str,
    api_key: str,
    instance_id: str
) -> GrafanaOTLPExporter:
    """Initialize Grafana exporter with credentials."""
    global _grafana_exporter
    _grafana_exporter = GrafanaOTLPExporter(
        host=host,
        api_key=api_key,
        instance_id=instance_id
    )
    return _grafana_exporter
