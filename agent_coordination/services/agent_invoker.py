from __future__ import annotations

import time
from typing import Any, Literal, Protocol, runtime_checkable

import httpx
from pydantic import BaseModel, Field, ValidationError
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_random_exponential

from ..core import metrics
from ..core.config import AgentInvokerSettings
from ..core.exceptions import AgentInvocationError
from ..core.logging import get_logger
from ..schemas.coordination import AgentResult, AgentTaskRequest, Confidence

logger = get_logger(name=__name__)


@runtime_checkable
class AgentInvoker(Protocol):
    """Executes one remote agent task. Any raised error is final for that attempt."""

    async def invoke(self, agent_type: str, request: AgentTaskRequest) -> AgentResult:
        ...


class RemoteAgentResponse(BaseModel):
    """Body returned by ``POST /{agent_type}/execute``."""

    agent_type: str
    task_id: str
    execution_id: str = ""
    status: Literal["success", "partial_success", "failure", "timeout"]
    result_data: dict[str, Any] = Field(default_factory=dict)
    confidence_score: Confidence
    execution_time_ms: float = Field(default=0.0, ge=0.0)
    cost_cents: float = Field(default=0.0, ge=0.0)
    error_message: str | None = None
    warnings: list[str] = Field(default_factory=list)

    def to_agent_result(self) -> AgentResult:
        error: str | None = None
        if self.status in {"failure", "timeout"}:
            error = self.error_message or f"Agent reported status '{self.status}'"
        return AgentResult(
            result_data=self.result_data,
            confidence_score=self.confidence_score,
            cost_units=self.cost_cents,
            execution_time_ms=self.execution_time_ms,
            error=error,
            warnings=self.warnings,
        )


class _RetryableStatusError(Exception):
    def __init__(self, response: httpx.Response) -> None:
        super().__init__(f"Retryable status {response.status_code}")
        self.response = response


class HttpAgentInvoker:
    RETRY_STATUS_CODES = {408, 409, 425, 429, 500, 502, 503, 504}

    def __init__(self, settings: AgentInvokerSettings, *, client: httpx.AsyncClient | None = None) -> None:
        self._settings = settings
        self._owns_client = client is None
        headers = {"Content-Type": "application/json", "User-Agent": settings.user_agent}
        if settings.api_key:
            headers["Authorization"] = f"Bearer {settings.api_key}"
        self._client = client or httpx.AsyncClient(
            base_url=settings.base_url.rstrip("/"),
            timeout=httpx.Timeout(settings.timeout_seconds),
            headers=headers,
            verify=settings.verify_ssl,
        )
        if client is not None:
            self._client.headers.update(headers)

    async def __aenter__(self) -> "HttpAgentInvoker":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def invoke(self, agent_type: str, request: AgentTaskRequest) -> AgentResult:
        response = await self._post_with_retries(agent_type, request)
        try:
            remote = RemoteAgentResponse.model_validate(response.json())
        except (ValidationError, ValueError) as exc:
            metrics.record_agent_invoker_request(agent=agent_type, outcome="invalid_response")
            raise AgentInvocationError(
                f"Agent '{agent_type}' returned an invalid response: {exc}",
                agent_type=agent_type,
                task_id=request.task_id,
                status_code=response.status_code,
                cause=exc,
            ) from exc
        metrics.record_agent_invoker_request(agent=agent_type, outcome="success")
        return remote.to_agent_result()

    async def health_check(self, agent_type: str) -> dict[str, Any]:
        start = time.perf_counter()
        try:
            response = await self._client.get(f"/{agent_type}/health")
            response.raise_for_status()
            body = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("agent_health_check_failed", agent_type=agent_type, error=str(exc))
            return {"agent_type": agent_type, "status": "error", "response_time_ms": 0.0, "error": str(exc)}
        return {
            "agent_type": agent_type,
            "status": body.get("status", "online") if isinstance(body, dict) else "online",
            "response_time_ms": (time.perf_counter() - start) * 1000,
        }

    async def _post_with_retries(self, agent_type: str, request: AgentTaskRequest) -> httpx.Response:
        payload = request.model_dump(mode="json")
        path = f"/{agent_type}/execute"
        attempts = self._settings.max_retries + 1
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(attempts),
                wait=wait_random_exponential(
                    multiplier=self._settings.retry_backoff_seconds,
                    max=self._settings.max_backoff_seconds,
                ),
                retry=retry_if_exception_type((_RetryableStatusError, httpx.TransportError)),
                reraise=True,
            ):
                with attempt:
                    number = attempt.retry_state.attempt_number
                    try:
                        response = await self._client.post(path, json=payload)
                    except httpx.TransportError as exc:
                        metrics.record_agent_invoker_request(agent=agent_type, outcome="transport_error")
                        logger.warning(
                            "agent_request_error",
                            agent_type=agent_type,
                            attempt=number,
                            max_attempts=attempts,
                            error=str(exc),
                        )
                        raise
                    if response.status_code in self.RETRY_STATUS_CODES:
                        metrics.record_agent_invoker_request(agent=agent_type, outcome="retryable_status")
                        logger.warning(
                            "agent_request_retryable_status",
                            agent_type=agent_type,
                            attempt=number,
                            max_attempts=attempts,
                            status=response.status_code,
                        )
                        raise _RetryableStatusError(response)
                    response.raise_for_status()
                    return response
        except _RetryableStatusError as exc:
            raise AgentInvocationError(
                f"Agent '{agent_type}' unavailable after {attempts} attempts (status {exc.response.status_code})",
                agent_type=agent_type,
                task_id=request.task_id,
                status_code=exc.response.status_code,
                cause=exc,
            ) from exc
        except httpx.HTTPStatusError as exc:
            metrics.record_agent_invoker_request(agent=agent_type, outcome="rejected")
            raise AgentInvocationError(
                f"Agent '{agent_type}' rejected the request (status {exc.response.status_code})",
                agent_type=agent_type,
                task_id=request.task_id,
                status_code=exc.response.status_code,
                cause=exc,
            ) from exc
        except httpx.RequestError as exc:
            raise AgentInvocationError(
                f"Agent '{agent_type}' request failed after {attempts} attempts: {exc}",
                agent_type=agent_type,
                task_id=request.task_id,
                cause=exc,
            ) from exc
        raise AgentInvocationError(  # pragma: no cover - AsyncRetrying always returns or raises
            f"Agent '{agent_type}' request did not complete",
            agent_type=agent_type,
            task_id=request.task_id,
        )


__all__ = ["AgentInvoker", "HttpAgentInvoker", "RemoteAgentResponse"]
