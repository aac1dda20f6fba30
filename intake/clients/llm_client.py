"""
Async client for the Ollama-compatible model endpoint.

Sends prompts (``/api/generate``) or chat histories (``/api/chat``) with the
configured sampling parameters and returns the model text unmodified. Every
call is bounded by ``timeout_ms``; transport failures are mapped to
``InvocationError`` and overruns to ``InvocationTimeout``.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any

import httpx

from intake.core import config as cfg
from intake.core.exceptions import InvocationError, InvocationTimeout
from intake.core.logging_utils import truncate_text

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ModelInvocationConfig:
    """Process-wide model endpoint and sampling configuration."""

    endpoint: str = cfg.DEFAULT_LLM_ENDPOINT
    model_name: str = cfg.DEFAULT_LLM_MODEL
    timeout_ms: int = cfg.DEFAULT_LLM_TIMEOUT_MS
    temperature: float = cfg.DEFAULT_TEMPERATURE
    top_p: float = cfg.DEFAULT_TOP_P
    max_tokens: int = cfg.DEFAULT_MAX_TOKENS
    stop_sequences: tuple[str, ...] = field(default=cfg.DEFAULT_STOP_SEQUENCES)

    def __post_init__(self) -> None:
        if self.timeout_ms <= 0:
            raise ValueError(f"timeout_ms must be > 0, got {self.timeout_ms}")

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000

    def sampling_options(self) -> dict[str, Any]:
        """Sampling parameters in the endpoint's ``options`` format."""
        return {
            "temperature": self.temperature,
            "top_p": self.top_p,
            "num_predict": self.max_tokens,
            "stop": list(self.stop_sequences),
        }

    @classmethod
    def from_settings(cls) -> "ModelInvocationConfig":
        """Build the config from ``LLMSettings`` (LLM_* environment variables)."""
        from intake.core.settings import llm_settings

        return cls(
            endpoint=llm_settings.LLM_BASE_URL,
            model_name=llm_settings.LLM_MODEL,
            timeout_ms=llm_settings.LLM_TIMEOUT_MS,
            temperature=llm_settings.LLM_TEMPERATURE,
            top_p=llm_settings.LLM_TOP_P,
            max_tokens=llm_settings.LLM_MAX_TOKENS,
            stop_sequences=tuple(llm_settings.LLM_STOP),
        )


def _error_body(response: httpx.Response) -> str:
    try:
        return response.text[: cfg.ERROR_BODY_MAX_CHARS]
    except Exception:
        return ""


class ModelInvoker:
    """Talks to the model endpoint; performs no interpretation of output.

    Args:
        transport: Optional httpx transport (``httpx.MockTransport`` in tests)
        verify: Verify TLS certificates
    """

    def __init__(
        self,
        transport: httpx.AsyncBaseTransport | None = None,
        verify: bool = True,
    ) -> None:
        self._transport = transport
        self._verify = verify

    async def invoke(self, prompt: str, config: ModelInvocationConfig) -> str:
        """Generate a completion for ``prompt``.

        Raises:
            InvocationTimeout: Call exceeded ``config.timeout_ms``
            InvocationError: Connection, status or envelope failure
        """
        payload = {
            "model": config.model_name,
            "prompt": prompt,
            "stream": False,
            "format": "json",
            "options": config.sampling_options(),
        }
        logger.debug(
            f"LLM generate: model={config.model_name} prompt={truncate_text(prompt)}"
        )
        envelope = await self._post(cfg.LLM_GENERATE_PATH, payload, config)

        text = envelope.get("response")
        if not isinstance(text, str):
            raise InvocationError(
                "response envelope missing 'response' text",
                details={"keys": sorted(envelope.keys())},
            )
        return text

    async def chat(
        self, messages: list[dict[str, str]], config: ModelInvocationConfig
    ) -> dict[str, str]:
        """Send a chat history and return the assistant message.

        Raises:
            InvocationTimeout: Call exceeded ``config.timeout_ms``
            InvocationError: Connection, status or envelope failure
        """
        payload = {
            "model": config.model_name,
            "messages": messages,
            "stream": False,
            "options": config.sampling_options(),
        }
        logger.debug(f"LLM chat: model={config.model_name} messages={len(messages)}")
        envelope = await self._post(cfg.LLM_CHAT_PATH, payload, config)

        message = envelope.get("message")
        if not isinstance(message, dict) or not isinstance(message.get("content"), str):
            raise InvocationError(
                "chat envelope missing 'message.content'",
                details={"keys": sorted(envelope.keys())},
            )
        return {
            "role": message.get("role") or "assistant",
            "content": message["content"],
        }

    async def _post(
        self, path: str, payload: dict[str, Any], config: ModelInvocationConfig
    ) -> dict[str, Any]:
        start = time.perf_counter()
        try:
            envelope = await asyncio.wait_for(
                self._send(path, payload, config),
                timeout=config.timeout_seconds,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            logger.warning(
                f"LLM call timed out after {config.timeout_ms}ms",
                extra={"service": "LLM", "model": config.model_name},
            )
            raise InvocationTimeout(config.timeout_ms) from e

        duration_ms = round((time.perf_counter() - start) * 1000, 2)
        logger.info(
            f"LLM call completed in {duration_ms}ms",
            extra={
                "service": "LLM",
                "model": config.model_name,
                "duration_ms": duration_ms,
            },
        )
        return envelope

    async def _send(
        self, path: str, payload: dict[str, Any], config: ModelInvocationConfig
    ) -> dict[str, Any]:
        async with httpx.AsyncClient(
            base_url=config.endpoint,
            timeout=config.timeout_seconds,
            verify=self._verify,
            transport=self._transport,
        ) as client:
            try:
                response = await client.post(path, json=payload)
                response.raise_for_status()
            except httpx.HTTPStatusError as e:
                raise InvocationError(
                    f"HTTP {e.response.status_code}",
                    details={
                        "http_code": e.response.status_code,
                        "body": _error_body(e.response),
                    },
                ) from e
            except httpx.TimeoutException:
                raise
            except httpx.HTTPError as e:
                raise InvocationError(f"{type(e).__name__}: {e}") from e

        try:
            envelope = response.json()
        except ValueError as e:
            raise InvocationError(
                "response envelope is not JSON",
                details={"body": _error_body(response)},
            ) from e

        if not isinstance(envelope, dict):
            raise InvocationError("response envelope is not a JSON object")
        return envelope
