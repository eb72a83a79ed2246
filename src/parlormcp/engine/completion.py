"""Completion service protocol, classified errors and concrete clients."""

from __future__ import annotations

import asyncio
import json
from enum import Enum
from typing import Protocol
from urllib.error import HTTPError
from urllib.error import URLError
from urllib.request import Request
from urllib.request import urlopen

from parlormcp.config import CompletionConfig


class CompletionErrorKind(str, Enum):
    timeout = "timeout"
    network = "network"
    rate_limit = "rate_limit"
    auth = "auth"
    unknown = "unknown"


_TRANSIENT_KINDS = frozenset(
    {
        CompletionErrorKind.timeout,
        CompletionErrorKind.network,
        CompletionErrorKind.rate_limit,
    }
)


class CompletionError(Exception):
    """Raised by completion services with a retry classification."""

    def __init__(self, kind: CompletionErrorKind, message: str = "") -> None:
        super().__init__(message or kind.value)
        self.kind = kind

    @property
    def transient(self) -> bool:
        return self.kind in _TRANSIENT_KINDS


class CompletionService(Protocol):
    """External text-completion provider.

    Implementations raise ``CompletionError`` for every failure so the
    generator can decide between retrying and degrading.
    """

    async def complete(
        self,
        prompt: str,
        *,
        system_prompt: str = "",
        temperature: float = 0.8,
        max_tokens: int = 300,
        timeout_seconds: float = 15.0,
    ) -> str: ...


def classify_http_status(status: int) -> CompletionErrorKind:
    if status in (401, 403):
        return CompletionErrorKind.auth
    if status == 429:
        return CompletionErrorKind.rate_limit
    if status in (408, 504):
        return CompletionErrorKind.timeout
    if status >= 500:
        return CompletionErrorKind.network
    return CompletionErrorKind.unknown


class NoopCompletionService(CompletionService):
    """Deterministic service that never produces text."""

    async def complete(
        self,
        prompt: str,
        *,
        system_prompt: str = "",
        temperature: float = 0.8,
        max_tokens: int = 300,
        timeout_seconds: float = 15.0,
    ) -> str:
        del prompt, system_prompt, temperature, max_tokens, timeout_seconds
        return ""


class OpenAICompatibleCompletionService(CompletionService):
    """OpenAI-compatible chat-completions client."""

    def __init__(
        self,
        *,
        model: str,
        api_key: str,
        base_url: str = "https://api.openai.com/v1",
    ) -> None:
        self._model = model
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")

    async def complete(
        self,
        prompt: str,
        *,
        system_prompt: str = "",
        temperature: float = 0.8,
        max_tokens: int = 300,
        timeout_seconds: float = 15.0,
    ) -> str:
        return await asyncio.to_thread(
            self._complete_sync,
            prompt,
            system_prompt=system_prompt,
            temperature=temperature,
            max_tokens=max_tokens,
            timeout_seconds=timeout_seconds,
        )

    def _complete_sync(
        self,
        prompt: str,
        *,
        system_prompt: str,
        temperature: float,
        max_tokens: int,
        timeout_seconds: float,
    ) -> str:
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})
        payload = {
            "model": self._model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        request = Request(
            url=f"{self._base_url}/chat/completions",
            data=json.dumps(payload).encode("utf-8"),
            headers={
                "Authorization": f"Bearer {self._api_key}",
                "Content-Type": "application/json",
            },
            method="POST",
        )
        try:
            with urlopen(request, timeout=timeout_seconds) as response:
                raw = response.read().decode("utf-8")
        except HTTPError as exc:
            detail = exc.read().decode("utf-8", errors="replace")
            raise CompletionError(
                classify_http_status(exc.code),
                f"provider HTTP {exc.code}: {detail[:200]}",
            ) from exc
        except URLError as exc:
            kind = (
                CompletionErrorKind.timeout
                if isinstance(exc.reason, TimeoutError)
                else CompletionErrorKind.network
            )
            raise CompletionError(kind, f"provider network error: {exc.reason}") from exc
        except TimeoutError as exc:
            raise CompletionError(
                CompletionErrorKind.timeout, "provider timed out"
            ) from exc
        except OSError as exc:
            raise CompletionError(
                CompletionErrorKind.network, f"provider IO error: {exc}"
            ) from exc

        try:
            data = json.loads(raw)
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError, ValueError) as exc:
            raise CompletionError(
                CompletionErrorKind.unknown,
                "provider response missing choices[0].message.content",
            ) from exc

        if isinstance(content, str):
            return content
        raise CompletionError(
            CompletionErrorKind.unknown, "provider response content must be a string"
        )


def build_completion_service(config: CompletionConfig) -> CompletionService:
    """Create a concrete service from ``CompletionConfig``."""

    provider = config.provider.strip().lower()
    if provider == "openai":
        if not config.api_key:
            raise ValueError(
                "completion_config.api_key is required when provider='openai'"
            )
        return OpenAICompatibleCompletionService(
            model=config.model,
            api_key=config.api_key,
            base_url=config.base_url,
        )
    if provider == "noop":
        return NoopCompletionService()
    raise ValueError(
        f"Unsupported completion_config.provider '{config.provider}'. "
        "Supported providers: openai, noop."
    )
