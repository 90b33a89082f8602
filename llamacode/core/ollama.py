"""Async client for the Ollama chat endpoint."""

from __future__ import annotations

import json
import logging
from typing import Any, AsyncIterator

import httpx
import ollama

logger = logging.getLogger("llamacode.ollama")

DEFAULT_OLLAMA_URL = "http://localhost:11434"


class UpstreamError(RuntimeError):
    """The model endpoint could not be reached or answered with an error."""


class OllamaClient:
    """Wrapper around ollama.AsyncClient plus a raw NDJSON stream reader.

    Blocking chat and the model catalog go through the official SDK. The
    streaming path reads the response body line by line with httpx so a single
    malformed fragment is skipped instead of aborting the whole answer.
    """

    def __init__(
        self,
        base_url: str | None = None,
        model: str = "qwen2.5-coder:14b",
        temperature: float = 0.7,
        timeout: float = 300.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.host = (base_url or DEFAULT_OLLAMA_URL).rstrip("/")
        self.model = model
        self.temperature = temperature

        logger.info(f"Initializing Ollama client for host: {self.host}, model: {self.model}, timeout: {timeout}s")
        extra: dict[str, Any] = {"transport": transport} if transport is not None else {}
        self._client = ollama.AsyncClient(host=self.host, timeout=timeout, **extra)
        self._http = httpx.AsyncClient(base_url=self.host, timeout=timeout, **extra)

    @classmethod
    def from_config(cls, cfg: Any) -> OllamaClient:
        return cls(
            base_url=cfg.ollama_url,
            model=cfg.ollama_model,
            temperature=cfg.ollama_temperature,
            timeout=cfg.ollama_timeout,
        )

    async def close(self) -> None:
        await self._http.aclose()
        await self._client.close()

    def _payload(self, messages: list[dict[str, Any]], stream: bool) -> dict[str, Any]:
        return {
            "model": self.model,
            "messages": messages,
            "stream": stream,
            "options": {"temperature": self.temperature},
        }

    async def health_check(self) -> bool:
        """Check if the endpoint root is reachable."""
        try:
            resp = await self._http.get("/")
            return resp.is_success
        except Exception as e:
            logger.debug(f"Health check failed for {self.host}: {e}")
            return False

    async def list_models(self) -> list[str]:
        """List model names from the endpoint catalog."""
        try:
            response = await self._client.list()
        except (ollama.ResponseError, httpx.HTTPError, ConnectionError) as e:
            logger.error(f"Failed to list models: {e}")
            raise UpstreamError(f"Failed to list models: {e}") from e

        if hasattr(response, "models"):
            models = response.models
        else:
            models = response.get("models", [])

        names: list[str] = []
        for model in models:
            data = model.model_dump() if hasattr(model, "model_dump") else dict(model)
            name = data.get("model") or data.get("name")
            if name:
                names.append(name)
        return names

    async def complete(self, messages: list[dict[str, Any]]) -> str:
        """Blocking chat completion; returns the assistant message content."""
        payload = self._payload(messages, stream=False)
        try:
            response = await self._client.chat(
                model=payload["model"],
                messages=payload["messages"],
                stream=False,
                options=payload["options"],
            )
        except (ollama.ResponseError, httpx.HTTPError, ConnectionError) as e:
            logger.error(f"Ollama chat error: {e}")
            raise UpstreamError(f"Ollama API error: {e}") from e

        return response.message.content or ""

    async def complete_stream(self, messages: list[dict[str, Any]]) -> AsyncIterator[str]:
        """Streaming chat completion yielding content deltas as they arrive."""
        payload = self._payload(messages, stream=True)
        try:
            async with self._http.stream("POST", "/api/chat", json=payload) as resp:
                if resp.is_error:
                    body = (await resp.aread()).decode(errors="replace")
                    raise UpstreamError(
                        f"Ollama API error: status {resp.status_code}: {body.strip()[:500]}"
                    )
                async for line in resp.aiter_lines():
                    if not line.strip():
                        continue
                    try:
                        data = json.loads(line)
                    except json.JSONDecodeError:
                        logger.debug(f"Skipping malformed stream fragment: {line[:200]!r}")
                        continue
                    if not isinstance(data, dict):
                        continue
                    if data.get("error"):
                        raise UpstreamError(f"Ollama API error: {data['error']}")
                    message = data.get("message")
                    content = message.get("content") if isinstance(message, dict) else None
                    if content:
                        yield content
        except httpx.HTTPError as e:
            logger.error(f"Ollama stream error: {e}")
            raise UpstreamError(f"Ollama API error: {e}") from e
