"""
Generation backend client.
"""

import asyncio
import os
import re
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import httpx
from pydantic import BaseModel, ConfigDict

from config import _env_float
from errors import BackendError

RESET_PART_REGEX = re.compile(r"([\d.]+)(ms|m|s)")
RESET_UNIT_SECONDS = {"ms": 0.001, "m": 60.0, "s": 1.0}


class LLMConfig(BaseModel):
    """Model runtime configuration."""

    model_config = ConfigDict(protected_namespaces=())

    model_name: str = "llama3:70b"
    api_url: Optional[str] = None
    api_key: Optional[str] = None
    provider: Optional[str] = None  # ollama | groq | openai | generic
    temperature: float = 0.7
    max_tokens: int = 420
    top_p: float = 0.9
    repeat_penalty: float = 1.12
    presence_penalty: float = 0.3
    frequency_penalty: float = 0.5
    timeout_sec: float = 60.0


class LLMService:
    """Chat-style text generation against an OpenAI-compatible or ollama endpoint."""

    def __init__(
        self,
        config: Optional[LLMConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config or LLMConfig(
            api_url=os.getenv("LLM_API_URL", "http://localhost:11434/api/chat"),
            api_key=os.getenv("LLM_API_KEY"),
            model_name=os.getenv("LLM_MODEL", "llama3:70b"),
            provider=os.getenv("LLM_PROVIDER"),
            presence_penalty=_env_float("LLM_PRESENCE_PENALTY", 0.3, 0.0, 2.0),
            frequency_penalty=_env_float("LLM_FREQUENCY_PENALTY", 0.5, 0.0, 2.0),
            timeout_sec=_env_float("LLM_TIMEOUT_SEC", 60.0, 1.0, 300.0),
        )
        self._transport = transport
        self.call_log_path = os.getenv("LLM_CALL_LOG", "llm_call_log.txt")
        self._min_call_interval = _env_float("LLM_MIN_CALL_INTERVAL_SEC", 0.0, 0.0, 10.0)
        self._throttle_lock = asyncio.Lock()
        self._last_call_ts = 0.0

    def _append_call_log(self, stage: str, status: str, detail: str = "") -> None:
        try:
            p = Path(__file__).resolve().parent / self.call_log_path
            p.parent.mkdir(parents=True, exist_ok=True)
            ts = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
            line = f"[{ts}] stage={stage} status={status} model={self.config.model_name} detail={detail}\n"
            with open(p, "a", encoding="utf-8") as f:
                f.write(line)
        except Exception:
            # Logging must never block generation path.
            pass

    @staticmethod
    def _parse_retry_after(response: httpx.Response) -> float:
        """Wait time from rate-limit headers, in seconds."""
        ra = response.headers.get("retry-after", "")
        if ra:
            try:
                return float(ra)
            except ValueError:
                pass
        # e.g. "1m26.4s", "305ms", "6.5s"
        for hdr in ("x-ratelimit-reset-tokens", "x-ratelimit-reset-requests"):
            val = response.headers.get(hdr, "")
            if not val:
                continue
            total = 0.0
            for amount, unit in RESET_PART_REGEX.findall(val):
                try:
                    n = float(amount)
                except ValueError:
                    continue
                total += n * RESET_UNIT_SECONDS[unit]
            if total > 0:
                return total
        return 2.0

    def is_openai_compatible(self) -> bool:
        provider = (self.config.provider or "").lower().strip()
        api_url = self.config.api_url or ""
        return (
            provider in ("groq", "openai")
            or "api.groq.com/openai/v1" in api_url
            or "api.openai.com/v1" in api_url
            or api_url.rstrip("/").endswith("/chat/completions")
        )

    def build_payload(self, messages: list[dict], temperature: float, max_tokens: int) -> dict:
        if self.is_openai_compatible():
            return {
                "model": self.config.model_name,
                "messages": messages,
                "temperature": temperature,
                "max_tokens": max_tokens,
                "top_p": self.config.top_p,
                "presence_penalty": self.config.presence_penalty,
                "frequency_penalty": self.config.frequency_penalty,
            }
        return {
            "model": self.config.model_name,
            "messages": messages,
            "stream": False,
            "options": {
                "temperature": temperature,
                "num_predict": max_tokens,
                "top_p": self.config.top_p,
                "repeat_penalty": self.config.repeat_penalty,
            },
        }

    def parse_response(self, result) -> str:
        if not isinstance(result, dict):
            raise BackendError("malformed", f"unexpected body type {type(result).__name__}")
        if self.is_openai_compatible():
            choices = result.get("choices")
            if not isinstance(choices, list) or not choices:
                raise BackendError("malformed", "no choices")
            first = choices[0]
            message = first.get("message") if isinstance(first, dict) else None
            if not isinstance(message, dict):
                raise BackendError("malformed", "choice without message")
            content = message.get("content")
        else:
            message = result.get("message")
            content = message.get("content") if isinstance(message, dict) else result.get("response")
        if not isinstance(content, str):
            raise BackendError("malformed", "missing content")
        return content.strip()

    def _headers(self) -> dict:
        headers = {"Content-Type": "application/json"}
        if self.config.api_key:
            headers["Authorization"] = f"Bearer {self.config.api_key}"
        return headers

    async def generate(
        self,
        messages: list[dict],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> str:
        """Send exactly one chat request; raise BackendError when no usable text comes back.

        No retry happens here. The rewrite pipeline owns the per-turn retry budget.
        """
        temp = self.config.temperature if temperature is None else temperature
        token_limit = self.config.max_tokens if max_tokens is None else max_tokens
        payload = self.build_payload(messages, temp, token_limit)
        api_url = self.config.api_url or ""

        async with self._throttle_lock:
            elapsed = time.time() - self._last_call_ts
            if elapsed < self._min_call_interval:
                await asyncio.sleep(self._min_call_interval - elapsed)
            try:
                self._append_call_log("request", "start", f"messages={len(messages)}")
                async with httpx.AsyncClient(timeout=self.config.timeout_sec, transport=self._transport) as client:
                    response = await client.post(api_url, json=payload, headers=self._headers())
            except httpx.TimeoutException as exc:
                self._append_call_log("request", "timeout", str(exc)[:200])
                raise BackendError("timeout", str(exc)[:200]) from exc
            except httpx.HTTPError as exc:
                self._append_call_log("request", "error", str(exc)[:200])
                raise BackendError("transport", str(exc)[:200]) from exc
            finally:
                self._last_call_ts = time.time()

        if response.status_code == 429:
            wait = self._parse_retry_after(response)
            self._append_call_log("request", "fail", f"http=429 retry_after={wait:.1f}s")
            raise BackendError("rate_limit", f"http=429 retry_after={wait:.1f}s")
        if response.status_code != 200:
            self._append_call_log("request", "fail", f"http={response.status_code}")
            raise BackendError("http_error", f"http={response.status_code}")

        self._append_call_log("request", "ok", "http=200")
        try:
            result = response.json()
        except ValueError as exc:
            raise BackendError("malformed", "body is not json") from exc
        return self.parse_response(result)


llm_service = LLMService()
