"""Model gateway: the single rate-limited channel to Gemini.

Returns raw model text and never interprets it. Failure policy:
- pacing gate before every request (see RequestPacer)
- hard timeout per request, no retry on timeout
- HTTP 429: sleep for retry-after (header, RetryInfo detail, or default) and retry exactly once
- other 4xx/5xx and safety blocks: UpstreamError, never retried
"""

import asyncio
import re
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Optional

from loguru import logger
from tenacity import AsyncRetrying, RetryCallState, retry_if_exception_type, stop_after_attempt

from google import genai
from google.genai import errors, types

from contact_scout.agent.models import Viewport
from contact_scout.browser.sanitize import mask_secrets
from contact_scout.config import GatewaySettings
from contact_scout.errors import GatewayTimeout, RateLimited, UpstreamError
from contact_scout.gateway.pacing import RequestPacer
from contact_scout.gateway.prompts import build_action_prompt


SAFETY_FINISH_REASONS = {"SAFETY", "PROHIBITED_CONTENT", "BLOCKLIST", "SPII", "IMAGE_SAFETY"}

SAFETY_CATEGORIES = [
    types.HarmCategory.HARM_CATEGORY_HARASSMENT,
    types.HarmCategory.HARM_CATEGORY_HATE_SPEECH,
    types.HarmCategory.HARM_CATEGORY_SEXUALLY_EXPLICIT,
    types.HarmCategory.HARM_CATEGORY_DANGEROUS_CONTENT,
]

_RETRY_DELAY_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*s?\s*$")


@dataclass
class GatewayRequest:
    """One prompt (plus optional PNG screenshot) for the model"""
    prompt: str
    image: Optional[bytes] = None
    max_output_tokens: int = 60
    temperature: float = 0.1
    top_k: Optional[int] = None
    top_p: Optional[float] = None


def _enum_name(value: Any) -> str:
    return getattr(value, "name", None) or str(value or "")


class ModelGateway:
    """Rate-limited, timeout-bounded, retry-once channel to the Gemini API"""

    def __init__(
        self,
        settings: Optional[GatewaySettings] = None,
        pacer: Optional[RequestPacer] = None,
        client: Optional[Any] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        correlation_id: str = "N/A",
    ):
        """
        Args:
            settings: Gateway settings (model, rpm, timeout, default retry-after)
            pacer: Shared pacing gate; a private one is created from settings if omitted
            client: Pre-built genai.Client (tests inject a mock)
            sleep: Awaitable sleep used for the 429 back-off
            correlation_id: Prefix for log lines
        """
        self.settings = settings or GatewaySettings()
        self.pacer = pacer or RequestPacer(self.settings.requests_per_minute)
        self.sleep = sleep
        self.correlation_id = correlation_id
        self.calls = 0

        if client is not None:
            self.client = client
        elif self.settings.api_key:
            self.client = genai.Client(api_key=self.settings.api_key)
            logger.info(f"[{self.correlation_id}] Gemini gateway configured (model: {self.settings.model})")
        else:
            self.client = None
            logger.warning(f"[{self.correlation_id}] Gemini API key not found. Set GOOGLE_API_KEY or GEMINI_API_KEY.")

    async def decide(self, image: bytes, instruction_context: str, viewport: Optional[Viewport] = None) -> str:
        """Ask the model for the next browser action; returns raw text"""
        prompt = build_action_prompt(
            instruction_context,
            viewport.width if viewport else None,
            viewport.height if viewport else None,
        )
        request = GatewayRequest(
            prompt=prompt,
            image=image,
            max_output_tokens=self.settings.action_max_output_tokens,
            temperature=self.settings.action_temperature,
            top_k=self.settings.action_top_k,
            top_p=self.settings.action_top_p,
        )
        return await self.generate(request)

    async def generate(self, request: GatewayRequest) -> str:
        """Send one request through the pacing gate with the single-retry 429 policy"""
        retrying = AsyncRetrying(
            stop=stop_after_attempt(2),
            wait=self._rate_limit_wait,
            retry=retry_if_exception_type(RateLimited),
            before_sleep=self._log_rate_limit_retry,
            sleep=self.sleep,
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    await self.pacer.wait_turn()
                    text = await self._send(request)
        except RateLimited:
            logger.error(f"[{self.correlation_id}] Gemini still rate limited after retry")
            raise
        await self.pacer.record_success()
        return text

    def _rate_limit_wait(self, retry_state: RetryCallState) -> float:
        return retry_state.outcome.exception().retry_after_seconds

    def _log_rate_limit_retry(self, retry_state: RetryCallState):
        logger.warning(
            f"[{self.correlation_id}] Gemini returned 429, retrying once after "
            f"{self._rate_limit_wait(retry_state):.1f}s"
        )

    async def _send(self, request: GatewayRequest) -> str:
        """Issue one HTTP request and translate failures into the gateway taxonomy"""
        if self.client is None:
            raise UpstreamError(None, "Gemini client not configured. Set GOOGLE_API_KEY or GEMINI_API_KEY.")

        self.calls += 1
        try:
            response = await asyncio.wait_for(
                self.client.aio.models.generate_content(
                    model=self.settings.model,
                    contents=self._build_contents(request),
                    config=self._build_config(request),
                ),
                timeout=self.settings.timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.error(f"[{self.correlation_id}] Gemini request timed out after {self.settings.timeout_seconds}s")
            raise GatewayTimeout(self.settings.timeout_seconds)
        except errors.APIError as e:
            status = getattr(e, "code", None)
            message = mask_secrets(getattr(e, "message", None) or str(e))
            if status == 429:
                raise RateLimited(self._retry_after_seconds(e))
            logger.error(f"[{self.correlation_id}] Gemini API error {status}: {message}")
            raise UpstreamError(status, message)
        except Exception as e:
            message = mask_secrets(str(e))
            logger.error(f"[{self.correlation_id}] Gemini transport error: {message}")
            raise UpstreamError(None, message) from e

        return self._response_text(response)

    def _build_contents(self, request: GatewayRequest) -> List[types.Content]:
        parts = [types.Part(text=request.prompt)]
        if request.image:
            parts.append(types.Part.from_bytes(data=request.image, mime_type="image/png"))
        return [types.Content(role="user", parts=parts)]

    def _build_config(self, request: GatewayRequest) -> types.GenerateContentConfig:
        return types.GenerateContentConfig(
            temperature=request.temperature,
            max_output_tokens=request.max_output_tokens,
            top_k=request.top_k,
            top_p=request.top_p,
            safety_settings=[
                types.SafetySetting(
                    category=category,
                    threshold=types.HarmBlockThreshold.BLOCK_MEDIUM_AND_ABOVE,
                )
                for category in SAFETY_CATEGORIES
            ],
        )

    def _response_text(self, response: Any) -> str:
        """Pull raw candidate text; raise UpstreamError on safety blocks"""
        feedback = getattr(response, "prompt_feedback", None)
        block_reason = getattr(feedback, "block_reason", None) if feedback else None
        if block_reason:
            logger.error(f"[{self.correlation_id}] Prompt blocked by safety filter: {_enum_name(block_reason)}")
            raise UpstreamError(200, f"prompt blocked ({_enum_name(block_reason)})", safety_blocked=True)

        candidates = getattr(response, "candidates", None) or []
        if not candidates:
            logger.warning(f"[{self.correlation_id}] Empty response from Gemini")
            return ""

        candidate = candidates[0]
        finish_reason = _enum_name(getattr(candidate, "finish_reason", None))
        if finish_reason in SAFETY_FINISH_REASONS:
            logger.error(f"[{self.correlation_id}] Response blocked by safety filter: {finish_reason}")
            raise UpstreamError(200, f"response blocked ({finish_reason})", safety_blocked=True)

        content = getattr(candidate, "content", None)
        parts = getattr(content, "parts", None) or []
        text = "".join(part.text for part in parts if getattr(part, "text", None))
        logger.debug(f"[{self.correlation_id}] Gemini response: {text[:200]}")
        return text

    def _retry_after_seconds(self, error: errors.APIError) -> float:
        """Server retry-after: HTTP header first, then RetryInfo detail, then default"""
        response = getattr(error, "response", None)
        headers = getattr(response, "headers", None)
        if headers:
            value = headers.get("retry-after") or headers.get("Retry-After")
            if value is not None:
                try:
                    return max(0.0, float(value))
                except (TypeError, ValueError):
                    logger.debug(f"[{self.correlation_id}] Unparseable retry-after header: {value!r}")

        details = getattr(error, "details", None)
        if isinstance(details, dict):
            body = details.get("error", details)
            for detail in body.get("details", []) or []:
                if not isinstance(detail, dict):
                    continue
                if str(detail.get("@type", "")).endswith("RetryInfo"):
                    match = _RETRY_DELAY_RE.match(str(detail.get("retryDelay", "")))
                    if match:
                        return float(match.group(1))

        return self.settings.default_retry_after
