"""Screenshot-based contact extraction through the model gateway"""

import json
import re
from typing import Any, List, Optional

from loguru import logger
from pydantic import BaseModel, Field, ValidationError

from contact_scout.config import GatewaySettings
from contact_scout.errors import ExtractionFailed, GatewayError
from contact_scout.extraction.models import Contact, ContactKind, ContactSource
from contact_scout.extraction.patterns import find_emails, find_phones, parse_kind
from contact_scout.gateway.gemini_gateway import GatewayRequest
from contact_scout.gateway.prompts import build_extraction_prompt


FALLBACK_EMAIL_CONFIDENCE = 0.7
FALLBACK_PHONE_CONFIDENCE = 0.6
DEFAULT_VISION_CONFIDENCE = 0.7

_FENCE_RE = re.compile(r"```(?:json)?", re.IGNORECASE)


class VisionContact(BaseModel):
    value: str
    type: Optional[str] = None
    confidence: Optional[float] = None
    context: str = ""


class VisionReport(BaseModel):
    """Structured answer requested by the extraction prompt"""
    contacts: List[VisionContact] = Field(default_factory=list)
    insights: List[str] = Field(default_factory=list)
    pageType: Optional[str] = None


def strip_code_fences(text: str) -> str:
    return _FENCE_RE.sub("", text or "").strip()


def first_json_object(text: str) -> Optional[Any]:
    """Decode the first JSON object embedded in text, or None"""
    decoder = json.JSONDecoder()
    start = text.find("{")
    while start != -1:
        try:
            value, _ = decoder.raw_decode(text, start)
            if isinstance(value, dict):
                return value
        except json.JSONDecodeError:
            pass
        start = text.find("{", start + 1)
    return None


def parse_vision_report(text: str) -> Optional[VisionReport]:
    data = first_json_object(strip_code_fences(text))
    if data is None:
        return None
    try:
        return VisionReport.model_validate(data)
    except ValidationError as e:
        logger.debug(f"Vision answer did not match schema: {e.error_count()} errors")
        return None


class VisionContactExtractor:
    """Asks the model to read contacts off the screenshot"""

    def __init__(self, gateway, settings: Optional[GatewaySettings] = None, correlation_id: str = "N/A"):
        self.gateway = gateway
        self.settings = settings or getattr(gateway, "settings", None) or GatewaySettings()
        self.correlation_id = correlation_id

    async def extract(self, screenshot: bytes, target: Optional[str] = None) -> List[Contact]:
        """
        Send the screenshot with the extraction prompt and decode the answer.

        Raises:
            ExtractionFailed: no screenshot, or the gateway call failed
        """
        if not screenshot:
            raise ExtractionFailed("vision", "no screenshot")

        request = GatewayRequest(
            prompt=build_extraction_prompt(target),
            image=screenshot,
            max_output_tokens=self.settings.extraction_max_output_tokens,
            temperature=self.settings.extraction_temperature,
        )
        try:
            text = await self.gateway.generate(request)
        except GatewayError as e:
            raise ExtractionFailed("vision", str(e)) from e

        contacts = self.contacts_from_text(text)
        logger.info(f"[{self.correlation_id}] Vision extraction found {len(contacts)} contacts")
        return contacts

    def contacts_from_text(self, text: str) -> List[Contact]:
        """Structured answer when possible, regex scan of the raw text otherwise"""
        report = parse_vision_report(text or "")
        if report is None:
            logger.debug(f"[{self.correlation_id}] Vision answer not structured, scanning raw text")
            return self._fallback_contacts(text or "")

        contacts = []
        for item in report.contacts:
            value = item.value.strip()
            if not value:
                continue
            confidence = item.confidence if item.confidence is not None else DEFAULT_VISION_CONFIDENCE
            if confidence > 1.0:
                # percentage scale
                confidence /= 100.0
            contacts.append(Contact(
                value=value,
                kind=parse_kind(item.type, value),
                confidence=min(1.0, max(0.0, confidence)),
                source=ContactSource.VISION,
                context=item.context or "Vision analysis",
            ))
        if report.pageType:
            logger.debug(f"[{self.correlation_id}] Page type: {report.pageType}")
        return contacts

    def _fallback_contacts(self, text: str) -> List[Contact]:
        contacts = []
        seen = set()
        for email in find_emails(text):
            if email.lower() not in seen:
                seen.add(email.lower())
                contacts.append(Contact(
                    value=email,
                    kind=ContactKind.EMAIL,
                    confidence=FALLBACK_EMAIL_CONFIDENCE,
                    source=ContactSource.VISION,
                    context="Vision text fallback",
                ))
        for phone in find_phones(text):
            if phone.lower() not in seen:
                seen.add(phone.lower())
                contacts.append(Contact(
                    value=phone,
                    kind=ContactKind.PHONE,
                    confidence=FALLBACK_PHONE_CONFIDENCE,
                    source=ContactSource.VISION,
                    context="Vision text fallback",
                ))
        return contacts
