"""Contact search parameters and the task/query builders fed to the agent loop"""

import re
from enum import Enum
from typing import Optional
from urllib.parse import quote_plus

from pydantic import BaseModel, Field, field_validator

from contact_scout.extraction.models import ContactKind


GOOGLE_SEARCH_URL = "https://www.google.com/search?q={query}"

CONTACT_MODIFIERS = {
    ContactKind.EMAIL: ["contact email", "email address", '"get in touch"', "mailto:"],
    ContactKind.PHONE: ["phone number", "contact phone", "call us"],
    ContactKind.ADDRESS: ["address", "location", "office", "headquarters"],
    ContactKind.SOCIAL: ["linkedin", "twitter", "contact page", "social media"],
    ContactKind.GENERAL: ["contact", "reach out", "get in touch", "information"],
}

EXCLUDE_AUTH_PAGES = "-inurl:(login signup register)"
SITE_DIVERSITY = "site:*.com OR site:*.org OR site:*.io OR site:*.co"

SIMPLE_TASK_WORDS = ("search", "find", "get", "look up")
COMPLEX_TASK_WORDS = ("research", "analyze", "compare", "multiple")

SIMPLE_TASK_STEPS = 8
COMPLEX_TASK_STEPS = 20
DEFAULT_TASK_STEPS = 12


class AnalysisDepth(str, Enum):
    QUICK = "quick"
    THOROUGH = "thorough"


class ContactSearchParams(BaseModel):
    """Structured description of a contact search"""
    target: str = Field(min_length=1)
    contact_type: ContactKind = ContactKind.EMAIL
    location: Optional[str] = None
    additional_filters: Optional[str] = None
    analysis_depth: AnalysisDepth = AnalysisDepth.QUICK
    max_results: int = Field(default=5, ge=1, le=10)

    @field_validator("target")
    @classmethod
    def target_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("target must not be blank")
        return value

    @property
    def thorough(self) -> bool:
        return self.analysis_depth == AnalysisDepth.THOROUGH


def build_search_query(params: ContactSearchParams) -> str:
    """Search engine query for the target and contact type"""
    kind = params.contact_type
    modifiers = CONTACT_MODIFIERS.get(kind, CONTACT_MODIFIERS[ContactKind.GENERAL])
    parts = [f"{params.target} {kind.value}", " OR ".join(modifiers)]
    if params.location:
        parts.append(params.location)
    if params.additional_filters:
        parts.append(params.additional_filters)
    parts.append(EXCLUDE_AUTH_PAGES)
    if params.thorough:
        parts.append(SITE_DIVERSITY)
    return " ".join(part.strip() for part in parts if part and part.strip())


def build_search_url(params: ContactSearchParams) -> str:
    return GOOGLE_SEARCH_URL.format(query=quote_plus(build_search_query(params)))


def build_task(params: ContactSearchParams) -> str:
    """Natural-language task handed to the vision loop"""
    task = f"Find {params.contact_type.value} contact information for {params.target}"
    if params.location:
        task += f" in {params.location}"
    if params.additional_filters:
        task += f" ({params.additional_filters})"
    task += (
        ". Open the most relevant result, look for contact, about or footer sections, "
        f"and stop with DONE once you have found up to {params.max_results} contacts."
    )
    return task


def preprocess_task(task: str) -> str:
    """Rewrite vague phrasing into explicit instructions for the model"""
    processed = re.sub(r"\binvestor emails?\b", "investor contact email addresses", task or "", flags=re.IGNORECASE)
    processed = re.sub(r"\bcontact info\b", "email addresses and phone numbers", processed, flags=re.IGNORECASE)
    processed = re.sub(r"\bfind the\b", "locate and extract", processed, flags=re.IGNORECASE)
    return processed[:1].upper() + processed[1:]


def estimate_steps(task: str) -> int:
    """Rough step budget from the task wording"""
    lower = (task or "").lower()
    if any(word in lower for word in SIMPLE_TASK_WORDS):
        return SIMPLE_TASK_STEPS
    if any(word in lower for word in COMPLEX_TASK_WORDS):
        return COMPLEX_TASK_STEPS
    return DEFAULT_TASK_STEPS
