"""Contact data models"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class ContactKind(str, Enum):
    EMAIL = "email"
    PHONE = "phone"
    ADDRESS = "address"
    SOCIAL = "social"
    GENERAL = "general"


class ContactSource(str, Enum):
    TEXT = "text"
    VISION = "vision"
    BOTH = "both"


class ContactValidation(BaseModel):
    """Validation flags; None means the check did not apply"""
    domain_match: Optional[bool] = None
    pattern_match: Optional[bool] = None
    location_match: Optional[bool] = None


class Contact(BaseModel):
    """A candidate piece of reachable-party information"""
    value: str
    kind: ContactKind = ContactKind.GENERAL
    confidence: float = Field(ge=0.0, le=1.0)
    source: ContactSource
    context: str = ""
    validation: ContactValidation = Field(default_factory=ContactValidation)

    @property
    def key(self) -> str:
        """Deduplication identity"""
        return self.value.strip().lower()
