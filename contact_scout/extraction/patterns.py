"""Contact patterns: loose scanners, strict validators and type inference"""

import re
from typing import List, Optional, Set
from urllib.parse import urlparse

from contact_scout.extraction.models import ContactKind


# Loose scanners used to find candidates in free text
EMAIL_PATTERN = re.compile(r"\b[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}\b")
PHONE_PATTERN = re.compile(
    r"(?<![\w+])(?:\+?1[-.\s]?)?\(?[2-9]\d{2}\)?[-.\s]?\d{3}[-.\s]?\d{4}(?!\d)"
    r"|(?<![\w+])\+\d{1,3}[-.\s]?\(?\d{1,4}\)?(?:[-.\s]?\d{2,4}){2,4}(?!\d)"
)
ADDRESS_PATTERN = re.compile(
    r"\b\d{1,5}\s+(?:[A-Z][a-zA-Z.'-]*\s+){1,4}"
    r"(?:Street|St|Avenue|Ave|Road|Rd|Boulevard|Blvd|Drive|Dr|Lane|Ln|Way|Place|Pl|Court|Ct)\b\.?"
    r"(?:,?\s+(?:Suite|Ste|Floor|Fl)\.?\s*\w+)?"
)
URL_PATTERN = re.compile(r"https?://\S+")

SOCIAL_HOSTS = (
    "linkedin.com",
    "twitter.com",
    "x.com",
    "facebook.com",
    "instagram.com",
)

# Strict validators used for the pattern_match flag
STRICT_EMAIL = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]{2,}$")
STRICT_PHONE = re.compile(r"^\+?[1-9]\d{6,14}$")
STRICT_SOCIAL_HANDLE = re.compile(r"^@[A-Za-z0-9_]{1,30}$")
ADDRESS_KEYWORDS = (
    "street", "st", "avenue", "ave", "road", "rd", "boulevard", "blvd",
    "suite", "floor", "drive", "dr", "lane", "ln", "way", "court", "ct",
)

# Area codes used as a coarse location hint for phone numbers
AREA_CODE_LOCATIONS = {
    "212": ["new york", "ny"],
    "310": ["los angeles", "ca"],
    "415": ["san francisco", "ca"],
    "617": ["boston", "ma"],
    "206": ["seattle", "wa"],
}


def find_emails(text: str) -> List[str]:
    return EMAIL_PATTERN.findall(text or "")


def find_phones(text: str) -> List[str]:
    return [match.group(0).strip() for match in PHONE_PATTERN.finditer(text or "")]


def find_addresses(text: str) -> List[str]:
    return [match.group(0).strip() for match in ADDRESS_PATTERN.finditer(text or "")]


def clean_phone(phone: str) -> str:
    return re.sub(r"[\s\-().]", "", phone or "")


def is_social_url(value: str) -> bool:
    host = host_of(value)
    return bool(host) and any(host == h or host.endswith("." + h) for h in SOCIAL_HOSTS)


def host_of(value: str) -> str:
    """Lower-cased host of a URL, or '' when the value is not a URL"""
    if not value or "://" not in value:
        return ""
    try:
        return (urlparse(value).hostname or "").lower()
    except ValueError:
        return ""


def infer_kind(value: str) -> ContactKind:
    """Guess the contact kind from its value"""
    lower = (value or "").lower()
    if EMAIL_PATTERN.search(value or ""):
        return ContactKind.EMAIL
    if URL_PATTERN.search(value or "") or STRICT_SOCIAL_HANDLE.match(value or ""):
        return ContactKind.SOCIAL
    if PHONE_PATTERN.search(value or ""):
        return ContactKind.PHONE
    words = set(re.findall(r"[a-z]+", lower))
    if words & set(ADDRESS_KEYWORDS) and re.search(r"\d", lower):
        return ContactKind.ADDRESS
    return ContactKind.GENERAL


def parse_kind(raw: Optional[str], value: str) -> ContactKind:
    """Map a model-supplied type string onto ContactKind, inferring when unknown"""
    if raw:
        normalized = str(raw).strip().lower()
        aliases = {"e-mail": "email", "telephone": "phone", "tel": "phone", "location": "address",
                   "linkedin": "social", "twitter": "social", "url": "social"}
        normalized = aliases.get(normalized, normalized)
        try:
            return ContactKind(normalized)
        except ValueError:
            pass
    return infer_kind(value)


def matches_strict_pattern(value: str, kind: ContactKind) -> Optional[bool]:
    """Strict format check for a kind; None when the kind has no format"""
    if kind == ContactKind.EMAIL:
        return bool(STRICT_EMAIL.match(value.strip()))
    if kind == ContactKind.PHONE:
        return bool(STRICT_PHONE.match(clean_phone(value)))
    if kind == ContactKind.SOCIAL:
        return is_social_url(value) or bool(STRICT_SOCIAL_HANDLE.match(value.strip()))
    if kind == ContactKind.ADDRESS:
        words = set(re.findall(r"[a-z]+", value.lower()))
        return bool(words & set(ADDRESS_KEYWORDS)) and bool(re.search(r"\d", value))
    return None


def target_tokens(target: Optional[str]) -> Set[str]:
    """Normalized target name tokens: alphanumeric words of 3+ chars plus the joined name"""
    if not target:
        return set()
    words = re.findall(r"[a-z0-9]+", target.lower())
    tokens = {w for w in words if len(w) >= 3}
    joined = "".join(words)
    if len(joined) >= 3:
        tokens.add(joined)
    return tokens


def contact_domain(value: str, kind: ContactKind) -> str:
    """Part of the value compared against the target name"""
    if kind == ContactKind.EMAIL and "@" in value:
        return value.rsplit("@", 1)[1].lower()
    host = host_of(value)
    if host:
        return host + (urlparse(value).path or "").lower()
    return value.lower()


def phone_matches_location(phone: str, location: str) -> bool:
    """Coarse area-code check for North American numbers"""
    digits = clean_phone(phone).lstrip("+")
    if len(digits) == 11 and digits.startswith("1"):
        digits = digits[1:]
    if len(digits) != 10:
        return False
    places = AREA_CODE_LOCATIONS.get(digits[:3], [])
    location_lower = location.lower()
    return any(re.search(rf"\b{re.escape(place)}\b", location_lower) for place in places)
