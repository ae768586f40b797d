"""Pattern-based contact extraction from the live DOM.

A snippet evaluated through the browser port returns the page text, its
links and the text of contact-like containers. Python scans that snapshot;
containers are scanned first so the most specific context wins.
"""

import json
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from loguru import logger

from contact_scout.errors import ExtractionFailed
from contact_scout.extraction.models import Contact, ContactKind, ContactSource
from contact_scout.extraction.patterns import (
    find_addresses,
    find_emails,
    find_phones,
    is_social_url,
)


# Container selectors ordered by specificity
CONTACT_SECTION_SELECTORS = [
    "#contact", "#contacts", ".contact", ".contacts",
    '[class*="contact"]', '[id*="contact"]',
    "footer", "#footer", ".footer",
    "#about", ".about", ".about-us",
]

SECTION_CONFIDENCE = 0.80
MAILTO_CONFIDENCE = 0.80
TEL_CONFIDENCE = 0.75
BODY_EMAIL_CONFIDENCE = 0.75
BODY_PHONE_CONFIDENCE = 0.70
BODY_ADDRESS_CONFIDENCE = 0.70
SOCIAL_LINK_CONFIDENCE = 0.70

MAX_TEXT_CHARS = 200_000

DOM_SNAPSHOT_SCRIPT = """
(() => {
  const selectors = %s;
  const sections = [];
  const seen = new Set();
  for (const selector of selectors) {
    let nodes = [];
    try { nodes = Array.from(document.querySelectorAll(selector)); } catch (e) { continue; }
    for (const node of nodes.slice(0, 5)) {
      if (seen.has(node)) continue;
      seen.add(node);
      sections.push({ selector, text: (node.innerText || node.textContent || '').slice(0, 5000) });
    }
  }
  const links = Array.from(document.querySelectorAll('a[href]')).slice(0, 500).map(a => ({
    href: a.getAttribute('href') || '',
    text: (a.textContent || '').trim().slice(0, 200)
  }));
  const body = document.body ? (document.body.innerText || '') : '';
  return JSON.stringify({ text: body.slice(0, %d), links, sections, title: document.title, url: location.href });
})()
""" % (json.dumps(CONTACT_SECTION_SELECTORS), MAX_TEXT_CHARS)


@dataclass
class PageSnapshot:
    """Text view of the page produced by DOM_SNAPSHOT_SCRIPT"""
    text: str = ""
    links: List[Dict[str, str]] = field(default_factory=list)
    sections: List[Dict[str, str]] = field(default_factory=list)
    title: str = ""
    url: str = ""

    @classmethod
    def from_json(cls, raw: str) -> "PageSnapshot":
        data = json.loads(raw or "{}")
        if not isinstance(data, dict):
            raise ValueError(f"expected an object, got {type(data).__name__}")
        return cls(
            text=str(data.get("text") or ""),
            links=[link for link in data.get("links") or [] if isinstance(link, dict)],
            sections=[section for section in data.get("sections") or [] if isinstance(section, dict)],
            title=str(data.get("title") or ""),
            url=str(data.get("url") or ""),
        )


class TextContactExtractor:
    """Regex-scans a DOM snapshot for emails, phones, addresses and social links"""

    def __init__(self, correlation_id: str = "N/A"):
        self.correlation_id = correlation_id

    async def extract(self, browser) -> List[Contact]:
        """
        Snapshot the current page through the port and scan it.

        Raises:
            ExtractionFailed: snapshot could not be taken or decoded
        """
        try:
            raw = await browser.evaluate(DOM_SNAPSHOT_SCRIPT)
            snapshot = PageSnapshot.from_json(raw)
        except Exception as e:
            raise ExtractionFailed("text", str(e)) from e
        contacts = self.extract_from_snapshot(snapshot)
        logger.info(f"[{self.correlation_id}] DOM extraction found {len(contacts)} contacts")
        return contacts

    def extract_from_snapshot(self, snapshot: PageSnapshot) -> List[Contact]:
        found: List[Contact] = []
        seen = set()
        where = f" on {snapshot.url}" if snapshot.url else ""

        def add(value: str, kind: ContactKind, confidence: float, context: str):
            value = (value or "").strip()
            if not value or value.lower() in seen:
                return
            seen.add(value.lower())
            found.append(Contact(
                value=value,
                kind=kind,
                confidence=confidence,
                source=ContactSource.TEXT,
                context=context + where,
            ))

        for section in snapshot.sections:
            selector = section.get("selector", "section")
            text = section.get("text", "")
            for email in find_emails(text):
                add(email, ContactKind.EMAIL, SECTION_CONFIDENCE, f"contact section ({selector})")
            for phone in find_phones(text):
                add(phone, ContactKind.PHONE, SECTION_CONFIDENCE, f"contact section ({selector})")

        for link in snapshot.links:
            href = (link.get("href") or "").strip()
            lower = href.lower()
            if lower.startswith("mailto:"):
                address = href[len("mailto:"):].split("?", 1)[0]
                add(address, ContactKind.EMAIL, MAILTO_CONFIDENCE, "mailto link")
            elif lower.startswith("tel:"):
                add(href[len("tel:"):], ContactKind.PHONE, TEL_CONFIDENCE, "tel link")
            elif is_social_url(href):
                add(href, ContactKind.SOCIAL, SOCIAL_LINK_CONFIDENCE, f"social link ({link.get('text', '')[:40]})")

        for email in find_emails(snapshot.text):
            add(email, ContactKind.EMAIL, BODY_EMAIL_CONFIDENCE, "body text")
        for phone in find_phones(snapshot.text):
            add(phone, ContactKind.PHONE, BODY_PHONE_CONFIDENCE, "body text")
        for address in find_addresses(snapshot.text):
            add(address, ContactKind.ADDRESS, BODY_ADDRESS_CONFIDENCE, "body text")

        return found

    def extract_from_text(self, text: str, url: Optional[str] = None) -> List[Contact]:
        """Scan plain text (no DOM structure)"""
        return self.extract_from_snapshot(PageSnapshot(text=text or "", url=url or ""))
