"""Contact pipeline: run both extractors, then merge, validate, score and filter.

merge_contacts is pure. The agent keeps raw extractor output in RunState's
candidate pool and re-merges the whole pool after every scan, so the final
list for a given page state never depends on how many scans produced it.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from loguru import logger

from contact_scout.config import ScoringSettings
from contact_scout.errors import BrowserError, ExtractionFailed
from contact_scout.extraction.models import Contact, ContactKind, ContactSource, ContactValidation
from contact_scout.extraction.patterns import (
    contact_domain,
    matches_strict_pattern,
    phone_matches_location,
    target_tokens,
)
from contact_scout.extraction.text_extractor import TextContactExtractor


# =============================================================================
# MERGE
# =============================================================================

@dataclass
class _MergeGroup:
    first: Contact
    best_text: Optional[float] = None
    best_vision: Optional[float] = None
    reported: List[ContactValidation] = field(default_factory=list)

    def add(self, contact: Contact):
        if contact.source == ContactSource.VISION:
            self.best_vision = max(self.best_vision or 0.0, contact.confidence)
        elif contact.source == ContactSource.TEXT:
            self.best_text = max(self.best_text or 0.0, contact.confidence)
        else:
            # Already merged upstream: counts for both sides
            self.best_text = max(self.best_text or 0.0, contact.confidence)
            self.best_vision = max(self.best_vision or 0.0, contact.confidence)
        self.reported.append(contact.validation)


def _any_flag(*flags: Optional[bool]) -> Optional[bool]:
    """OR of optional flags; None only when every flag is None"""
    if any(flag is True for flag in flags):
        return True
    if all(flag is None for flag in flags):
        return None
    return False


def score(best_text: Optional[float], best_vision: Optional[float], scoring: ScoringSettings):
    """Combined confidence and source for one deduplicated value"""
    if best_text is not None and best_vision is not None:
        confidence = (best_text + best_vision) / 2 * scoring.both_sources_boost
        source = ContactSource.BOTH
    elif best_vision is not None:
        confidence = best_vision * scoring.vision_factor
        source = ContactSource.VISION
    else:
        confidence = best_text or 0.0
        source = ContactSource.TEXT
    return min(1.0, max(0.0, confidence)), source


def validate_contact(
    contact: Contact,
    tokens: set,
    location: Optional[str] = None,
) -> ContactValidation:
    """Compute domain, pattern and location flags for one contact"""
    domain_match = None
    if tokens:
        domain = contact_domain(contact.value, contact.kind)
        domain_match = any(token in domain for token in tokens)

    location_match = None
    if location:
        needle = location.strip().lower()
        haystack = f"{contact.value} {contact.context}".lower()
        location_match = needle in haystack
        if not location_match and contact.kind == ContactKind.PHONE:
            location_match = phone_matches_location(contact.value, location)

    return ContactValidation(
        domain_match=domain_match,
        pattern_match=matches_strict_pattern(contact.value, contact.kind),
        location_match=location_match,
    )


def merge_contacts(
    text_contacts: List[Contact],
    vision_contacts: List[Contact],
    target: Optional[str] = None,
    location: Optional[str] = None,
    scoring: Optional[ScoringSettings] = None,
) -> List[Contact]:
    """
    Deduplicate, score, validate and filter contacts from both extractors.

    Args:
        text_contacts: Output of the DOM text extractor
        vision_contacts: Output of the vision extractor
        target: Name of the person or organization searched for
        location: Location the contacts should belong to
        scoring: Multipliers, threshold and result cap

    Returns:
        Contacts at or above the confidence threshold, highest first
    """
    scoring = scoring or ScoringSettings()
    groups: Dict[str, _MergeGroup] = {}
    for contact in list(text_contacts) + list(vision_contacts):
        key = contact.key
        if not key:
            continue
        group = groups.get(key)
        if group is None:
            group = groups[key] = _MergeGroup(first=contact)
        group.add(contact)

    tokens = target_tokens(target)
    merged: List[Contact] = []
    for group in groups.values():
        confidence, source = score(group.best_text, group.best_vision, scoring)
        if confidence < scoring.min_confidence:
            continue
        computed = validate_contact(group.first, tokens, location)
        validation = ContactValidation(
            domain_match=_any_flag(computed.domain_match, *(v.domain_match for v in group.reported)),
            pattern_match=_any_flag(computed.pattern_match, *(v.pattern_match for v in group.reported)),
            location_match=_any_flag(computed.location_match, *(v.location_match for v in group.reported)),
        )
        merged.append(group.first.model_copy(update={
            "confidence": confidence,
            "source": source,
            "validation": validation,
        }))

    # sorted() is stable: ties keep first-occurrence order
    merged = sorted(merged, key=lambda c: -c.confidence)
    return merged[:scoring.max_results]


# =============================================================================
# PIPELINE
# =============================================================================

class ContactPipeline:
    """Runs the extractors against the live page and merges into a RunState"""

    def __init__(
        self,
        text_extractor: Optional[TextContactExtractor] = None,
        vision_extractor=None,
        scoring: Optional[ScoringSettings] = None,
        metrics=None,
        correlation_id: str = "N/A",
    ):
        self.text_extractor = text_extractor or TextContactExtractor(correlation_id=correlation_id)
        self.vision_extractor = vision_extractor
        self.scoring = scoring or ScoringSettings()
        self.metrics = metrics
        self.correlation_id = correlation_id

    async def collect(self, browser, target: Optional[str] = None, use_vision: bool = True) -> List[Contact]:
        """
        Run the configured extractors once against the current page.

        ExtractionFailed is absorbed: the failing extractor contributes nothing.
        The vision extractor only runs when configured and use_vision is set.
        """
        found: List[Contact] = []

        try:
            text_contacts = await self.text_extractor.extract(browser)
            found.extend(text_contacts)
            self._record_found("text", len(text_contacts))
        except ExtractionFailed as e:
            self._absorb(e)

        if use_vision and self.vision_extractor is not None:
            try:
                screenshot = await self._capture(browser)
                vision_contacts = await self.vision_extractor.extract(screenshot, target)
                found.extend(vision_contacts)
                self._record_found("vision", len(vision_contacts))
            except ExtractionFailed as e:
                self._absorb(e)

        return found

    async def scan(
        self,
        browser,
        state,
        target: Optional[str] = None,
        location: Optional[str] = None,
        use_vision: bool = True,
        max_results: Optional[int] = None,
    ) -> int:
        """
        Collect from the page, add to the run's candidate pool and re-merge.

        Returns:
            Number of newly discovered contact values
        """
        found = await self.collect(browser, target, use_vision)
        new_values = state.add_candidates(found)
        state.contacts = self.merge_state(state, target, location, max_results)
        if new_values:
            logger.info(f"[{self.correlation_id}] {new_values} new contact(s), {len(state.contacts)} above threshold")
        return new_values

    def merge_state(
        self,
        state,
        target: Optional[str] = None,
        location: Optional[str] = None,
        max_results: Optional[int] = None,
    ) -> List[Contact]:
        text, vision = state.candidate_lists()
        return self.merge(text, vision, target, location, max_results)

    def merge(
        self,
        text_contacts: List[Contact],
        vision_contacts: List[Contact],
        target: Optional[str] = None,
        location: Optional[str] = None,
        max_results: Optional[int] = None,
    ) -> List[Contact]:
        scoring = self.scoring
        if max_results is not None:
            scoring = scoring.model_copy(update={"max_results": min(scoring.max_results, max_results)})
        return merge_contacts(text_contacts, vision_contacts, target, location, scoring)

    async def _capture(self, browser) -> bytes:
        try:
            return await browser.screenshot()
        except BrowserError as e:
            raise ExtractionFailed("vision", f"screenshot failed: {e}") from e

    def _absorb(self, error: ExtractionFailed):
        logger.warning(f"[{self.correlation_id}] {error}")
        if self.metrics:
            self.metrics.record_extraction_failure(error.extractor, error.reason)

    def _record_found(self, extractor: str, count: int):
        if self.metrics:
            self.metrics.record_extraction(extractor, count)
