"""Unit tests for contact merging, scoring and the pipeline"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from pathlib import Path
import sys

# Add project root to path
project_root = Path(__file__).parent.parent.parent
sys.path.insert(0, str(project_root))

from contact_scout.agent.models import RunState
from contact_scout.analytics.metrics import MetricsTracker
from contact_scout.config import ScoringSettings
from contact_scout.errors import ExtractionFailed
from contact_scout.extraction.models import Contact, ContactKind, ContactSource, ContactValidation
from contact_scout.extraction.pipeline import ContactPipeline, merge_contacts


def text(value, confidence, kind=ContactKind.EMAIL, context="body text"):
    return Contact(value=value, kind=kind, confidence=confidence, source=ContactSource.TEXT, context=context)


def vision(value, confidence, kind=ContactKind.EMAIL, context="Vision analysis", validation=None):
    return Contact(
        value=value,
        kind=kind,
        confidence=confidence,
        source=ContactSource.VISION,
        context=context,
        validation=validation or ContactValidation(),
    )


class TestScoring:
    """Test deduplication and confidence scoring"""

    def test_text_and_vision_merge_into_one(self):
        """a@x.com (text, 0.75) + A@X.com (vision, 0.8) -> one contact from both sources"""
        merged = merge_contacts([text("a@x.com", 0.75)], [vision("A@X.com", 0.8)])

        assert len(merged) == 1
        assert merged[0].value == "a@x.com"
        assert merged[0].source == ContactSource.BOTH
        assert merged[0].confidence == pytest.approx(min(1.0, 0.775 * 1.1))

    def test_text_only_keeps_confidence(self):
        merged = merge_contacts([text("a@x.com", 0.75)], [])

        assert merged[0].confidence == pytest.approx(0.75)
        assert merged[0].source == ContactSource.TEXT

    def test_vision_only_discounted(self):
        merged = merge_contacts([], [vision("a@x.com", 0.8)])

        assert merged[0].confidence == pytest.approx(0.72)
        assert merged[0].source == ContactSource.VISION

    def test_both_capped_at_one(self):
        merged = merge_contacts([text("a@x.com", 0.95)], [vision("a@x.com", 0.99)])

        assert merged[0].confidence == 1.0

    def test_best_confidence_per_source(self):
        merged = merge_contacts([text("a@x.com", 0.65), text("A@x.com", 0.8)], [])

        assert len(merged) == 1
        assert merged[0].confidence == pytest.approx(0.8)
        assert merged[0].value == "a@x.com"

    def test_threshold(self):
        merged = merge_contacts(
            [text("keep@x.com", 0.6), text("drop@x.com", 0.59)],
            [vision("vision@x.com", 0.6)],
        )

        assert [c.value for c in merged] == ["keep@x.com"]

    def test_sorted_descending_with_stable_ties(self):
        merged = merge_contacts(
            [text("first@x.com", 0.7), text("second@x.com", 0.7), text("best@x.com", 0.8)],
            [],
        )

        assert [c.value for c in merged] == ["best@x.com", "first@x.com", "second@x.com"]

    def test_capped_at_max_results(self):
        contacts = [text(f"user{i}@x.com", 0.7) for i in range(15)]

        assert len(merge_contacts(contacts, [])) == 10
        assert len(merge_contacts(contacts, [], scoring=ScoringSettings(max_results=3))) == 3

    def test_idempotent(self):
        text_contacts = [text("a@x.com", 0.75), text("(415) 555-0123", 0.7, ContactKind.PHONE)]
        vision_contacts = [vision("A@X.com", 0.8), vision("b@x.com", 0.9)]

        first = merge_contacts(text_contacts, vision_contacts, target="X Corp", location="San Francisco")
        second = merge_contacts(text_contacts, vision_contacts, target="X Corp", location="San Francisco")

        assert [c.model_dump() for c in first] == [c.model_dump() for c in second]

    def test_inputs_not_mutated(self):
        contact = vision("a@x.com", 0.8)

        merge_contacts([text("a@x.com", 0.75)], [contact])

        assert contact.confidence == 0.8
        assert contact.source == ContactSource.VISION


class TestValidationFlags:
    """Test domain, pattern and location flags"""

    def test_domain_match(self):
        merged = merge_contacts([text("info@acme.com", 0.8), text("someone@gmail.com", 0.8)], [], target="Acme Corp")

        flags = {c.value: c.validation.domain_match for c in merged}
        assert flags == {"info@acme.com": True, "someone@gmail.com": False}

    def test_domain_match_joined_name(self):
        merged = merge_contacts([text("hi@bluebottle.co", 0.8)], [], target="Blue Bottle")

        assert merged[0].validation.domain_match is True

    def test_domain_match_unset_without_target(self):
        merged = merge_contacts([text("info@acme.com", 0.8)], [])

        assert merged[0].validation.domain_match is None

    def test_pattern_match(self):
        merged = merge_contacts(
            [
                text("(415) 555-0123", 0.8, ContactKind.PHONE),
                text("not-an-email", 0.8, ContactKind.EMAIL),
                text("Ask for Dana", 0.8, ContactKind.GENERAL),
            ],
            [],
        )

        flags = {c.value: c.validation.pattern_match for c in merged}
        assert flags == {"(415) 555-0123": True, "not-an-email": False, "Ask for Dana": None}

    def test_location_match(self):
        merged = merge_contacts(
            [
                text("(415) 555-0123", 0.8, ContactKind.PHONE),
                text("boston@acme.com", 0.8, context="Boston office"),
                text("nyc@acme.com", 0.8, context="New York office"),
            ],
            [],
            location="Boston",
        )

        flags = {c.value: c.validation.location_match for c in merged}
        assert flags == {"(415) 555-0123": False, "boston@acme.com": True, "nyc@acme.com": False}

    def test_location_match_by_area_code(self):
        merged = merge_contacts([text("(415) 555-0123", 0.8, ContactKind.PHONE)], [], location="San Francisco, CA")

        assert merged[0].validation.location_match is True

    def test_location_match_unset_without_location(self):
        merged = merge_contacts([text("a@x.com", 0.8)], [])

        assert merged[0].validation.location_match is None

    def test_extractor_flags_ored_in(self):
        reported = ContactValidation(domain_match=True)
        merged = merge_contacts([], [vision("a@x.com", 0.9, validation=reported)])

        assert merged[0].validation.domain_match is True


class TestContactPipeline:
    """Test extractor orchestration and RunState merging"""

    def make_pipeline(self, text_result=None, text_error=None, vision_result=None):
        text_extractor = MagicMock()
        text_extractor.extract = AsyncMock(return_value=text_result or [], side_effect=text_error)
        vision_extractor = None
        if vision_result is not None:
            vision_extractor = MagicMock()
            vision_extractor.extract = AsyncMock(return_value=vision_result)
        metrics = MetricsTracker()
        pipeline = ContactPipeline(text_extractor, vision_extractor, metrics=metrics, correlation_id="test")
        return pipeline, metrics

    @pytest.mark.asyncio
    async def test_extraction_failure_absorbed(self, browser_control):
        pipeline, metrics = self.make_pipeline(
            text_error=ExtractionFailed("text", "evaluate failed"),
            vision_result=[vision("a@x.com", 0.9)],
        )

        found = await pipeline.collect(browser_control, "X")

        assert [c.value for c in found] == ["a@x.com"]
        assert metrics.get_summary()["extraction_failures"] == 1

    @pytest.mark.asyncio
    async def test_vision_skipped_when_disabled(self, browser_control):
        pipeline, _ = self.make_pipeline(vision_result=[vision("a@x.com", 0.9)])

        found = await pipeline.collect(browser_control, use_vision=False)

        assert found == []
        pipeline.vision_extractor.extract.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_vision_screenshot_failure_absorbed(self, browser_control, fake_backend):
        fake_backend.fail_on.add("capture_screenshot")
        pipeline, metrics = self.make_pipeline(
            text_result=[text("a@x.com", 0.75)],
            vision_result=[vision("b@x.com", 0.9)],
        )

        found = await pipeline.collect(browser_control)

        assert [c.value for c in found] == ["a@x.com"]
        assert metrics.get_summary()["extraction_failures"] == 1

    @pytest.mark.asyncio
    async def test_repeated_scans_do_not_compound(self, browser_control):
        """Scanning the same page twice leaves the contact list unchanged"""
        pipeline, _ = self.make_pipeline(
            text_result=[text("a@x.com", 0.75)],
            vision_result=[vision("A@X.com", 0.8)],
        )
        state = RunState(task="t", max_steps=5)

        new_first = await pipeline.scan(browser_control, state)
        after_first = [c.model_dump() for c in state.contacts]
        new_second = await pipeline.scan(browser_control, state)

        assert new_first == 1
        assert new_second == 0
        assert [c.model_dump() for c in state.contacts] == after_first
        assert state.contacts[0].confidence == pytest.approx(0.775 * 1.1)

    @pytest.mark.asyncio
    async def test_scan_respects_max_results(self, browser_control):
        pipeline, _ = self.make_pipeline(text_result=[text(f"u{i}@x.com", 0.7) for i in range(6)])
        state = RunState(task="t", max_steps=5)

        await pipeline.scan(browser_control, state, max_results=2)

        assert len(state.contacts) == 2
