"""Unit tests for DOM text contact extraction"""

import pytest
from pathlib import Path
import sys

# Add project root to path
project_root = Path(__file__).parent.parent.parent
sys.path.insert(0, str(project_root))

from contact_scout.errors import ExtractionFailed
from contact_scout.extraction.models import ContactKind, ContactSource
from contact_scout.extraction.text_extractor import DOM_SNAPSHOT_SCRIPT, TextContactExtractor


SNAPSHOT = {
    "url": "https://acme.com/about",
    "text": (
        "Acme Corp builds rockets. Press: press@acme.com. "
        "Reach ir@acme.com for investor relations. Call us at (415) 555-0123. "
        "Visit 123 Main Street, Suite 400 in San Francisco."
    ),
    "links": [
        {"href": "mailto:hello@acme.com?subject=Hi", "text": "Email us"},
        {"href": "tel:+14155550199", "text": "Call"},
        {"href": "https://www.linkedin.com/company/acme", "text": "LinkedIn"},
        {"href": "https://acme.com/careers", "text": "Careers"},
    ],
    "sections": [
        {"selector": "#contact", "text": "Investor relations: ir@acme.com"},
    ],
}


def by_value(contacts):
    return {c.value: c for c in contacts}


class TestTextExtractor:
    """Test DOM snapshot scanning"""

    @pytest.mark.asyncio
    async def test_extracts_all_kinds(self, browser_control, fake_backend):
        fake_backend.snapshot = SNAPSHOT
        contacts = by_value(await TextContactExtractor().extract(browser_control))

        assert contacts["ir@acme.com"].confidence == pytest.approx(0.80)
        assert "#contact" in contacts["ir@acme.com"].context
        assert contacts["hello@acme.com"].confidence == pytest.approx(0.80)
        assert contacts["+14155550199"].confidence == pytest.approx(0.75)
        assert contacts["+14155550199"].kind == ContactKind.PHONE
        assert contacts["https://www.linkedin.com/company/acme"].kind == ContactKind.SOCIAL
        assert contacts["https://www.linkedin.com/company/acme"].confidence == pytest.approx(0.70)
        assert contacts["press@acme.com"].confidence == pytest.approx(0.75)
        assert contacts["(415) 555-0123"].confidence == pytest.approx(0.70)
        assert contacts["123 Main Street, Suite 400"].kind == ContactKind.ADDRESS
        assert all(c.source == ContactSource.TEXT for c in contacts.values())

    @pytest.mark.asyncio
    async def test_first_occurrence_wins(self, browser_control, fake_backend):
        """An email in a contact section and the body is reported once, from the section"""
        fake_backend.snapshot = SNAPSHOT
        contacts = await TextContactExtractor().extract(browser_control)

        matches = [c for c in contacts if c.value.lower() == "ir@acme.com"]
        assert len(matches) == 1
        assert "contact section" in matches[0].context

    @pytest.mark.asyncio
    async def test_non_contact_links_ignored(self, browser_control, fake_backend):
        fake_backend.snapshot = SNAPSHOT
        contacts = by_value(await TextContactExtractor().extract(browser_control))

        assert "https://acme.com/careers" not in contacts

    @pytest.mark.asyncio
    async def test_empty_page(self, browser_control):
        assert await TextContactExtractor().extract(browser_control) == []

    @pytest.mark.asyncio
    async def test_evaluate_failure_raises_extraction_failed(self, browser_control, fake_backend):
        fake_backend.fail_on.add("evaluate")

        with pytest.raises(ExtractionFailed) as exc_info:
            await TextContactExtractor().extract(browser_control)

        assert exc_info.value.extractor == "text"

    @pytest.mark.asyncio
    async def test_malformed_snapshot_raises_extraction_failed(self, browser_control, fake_backend):
        fake_backend.snapshot = "not json at all"

        with pytest.raises(ExtractionFailed):
            await TextContactExtractor().extract(browser_control)

    def test_extract_from_text(self):
        contacts = TextContactExtractor().extract_from_text("Write to team@example.org today")

        assert [c.value for c in contacts] == ["team@example.org"]

    def test_snapshot_script_lists_contact_selectors(self):
        assert "footer" in DOM_SNAPSHOT_SCRIPT
        assert '[class*=\\"contact\\"]' in DOM_SNAPSHOT_SCRIPT
