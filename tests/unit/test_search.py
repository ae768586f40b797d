"""Unit tests for contact search parameters and task builders"""

import pytest
from pathlib import Path
import sys
from urllib.parse import parse_qs, urlparse

# Add project root to path
project_root = Path(__file__).parent.parent.parent
sys.path.insert(0, str(project_root))

from pydantic import ValidationError

from contact_scout.agent.search import (
    AnalysisDepth,
    ContactSearchParams,
    build_search_query,
    build_search_url,
    build_task,
    estimate_steps,
    preprocess_task,
)
from contact_scout.extraction.models import ContactKind


class TestContactSearchParams:
    """Test parameter defaults and validation"""

    def test_defaults(self):
        params = ContactSearchParams(target="Acme")

        assert params.contact_type == ContactKind.EMAIL
        assert params.analysis_depth == AnalysisDepth.QUICK
        assert params.max_results == 5
        assert params.location is None

    @pytest.mark.parametrize("target", ["", "   "])
    def test_blank_target_rejected(self, target):
        with pytest.raises(ValidationError):
            ContactSearchParams(target=target)

    @pytest.mark.parametrize("max_results", [0, 11])
    def test_max_results_bounds(self, max_results):
        with pytest.raises(ValidationError):
            ContactSearchParams(target="Acme", max_results=max_results)

    def test_unknown_contact_type_rejected(self):
        with pytest.raises(ValidationError):
            ContactSearchParams(target="Acme", contact_type="fax")


class TestQueryBuilding:
    """Test search query and URL construction"""

    def test_email_query(self):
        query = build_search_query(ContactSearchParams(target="Acme Corp"))

        assert query.startswith("Acme Corp email ")
        assert 'contact email OR email address OR "get in touch" OR mailto:' in query
        assert query.endswith("-inurl:(login signup register)")

    def test_location_and_filters(self):
        params = ContactSearchParams(
            target="Acme",
            contact_type="phone",
            location="Boston",
            additional_filters="investor relations",
        )

        query = build_search_query(params)

        assert "phone number OR contact phone OR call us" in query
        assert "Boston investor relations -inurl:" in query

    def test_thorough_adds_site_diversity(self):
        query = build_search_query(ContactSearchParams(target="Acme", analysis_depth="thorough"))

        assert query.endswith("site:*.com OR site:*.org OR site:*.io OR site:*.co")

    def test_search_url_round_trips_query(self):
        params = ContactSearchParams(target="Acme & Sons")

        url = build_search_url(params)

        parsed = urlparse(url)
        assert parsed.netloc == "www.google.com"
        assert parse_qs(parsed.query)["q"] == [build_search_query(params)]


class TestTaskHelpers:
    """Test task text helpers"""

    def test_build_task(self):
        task = build_task(ContactSearchParams(target="Acme", location="Boston", max_results=3))

        assert task.startswith("Find email contact information for Acme in Boston")
        assert "up to 3 contacts" in task
        assert "DONE" in task

    @pytest.mark.parametrize("task,expected", [
        ("find the investor emails", "Locate and extract investor contact email addresses"),
        ("get contact info for Acme", "Get email addresses and phone numbers for Acme"),
        ("Find contact information", "Find contact information"),
        ("", ""),
    ])
    def test_preprocess_task(self, task, expected):
        assert preprocess_task(task) == expected

    @pytest.mark.parametrize("task,steps", [
        ("Find investor emails", 8),
        ("Look up Acme's phone", 8),
        ("Analyze and compare three funds", 20),
        ("Open acme.com", 12),
    ])
    def test_estimate_steps(self, task, steps):
        assert estimate_steps(task) == steps
