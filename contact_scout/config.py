"""Runtime settings for the vision agent.

Every pacing delay and scoring constant lives here so tests can zero the
delays and tune the multipliers without touching module code.
"""

import os
from typing import Optional

from pydantic import BaseModel, Field


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


class GatewaySettings(BaseModel):
    """Model gateway settings"""
    api_key: Optional[str] = None
    model: str = "gemini-2.5-flash"
    requests_per_minute: int = Field(default=15, gt=0)
    timeout_seconds: float = Field(default=30.0, gt=0)
    default_retry_after: float = Field(default=60.0, ge=0)

    # Action decisions: short, low-temperature answers
    action_temperature: float = 0.1
    action_top_k: int = 1
    action_top_p: float = 0.8
    action_max_output_tokens: int = 60

    # Structured contact extraction
    extraction_temperature: float = 0.2
    extraction_max_output_tokens: int = 1024


class BrowserSettings(BaseModel):
    """Browser control port settings"""
    headless: bool = False
    viewport_width: int = Field(default=375, gt=0)
    viewport_height: int = Field(default=812, gt=0)
    typing_delay: float = Field(default=0.05, ge=0)
    submit_delay: float = Field(default=0.3, ge=0)
    click_settle_delay: float = Field(default=0.5, ge=0)
    scroll_settle_delay: float = Field(default=0.4, ge=0)
    scroll_pixels: int = Field(default=500, gt=0)
    # Clicks further than this multiple of the viewport are rejected, not clamped
    max_click_overshoot: float = Field(default=1.5, ge=1.0)


class ScoringSettings(BaseModel):
    """Contact confidence scoring"""
    vision_factor: float = 0.9
    both_sources_boost: float = 1.1
    min_confidence: float = Field(default=0.6, ge=0, le=1)
    max_results: int = Field(default=10, gt=0)
    max_candidates: int = Field(default=200, gt=0)


class AgentSettings(BaseModel):
    """Agent loop settings"""
    max_steps: int = Field(default=25, gt=0)
    step_delay: float = Field(default=0.7, ge=0)
    page_load_delay: float = Field(default=2.0, ge=0)
    action_log_limit: int = Field(default=200, gt=0)
    vision_extraction: bool = False


class Settings(BaseModel):
    """Top-level settings bundle"""
    gateway: GatewaySettings = Field(default_factory=GatewaySettings)
    browser: BrowserSettings = Field(default_factory=BrowserSettings)
    scoring: ScoringSettings = Field(default_factory=ScoringSettings)
    agent: AgentSettings = Field(default_factory=AgentSettings)

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables (call load_dotenv() first)"""
        gateway = GatewaySettings(
            api_key=os.getenv("GOOGLE_API_KEY") or os.getenv("GEMINI_API_KEY"),
            model=os.getenv("GEMINI_MODEL", "gemini-2.5-flash"),
            requests_per_minute=int(os.getenv("GEMINI_RPM", "15")),
            timeout_seconds=float(os.getenv("GEMINI_TIMEOUT_SECONDS", "30")),
            default_retry_after=float(os.getenv("GEMINI_DEFAULT_RETRY_AFTER", "60")),
        )
        browser = BrowserSettings(
            headless=_env_bool("HEADLESS"),
            typing_delay=float(os.getenv("TYPING_DELAY", "0.05")),
        )
        scoring = ScoringSettings(
            min_confidence=float(os.getenv("CONTACT_MIN_CONFIDENCE", "0.6")),
            max_results=int(os.getenv("CONTACT_MAX_RESULTS", "10")),
        )
        agent = AgentSettings(
            max_steps=int(os.getenv("AGENT_MAX_STEPS", "25")),
            step_delay=float(os.getenv("AGENT_STEP_DELAY", "0.7")),
            page_load_delay=float(os.getenv("AGENT_PAGE_LOAD_DELAY", "2.0")),
        )
        return cls(gateway=gateway, browser=browser, scoring=scoring, agent=agent)
