"""Data models for the agent loop: actions, viewport, run state and results"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Annotated, Dict, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, Field

from contact_scout.extraction.models import Contact, ContactSource


# =============================================================================
# ACTIONS
# =============================================================================

class ScrollDirection(str, Enum):
    UP = "up"
    DOWN = "down"


class ClickAction(BaseModel):
    kind: Literal["click"] = "click"
    x: int = Field(ge=0)
    y: int = Field(ge=0)

    def describe(self) -> str:
        return f"Click ({self.x}, {self.y})"


class TypeAction(BaseModel):
    kind: Literal["type"] = "type"
    text: str
    submit: bool = False

    def describe(self) -> str:
        return f'Type "{self.text}"' + (" + Enter" if self.submit else "")


class ScrollAction(BaseModel):
    kind: Literal["scroll"] = "scroll"
    direction: ScrollDirection = ScrollDirection.DOWN

    def describe(self) -> str:
        return f"Scroll {self.direction.value}"


class DoneAction(BaseModel):
    kind: Literal["done"] = "done"
    summary: str = "Task completed"

    def describe(self) -> str:
        return f"Done: {self.summary}"


Action = Annotated[
    Union[ClickAction, TypeAction, ScrollAction, DoneAction],
    Field(discriminator="kind"),
]


class Viewport(BaseModel):
    width: int = Field(gt=0)
    height: int = Field(gt=0)


# =============================================================================
# RUN STATE
# =============================================================================

class RunStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    STOPPED_AT_LIMIT = "stopped_at_limit"
    FAILED = "failed"


TERMINAL_STATUSES = {RunStatus.SUCCEEDED, RunStatus.STOPPED_AT_LIMIT, RunStatus.FAILED}


@dataclass
class RunState:
    """Mutable record of one task execution, owned by the agent loop"""
    task: str
    max_steps: int
    run_id: str = "N/A"
    step_index: int = 0
    status: RunStatus = RunStatus.IDLE
    action_log: List[str] = field(default_factory=list)
    contacts: List[Contact] = field(default_factory=list)
    # Raw extractor output keyed by (normalized value, source); merged into `contacts`
    candidates: Dict[Tuple[str, ContactSource], Contact] = field(default_factory=dict)
    summary: str = ""
    error: Optional[str] = None
    cancelled: bool = False
    action_log_limit: int = 200
    max_candidates: int = 200

    def __post_init__(self):
        if self.max_steps <= 0:
            raise ValueError("max_steps must be positive")

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def start(self):
        if self.status != RunStatus.IDLE:
            raise RuntimeError(f"Run already started (status: {self.status.value})")
        self.status = RunStatus.RUNNING

    def finish(self, status: RunStatus, summary: str = "", error: Optional[str] = None):
        """Move to a terminal status; terminal states never transition again"""
        if self.is_terminal:
            return
        if status not in TERMINAL_STATUSES:
            raise ValueError(f"{status.value} is not a terminal status")
        self.status = status
        self.summary = summary
        self.error = error

    def log_action(self, entry: str):
        self.action_log.append(entry)
        if len(self.action_log) > self.action_log_limit:
            del self.action_log[: len(self.action_log) - self.action_log_limit]

    def add_candidates(self, contacts: List[Contact]) -> int:
        """
        Remember raw extractor contacts, keeping the best confidence per (value, source).

        Returns:
            Number of previously unseen values
        """
        known_values = {key for key, _ in self.candidates}
        new_values = set()
        for contact in contacts:
            key = (contact.key, contact.source)
            existing = self.candidates.get(key)
            if existing is None:
                if len(self.candidates) >= self.max_candidates:
                    continue
                self.candidates[key] = contact
                if contact.key not in known_values:
                    new_values.add(contact.key)
            elif contact.confidence > existing.confidence:
                self.candidates[key] = contact
        return len(new_values)

    def candidate_lists(self) -> Tuple[List[Contact], List[Contact]]:
        """Split the candidate pool into (text, vision) lists in insertion order"""
        text = [c for (_, source), c in self.candidates.items() if source == ContactSource.TEXT]
        vision = [c for (_, source), c in self.candidates.items() if source == ContactSource.VISION]
        return text, vision


# =============================================================================
# RESULTS / EVENTS
# =============================================================================

class AgentResult(BaseModel):
    """Terminal result of one run, returned whatever the outcome"""
    success: bool
    status: RunStatus
    summary: str
    steps: int
    contacts: List[Contact] = Field(default_factory=list)
    final_url: str = ""
    actions: List[str] = Field(default_factory=list)
    error: Optional[str] = None
    cancelled: bool = False
    finished_at: str = Field(default_factory=lambda: datetime.now().isoformat())

    @classmethod
    def from_state(cls, state: RunState, final_url: str) -> "AgentResult":
        return cls(
            success=state.status == RunStatus.SUCCEEDED,
            status=state.status,
            summary=state.summary,
            steps=state.step_index,
            contacts=list(state.contacts),
            final_url=final_url,
            actions=list(state.action_log),
            error=state.error,
            cancelled=state.cancelled,
        )


@dataclass
class ProgressEvent:
    """Live progress notification for presentation layers"""
    step: int
    message: str
    screenshot: Optional[bytes] = None
