"""Action decoder: model text -> one typed Action.

Grammar (one line, first match wins):
    DONE <summary>          (must start the text)
    CLICK <x> <y>           (non-negative numbers, decimals rounded half-up)
    TYPE <content> [SUBMIT] (SUBMIT may carry trailing punctuation)
    SCROLL up|down          (SCROLL upper-case only; direction any case)

DONE, CLICK, TYPE and SUBMIT are case-insensitive.

Anything else degrades to SCROLL down. The decoder never raises.
"""

import math
import re
from typing import Any, Callable, Optional

from loguru import logger

from contact_scout.agent.models import (
    Action,
    ClickAction,
    DoneAction,
    ScrollAction,
    ScrollDirection,
    TypeAction,
)


DEFAULT_DONE_SUMMARY = "Task completed"

_DONE_RE = re.compile(r"^DONE[ \t]*[:\-]?(.*)", re.IGNORECASE | re.DOTALL)
_CLICK_RE = re.compile(r"\bCLICK[ \t]+(\d+(?:\.\d+)?)[ \t,]+(\d+(?:\.\d+)?)", re.IGNORECASE)
_TYPE_RE = re.compile(r"\bTYPE[ \t]+([^\r\n]+)", re.IGNORECASE)
_SUBMIT_SUFFIX_RE = re.compile(r"[ \t]+SUBMIT[ \t]*[.!,;:]*[ \t]*$", re.IGNORECASE)
_SCROLL_RE = re.compile(r"\bSCROLL[ \t]+(?i:(up|down))\b")


def _round_half_up(value: str) -> int:
    return int(math.floor(float(value) + 0.5))


class ActionDecoder:
    """Parses model output; fallbacks are logged, counted and reported"""

    def __init__(self, on_fallback: Optional[Callable[[str], None]] = None):
        self.on_fallback = on_fallback
        self.fallback_count = 0

    def parse(self, text: Any) -> Action:
        """Total parse: always returns a valid Action"""
        try:
            action = self._match(self._as_text(text))
        except Exception as e:
            logger.warning(f"Action decoder error ({e}), defaulting to scroll down")
            action = None

        if action is None:
            self._fallback(text)
            return ScrollAction(direction=ScrollDirection.DOWN)
        return action

    def _as_text(self, text: Any) -> str:
        if text is None:
            return ""
        if isinstance(text, (bytes, bytearray)):
            return bytes(text).decode("utf-8", errors="replace")
        return str(text)

    def _match(self, text: str) -> Optional[Action]:
        stripped = text.strip()

        done = _DONE_RE.match(stripped)
        if done:
            summary = done.group(1).strip()
            return DoneAction(summary=summary or DEFAULT_DONE_SUMMARY)

        click = _CLICK_RE.search(text)
        if click:
            return ClickAction(x=_round_half_up(click.group(1)), y=_round_half_up(click.group(2)))

        typed = _TYPE_RE.search(text)
        if typed:
            line = typed.group(1).rstrip()
            suffix = _SUBMIT_SUFFIX_RE.search(line)
            content = (line[:suffix.start()] if suffix else line).strip()
            submit = suffix is not None
            if content:
                return TypeAction(text=content, submit=submit)

        scroll = _SCROLL_RE.search(text)
        if scroll:
            return ScrollAction(direction=ScrollDirection(scroll.group(1).lower()))

        return None

    def _fallback(self, text: Any):
        self.fallback_count += 1
        preview = repr(text)[:120]
        logger.warning(f"Unrecognized action {preview}, defaulting to scroll down")
        if self.on_fallback:
            try:
                self.on_fallback(self._as_text(text))
            except Exception as e:
                logger.debug(f"Fallback callback error: {e}")


def parse_action(text: Any) -> Action:
    """Parse with a throwaway decoder"""
    return ActionDecoder().parse(text)
