"""Prompt templates sent to the vision model"""

from typing import Optional


ACTION_PROMPT = """You are driving a browser to complete exactly this task: "{task}".

Your available actions (output EXACTLY ONE per response):
- CLICK x y (click at pixel coordinates x,y - numbers only, viewport is {width}x{height})
- TYPE text [SUBMIT] (type text, optional SUBMIT to press enter)
- SCROLL down (scroll down to see more content)
- SCROLL up (scroll up to previous content)
- DONE <summary> (task complete, provide summary of results)

Current browser screenshot attached. Analyze and choose EXACTLY ONE action.
Focus on completing the task efficiently. Coordinates must be within the visible viewport.

Output format: CLICK 320 410 | TYPE Search investor emails SUBMIT | SCROLL down | DONE Found 3 investor emails
"""


EXTRACTION_PROMPT = """Analyze this webpage screenshot for contact information about "{target}".

Look for:
- Email addresses (especially company domain emails)
- Phone numbers in contact sections
- Physical addresses in footers
- Social media links (LinkedIn, Twitter)
- Contact forms or "Get in touch" buttons

Return JSON only, in this format:
{{
  "contacts": [
    {{
      "value": "contact@example.com",
      "type": "email",
      "confidence": 0.95,
      "context": "Found in footer contact section"
    }}
  ],
  "insights": ["Page appears to be contact page"],
  "pageType": "contact page"
}}

Focus on high-quality contacts relevant to {target}."""


def build_action_prompt(task: str, width: Optional[int] = None, height: Optional[int] = None) -> str:
    """Fill the action prompt; unknown viewport falls back to a typical phone size"""
    return ACTION_PROMPT.format(task=task, width=width or 375, height=height or 812)


def build_extraction_prompt(target: Optional[str]) -> str:
    return EXTRACTION_PROMPT.format(target=target or "the page owner")
