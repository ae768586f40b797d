"""Per-run metrics tracking"""

from collections import defaultdict
from datetime import datetime
from typing import Any, Dict

from loguru import logger


class MetricsTracker:
    """Track counters for one agent run"""

    def __init__(self):
        """Initialize metrics tracker"""
        self.reset()
        logger.debug("Metrics tracker initialized")

    def record_step(self):
        """Record a completed loop step"""
        self.metrics['steps'] += 1

    def record_action(self, kind: str):
        """Record a dispatched action by kind (click, type, scroll, done)"""
        self.metrics['actions_by_kind'][kind] += 1

    def record_gateway_call(self, duration_seconds: float = 0.0):
        """Record a model gateway round trip"""
        self.metrics['gateway_calls'] += 1
        self.metrics['gateway_durations'].append(duration_seconds)

    def record_parse_fallback(self, raw_text: str = ""):
        """Record model output the decoder could not parse"""
        self.metrics['parse_fallbacks'] += 1

    def record_invalid_click(self):
        """Record a click replaced by a scroll"""
        self.metrics['invalid_clicks'] += 1

    def record_extraction(self, extractor: str, found: int):
        """Record contacts found by one extractor pass"""
        self.metrics['contacts_found'][extractor] += found

    def record_extraction_failure(self, extractor: str, reason: str):
        """Record an absorbed extraction failure"""
        self.metrics['extraction_failures'] += 1
        self.record_failure('extraction', extractor, reason)

    def record_failure(
        self,
        failure_type: str,
        component: str,
        reason: str,
        context: Dict[str, Any] = None
    ):
        """
        Record a detailed failure

        Args:
            failure_type: Type of failure (gateway, browser, extraction, cancelled, ...)
            component: Component that failed (model_gateway, browser_control, text, vision, ...)
            reason: Detailed reason for failure
            context: Additional context (step, action, url, ...)
        """
        self.metrics['failures'].append({
            'timestamp': datetime.now().isoformat(),
            'type': failure_type,
            'component': component,
            'reason': reason,
            'context': context or {}
        })
        self.metrics['errors'] += 1

    def get_summary(self) -> Dict[str, Any]:
        """Get metrics summary"""
        durations = self.metrics['gateway_durations']
        avg_gateway_seconds = sum(durations) / len(durations) if durations else 0

        return {
            'total_steps': self.metrics['steps'],
            'actions_by_kind': dict(self.metrics['actions_by_kind']),
            'gateway_calls': self.metrics['gateway_calls'],
            'avg_gateway_seconds': avg_gateway_seconds,
            'parse_fallbacks': self.metrics['parse_fallbacks'],
            'invalid_clicks': self.metrics['invalid_clicks'],
            'contacts_found': dict(self.metrics['contacts_found']),
            'extraction_failures': self.metrics['extraction_failures'],
            'total_errors': self.metrics['errors'],
            'failures': self.metrics['failures']
        }

    def reset(self):
        """Reset metrics"""
        self.metrics = {
            'steps': 0,
            'actions_by_kind': defaultdict(int),
            'gateway_calls': 0,
            'gateway_durations': [],
            'parse_fallbacks': 0,
            'invalid_clicks': 0,
            'contacts_found': defaultdict(int),
            'extraction_failures': 0,
            'errors': 0,
            'failures': []
        }
