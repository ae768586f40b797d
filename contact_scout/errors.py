"""Error taxonomy for the vision agent.

Gateway and browser errors bubble up to the agent loop, which turns them
into a failed AgentResult. Extraction errors are absorbed by the pipeline.
"""

from typing import Optional


class ContactScoutError(Exception):
    """Base class for every error raised by this package"""


# =============================================================================
# MODEL GATEWAY
# =============================================================================

class GatewayError(ContactScoutError):
    """Model gateway call failed after its local retry policy"""


class RateLimited(GatewayError):
    """Upstream kept answering 429 after the single allowed retry"""

    def __init__(self, retry_after_seconds: float):
        self.retry_after_seconds = retry_after_seconds
        super().__init__(f"Rate limited by model endpoint (retry after {retry_after_seconds:.0f}s)")


class GatewayTimeout(GatewayError):
    """Model request exceeded its hard timeout"""

    def __init__(self, timeout_seconds: float):
        self.timeout_seconds = timeout_seconds
        super().__init__(f"Model request timed out after {timeout_seconds:.0f}s")


class UpstreamError(GatewayError):
    """Non-retryable upstream failure (4xx, 5xx or safety block)"""

    def __init__(self, status: Optional[int], message: str, safety_blocked: bool = False):
        self.status = status
        self.message = message
        self.safety_blocked = safety_blocked
        prefix = "Safety block" if safety_blocked else f"Upstream error {status}"
        super().__init__(f"{prefix}: {message}")


# =============================================================================
# BROWSER CONTROL PORT
# =============================================================================

class BrowserError(ContactScoutError):
    """Browser control port failure"""


class InvalidCoordinates(BrowserError):
    """Requested click point cannot be mapped onto the live viewport"""

    def __init__(self, x: int, y: int, reason: str):
        self.x = x
        self.y = y
        self.reason = reason
        super().__init__(f"Invalid click coordinates ({x}, {y}): {reason}")


class BrowserOperationFailed(BrowserError):
    """Backend transport error translated into a single taxonomy"""

    def __init__(self, operation: str, cause: BaseException):
        self.operation = operation
        self.cause = cause
        super().__init__(f"Browser operation failed ({operation}): {cause}")


# =============================================================================
# EXTRACTION / LOOP
# =============================================================================

class ExtractionFailed(ContactScoutError):
    """An extractor could not produce contacts; treated as an empty result"""

    def __init__(self, extractor: str, reason: str):
        self.extractor = extractor
        self.reason = reason
        super().__init__(f"{extractor} extraction failed: {reason}")


class RunCancelled(ContactScoutError):
    """Run was cancelled cooperatively between steps"""

    def __init__(self, step: int):
        self.step = step
        super().__init__("cancelled")
