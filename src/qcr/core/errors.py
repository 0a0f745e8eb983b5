from __future__ import annotations

from typing import Optional


class ReviewError(Exception):
    """Base class for everything qcr raises on purpose."""


class ConfigurationError(ReviewError):
    """Missing credential or invalid setting. Raised before any file is reviewed."""


class AnalysisInputError(ReviewError):
    """Content the host refuses to review (empty or binary)."""


class ExternalServiceError(ReviewError):
    def __init__(self, message: str, *, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code
