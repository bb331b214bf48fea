# drivetest_AnalyticsReporter/core/errors.py
from __future__ import annotations


class IngestionError(ValueError):
    """Raw source has no header or no rows; nothing can be normalized."""


class RemoteRefinerFailure(RuntimeError):
    """Remote refinement failed; never escapes RemoteRefiner.refine()."""
