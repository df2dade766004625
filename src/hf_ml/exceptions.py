"""
Error taxonomy for the HF-ML pipeline.

Recoverable failures are handled where they occur (a failed search candidate is
skipped, a degenerate bootstrap resample is excluded). Everything else aborts the
current (subgroup, outcome) or (outcome, iteration) unit and is reported by the
orchestrator.
"""


class HFMLError(Exception):
    """Base class for pipeline errors."""


class ConfigurationError(HFMLError):
    """Raised when a hyperparameter space, budget or domain declaration is malformed."""


class SearchExhaustedError(HFMLError):
    """Raised when no hyperparameter configuration could be trained."""


class DegenerateSampleError(HFMLError):
    """Raised when a scored sample contains a single outcome class."""

    def __init__(self, message: str, classes: list | None = None):
        super().__init__(message)
        self.classes = classes or []


class UnreliableBootstrapError(HFMLError):
    """Raised when more than the tolerated fraction of resamples is degenerate."""

    def __init__(self, message: str, n_degenerate: int = 0, n_resamples: int = 0):
        super().__init__(message)
        self.n_degenerate = n_degenerate
        self.n_resamples = n_resamples


class ResourceCleanupWarning(UserWarning):
    """Warning for engine artifacts that could not be released."""
