"""
Error taxonomy for the extraction pipeline.

Every error is scoped to a unit (container, item, category). Finer scopes are
caught and recorded on the session; only ConfigurationError ends a run early.
"""


class ExtractionError(Exception):
    """Base class for pipeline errors."""

    @property
    def kind(self) -> str:
        return type(self).__name__


class NavigationTimeout(ExtractionError):
    """A navigation did not complete within its timeout."""


class NavigationFailed(ExtractionError):
    """A navigation failed for a reason other than a timeout (HTTP status, network)."""


class FieldResolutionExhausted(ExtractionError):
    """All strategies for a field came back empty. Never fatal."""


class ContainerDiscoveryExhausted(ExtractionError):
    """No container strategy matched; the category yields zero records."""


class DetailFetchFailed(ExtractionError):
    """A detail page could not be fetched; the item keeps listing-only data."""


class CategoryFatal(ExtractionError):
    """The listing page of a category could not be loaded after retries."""


class ConfigurationError(ExtractionError):
    """No category could be resolved from configuration."""


class BudgetExhausted(ExtractionError):
    """The run's wall-clock or item budget ran out."""
