"""
Error taxonomy for the fishcast engine.

Provider-level failures are recovered inside the tide gateway by falling
through the provider chain; callers only ever see ProviderUnavailable once
every fallback is exhausted.
"""


class FishcastError(Exception):
    """Base class for all engine errors."""


class ProviderUnavailable(FishcastError):
    """A tide provider (or every provider) could not supply data."""


class StationNotFound(ProviderUnavailable):
    """No tide station lies within the search radius."""


class InsufficientData(FishcastError):
    """Fewer than two tide extremes are available."""


class InvalidInput(FishcastError, ValueError):
    """Out-of-range coordinates or malformed parameters."""
