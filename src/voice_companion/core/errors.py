"""
Exception taxonomy for the voice companion engine.

Every failure raised inside the engine derives from VoiceCompanionError and
has a local recovery path; none of them is meant to reach the user unhandled.
"""


class VoiceCompanionError(Exception):
    """Base class for engine errors."""


class ProviderUnavailable(VoiceCompanionError):
    """A single provider attempt failed; the caller advances to the next one."""

    def __init__(self, provider: str, reason: str = ""):
        self.provider = provider
        self.reason = reason
        message = f"Provider '{provider}' unavailable"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class AllProvidersFailed(VoiceCompanionError):
    """Every provider of a family failed."""

    def __init__(self, family: str, attempted: list[str] | None = None):
        self.family = family
        self.attempted = attempted or []
        super().__init__(f"All {family} providers failed (tried: {', '.join(self.attempted) or 'none'})")


class RecognitionError(VoiceCompanionError):
    """Speech capture failed (permission denied, network loss, no microphone)."""

    def __init__(self, code: str, message: str = ""):
        self.code = code
        super().__init__(message or f"Speech recognition error: {code}")


class ElementNotFound(VoiceCompanionError):
    """No element on the live page matched a directive's target."""

    def __init__(self, target: str):
        self.target = target
        super().__init__(f"Element not found: {target}")


class StaleCancellation(VoiceCompanionError):
    """A result arrived for a cancellation token that is no longer current."""


class CircuitBreakerOpenError(ProviderUnavailable):
    """The provider's circuit breaker is open; the call was not attempted."""
