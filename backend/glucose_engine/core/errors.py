class EngineError(Exception):
    """Base class for errors raised by the decay and prediction engine."""


class ConfigurationError(EngineError, ValueError):
    """Raised when a configuration snapshot is missing or invalid."""


class InvalidGridError(EngineError, ValueError):
    """Raised when a projection grid cannot be walked (bad step or bounds)."""

    def __init__(self, message: str, step_minutes: float | None = None):
        super().__init__(message)
        self.step_minutes = step_minutes


__all__ = ["EngineError", "ConfigurationError", "InvalidGridError"]
