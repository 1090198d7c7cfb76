"""Domain errors and failure typing."""


class PipelineError(Exception):
    """Base class for pipeline failures."""

    error_code = "PIPELINE_ERROR"


class ConfigError(PipelineError):
    """Raised for invalid or missing configuration."""

    error_code = "CONFIG_ERROR"


class DeserializationError(PipelineError):
    """Raised when a raw record does not have the expected structure."""

    error_code = "DESERIALIZATION_ERROR"


class CoercionError(DeserializationError):
    """Raised when a captured value cannot be converted to its declared type."""

    error_code = "COERCION_ERROR"

    def __init__(self, message: str, *, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class BufferFullError(PipelineError):
    """Raised when a transport buffer cannot accept another record."""

    error_code = "BUFFER_FULL"


class TransportError(PipelineError):
    """Raised when a batch could not be delivered."""

    error_code = "TRANSPORT_ERROR"

    def __init__(self, message: str, *, outcome=None) -> None:
        super().__init__(message)
        self.outcome = outcome


class RetryableTransportError(TransportError):
    """Raised for delivery failures that the retry policy may retry."""

    error_code = "RETRYABLE_TRANSPORT_ERROR"
