"""
Spectra error classes
"""


class SpectraError(Exception):
    """Base exception for spectra errors"""
    pass


class ConfigError(SpectraError):
    """Configuration is missing a required field or holds an invalid value"""
    pass


class MissingServiceNameError(ConfigError):
    """Service name is not configured"""

    def __init__(self, message: str = "service name is required"):
        super().__init__(message)


class MissingEndpointError(ConfigError):
    """OTLP endpoint is not configured"""

    def __init__(self, message: str = "endpoint is required"):
        super().__init__(message)


class InvalidEndpointError(ConfigError):
    """OTLP endpoint does not carry a supported scheme"""

    def __init__(
        self,
        message: str = "endpoint must have scheme (grpc://, http://, or https://)",
    ):
        super().__init__(message)


class NotInitializedError(SpectraError):
    """Session is used before spectra.init() built it"""

    def __init__(self, message: str = "spectra not initialized"):
        super().__init__(message)


class AlreadyShutdownError(SpectraError):
    """Session is used after shutdown"""

    def __init__(self, message: str = "spectra already shutdown"):
        super().__init__(message)


class BackendError(SpectraError):
    """Exporter, provider or instrument construction failed"""
    pass
