from typing import Any, Callable, Dict, Optional

from pydantic import BaseModel, Field

from spectra.errors import (
    InvalidEndpointError,
    MissingEndpointError,
    MissingServiceNameError,
)

DEFAULT_SHUTDOWN_TIMEOUT = 5.0

SUPPORTED_SCHEMES = ("grpc://", "http://", "https://")


class Config:
    exception_logger: Optional[Callable[[Exception], None]] = None


class SpectraConfig(BaseModel):
    """Validated configuration snapshot held by a session."""

    service_name: str = ""
    endpoint: str = ""
    insecure: bool = False
    shutdown_timeout: Optional[float] = None
    disable_traces: bool = False
    disable_metrics: bool = False
    disable_logs: bool = False
    headers: Dict[str, str] = Field(default_factory=dict)
    resource_attributes: Dict[str, Any] = Field(default_factory=dict)

    @property
    def shutdown_timeout_millis(self) -> int:
        return int((self.shutdown_timeout or DEFAULT_SHUTDOWN_TIMEOUT) * 1000)


def validate_config(cfg: SpectraConfig) -> SpectraConfig:
    """Check required fields and fill in defaults.

    Returns a copy; the given config is left untouched.
    """
    if not cfg.service_name:
        raise MissingServiceNameError()

    if not cfg.endpoint:
        raise MissingEndpointError()

    if not cfg.endpoint.strip().lower().startswith(SUPPORTED_SCHEMES):
        raise InvalidEndpointError()

    update = {"endpoint": cfg.endpoint.strip()}
    if not cfg.shutdown_timeout:
        update["shutdown_timeout"] = DEFAULT_SHUTDOWN_TIMEOUT

    return cfg.model_copy(update=update)
