"""
Exceptions raised by json_home_client
"""
from typing import Optional


class JsonHomeError(Exception):
    """Base class for json_home_client errors."""
    pass


class ConfigurationError(JsonHomeError):
    """Raised when a service is built with missing or invalid settings."""
    pass


class FetchError(JsonHomeError):
    """Raised when a json-home document cannot be fetched or parsed."""

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class ExpansionError(JsonHomeError):
    """Raised when an href-template cannot be expanded."""

    def __init__(self, message: str, template: Optional[str] = None) -> None:
        super().__init__(message)
        self.template = template
