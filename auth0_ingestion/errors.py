"""Exception types raised by the ingestion job."""

from __future__ import annotations

from typing import Optional


class ConfigurationFault(ValueError):
    """Invalid enumerator settings or runaway subdivision. Never retried."""

    def __init__(
        self,
        message: str,
        depth: Optional[int] = None,
        max_depth: Optional[int] = None,
        ceiling: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.depth = depth
        self.max_depth = max_depth
        self.ceiling = ceiling


class IntegrationValidationError(ValueError):
    """Integration instance config is missing fields or malformed."""


class IntegrationProviderAuthenticationError(RuntimeError):
    """The management API rejected our credentials or granted too little scope."""

    def __init__(
        self,
        endpoint: str,
        status: Optional[int] = None,
        status_text: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(
            f"Provider authentication failed at {endpoint}: {status} {status_text}"
        )
        self.endpoint = endpoint
        self.status = status
        self.status_text = status_text
        self.__cause__ = cause


class DuplicateKeyError(KeyError):
    """An entity or relationship with the same _key was already collected."""
