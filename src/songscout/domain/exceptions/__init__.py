"""Domain exceptions."""

from typing import Any


class DomainException(Exception):
    """Base exception for all domain exceptions."""

    # Hey future me, we store message as an attribute so code can inspect it without parsing
    # str(exception). This is the base class - DON'T raise it directly! Always use a specific
    # subclass so phase executors can map the failure to the right track status.
    def __init__(self, message: str, *args: Any) -> None:
        super().__init__(message, *args)
        self.message = message


class EntityNotFoundException(DomainException):
    """Raised when an entity is not found."""

    def __init__(self, entity_type: str, entity_id: Any) -> None:
        super().__init__(f"{entity_type} with id {entity_id} not found")
        self.entity_type = entity_type
        self.entity_id = entity_id


class InvalidStateException(DomainException):
    """Raised when an entity is in an invalid state for the requested operation.

    Example: moving a completed job back to running.
    """

    pass


# =============================================================================
# Source failure taxonomy
# Hey future me - every external call ends in exactly ONE of these (or success).
# Phase executors translate them into track statuses:
#   SourceUnavailableError  -> failed   (retry later via scheduler)
#   NoDataFoundError        -> no_data  (NOT an error, source just had nothing)
#   AuthExpiredError        -> failed   (+ halts credits calls until remediated)
#   MalformedResponseError  -> failed   (logged loudly, API changed?)
#   ConfigurationMissingError -> phase skipped, track untouched
# =============================================================================


class SourceError(DomainException):
    """Base for failures raised by source clients."""

    def __init__(self, message: str, source: str = "unknown") -> None:
        super().__init__(message)
        self.source = source


class SourceUnavailableError(SourceError):
    """Network error, timeout, 5xx or exhausted rate-limit retries.

    Retriable later, never within the same job.
    """

    pass


class NoDataFoundError(SourceError):
    """Source responded successfully but had no match."""

    pass


class MalformedResponseError(SourceError):
    """Source responded with an unexpected payload shape."""

    pass


class ConfigurationMissingError(SourceError):
    """Credentials for a source are absent; calls short-circuit."""

    pass


class AuthExpiredError(SourceError):
    """Session cookies or refresh token are no longer valid.

    Hey future me - this is the ONE failure that needs a human! For the
    scraping session that means re-exporting cookies; for the catalog API it
    means re-running the OAuth flow. Phase executors stop calling the
    affected source for the rest of the job but keep going with other phases.
    """

    def __init__(
        self,
        message: str = "Authentication expired. Manual renewal required.",
        source: str = "unknown",
        http_status: int | None = None,
        error_code: str | None = None,
    ) -> None:
        super().__init__(message, source)
        self.http_status = http_status
        self.error_code = error_code  # e.g., "invalid_grant"

    @property
    def requires_reauth(self) -> bool:
        """Check if error requires manual re-authentication."""
        return self.error_code == "invalid_grant" or self.http_status in (400, 401, 403)


class VaultError(DomainException):
    """Credential vault could not encrypt or decrypt.

    Raised for a missing key, a corrupt blob, or a failed auth tag. The vault
    fails closed: no partially decrypted token ever leaves it.
    """

    pass


__all__ = [
    "AuthExpiredError",
    "ConfigurationMissingError",
    "DomainException",
    "EntityNotFoundException",
    "InvalidStateException",
    "MalformedResponseError",
    "NoDataFoundError",
    "SourceError",
    "SourceUnavailableError",
    "VaultError",
]
