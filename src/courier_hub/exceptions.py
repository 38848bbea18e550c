"""Domain exceptions for the courier hub.

These map to consistent HTTP responses when handled by the global exception handler.
"""


class CourierHubError(Exception):
    """Base exception for courier hub domain errors."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int = 500,
        detail: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.detail = detail or message


class ConfigurationError(CourierHubError):
    """Raised when a client's delivery setup is missing or unusable."""

    def __init__(self, message: str, detail: str | None = None) -> None:
        super().__init__(message, status_code=400, detail=detail or message)


class IntegrationNotConfiguredError(ConfigurationError):
    """Raised when no enabled integration exists for a (client, company) pair."""

    def __init__(
        self,
        message: str = "Delivery integration not configured for this company",
        detail: str | None = None,
    ) -> None:
        super().__init__(message, detail=detail)


class InsecureConfigurationError(CourierHubError):
    """Raised at startup when required secrets are missing or insecure."""

    def __init__(self, message: str, detail: str | None = None) -> None:
        super().__init__(message, status_code=500, detail=detail or message)


class ResourceNotFoundError(CourierHubError):
    """Raised when a requested resource does not exist."""

    def __init__(self, message: str, detail: str | None = None) -> None:
        super().__init__(message, status_code=404, detail=detail or message)


class DeliveryValidationError(CourierHubError):
    """Raised when request input is invalid."""

    def __init__(self, message: str, detail: str | None = None) -> None:
        super().__init__(message, status_code=400, detail=detail or message)


class WebhookPayloadError(CourierHubError):
    """Raised when a courier webhook payload cannot be parsed."""

    def __init__(self, message: str, detail: str | None = None) -> None:
        super().__init__(message, status_code=400, detail=detail or message)


class CredentialDecryptionError(CourierHubError):
    """Raised when a credential envelope is malformed or fails authentication."""

    def __init__(self, message: str = "Credential envelope could not be decrypted") -> None:
        super().__init__(message, status_code=500, detail="Stored credential is unreadable")
