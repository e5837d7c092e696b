"""Error taxonomy shared by the webhook and dashboard layers."""
from typing import Optional


class CommsError(Exception):
    """Base class for communication-hub errors."""


class NotFoundError(CommsError):
    """A call session or message row is absent."""


class ConflictError(CommsError):
    """A write would overwrite an existing mapping."""


class PhoneAlreadyLinkedError(ConflictError):
    """The phone number is already linked to a different customer."""

    def __init__(self, phone: str, customer_id: int):
        self.phone = phone
        self.customer_id = customer_id
        super().__init__(f"Phone {phone} is already linked to customer {customer_id}")


class ProviderError(CommsError):
    """An outbound call to a third-party provider failed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class ConfigurationError(CommsError):
    """Unrecoverable misconfiguration (e.g. no team phones at all)."""
