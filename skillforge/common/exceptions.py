"""
Common Exception Classes

Exceptions raised by the rewards engine. Badge ineligibility is never an
exception: it is reported through ``BadgeEligibilityResult``. These classes
cover the fault paths only.
"""

from typing import Optional, Any


class BaseError(Exception):
    """Base class for all engine exceptions."""

    def __init__(self, message: str, original_exception: Optional[Exception] = None):
        """
        Initialize the exception.

        Args:
            message: Error message
            original_exception: Underlying exception, if any
        """
        super().__init__(message)
        self.message = message
        self.original_exception = original_exception


class NotFoundError(BaseError):
    """Raised when a required record (such as user progress) does not exist."""

    def __init__(self, resource_type: str, resource_id: Any):
        super().__init__(f"{resource_type} with ID {resource_id} not found")
        self.resource_type = resource_type
        self.resource_id = resource_id


class ValidationError(BaseError):
    """Raised for malformed inputs, such as an unknown tier name."""

    def __init__(self, message: str, errors: Optional[dict] = None):
        super().__init__(f"Validation error: {message}")
        self.errors = errors or {}


class ConfigurationError(BaseError):
    """
    Raised when code and configuration disagree.

    A special or community badge requested by name but missing from its
    catalog is a configuration fault, not an ineligible user.
    """

    def __init__(self, message: str, config_key: Optional[str] = None):
        super().__init__(f"Configuration error: {message}")
        self.config_key = config_key


class StoreError(BaseError):
    """Raised when the user-progress store fails."""

    def __init__(self, message: str, original_exception: Optional[Exception] = None):
        super().__init__(f"Store error: {message}", original_exception)


class ExternalIntegrationError(BaseError):
    """Raised by credential-ledger adapters when verification fails."""

    def __init__(
        self,
        message: str,
        integration: str = "credential_ledger",
        original_exception: Optional[Exception] = None
    ):
        super().__init__(f"{integration} failure: {message}", original_exception)
        self.integration = integration
