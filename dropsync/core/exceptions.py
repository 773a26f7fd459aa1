from typing import Optional


class BaseServiceError(Exception):
    """Base exception for all service-related errors."""
    pass

class AuthError(BaseServiceError):
    """Raised when credentials or configuration needed to obtain a token are missing or rejected."""
    pass

class AuthTimeout(AuthError):
    """Raised when an authorization flow does not complete inside its window."""
    pass

class APIError(BaseServiceError):
    """Raised when an external API call fails."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code

class UnauthorizedError(APIError):
    """Raised on HTTP 401 so callers can refresh the token and retry once."""
    pass

class TransientAPIError(APIError):
    """Raised for network failures and 5xx responses."""
    pass

class NotFoundError(APIError):
    """Raised when an expected remote entity is absent."""
    pass

class SupplierAPIError(APIError):
    """Raised when AutoDS API calls fail."""
    pass

class ChannelAPIError(APIError):
    """Raised when eBay API calls fail."""
    pass

class PersistenceError(BaseServiceError):
    """Raised when a store write fails."""
    pass
