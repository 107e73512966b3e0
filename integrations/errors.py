from typing import Optional


class ApiError(RuntimeError):
    """Request to the CMS API failed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class AuthenticationExpired(ApiError):
    """The API rejected the token (HTTP 401/403)."""

    def __init__(self, status_code: Optional[int] = None):
        super().__init__("Authentication expired", status_code)
