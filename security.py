"""
Security helpers for handling user-supplied credentials and URLs.

API keys are only ever logged in masked form, and server URLs entered in the
settings screen are checked before they are stored or probed.
"""

import re
from typing import Optional, List
from urllib.parse import urlsplit


class SecurityError(Exception):
    """Raised when security validation fails"""
    pass


class InputValidationError(SecurityError):
    """Raised when input validation fails"""
    pass


class APIKeyValidator:
    """Checks and masks remote API keys"""

    MAX_LENGTH = 512

    @staticmethod
    def mask_api_key(api_key: Optional[str]) -> str:
        """
        Mask API key for safe logging.

        Args:
            api_key: API key to mask

        Returns:
            Masked version showing only first and last few characters
        """
        if not api_key or len(api_key) < 8:
            return "***"

        return f"{api_key[:4]}...{api_key[-4:]}"

    @classmethod
    def key_warnings(cls, api_key: str) -> List[str]:
        """
        Soft checks on an API key. Only the remote server decides validity.

        Returns:
            List of human-readable warnings
        """
        warnings = []
        if api_key != api_key.strip():
            warnings.append("API key has leading or trailing whitespace")
        if len(api_key) > cls.MAX_LENGTH:
            warnings.append(f"API key is unusually long ({len(api_key)} characters)")
        if re.search(r"[\x00-\x1f\x7f]", api_key):
            warnings.append("API key contains control characters")
        return warnings


class InputSanitizer:
    """Validates user inputs before they are persisted or sent out"""

    ALLOWED_SCHEMES = ("http", "https")

    @classmethod
    def validate_server_url(cls, server_url: str) -> str:
        """
        Validate a remote server base URL.

        Args:
            server_url: URL as typed by the user

        Returns:
            The URL stripped of surrounding whitespace and trailing slashes

        Raises:
            InputValidationError: If the URL is not an absolute http(s) URL
        """
        if not isinstance(server_url, str):
            raise InputValidationError("Server URL must be a string")

        url = server_url.strip()
        if not url:
            raise InputValidationError("Server URL cannot be empty")

        if re.search(r"\s", url):
            raise InputValidationError("Server URL cannot contain whitespace")

        parts = urlsplit(url)
        if parts.scheme.lower() not in cls.ALLOWED_SCHEMES:
            raise InputValidationError(
                f"Server URL must start with http:// or https:// (got '{parts.scheme or url}')"
            )
        if not parts.netloc:
            raise InputValidationError("Server URL is missing a host")

        return url.rstrip("/")


def mask_api_key(api_key: Optional[str]) -> str:
    """Shortcut for APIKeyValidator.mask_api_key"""
    return APIKeyValidator.mask_api_key(api_key)
