"""Log sanitization for provisioning output and error messages.

Azure SDK errors and our own progress lines can echo request bodies, and a
VM create request carries the admin password. Everything that reaches the log
goes through LogSanitizer first.

Redacted:
- Client secrets (assignments and CLIENT_SECRET / AZURE_CLIENT_SECRET env vars)
- Admin passwords (including the SDK's adminPassword / admin_password keys)
- Bearer tokens and access tokens
- UUIDs (subscription, tenant, client ids) are partially masked on request

Design Philosophy:
- Security first: err on side of over-redaction
- Pattern-based, not brittle keyword matching
"""

import re
from re import Pattern
from typing import Any


class LogSanitizer:
    """Sanitize sensitive data from logs and error messages.

    All methods are class methods and can be called without instantiation.
    """

    REDACTED = "[REDACTED]"
    MASKED = "****"

    # Order matters: more specific patterns come first
    SECRET_PATTERNS: dict[str, Pattern] = {
        "client_secret_assignment": re.compile(
            r'(client[_-]?secret["\']?\s*[:=]\s*["\']?)([^\s"\'&,\)]+)',
            re.IGNORECASE,
        ),
        "client_secret_env": re.compile(
            r"((?:AZURE_)?CLIENT_SECRET[\"']?\s*[:=]\s*[\"']?)([^\s\"'&,\)]+)",
            re.IGNORECASE,
        ),
        "admin_password": re.compile(
            r'(admin[_-]?password["\']?\s*[:=]\s*["\']?)([^\s"\'&,\)]+)', re.IGNORECASE
        ),
        "password": re.compile(r'(password["\']?\s*[:=]\s*["\']?)([^\s"\'&,\)]+)', re.IGNORECASE),
        "authorization_bearer": re.compile(r"(Authorization:\s*Bearer\s+)([^\s]+)", re.IGNORECASE),
        "access_token": re.compile(
            r'(access[_-]?token["\']?\s*[:=]\s*["\']?)([^\s"\'&,\)]+)',
            re.IGNORECASE,
        ),
        "secret_phrase": re.compile(
            r"(with secret:\s*|for secret:\s*|secret:\s*)([^\s,\)]+)", re.IGNORECASE
        ),
    }

    UUID_PATTERN: Pattern = re.compile(
        r"\b([0-9a-f]{8})-([0-9a-f]{4})-([0-9a-f]{4})-([0-9a-f]{4})-([0-9a-f]{12})\b",
        re.IGNORECASE,
    )

    SENSITIVE_KEYS = (
        "client_secret",
        "password",
        "access_token",
        "token",
        "secret",
        "credential",
        "authorization",
    )

    @classmethod
    def sanitize(cls, message: str) -> str:
        """Sanitize message by redacting sensitive patterns.

        Args:
            message: The message to sanitize

        Returns:
            Sanitized message with secrets replaced by [REDACTED]

        Examples:
            >>> LogSanitizer.sanitize("client_secret=abc123")
            'client_secret=[REDACTED]'
            >>> LogSanitizer.sanitize('"adminPassword": "Hunter2!"')
            '"adminPassword": "[REDACTED]"'
        """
        if not isinstance(message, str):
            message = str(message)

        result = message
        for pattern in cls.SECRET_PATTERNS.values():
            result = pattern.sub(r"\1" + cls.REDACTED, result)
        return result

    @classmethod
    def mask_ids(cls, message: str) -> str:
        """Partially mask UUIDs (subscription, tenant and client ids).

        Shows the first 8 characters, masks the rest.

        Examples:
            >>> LogSanitizer.mask_ids("subscription 12345678-1234-1234-1234-123456789abc")
            'subscription 12345678-****-****-****-************'
        """

        def uuid_replacer(match):
            return f"{match.group(1)}-****-****-****-************"

        return cls.UUID_PATTERN.sub(uuid_replacer, message)

    @classmethod
    def sanitize_dict(cls, data: dict[str, Any]) -> dict[str, Any]:
        """Sanitize dictionary values recursively.

        Keys that look sensitive are redacted outright; string values are
        passed through sanitize().
        """
        result: dict[str, Any] = {}
        for key, value in data.items():
            key_lower = key.lower()
            if any(word in key_lower for word in cls.SENSITIVE_KEYS):
                result[key] = cls.REDACTED
            elif isinstance(value, dict):
                result[key] = cls.sanitize_dict(value)
            elif isinstance(value, list):
                result[key] = [
                    cls.sanitize_dict(item)
                    if isinstance(item, dict)
                    else cls.sanitize(item)
                    if isinstance(item, str)
                    else item
                    for item in value
                ]
            elif isinstance(value, str):
                result[key] = cls.sanitize(value)
            else:
                result[key] = value
        return result

    @classmethod
    def create_safe_error_message(cls, error: Exception, context: str = "") -> str:
        """Create error message with secrets sanitized.

        Examples:
            >>> err = ValueError("Auth failed with client_secret=abc123")
            >>> LogSanitizer.create_safe_error_message(err, "Authentication")
            'Authentication: Auth failed with client_secret=[REDACTED]'
        """
        sanitized_msg = cls.sanitize(str(error))
        if context:
            return f"{context}: {sanitized_msg}"
        return sanitized_msg

    @classmethod
    def sanitize_exception(cls, exc: BaseException) -> str:
        """Sanitize an exception's message."""
        return cls.sanitize(str(exc))


__all__ = ["LogSanitizer"]
