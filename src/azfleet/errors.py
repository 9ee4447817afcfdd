"""Error taxonomy for azfleet and translation of Azure SDK errors.

Every failure surfaces as an AzfleetError subclass:
- AuthError: missing credentials or a rejected token exchange
- ApiError: the control plane rejected a request (quota, name conflict,
  invalid parameter, throttling)
- ProvisioningTimeoutError: the transport gave up before the operation
  reached a terminal state
- ConfigError / AddressSpaceError: invalid local configuration

Nothing here retries. translate_azure_error() only classifies the SDK
exception and attaches an actionable hint for the common cases; callers
raise the result ``from`` the original so the SDK traceback is kept.
"""

from dataclasses import dataclass
from enum import StrEnum

from azure.core.exceptions import (
    AzureError,
    ClientAuthenticationError,
    HttpResponseError,
    ServiceRequestTimeoutError,
    ServiceResponseTimeoutError,
)

from azfleet.log_sanitizer import LogSanitizer

QUOTA_DOCS_URL = "https://learn.microsoft.com/azure/quotas/per-vm-quota-requests"


class AzfleetError(Exception):
    """Base class for all azfleet errors."""

    pass


class ConfigError(AzfleetError):
    """Raised when configuration is invalid or cannot be loaded."""

    pass


class AddressSpaceError(ConfigError):
    """Raised when a subnet prefix falls outside its virtual network."""

    pass


class AuthError(AzfleetError):
    """Raised when credentials are missing or rejected."""

    pass


class ProvisioningTimeoutError(AzfleetError):
    """Raised when a remote operation did not reach a terminal state in time."""

    pass


class ApiErrorCategory(StrEnum):
    """Coarse classification of control plane rejections."""

    QUOTA = "quota"
    CONFLICT = "conflict"
    INVALID_PARAMETER = "invalid_parameter"
    THROTTLED = "throttled"
    NOT_FOUND = "not_found"
    UNKNOWN = "unknown"


class ApiError(AzfleetError):
    """Raised when the Azure control plane rejects a request.

    Attributes:
        status_code: HTTP status returned by the service (None if no response)
        error_code: Azure error code, e.g. "QuotaExceeded"
        category: ApiErrorCategory derived from status and code
        operation: Human-readable name of the failed operation
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        error_code: str | None = None,
        category: ApiErrorCategory = ApiErrorCategory.UNKNOWN,
        operation: str | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.error_code = error_code
        self.category = category
        self.operation = operation


@dataclass(frozen=True)
class _Classifier:
    category: ApiErrorCategory
    status_codes: frozenset[int]
    error_codes: tuple[str, ...]
    phrases: tuple[str, ...]


# First match wins within each pass
_CLASSIFIERS = (
    _Classifier(
        ApiErrorCategory.QUOTA,
        frozenset(),
        ("QuotaExceeded",),
        ("quota", "exceeding approved"),
    ),
    _Classifier(
        ApiErrorCategory.THROTTLED,
        frozenset({429}),
        ("TooManyRequests", "Throttl"),
        ("too many requests", "throttl"),
    ),
    _Classifier(
        ApiErrorCategory.CONFLICT,
        frozenset({409}),
        ("Conflict", "AlreadyExists", "AlreadyTaken", "InUse"),
        ("already exists", "already taken", "already in use"),
    ),
    _Classifier(
        ApiErrorCategory.NOT_FOUND,
        frozenset({404}),
        ("NotFound",),
        ("could not be found", "was not found"),
    ),
    _Classifier(
        ApiErrorCategory.INVALID_PARAMETER,
        frozenset({400}),
        ("InvalidParameter", "InvalidRequest", "BadRequest"),
        ("invalid parameter", "is invalid"),
    ),
)


def classify_api_error(
    status_code: int | None, error_code: str | None, message: str
) -> ApiErrorCategory:
    """Classify a control plane rejection.

    Checked in three passes: the structured Azure error code, then phrases in
    the message text, then the bare status code. Azure reports some quota
    failures as 409 "OperationNotAllowed" with the detail only in the message,
    and conflicts sometimes as 400. A generic code such as
    "OperationNotAllowed" matches no classifier, so lock and state conflicts
    fall through to their status code instead of the quota hint.

    Args:
        status_code: HTTP status code, if any
        error_code: Azure error code, if any
        message: Error message text

    Returns:
        The matching ApiErrorCategory
    """
    code = (error_code or "").lower()
    if code:
        for classifier in _CLASSIFIERS:
            if any(known.lower() in code for known in classifier.error_codes):
                return classifier.category
    text = message.lower()
    for classifier in _CLASSIFIERS:
        if any(phrase in text for phrase in classifier.phrases):
            return classifier.category
    for classifier in _CLASSIFIERS:
        if status_code in classifier.status_codes:
            return classifier.category
    return ApiErrorCategory.UNKNOWN


def _hint_for(category: ApiErrorCategory) -> str | None:
    if category == ApiErrorCategory.QUOTA:
        return f"Request a quota increase or pick a smaller VM size: {QUOTA_DOCS_URL}"
    if category == ApiErrorCategory.CONFLICT:
        return "A resource with this name already exists; rerun to generate new names."
    if category == ApiErrorCategory.THROTTLED:
        return "Azure is throttling requests; wait a few minutes and rerun."
    return None


def _error_code_of(error: HttpResponseError) -> str | None:
    odata = getattr(error, "error", None)
    code = getattr(odata, "code", None)
    return code if isinstance(code, str) else None


def translate_azure_error(error: Exception, operation: str) -> AzfleetError:
    """Map an Azure SDK exception to the azfleet error taxonomy.

    Args:
        error: Exception raised by azure-core / azure-mgmt-* / azure-identity
        operation: What we were doing, e.g. "create virtual network vnet1"

    Returns:
        AuthError, ProvisioningTimeoutError or ApiError (never raises)
    """
    safe_message = LogSanitizer.sanitize_exception(error)

    if isinstance(error, ClientAuthenticationError):
        return AuthError(f"Authentication rejected during {operation}: {safe_message}")

    if isinstance(error, (ServiceRequestTimeoutError, ServiceResponseTimeoutError, TimeoutError)):
        return ProvisioningTimeoutError(f"Timed out during {operation}: {safe_message}")

    if isinstance(error, HttpResponseError):
        status_code = error.status_code
        error_code = _error_code_of(error)
        category = classify_api_error(status_code, error_code, safe_message)
        message = f"Failed to {operation}"
        if status_code is not None:
            message += f" (HTTP {status_code})"
        message += f": {safe_message}"
        hint = _hint_for(category)
        if hint:
            message += f"\n{hint}"
        return ApiError(
            message,
            status_code=status_code,
            error_code=error_code,
            category=category,
            operation=operation,
        )

    if isinstance(error, AzureError):
        return ApiError(f"Failed to {operation}: {safe_message}", operation=operation)

    return ApiError(
        f"Unexpected error during {operation}: {safe_message}", operation=operation
    )


__all__ = [
    "AddressSpaceError",
    "ApiError",
    "ApiErrorCategory",
    "AuthError",
    "AzfleetError",
    "ConfigError",
    "ProvisioningTimeoutError",
    "classify_api_error",
    "translate_azure_error",
]
