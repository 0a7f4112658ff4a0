"""Error taxonomy shared by services and the HTTP layer."""

from typing import Any, Dict, List, Optional

from fastapi import status

# Leading location segments FastAPI adds to request validation errors
REQUEST_SECTIONS = ("body", "query", "path", "header", "cookie")


class BuyerIntakeError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None, details: Optional[List[Dict[str, Any]]] = None):
        self.message = message or self.default_message
        self.details = details or []
        super().__init__(self.message)

    def headers(self) -> Optional[Dict[str, str]]:
        return None

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.message}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(BuyerIntakeError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Validation failed"

    @classmethod
    def from_field_errors(cls, errors) -> "ValidationError":
        return cls(details=[error.to_dict() for error in errors])

    @classmethod
    def from_pydantic(cls, errors) -> "ValidationError":
        """Build from pydantic error dicts, dropping the request-section prefix from locations."""
        details = []
        for error in errors:
            loc = [str(part) for part in error.get("loc", ())]
            if loc and loc[0] in REQUEST_SECTIONS:
                loc = loc[1:]
            details.append({"field": ".".join(loc) or "_root", "message": error.get("msg", "Invalid value")})
        return cls(details=details)


class StructuralImportError(BuyerIntakeError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid import file"


class AuthenticationError(BuyerIntakeError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Authentication required"

    def headers(self):
        return {"WWW-Authenticate": "Bearer"}


class PermissionDeniedError(BuyerIntakeError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "You do not have permission to modify this buyer"


class NotFoundError(BuyerIntakeError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Buyer not found"


class ConflictError(BuyerIntakeError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "A buyer with this email already exists"


class ConcurrencyError(BuyerIntakeError):
    status_code = status.HTTP_409_CONFLICT
    default_message = (
        "This buyer has been modified since you last viewed it. "
        "Please refresh and try again."
    )


class SearchTimeoutError(BuyerIntakeError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_message = "Search took too long. Please retry or narrow your filters."
    retry_after_seconds = 1

    def headers(self):
        return {"Retry-After": str(self.retry_after_seconds)}


class InternalError(BuyerIntakeError):
    pass
