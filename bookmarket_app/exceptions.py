"""
API error taxonomy.

Every error carries a human readable message, the HTTP status it maps to and
a short ``kind`` string. ApiErrorMiddleware turns them into JSON responses.
"""


class BookMarketError(Exception):
    status_code = 500
    kind = "Error"

    def __init__(self, message, status_code=None, errors=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.errors = errors or []

    def to_dict(self):
        payload = {"success": False, "kind": self.kind, "message": self.message}
        if self.errors:
            payload["errors"] = self.errors
        return payload


class NotFoundError(BookMarketError):
    status_code = 404
    kind = "NotFoundError"


class ConflictError(BookMarketError):
    status_code = 409
    kind = "ConflictError"


class ListingUnavailableError(ConflictError):
    """Purchase attempted on a listing that is not purchasable (HTTP 400)."""

    status_code = 400


class ForbiddenError(BookMarketError):
    status_code = 403
    kind = "ForbiddenError"


class SelfPurchaseError(ForbiddenError):
    """Owner tried to buy their own listing (HTTP 400)."""

    status_code = 400


class ValidationError(BookMarketError):
    status_code = 400
    kind = "ValidationError"

    @classmethod
    def from_form(cls, form, message="Invalid input"):
        errors = [
            {"field": field, "message": str(error)}
            for field, field_errors in form.errors.items()
            for error in field_errors
        ]
        return cls(message, errors=errors)


class AuthenticationError(BookMarketError):
    status_code = 401
    kind = "AuthenticationError"
