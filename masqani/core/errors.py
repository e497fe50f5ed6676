"""Error taxonomy shared by the repositories, the blob store and the
transaction engines.

Every error carries the HTTP status the API renders it with and a short
machine-readable ``code``.
"""


class MarketplaceError(Exception):
    status_code: int = 500
    code: str = "marketplace_error"

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.__class__.__doc__ or self.code
        super().__init__(self.detail)


class ValidationError(MarketplaceError):
    """Invalid input. Nothing was changed."""

    status_code = 422
    code = "validation_error"


class ConflictError(MarketplaceError):
    """A transaction for this request is already in flight."""

    status_code = 409
    code = "conflict"


class NotFoundError(MarketplaceError):
    """Requested record does not exist."""

    status_code = 404
    code = "not_found"


class ConnectivityError(MarketplaceError):
    """The backing store could not be reached."""

    status_code = 503
    code = "connectivity_error"


class WriteError(MarketplaceError):
    """The backing store rejected the write."""

    status_code = 502
    code = "write_error"


class UploadError(MarketplaceError):
    """The blob store rejected the upload."""

    status_code = 502
    code = "upload_error"


class AuthRequiredError(MarketplaceError):
    """An authenticated session is required."""

    status_code = 401
    code = "auth_required"


class IncompleteUploadError(MarketplaceError):
    """Some listing photos are still inline-encoded."""

    status_code = 422
    code = "incomplete_upload"


class AlreadyUnlockedError(MarketplaceError):
    """This listing is already unlocked for the payer."""

    status_code = 409
    code = "already_unlocked"


class RoleNotEligibleError(MarketplaceError):
    """The account role cannot perform this operation."""

    status_code = 403
    code = "role_not_eligible"


class PaymentGatewayError(MarketplaceError):
    """The payment gateway did not confirm the request."""

    status_code = 402
    code = "payment_failed"
