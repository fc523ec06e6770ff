"""Custom exception classes for the application.

Provides a hierarchy of exceptions for consistent error handling
across the application with appropriate HTTP status codes.
"""

from decimal import Decimal


class AppException(Exception):
    """Base application exception.

    All custom exceptions should inherit from this class. ``retryable``
    tells clients whether the same request may succeed once refreshed.
    """

    retryable = False

    def __init__(self, message: str, status_code: int = 500) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class NotFoundError(AppException):
    """Resource not found exception.

    Raised when a requested resource does not exist.
    """

    def __init__(self, resource: str, identifier: str) -> None:
        super().__init__(
            message=f"{resource} with id {identifier} not found",
            status_code=404,
        )
        self.resource = resource
        self.identifier = identifier


class WalletNotFoundError(NotFoundError):
    """The user has no wallet for the requested currency."""

    def __init__(self, user_id: str, currency: str) -> None:
        AppException.__init__(
            self,
            message=f"{currency} wallet not found for user {user_id}",
            status_code=404,
        )
        self.resource = "Wallet"
        self.identifier = f"{user_id}/{currency}"


class ConflictError(AppException):
    """Resource conflict exception.

    Raised when there's a conflict such as a duplicate wallet
    for the same user and currency.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message=message, status_code=409)


class ValidationError(AppException):
    """Input validation failed exception.

    Raised when input data fails validation rules.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message=message, status_code=422)


class InvalidInputError(ValidationError):
    """Malformed input handed to the withdrawal reconciler.

    Raised for non-positive amounts or a queue that is not ordered
    by creation time.
    """


class InvalidStateTransitionError(AppException):
    """Transaction status change not allowed from its current status.

    The transaction is left unchanged.
    """

    def __init__(self, transaction_id: str, current: str, target: str) -> None:
        super().__init__(
            message=(
                f"Transaction {transaction_id} is not pending "
                f"(status {current}, requested {target})"
            ),
            status_code=409,
        )
        self.transaction_id = transaction_id
        self.current = current
        self.target = target


class InsufficientBalanceError(AppException):
    """Insufficient wallet balance exception.

    Raised when a withdrawal cannot be requested or approved because
    the committed wallet balance does not cover it. The transaction
    stays pending, so the caller may refresh and retry.
    """

    retryable = True

    def __init__(
        self,
        wallet_id: str,
        required: Decimal,
        available: Decimal,
    ) -> None:
        super().__init__(
            message=(
                f"Insufficient balance in wallet {wallet_id}: "
                f"required {required}, available {available}"
            ),
            status_code=409,
        )
        self.wallet_id = wallet_id
        self.required = required
        self.available = available


class AuthenticationError(AppException):
    """No usable caller identity on the request."""

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(message=message, status_code=401)


class AuthorizationError(AppException):
    """Caller is known but lacks the required privileges."""

    def __init__(
        self,
        message: str = "Admin privileges required to access this resource",
    ) -> None:
        super().__init__(message=message, status_code=403)
