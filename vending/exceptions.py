"""
Typed failures of the vending services.

Each error carries a machine-readable ``code`` and the HTTP status the API
answers with, so views render every failure the same way.
"""


class VendingError(Exception):
    code = "error"
    status_code = 500
    default_message = "Vending operation failed."

    def __init__(self, message=None):
        super().__init__(message or self.default_message)

    @property
    def message(self):
        return str(self)


class ValidationFailed(VendingError, ValueError):
    code = "validation_error"
    status_code = 400
    default_message = "Invalid request."


class NotFound(VendingError):
    code = "not_found"
    status_code = 404
    default_message = "Not found."


class TransactionNotFound(NotFound):
    default_message = "Transaction not found."


class WalletNotFound(NotFound):
    default_message = "Wallet not found."


class InvalidTransactionState(VendingError):
    """The transaction is no longer pending (paid, expired or cancelled)."""

    code = "invalid_state"
    status_code = 409

    def __init__(self, status, transaction_id=None):
        self.status = status
        self.transaction_id = transaction_id
        super().__init__(f"Transaction already {status}.")


class InsufficientFunds(VendingError):
    code = "insufficient_funds"
    status_code = 400

    def __init__(self, balance=None, amount=None):
        self.balance = balance
        self.amount = amount
        super().__init__("Insufficient balance.")


class TransactionIdConflict(VendingError):
    """Every generated id collided with an existing transaction."""

    code = "conflict"
    status_code = 409
    default_message = "Could not allocate a transaction id, please retry."


class AccountExists(VendingError):
    code = "conflict"
    status_code = 409
    default_message = "A user with this email already exists."


class InvalidCredentials(VendingError):
    code = "invalid_credentials"
    status_code = 401
    default_message = "Invalid email or password."


class RechargeRejected(VendingError):
    code = "recharge_failed"
    status_code = 502
    default_message = "The operator rejected the recharge."


class ServiceUnavailable(VendingError):
    code = "service_unavailable"
    status_code = 503
    default_message = "Database unavailable."
