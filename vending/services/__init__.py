from vending.services.account import AccountService
from vending.services.transaction import PaymentResult, TransactionService
from vending.services.wallet import RechargeResult, WalletService

__all__ = [
    "AccountService",
    "PaymentResult",
    "RechargeResult",
    "TransactionService",
    "WalletService",
]
