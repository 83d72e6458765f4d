from vending.views.account import LoginView, ProfileView, RegisterView
from vending.views.health import HealthView
from vending.views.transaction import (
    CancelTransactionView,
    CreateTransactionView,
    PayTransactionView,
    TransactionDetailView,
    TransactionHistoryView,
)
from vending.views.wallet import EmptyWalletView, RechargeView

__all__ = [
    "CancelTransactionView",
    "CreateTransactionView",
    "EmptyWalletView",
    "HealthView",
    "LoginView",
    "PayTransactionView",
    "ProfileView",
    "RechargeView",
    "RegisterView",
    "TransactionDetailView",
    "TransactionHistoryView",
]
