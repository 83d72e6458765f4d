from vending.models.user import User, UserManager
from vending.models.wallet import Wallet
from vending.models.transaction import Transaction
from vending.models.distributor import DistributorLedger
from vending.models.recharge import Recharge

__all__ = [
    "User",
    "UserManager",
    "Wallet",
    "Transaction",
    "DistributorLedger",
    "Recharge",
]
