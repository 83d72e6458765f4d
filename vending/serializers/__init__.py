from vending.serializers.account import LoginSerializer, RegisterSerializer, UserSerializer
from vending.serializers.transaction import (
    CreateTransactionSerializer,
    PayTransactionSerializer,
    TransactionSerializer,
)
from vending.serializers.wallet import (
    RechargeRequestSerializer,
    RechargeSerializer,
)

__all__ = [
    "CreateTransactionSerializer",
    "LoginSerializer",
    "PayTransactionSerializer",
    "RechargeRequestSerializer",
    "RechargeSerializer",
    "RegisterSerializer",
    "TransactionSerializer",
    "UserSerializer",
]
