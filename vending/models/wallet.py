from django.conf import settings
from django.db import models

from vending.models.base import ZERO, BaseModel, money_field


class Wallet(BaseModel):
    """
    Holds a user's spendable balance.

    The balance never goes negative: a check constraint enforces it in the
    store, and every mutation runs in a store transaction that holds this
    row's lock (select_for_update) and writes through F() expressions.
    """

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="wallet",
    )
    balance = money_field(default=ZERO)

    class Meta(BaseModel.Meta):
        constraints = [
            models.CheckConstraint(
                condition=models.Q(balance__gte=0),
                name="wallet_balance_non_negative",
            ),
        ]

    def __str__(self):
        return f"Wallet of user {self.user_id} (balance={self.balance})"
