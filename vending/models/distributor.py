from django.db import models

from vending.models.base import ZERO, BaseModel, money_field


class DistributorLedger(BaseModel):
    """
    Running total of the money collected by the vending machines.

    Single row (pk=SINGLETON_ID), credited inside the same store transaction
    that debits the payer during settlement.
    """

    SINGLETON_ID = 1

    id = models.PositiveSmallIntegerField(primary_key=True, default=SINGLETON_ID)
    balance = money_field(max_digits=14, default=ZERO)
    transaction_count = models.PositiveIntegerField(default=0)

    def __str__(self):
        return f"Distributor ledger (balance={self.balance}, transactions={self.transaction_count})"

    @classmethod
    def load_for_update(cls):
        """Lock the ledger row, creating it on first use."""
        ledger, _ = cls.objects.select_for_update().get_or_create(pk=cls.SINGLETON_ID)
        return ledger
