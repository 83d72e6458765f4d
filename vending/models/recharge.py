from django.conf import settings
from django.db import models

from vending.models.base import BaseModel, money_field


class Recharge(BaseModel):
    """
    Records every wallet top-up request sent to a mobile-money operator.

    The operator's raw response is stored for auditing and debugging. Only
    COMPLETED recharges have credited the wallet.
    """

    class Status(models.TextChoices):
        COMPLETED = "completed", "Completed"
        FAILED = "failed", "Failed"

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="recharges",
    )
    amount = money_field()
    operator = models.CharField(max_length=50)
    phone_number = models.CharField(max_length=20)
    status = models.CharField(max_length=10, choices=Status.choices)
    operator_response = models.JSONField(null=True, blank=True)
    processed_at = models.DateTimeField(null=True, blank=True)

    class Meta(BaseModel.Meta):
        indexes = [
            models.Index(fields=["user", "status"], name="idx_recharge_user_status"),
        ]

    def __str__(self):
        return f"Recharge {self.id} | {self.operator} | {self.amount} | {self.status}"
