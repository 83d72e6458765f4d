from django.conf import settings
from django.core.serializers.json import DjangoJSONEncoder
from django.db import models
from django.utils import timezone

from vending.models.base import BaseModel, money_field
from vending.utils.ids import TRANSACTION_ID_MAX_LENGTH


class Transaction(BaseModel):
    """
    A vending purchase awaiting (or done with) settlement.

    Transactions are created PENDING with a deadline (`expires_at`). From
    there exactly one transition is possible: PAID (settled against the
    payer's wallet), CANCELLED, or EXPIRED once the deadline has passed.
    The three terminal states are never left again.

    `owner` stays empty for transactions opened by an anonymous machine and
    is set to the payer on settlement.
    """

    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        PAID = "paid", "Paid"
        EXPIRED = "expired", "Expired"
        CANCELLED = "cancelled", "Cancelled"

    TERMINAL_STATUSES = (Status.PAID, Status.EXPIRED, Status.CANCELLED)

    id = models.CharField(
        primary_key=True,
        max_length=TRANSACTION_ID_MAX_LENGTH,
        editable=False,
    )
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="transactions",
        null=True,
        blank=True,
    )
    amount = money_field()
    basket = models.JSONField(
        encoder=DjangoJSONEncoder,
        help_text="Items being bought, e.g. [{\"name\": \"Cola\", \"price\": \"500.00\"}].",
    )
    status = models.CharField(
        max_length=10,
        choices=Status.choices,
        default=Status.PENDING,
    )
    payment_method = models.CharField(max_length=50, null=True, blank=True)
    expires_at = models.DateTimeField(
        help_text="Deadline after which the transaction can no longer be paid.",
    )
    paid_at = models.DateTimeField(null=True, blank=True)

    class Meta(BaseModel.Meta):
        indexes = [
            models.Index(fields=["status", "expires_at"], name="idx_status_expires"),
            models.Index(fields=["owner", "status"], name="idx_owner_status"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount__gt=0),
                name="transaction_amount_positive",
            ),
        ]

    def __str__(self):
        return f"Transaction {self.id} | {self.amount} | {self.status}"

    @property
    def is_terminal(self):
        return self.status in self.TERMINAL_STATUSES

    def is_overdue(self, now=None):
        """True when the transaction is still pending but past its deadline."""
        now = now or timezone.now()
        return self.status == self.Status.PENDING and self.expires_at < now

    @classmethod
    def get_overdue_pending(cls, now=None):
        """Return pending transactions whose deadline has passed."""
        return cls.objects.filter(
            status=cls.Status.PENDING,
            expires_at__lt=now or timezone.now(),
        )
