import logging
from dataclasses import dataclass
from decimal import Decimal

from django.db import transaction
from django.db.models import F
from django.utils import timezone

from vending.exceptions import RechargeRejected, ValidationFailed, WalletNotFound
from vending.models import Recharge, Wallet
from vending.models.base import ZERO
from vending.store import translate_store_errors
from vending.utils.operator import request_operator_topup
from vending.validation import validate_amount

logger = logging.getLogger(__name__)


@dataclass
class RechargeResult:
    recharge: Recharge
    new_balance: Decimal


class WalletService:
    """
    Balance mutations outside of settlement: top-ups and emptying a wallet.

    Uses select_for_update() to acquire a row-level lock on the wallet and
    F() expressions for the write, so concurrent recharges and payments on
    the same wallet serialize instead of losing updates.
    """

    @staticmethod
    @translate_store_errors
    def balance(user_id) -> Decimal:
        try:
            return Wallet.objects.values_list("balance", flat=True).get(user_id=user_id)
        except Wallet.DoesNotExist:
            raise WalletNotFound()

    @staticmethod
    @translate_store_errors
    def recharge(user_id, amount, operator: str, phone_number: str = None) -> RechargeResult:
        """
        Top up the user's wallet through a mobile-money operator.

        The operator is asked first, without holding any lock. Its answer is
        recorded as a Recharge row either way; only an accepted top-up
        credits the wallet.

        Args:
            user_id: Owner of the wallet to credit.
            amount: Positive amount, at most two decimal places.
            operator: Operator / payment method name.
            phone_number: Number charged by the operator. Defaults to the
                user's phone.

        Returns:
            RechargeResult with the COMPLETED Recharge and the new balance.

        Raises:
            ValidationFailed: If amount, operator or phone number are missing
                or malformed.
            WalletNotFound: If the user has no wallet.
            RechargeRejected: If the operator refused or could not be reached.
        """
        amount = validate_amount(amount)
        operator = (operator or "").strip()
        if not operator:
            raise ValidationFailed("Operator is required.")

        wallet = (
            Wallet.objects.select_related("user").filter(user_id=user_id).first()
        )
        if wallet is None:
            raise WalletNotFound()

        phone_number = (phone_number or wallet.user.phone or "").strip()
        if not phone_number:
            raise ValidationFailed("Phone number is required.")

        result = request_operator_topup(
            phone_number=phone_number, amount=amount, operator=operator
        )
        now = timezone.now()

        if not result["success"]:
            recharge = Recharge.objects.create(
                user_id=user_id,
                amount=amount,
                operator=operator,
                phone_number=phone_number,
                status=Recharge.Status.FAILED,
                operator_response=result["response"],
                processed_at=now,
            )
            logger.warning(
                "Recharge failed: user=%s amount=%s operator=%s recharge=%d response=%s",
                user_id,
                amount,
                operator,
                recharge.id,
                result["response"],
            )
            raise RechargeRejected()

        with transaction.atomic():
            # Lock the wallet row to prevent concurrent modification
            wallet = Wallet.objects.select_for_update().get(pk=wallet.pk)
            Wallet.objects.filter(pk=wallet.pk).update(
                balance=F("balance") + amount, updated_at=now
            )
            wallet.refresh_from_db(fields=["balance"])

            recharge = Recharge.objects.create(
                user_id=user_id,
                amount=amount,
                operator=operator,
                phone_number=phone_number,
                status=Recharge.Status.COMPLETED,
                operator_response=result["response"],
                processed_at=now,
            )

        logger.info(
            "Recharge completed: user=%s amount=%s operator=%s new_balance=%s recharge=%d",
            user_id,
            amount,
            operator,
            wallet.balance,
            recharge.id,
        )
        return RechargeResult(recharge=recharge, new_balance=wallet.balance)

    @staticmethod
    @translate_store_errors
    @transaction.atomic
    def empty(user_id):
        """
        Reset the wallet balance to zero.

        Returns:
            (previous_balance, new_balance)

        Raises:
            WalletNotFound: If the user has no wallet.
            ValidationFailed: If the balance is already zero.
        """
        try:
            wallet = Wallet.objects.select_for_update().get(user_id=user_id)
        except Wallet.DoesNotExist:
            raise WalletNotFound()

        previous_balance = wallet.balance
        if previous_balance <= ZERO:
            raise ValidationFailed("Wallet balance is already 0.00.")

        Wallet.objects.filter(pk=wallet.pk).update(
            balance=ZERO, updated_at=timezone.now()
        )
        wallet.refresh_from_db(fields=["balance"])

        logger.info(
            "Wallet emptied: user=%s previous_balance=%s", user_id, previous_balance
        )
        return previous_balance, wallet.balance
