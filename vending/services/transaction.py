import logging
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal

from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import F, Q
from django.utils import timezone

from vending.exceptions import (
    InsufficientFunds,
    InvalidTransactionState,
    TransactionIdConflict,
    TransactionNotFound,
    ValidationFailed,
    WalletNotFound,
)
from vending.models import DistributorLedger, Transaction, Wallet
from vending.store import translate_store_errors
from vending.utils.ids import generate_transaction_id
from vending.validation import basket_total, validate_amount, validate_basket

logger = logging.getLogger(__name__)

DEFAULT_PAYMENT_METHOD = "wallet"


@dataclass
class PaymentResult:
    transaction: Transaction
    new_balance: Decimal


class TransactionService:
    """
    Lifecycle of vending transactions: create, read, pay, cancel, expire.

    Settlement (`pay`) runs as one store transaction. It locks the
    transaction row and then the payer's wallet row with select_for_update(),
    and every write is conditional on the state it was validated against
    (status still PENDING and not past the deadline, balance still covering
    the amount). A write that matches no row raises, which rolls back the
    whole unit: the payer is debited, the transaction marked PAID and the
    distributor ledger credited together or not at all.
    """

    @staticmethod
    @translate_store_errors
    def create(amount, basket, owner_id=None) -> Transaction:
        """
        Open a PENDING transaction that can be paid until its deadline.

        Args:
            amount: Positive amount, at most two decimal places.
            basket: Non-empty JSON list/object describing the purchase.
            owner_id: Optional user the transaction is reserved for.

        Returns:
            The created Transaction.

        Raises:
            ValidationFailed: If amount or basket are malformed.
            TransactionIdConflict: If every generated id was already taken.
        """
        amount = validate_amount(amount)
        basket = validate_basket(basket)
        TransactionService._check_basket_total(amount, basket)

        ttl = timedelta(seconds=getattr(settings, "VENDING_TRANSACTION_TTL_SECONDS", 600))
        max_attempts = getattr(settings, "VENDING_ID_MAX_ATTEMPTS", 5)

        for attempt in range(1, max_attempts + 1):
            tx_id = generate_transaction_id()
            now = timezone.now()
            try:
                with transaction.atomic():
                    tx = Transaction.objects.create(
                        id=tx_id,
                        owner_id=owner_id,
                        amount=amount,
                        basket=basket,
                        status=Transaction.Status.PENDING,
                        expires_at=now + ttl,
                    )
            except IntegrityError:
                if not Transaction.objects.filter(pk=tx_id).exists():
                    raise
                logger.warning(
                    "Transaction id collision: id=%s attempt=%d/%d",
                    tx_id,
                    attempt,
                    max_attempts,
                )
                continue

            logger.info(
                "Transaction created: tx=%s owner=%s amount=%s expires_at=%s",
                tx.id,
                owner_id,
                amount,
                tx.expires_at.isoformat(),
            )
            return tx

        logger.error("No free transaction id after %d attempts.", max_attempts)
        raise TransactionIdConflict()

    @staticmethod
    @translate_store_errors
    def get(transaction_id: str, requesting_user_id=None) -> Transaction:
        """
        Fetch a transaction, expiring it first if its deadline has passed.

        When `requesting_user_id` is given, transactions owned by someone
        else are reported as not found.
        """
        tx = TransactionService._visible(transaction_id, requesting_user_id).first()
        if tx is None:
            raise TransactionNotFound()

        now = timezone.now()
        if tx.is_overdue(now):
            TransactionService._expire(tx, now)
        return tx

    @staticmethod
    @translate_store_errors
    def pay(transaction_id: str, payer_id, payment_method: str = None) -> PaymentResult:
        """
        Settle a pending transaction from the payer's wallet.

        Args:
            transaction_id: Id of the transaction to pay.
            payer_id: User whose wallet is debited.
            payment_method: Optional label stored on the transaction.

        Returns:
            PaymentResult with the PAID transaction and the payer's new balance.

        Raises:
            TransactionNotFound: If the transaction doesn't exist or belongs to
                another user.
            InvalidTransactionState: If it is not pending. A transaction past
                its deadline is expired (and that change is kept) first.
            WalletNotFound: If the payer has no wallet.
            InsufficientFunds: If the balance doesn't cover the amount.
        """
        with transaction.atomic():
            tx = TransactionService._lock(transaction_id, payer_id)
            # Read the clock once the lock is held; waiting on it counts.
            now = timezone.now()
            if not tx.is_overdue(now):
                return TransactionService._settle(
                    tx, payer_id, payment_method or DEFAULT_PAYMENT_METHOD, now
                )
            TransactionService._expire(tx, now)

        logger.warning(
            "Payment refused (deadline passed): tx=%s payer=%s expires_at=%s",
            tx.id,
            payer_id,
            tx.expires_at.isoformat(),
        )
        raise InvalidTransactionState(tx.status, tx.id)

    @staticmethod
    @translate_store_errors
    def cancel(transaction_id: str, requesting_user_id=None) -> Transaction:
        """
        Cancel a pending transaction. Cancelling twice returns the cancelled
        transaction unchanged; paid or expired transactions cannot be
        cancelled. Balances are never touched.

        A user may only cancel transactions they own. Ownerless transactions
        opened by a machine are cancelled without a `requesting_user_id` or
        left to expire.
        """
        with transaction.atomic():
            tx = TransactionService._lock(
                transaction_id, requesting_user_id, owned_only=True
            )
            now = timezone.now()

            if tx.status == Transaction.Status.CANCELLED:
                logger.info("Transaction already cancelled: tx=%s", tx.id)
                return tx

            if not tx.is_overdue(now):
                if tx.status != Transaction.Status.PENDING:
                    raise InvalidTransactionState(tx.status, tx.id)

                Transaction.objects.filter(
                    pk=tx.pk, status=Transaction.Status.PENDING
                ).update(status=Transaction.Status.CANCELLED, updated_at=now)
                tx.refresh_from_db()
                logger.info("Transaction cancelled: tx=%s", tx.id)
                return tx

            TransactionService._expire(tx, now)

        raise InvalidTransactionState(tx.status, tx.id)

    @staticmethod
    @translate_store_errors
    def expire_overdue(now=None) -> int:
        """Mark every overdue PENDING transaction EXPIRED in one statement."""
        now = now or timezone.now()
        count = Transaction.get_overdue_pending(now).update(
            status=Transaction.Status.EXPIRED,
            updated_at=now,
        )
        if count:
            logger.info("Expired %d overdue transaction(s).", count)
        return count

    @staticmethod
    @translate_store_errors
    def history(user_id, limit: int = 20, status: str = None) -> list:
        """The user's transactions, newest first."""
        max_limit = getattr(settings, "VENDING_HISTORY_MAX_LIMIT", 100)
        if not 1 <= limit <= max_limit:
            raise ValidationFailed(f"Limit must be between 1 and {max_limit}.")
        if status and status not in Transaction.Status.values:
            raise ValidationFailed(f"Unknown status: {status}.")

        queryset = Transaction.objects.filter(owner_id=user_id)
        if status:
            queryset = queryset.filter(status=status)
        return list(queryset.order_by("-created_at")[:limit])

    # Internals

    @staticmethod
    def _visible(transaction_id, user_id, owned_only=False):
        queryset = Transaction.objects.filter(pk=transaction_id)
        if user_id is None:
            return queryset
        if owned_only:
            return queryset.filter(owner_id=user_id)
        return queryset.filter(Q(owner__isnull=True) | Q(owner_id=user_id))

    @staticmethod
    def _lock(transaction_id, user_id, owned_only=False) -> Transaction:
        try:
            return (
                TransactionService._visible(transaction_id, user_id, owned_only)
                .select_for_update()
                .get()
            )
        except Transaction.DoesNotExist:
            raise TransactionNotFound()

    @staticmethod
    def _expire(tx: Transaction, now) -> bool:
        expired = Transaction.objects.filter(
            pk=tx.pk,
            status=Transaction.Status.PENDING,
            expires_at__lt=now,
        ).update(status=Transaction.Status.EXPIRED, updated_at=now)
        tx.refresh_from_db()
        if expired:
            logger.info(
                "Transaction expired: tx=%s expires_at=%s",
                tx.id,
                tx.expires_at.isoformat(),
            )
        return bool(expired)

    @staticmethod
    def _settle(tx: Transaction, payer_id, payment_method: str, now) -> PaymentResult:
        if tx.status != Transaction.Status.PENDING:
            logger.warning(
                "Payment refused: tx=%s status=%s payer=%s", tx.id, tx.status, payer_id
            )
            raise InvalidTransactionState(tx.status, tx.id)

        try:
            wallet = Wallet.objects.select_for_update().get(user_id=payer_id)
        except Wallet.DoesNotExist:
            raise WalletNotFound()

        if wallet.balance < tx.amount:
            logger.warning(
                "Payment refused (insufficient balance): tx=%s payer=%s balance=%s amount=%s",
                tx.id,
                payer_id,
                wallet.balance,
                tx.amount,
            )
            raise InsufficientFunds(wallet.balance, tx.amount)

        debited = Wallet.objects.filter(pk=wallet.pk, balance__gte=tx.amount).update(
            balance=F("balance") - tx.amount,
            updated_at=now,
        )
        if not debited:
            raise InsufficientFunds(wallet.balance, tx.amount)

        settled = Transaction.objects.filter(
            pk=tx.pk,
            status=Transaction.Status.PENDING,
            expires_at__gte=now,
        ).update(
            status=Transaction.Status.PAID,
            paid_at=now,
            payment_method=payment_method,
            owner_id=payer_id,
            updated_at=now,
        )
        if not settled:
            # Raising undoes the debit above.
            tx.refresh_from_db()
            raise InvalidTransactionState(tx.status, tx.id)

        ledger = DistributorLedger.load_for_update()
        DistributorLedger.objects.filter(pk=ledger.pk).update(
            balance=F("balance") + tx.amount,
            transaction_count=F("transaction_count") + 1,
            updated_at=now,
        )

        wallet.refresh_from_db(fields=["balance"])
        tx.refresh_from_db()

        logger.info(
            "Transaction paid: tx=%s payer=%s amount=%s method=%s new_balance=%s",
            tx.id,
            payer_id,
            tx.amount,
            payment_method,
            wallet.balance,
        )
        return PaymentResult(transaction=tx, new_balance=wallet.balance)

    @staticmethod
    def _check_basket_total(amount, basket):
        total = basket_total(basket)
        if total is None or total == amount:
            return
        if getattr(settings, "VENDING_ENFORCE_BASKET_TOTAL", False):
            raise ValidationFailed(
                f"Amount {amount} does not match the basket total {total}."
            )
        logger.warning(
            "Transaction amount differs from basket total: amount=%s basket_total=%s",
            amount,
            total,
        )
