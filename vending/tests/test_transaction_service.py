from datetime import timedelta
from decimal import Decimal
from unittest.mock import patch

from django.test import TransactionTestCase, override_settings
from django.utils import timezone

from vending.exceptions import (
    InsufficientFunds,
    InvalidTransactionState,
    TransactionIdConflict,
    TransactionNotFound,
    ValidationFailed,
    WalletNotFound,
)
from vending.models import DistributorLedger, Transaction, User
from vending.services import TransactionService, WalletService
from vending.tests.factories import PASSWORD, balance_of, make_transaction, make_user

COLA = [{"name": "Cola", "price": "500.00"}]


class CreateTransactionTest(TransactionTestCase):
    def test_create_success(self):
        before = timezone.now()
        tx = TransactionService.create(Decimal("500.00"), COLA)

        self.assertEqual(tx.status, Transaction.Status.PENDING)
        self.assertEqual(tx.amount, Decimal("500.00"))
        self.assertEqual(tx.basket, COLA)
        self.assertTrue(tx.id.startswith("TX"))
        self.assertEqual(len(tx.id), 12)
        self.assertIsNone(tx.owner_id)
        self.assertIsNone(tx.paid_at)
        self.assertGreaterEqual(tx.expires_at, before + timedelta(minutes=10))
        self.assertLessEqual(tx.expires_at, timezone.now() + timedelta(minutes=10))
        self.assertTrue(Transaction.objects.filter(pk=tx.id).exists())

    @override_settings(VENDING_TRANSACTION_TTL_SECONDS=60)
    def test_create_uses_configured_ttl(self):
        tx = TransactionService.create("2.50", [{"name": "Water", "price": "2.50"}])
        self.assertLessEqual(tx.expires_at, timezone.now() + timedelta(seconds=60))

    def test_create_with_owner(self):
        user = make_user()
        tx = TransactionService.create("500", COLA, owner_id=user.pk)
        self.assertEqual(tx.owner_id, user.pk)

    def test_create_each_call_gets_a_new_id(self):
        tx1 = TransactionService.create("500", COLA)
        tx2 = TransactionService.create("500", COLA)
        self.assertNotEqual(tx1.id, tx2.id)

    def test_create_invalid_amount_raises(self):
        for amount in (0, -100, "abc", "1.234", None, "NaN", "100000000"):
            with self.subTest(amount=amount):
                with self.assertRaises(ValidationFailed):
                    TransactionService.create(amount, COLA)
        self.assertEqual(Transaction.objects.count(), 0)

    def test_create_invalid_basket_raises(self):
        for basket in ([], {}, None, "Cola", [object()]):
            with self.subTest(basket=basket):
                with self.assertRaises(ValidationFailed):
                    TransactionService.create("500", basket)
        self.assertEqual(Transaction.objects.count(), 0)

    def test_validation_error_is_a_value_error(self):
        with self.assertRaises(ValueError):
            TransactionService.create(0, COLA)

    @patch("vending.services.transaction.generate_transaction_id")
    def test_create_retries_on_id_collision(self, mock_generate):
        make_transaction(tx_id="TXAAAAAAAAAA")
        mock_generate.side_effect = ["TXAAAAAAAAAA", "TXBBBBBBBBBB"]

        with self.assertLogs("vending.services.transaction", level="WARNING") as logs:
            tx = TransactionService.create("500", COLA)

        self.assertEqual(tx.id, "TXBBBBBBBBBB")
        self.assertEqual(mock_generate.call_count, 2)
        self.assertIn("collision", logs.output[0])
        self.assertEqual(Transaction.objects.count(), 2)

    @override_settings(VENDING_ID_MAX_ATTEMPTS=3)
    @patch("vending.services.transaction.generate_transaction_id")
    def test_create_gives_up_after_max_attempts(self, mock_generate):
        make_transaction(tx_id="TXAAAAAAAAAA")
        mock_generate.return_value = "TXAAAAAAAAAA"

        with self.assertRaises(TransactionIdConflict):
            TransactionService.create("500", COLA)

        self.assertEqual(mock_generate.call_count, 3)
        self.assertEqual(Transaction.objects.count(), 1)

    def test_basket_total_mismatch_is_logged(self):
        with self.assertLogs("vending.services.transaction", level="WARNING") as logs:
            tx = TransactionService.create("400", COLA)

        self.assertEqual(tx.amount, Decimal("400.00"))
        self.assertIn("basket_total=500.00", logs.output[0])

    @override_settings(VENDING_ENFORCE_BASKET_TOTAL=True)
    def test_basket_total_mismatch_rejected_when_enforced(self):
        with self.assertRaises(ValidationFailed):
            TransactionService.create("400", COLA)

        basket = [{"name": "Cola", "price": "300.00"}, {"name": "Water", "price": "100.00", "quantity": 2}]
        tx = TransactionService.create("500", basket)
        self.assertEqual(tx.amount, Decimal("500.00"))

    @override_settings(VENDING_ENFORCE_BASKET_TOTAL=True)
    def test_opaque_basket_is_not_checked(self):
        tx = TransactionService.create("400", {"machine": "M-12", "slot": "A3"})
        self.assertEqual(tx.basket, {"machine": "M-12", "slot": "A3"})


class GetTransactionTest(TransactionTestCase):
    def test_get_existing(self):
        created = TransactionService.create("500", COLA)
        tx = TransactionService.get(created.id)
        self.assertEqual(tx.id, created.id)
        self.assertEqual(tx.status, Transaction.Status.PENDING)

    def test_get_nonexistent_raises(self):
        with self.assertRaises(TransactionNotFound):
            TransactionService.get("TXNOPE000000")

    def test_get_expires_overdue_transaction(self):
        tx = make_transaction(expires_in=timedelta(minutes=-1))

        result = TransactionService.get(tx.id)

        self.assertEqual(result.status, Transaction.Status.EXPIRED)
        tx.refresh_from_db()
        self.assertEqual(tx.status, Transaction.Status.EXPIRED)

    def test_get_does_not_expire_paid_transaction(self):
        tx = make_transaction(
            expires_in=timedelta(minutes=-1),
            status=Transaction.Status.PAID,
            paid_at=timezone.now() - timedelta(minutes=2),
        )
        self.assertEqual(TransactionService.get(tx.id).status, Transaction.Status.PAID)

    def test_get_is_scoped_to_owner(self):
        owner = make_user(email="owner@example.com")
        other = make_user(email="other@example.com")
        tx = make_transaction(owner=owner)

        self.assertEqual(TransactionService.get(tx.id, requesting_user_id=owner.pk).id, tx.id)
        with self.assertRaises(TransactionNotFound):
            TransactionService.get(tx.id, requesting_user_id=other.pk)

    def test_unowned_transaction_visible_to_anyone(self):
        user = make_user()
        tx = make_transaction()
        self.assertEqual(TransactionService.get(tx.id, requesting_user_id=user.pk).id, tx.id)


class PayTransactionTest(TransactionTestCase):
    def setUp(self):
        self.payer = make_user(balance="1000.00")

    def test_pay_success(self):
        tx = TransactionService.create("500", COLA)

        result = TransactionService.pay(tx.id, self.payer.pk)

        self.assertEqual(result.transaction.status, Transaction.Status.PAID)
        self.assertEqual(result.transaction.status, "paid")
        self.assertEqual(result.new_balance, Decimal("500.00"))
        self.assertIsNotNone(result.transaction.paid_at)
        self.assertEqual(result.transaction.payment_method, "wallet")
        self.assertEqual(result.transaction.owner_id, self.payer.pk)
        self.assertEqual(balance_of(self.payer), Decimal("500.00"))

    def test_pay_records_payment_method(self):
        tx = TransactionService.create("500", COLA)
        result = TransactionService.pay(tx.id, self.payer.pk, payment_method="qr")
        self.assertEqual(result.transaction.payment_method, "qr")

    def test_pay_credits_distributor_ledger(self):
        tx1 = TransactionService.create("500", COLA)
        tx2 = TransactionService.create("250", [{"name": "Water", "price": "250"}])

        TransactionService.pay(tx1.id, self.payer.pk)
        TransactionService.pay(tx2.id, self.payer.pk)

        ledger = DistributorLedger.objects.get(pk=DistributorLedger.SINGLETON_ID)
        self.assertEqual(ledger.balance, Decimal("750.00"))
        self.assertEqual(ledger.transaction_count, 2)

    def test_pay_insufficient_funds_changes_nothing(self):
        poor = make_user(email="poor@example.com", balance="0.00")
        tx = TransactionService.create("500", COLA)

        with self.assertRaises(InsufficientFunds):
            TransactionService.pay(tx.id, poor.pk)

        tx.refresh_from_db()
        self.assertEqual(tx.status, Transaction.Status.PENDING)
        self.assertIsNone(tx.paid_at)
        self.assertIsNone(tx.owner_id)
        self.assertEqual(balance_of(poor), Decimal("0.00"))
        self.assertFalse(DistributorLedger.objects.exists())

    def test_pay_exact_balance(self):
        tx = TransactionService.create("1000", [{"name": "Crate", "price": "1000"}])
        result = TransactionService.pay(tx.id, self.payer.pk)
        self.assertEqual(result.new_balance, Decimal("0.00"))

    def test_pay_after_deadline_expires_transaction(self):
        tx = TransactionService.create("500", COLA)
        later = timezone.now() + timedelta(minutes=11)

        with patch("django.utils.timezone.now", return_value=later):
            with self.assertRaises(InvalidTransactionState) as ctx:
                TransactionService.pay(tx.id, self.payer.pk)

        self.assertEqual(ctx.exception.status, Transaction.Status.EXPIRED)
        self.assertIn("expired", str(ctx.exception))
        tx.refresh_from_db()
        self.assertEqual(tx.status, Transaction.Status.EXPIRED)
        self.assertEqual(balance_of(self.payer), Decimal("1000.00"))

    def _lock_then_jump_clock(self, later):
        """Replacement for _lock that moves the clock to `later` once the row is held."""
        real_lock = TransactionService._lock
        clock = patch("django.utils.timezone.now", return_value=later)

        def lock(*args, **kwargs):
            locked = real_lock(*args, **kwargs)
            clock.start()
            self.addCleanup(clock.stop)
            return locked

        return patch.object(TransactionService, "_lock", side_effect=lock)

    def test_deadline_passing_while_waiting_for_lock_refuses_payment(self):
        tx = make_transaction(expires_in=timedelta(seconds=5))
        later = timezone.now() + timedelta(minutes=1)

        with self._lock_then_jump_clock(later):
            with self.assertRaises(InvalidTransactionState) as ctx:
                TransactionService.pay(tx.id, self.payer.pk)

        self.assertEqual(ctx.exception.status, Transaction.Status.EXPIRED)
        tx.refresh_from_db()
        self.assertEqual(tx.status, Transaction.Status.EXPIRED)
        self.assertIsNone(tx.paid_at)
        self.assertEqual(balance_of(self.payer), Decimal("1000.00"))
        self.assertFalse(DistributorLedger.objects.exists())

    def test_deadline_passing_while_waiting_for_lock_refuses_cancel(self):
        tx = make_transaction(expires_in=timedelta(seconds=5))
        later = timezone.now() + timedelta(minutes=1)

        with self._lock_then_jump_clock(later):
            with self.assertRaises(InvalidTransactionState) as ctx:
                TransactionService.cancel(tx.id)

        self.assertEqual(ctx.exception.status, Transaction.Status.EXPIRED)
        tx.refresh_from_db()
        self.assertEqual(tx.status, Transaction.Status.EXPIRED)

    def test_pay_twice_debits_once(self):
        tx = TransactionService.create("500", COLA)
        TransactionService.pay(tx.id, self.payer.pk)

        with self.assertRaises(InvalidTransactionState) as ctx:
            TransactionService.pay(tx.id, self.payer.pk)

        self.assertEqual(ctx.exception.status, Transaction.Status.PAID)
        self.assertEqual(str(ctx.exception), "Transaction already paid.")
        self.assertEqual(balance_of(self.payer), Decimal("500.00"))
        self.assertEqual(DistributorLedger.objects.get().transaction_count, 1)

    def test_pay_cancelled_transaction_raises(self):
        tx = TransactionService.create("500", COLA)
        TransactionService.cancel(tx.id)

        with self.assertRaises(InvalidTransactionState):
            TransactionService.pay(tx.id, self.payer.pk)
        self.assertEqual(balance_of(self.payer), Decimal("1000.00"))

    def test_pay_nonexistent_raises(self):
        with self.assertRaises(TransactionNotFound):
            TransactionService.pay("TXNOPE000000", self.payer.pk)

    def test_pay_someone_elses_transaction_raises(self):
        owner = make_user(email="owner@example.com", balance="1000.00")
        tx = TransactionService.create("500", COLA, owner_id=owner.pk)

        with self.assertRaises(TransactionNotFound):
            TransactionService.pay(tx.id, self.payer.pk)
        self.assertEqual(balance_of(self.payer), Decimal("1000.00"))

    def test_pay_without_wallet_raises(self):
        walletless = User.objects.create_user(
            email="nowallet@example.com", password=PASSWORD, name="No Wallet"
        )
        tx = TransactionService.create("500", COLA)

        with self.assertRaises(WalletNotFound):
            TransactionService.pay(tx.id, walletless.pk)

        tx.refresh_from_db()
        self.assertEqual(tx.status, Transaction.Status.PENDING)

    def test_failure_during_settlement_rolls_back(self):
        tx = TransactionService.create("500", COLA)

        with patch.object(
            DistributorLedger, "load_for_update", side_effect=RuntimeError("ledger down")
        ):
            with self.assertRaises(RuntimeError):
                TransactionService.pay(tx.id, self.payer.pk)

        tx.refresh_from_db()
        self.assertEqual(tx.status, Transaction.Status.PENDING)
        self.assertIsNone(tx.paid_at)
        self.assertEqual(balance_of(self.payer), Decimal("1000.00"))

    def test_stale_read_cannot_settle_twice(self):
        """The conditional status write refuses a row that changed after it was read."""
        tx = TransactionService.create("500", COLA)
        stale = Transaction.objects.get(pk=tx.pk)
        TransactionService.pay(tx.id, self.payer.pk)

        second = make_user(email="second@example.com", balance="1000.00")
        with patch.object(TransactionService, "_lock", return_value=stale):
            with self.assertRaises(InvalidTransactionState) as ctx:
                TransactionService.pay(tx.id, second.pk)

        self.assertEqual(ctx.exception.status, Transaction.Status.PAID)
        self.assertEqual(balance_of(second), Decimal("1000.00"))
        self.assertEqual(balance_of(self.payer), Decimal("500.00"))
        self.assertEqual(DistributorLedger.objects.get().transaction_count, 1)

    def test_balance_matches_recharges_minus_payments(self):
        WalletService.recharge(self.payer.pk, "300", operator="orange")
        tx1 = TransactionService.create("500", COLA)
        tx2 = TransactionService.create("250.50", [{"name": "Juice", "price": "250.50"}])
        TransactionService.pay(tx1.id, self.payer.pk)
        WalletService.recharge(self.payer.pk, "99.99", operator="mtn")
        TransactionService.pay(tx2.id, self.payer.pk)

        expected = Decimal("1000.00") + Decimal("300") + Decimal("99.99") - Decimal("500") - Decimal("250.50")
        self.assertEqual(balance_of(self.payer), expected)


class CancelTransactionTest(TransactionTestCase):
    def test_cancel_pending(self):
        tx = TransactionService.create("500", COLA)
        result = TransactionService.cancel(tx.id)
        self.assertEqual(result.status, Transaction.Status.CANCELLED)

    def test_cancel_twice_is_a_no_op(self):
        tx = TransactionService.create("500", COLA)
        TransactionService.cancel(tx.id)
        result = TransactionService.cancel(tx.id)
        self.assertEqual(result.status, Transaction.Status.CANCELLED)

    def test_cancel_paid_raises(self):
        payer = make_user(balance="1000.00")
        tx = TransactionService.create("500", COLA)
        TransactionService.pay(tx.id, payer.pk)

        with self.assertRaises(InvalidTransactionState):
            TransactionService.cancel(tx.id)

        tx.refresh_from_db()
        self.assertEqual(tx.status, Transaction.Status.PAID)
        self.assertEqual(balance_of(payer), Decimal("500.00"))

    def test_cancel_overdue_expires_instead(self):
        tx = make_transaction(expires_in=timedelta(minutes=-1))

        with self.assertRaises(InvalidTransactionState) as ctx:
            TransactionService.cancel(tx.id)

        self.assertEqual(ctx.exception.status, Transaction.Status.EXPIRED)
        tx.refresh_from_db()
        self.assertEqual(tx.status, Transaction.Status.EXPIRED)

    def test_cancel_nonexistent_raises(self):
        with self.assertRaises(TransactionNotFound):
            TransactionService.cancel("TXNOPE000000")

    def test_cancel_is_scoped_to_owner(self):
        owner = make_user(email="owner@example.com")
        other = make_user(email="other@example.com")
        tx = make_transaction(owner=owner)

        with self.assertRaises(TransactionNotFound):
            TransactionService.cancel(tx.id, requesting_user_id=other.pk)
        self.assertEqual(
            TransactionService.cancel(tx.id, requesting_user_id=owner.pk).status,
            Transaction.Status.CANCELLED,
        )

    def test_users_cannot_cancel_ownerless_transactions(self):
        user = make_user()
        tx = make_transaction()

        with self.assertRaises(TransactionNotFound):
            TransactionService.cancel(tx.id, requesting_user_id=user.pk)

        tx.refresh_from_db()
        self.assertEqual(tx.status, Transaction.Status.PENDING)
        self.assertEqual(TransactionService.cancel(tx.id).status, Transaction.Status.CANCELLED)


class ExpireOverdueTest(TransactionTestCase):
    def test_expire_overdue_updates_only_overdue_pending(self):
        make_transaction(tx_id="TXOVERDUE001", expires_in=timedelta(minutes=-1))
        make_transaction(tx_id="TXOVERDUE002", expires_in=timedelta(hours=-2))
        make_transaction(tx_id="TXFRESH00001", expires_in=timedelta(minutes=5))
        make_transaction(
            tx_id="TXCANCELLED1",
            expires_in=timedelta(minutes=-1),
            status=Transaction.Status.CANCELLED,
        )

        count = TransactionService.expire_overdue()

        self.assertEqual(count, 2)
        statuses = dict(Transaction.objects.values_list("id", "status"))
        self.assertEqual(statuses["TXOVERDUE001"], "expired")
        self.assertEqual(statuses["TXOVERDUE002"], "expired")
        self.assertEqual(statuses["TXFRESH00001"], "pending")
        self.assertEqual(statuses["TXCANCELLED1"], "cancelled")

    def test_expire_overdue_with_explicit_clock(self):
        make_transaction(expires_in=timedelta(minutes=10))
        self.assertEqual(TransactionService.expire_overdue(), 0)
        self.assertEqual(
            TransactionService.expire_overdue(now=timezone.now() + timedelta(minutes=11)), 1
        )

    def test_swept_transaction_cannot_be_paid(self):
        payer = make_user(balance="1000.00")
        tx = make_transaction(expires_in=timedelta(minutes=-1))
        TransactionService.expire_overdue()

        with self.assertRaises(InvalidTransactionState):
            TransactionService.pay(tx.id, payer.pk)
        self.assertEqual(balance_of(payer), Decimal("1000.00"))


class HistoryTest(TransactionTestCase):
    def setUp(self):
        self.user = make_user(balance="1000.00")
        self.other = make_user(email="other@example.com")
        self.first = TransactionService.create("100", [{"name": "Gum", "price": "100"}], owner_id=self.user.pk)
        self.second = TransactionService.create("500", COLA, owner_id=self.user.pk)
        TransactionService.create("500", COLA, owner_id=self.other.pk)
        TransactionService.pay(self.second.id, self.user.pk)

    def test_history_lists_own_transactions_newest_first(self):
        history = TransactionService.history(self.user.pk)
        self.assertEqual([tx.id for tx in history], [self.second.id, self.first.id])

    def test_history_limit(self):
        self.assertEqual(len(TransactionService.history(self.user.pk, limit=1)), 1)

    def test_history_status_filter(self):
        paid = TransactionService.history(self.user.pk, status="paid")
        self.assertEqual([tx.id for tx in paid], [self.second.id])

    def test_history_invalid_arguments(self):
        with self.assertRaises(ValidationFailed):
            TransactionService.history(self.user.pk, limit=0)
        with self.assertRaises(ValidationFailed):
            TransactionService.history(self.user.pk, limit=1000)
        with self.assertRaises(ValidationFailed):
            TransactionService.history(self.user.pk, status="refunded")
