import logging

from rest_framework import status
from rest_framework.generics import ListAPIView
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from vending.exceptions import NotFound, ValidationFailed, VendingError
from vending.serializers import (
    CreateTransactionSerializer,
    PayTransactionSerializer,
    TransactionSerializer,
)
from vending.services import TransactionService
from vending.views.errors import error_response

logger = logging.getLogger(__name__)


def _requester_id(request):
    return request.user.pk if request.user.is_authenticated else None


class CreateTransactionView(APIView):
    """
    POST /api/transactions/: Open a pending transaction.

    Request body: {"amount": "<decimal>", "basket": [{"name": ..., "price": ...}]}
    Anonymous machines may create transactions; an authenticated caller
    becomes the owner.
    """

    permission_classes = [AllowAny]

    def post(self, request, *args, **kwargs):
        serializer = CreateTransactionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            tx = TransactionService.create(
                amount=serializer.validated_data["amount"],
                basket=serializer.validated_data["basket"],
                owner_id=_requester_id(request),
            )
        except VendingError as exc:
            return error_response(exc)

        return Response(TransactionSerializer(tx).data, status=status.HTTP_201_CREATED)


class TransactionDetailView(APIView):
    """GET /api/transactions/<id>/: Retrieve a transaction (expired lazily)."""

    permission_classes = [AllowAny]

    def get(self, request, id, *args, **kwargs):
        try:
            tx = TransactionService.get(id, requesting_user_id=_requester_id(request))
        except NotFound as exc:
            return error_response(exc)

        return Response(TransactionSerializer(tx).data)


class PayTransactionView(APIView):
    """
    POST /api/transactions/<id>/pay: Pay a transaction from the caller's wallet.

    Request body: {"method": "<optional label>"}
    """

    def post(self, request, id, *args, **kwargs):
        serializer = PayTransactionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            result = TransactionService.pay(
                id,
                payer_id=request.user.pk,
                payment_method=serializer.validated_data.get("method"),
            )
        except VendingError as exc:
            return error_response(exc)

        return Response(
            {
                "transaction": TransactionSerializer(result.transaction).data,
                "new_balance": str(result.new_balance),
            },
            status=status.HTTP_200_OK,
        )


class CancelTransactionView(APIView):
    """POST /api/transactions/<id>/cancel: Cancel one of the caller's pending transactions."""

    def post(self, request, id, *args, **kwargs):
        try:
            tx = TransactionService.cancel(id, requesting_user_id=request.user.pk)
        except VendingError as exc:
            return error_response(exc)

        return Response(TransactionSerializer(tx).data)


class TransactionHistoryView(ListAPIView):
    """
    GET /api/history/: The caller's transactions, newest first.

    Query params:
        - limit: Number of transactions (default 20)
        - status: Filter by status (pending, paid, expired, cancelled)
    """

    serializer_class = TransactionSerializer

    def list(self, request, *args, **kwargs):
        try:
            limit = int(request.query_params.get("limit", 20))
        except ValueError:
            return error_response(ValidationFailed("Limit must be an integer."))

        tx_status = request.query_params.get("status")
        try:
            transactions = TransactionService.history(
                request.user.pk,
                limit=limit,
                status=tx_status.lower() if tx_status else None,
            )
        except ValidationFailed as exc:
            return error_response(exc)

        return Response(self.get_serializer(transactions, many=True).data)
