import logging

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from vending.exceptions import VendingError
from vending.serializers import RechargeRequestSerializer, RechargeSerializer
from vending.services import WalletService
from vending.views.errors import error_response

logger = logging.getLogger(__name__)


class RechargeView(APIView):
    """
    POST /api/wallet/recharge: Top up the caller's wallet.

    Request body: {"amount": "<decimal>", "method": "<operator>", "phone_number": "<optional>"}
    """

    def post(self, request, *args, **kwargs):
        serializer = RechargeRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            result = WalletService.recharge(
                request.user.pk,
                amount=serializer.validated_data["amount"],
                operator=serializer.validated_data["method"],
                phone_number=serializer.validated_data.get("phone_number"),
            )
        except VendingError as exc:
            return error_response(exc)

        return Response(
            {
                "new_balance": str(result.new_balance),
                "recharge": RechargeSerializer(result.recharge).data,
            },
            status=status.HTTP_200_OK,
        )


class EmptyWalletView(APIView):
    """POST /api/wallet/empty: Reset the caller's balance to zero."""

    def post(self, request, *args, **kwargs):
        try:
            previous_balance, new_balance = WalletService.empty(request.user.pk)
        except VendingError as exc:
            return error_response(exc)

        return Response(
            {
                "previous_balance": str(previous_balance),
                "new_balance": str(new_balance),
            }
        )
