from django.utils import timezone
from rest_framework import status
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from vending.store import LedgerStore


class HealthView(APIView):
    """GET /api/health: Report whether the ledger store answers."""

    authentication_classes = []
    permission_classes = [AllowAny]
    store_class = LedgerStore

    def get(self, request, *args, **kwargs):
        if self.store_class().check():
            return Response(
                {"status": "ok", "database": "up", "timestamp": timezone.now()}
            )
        return Response(
            {"status": "error", "database": "down", "timestamp": timezone.now()},
            status=status.HTTP_503_SERVICE_UNAVAILABLE,
        )
