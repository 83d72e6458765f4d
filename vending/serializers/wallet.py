from decimal import Decimal

from rest_framework import serializers

from vending.models import Recharge


class RechargeRequestSerializer(serializers.Serializer):
    """Validates recharge requests: {"amount", "method", "phone_number"?}."""

    amount = serializers.DecimalField(
        max_digits=10, decimal_places=2, min_value=Decimal("0.01")
    )
    method = serializers.CharField(max_length=50)
    phone_number = serializers.CharField(max_length=20, required=False)


class RechargeSerializer(serializers.ModelSerializer):
    """Read-only serializer for recharge records."""

    class Meta:
        model = Recharge
        fields = (
            "id",
            "amount",
            "operator",
            "phone_number",
            "status",
            "processed_at",
            "created_at",
        )
        read_only_fields = fields
