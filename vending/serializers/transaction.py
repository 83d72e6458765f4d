from decimal import Decimal

from rest_framework import serializers

from vending.models import Transaction


class TransactionSerializer(serializers.ModelSerializer):
    """Read-only serializer for transaction responses."""

    owner_id = serializers.IntegerField(read_only=True, allow_null=True)

    class Meta:
        model = Transaction
        fields = (
            "id",
            "owner_id",
            "amount",
            "basket",
            "status",
            "payment_method",
            "created_at",
            "expires_at",
            "paid_at",
        )
        read_only_fields = fields


class CreateTransactionSerializer(serializers.Serializer):
    """Validates transaction creation requests."""

    amount = serializers.DecimalField(
        max_digits=10, decimal_places=2, min_value=Decimal("0.01")
    )
    basket = serializers.JSONField()

    def validate_basket(self, value):
        if not isinstance(value, (list, dict)) or not value:
            raise serializers.ValidationError(
                "Basket must be a non-empty list or object."
            )
        return value


class PayTransactionSerializer(serializers.Serializer):
    """Validates payment requests. The method is optional."""

    method = serializers.CharField(
        max_length=50, required=False, allow_blank=False, allow_null=True
    )
