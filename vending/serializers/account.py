from rest_framework import serializers

from vending.models import User


class RegisterSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField(min_length=8, write_only=True)
    name = serializers.CharField(max_length=100)
    phone = serializers.CharField(max_length=20, required=False, allow_blank=True)


class LoginSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True)


class UserSerializer(serializers.ModelSerializer):
    balance = serializers.DecimalField(
        source="wallet.balance", max_digits=10, decimal_places=2, read_only=True
    )

    class Meta:
        model = User
        fields = ("id", "email", "name", "phone", "balance", "created_at")
        read_only_fields = fields
