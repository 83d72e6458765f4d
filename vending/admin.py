from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from vending.models import DistributorLedger, Recharge, Transaction, User, Wallet


class ReadOnlyAdminMixin:
    """
    Makes an admin model read-only. Money only moves through the services,
    which hold the row locks; the admin is for browsing.
    """

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    ordering = ("-created_at",)
    list_display = ("id", "email", "name", "phone", "is_active", "is_staff", "created_at")
    search_fields = ("email", "name", "phone")
    list_filter = ("is_active", "is_staff")
    fieldsets = (
        (None, {"fields": ("email", "password")}),
        ("Profile", {"fields": ("name", "phone")}),
        ("Permissions", {"fields": ("is_active", "is_staff", "is_superuser", "groups", "user_permissions")}),
        ("Dates", {"fields": ("last_login", "created_at")}),
    )
    add_fieldsets = (
        (None, {"classes": ("wide",), "fields": ("email", "name", "password1", "password2")}),
    )
    readonly_fields = ("created_at", "last_login")


@admin.register(Wallet)
class WalletAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = ("id", "user", "balance", "created_at", "updated_at")
    search_fields = ("user__email",)
    readonly_fields = ("user", "balance", "created_at", "updated_at")


@admin.register(Transaction)
class TransactionAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = (
        "id",
        "owner",
        "amount",
        "status",
        "payment_method",
        "expires_at",
        "paid_at",
        "created_at",
    )
    list_filter = ("status", "payment_method")
    search_fields = ("id", "owner__email")
    readonly_fields = (
        "id",
        "owner",
        "amount",
        "basket",
        "status",
        "payment_method",
        "expires_at",
        "paid_at",
        "created_at",
        "updated_at",
    )


@admin.register(Recharge)
class RechargeAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = ("id", "user", "amount", "operator", "phone_number", "status", "processed_at")
    list_filter = ("operator", "status")
    search_fields = ("user__email", "phone_number")
    readonly_fields = (
        "user",
        "amount",
        "operator",
        "phone_number",
        "status",
        "operator_response",
        "processed_at",
        "created_at",
        "updated_at",
    )


@admin.register(DistributorLedger)
class DistributorLedgerAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = ("id", "balance", "transaction_count", "updated_at")
    readonly_fields = ("balance", "transaction_count", "created_at", "updated_at")
