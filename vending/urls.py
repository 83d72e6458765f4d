from django.urls import path

from vending.views import (
    CancelTransactionView,
    CreateTransactionView,
    EmptyWalletView,
    HealthView,
    LoginView,
    PayTransactionView,
    ProfileView,
    RechargeView,
    RegisterView,
    TransactionDetailView,
    TransactionHistoryView,
)

urlpatterns = [
    path("health", HealthView.as_view(), name="health"),
    path("auth/register", RegisterView.as_view(), name="auth-register"),
    path("auth/login", LoginView.as_view(), name="auth-login"),
    path("profile/", ProfileView.as_view(), name="profile"),
    path("transactions/", CreateTransactionView.as_view(), name="transaction-create"),
    path(
        "transactions/<str:id>/",
        TransactionDetailView.as_view(),
        name="transaction-detail",
    ),
    path(
        "transactions/<str:id>/pay",
        PayTransactionView.as_view(),
        name="transaction-pay",
    ),
    path(
        "transactions/<str:id>/cancel",
        CancelTransactionView.as_view(),
        name="transaction-cancel",
    ),
    path("history/", TransactionHistoryView.as_view(), name="transaction-history"),
    path("wallet/recharge", RechargeView.as_view(), name="wallet-recharge"),
    path("wallet/empty", EmptyWalletView.as_view(), name="wallet-empty"),
]
