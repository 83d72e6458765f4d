from django.apps import AppConfig


class VendingConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "vending"
    verbose_name = "Vending payments"
