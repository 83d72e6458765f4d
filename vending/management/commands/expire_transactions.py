from django.core.management.base import BaseCommand, CommandError

from vending.exceptions import ServiceUnavailable
from vending.services import TransactionService


class Command(BaseCommand):
    help = "Marks pending transactions past their deadline as expired (one sweep)"

    def handle(self, *args, **options):
        try:
            count = TransactionService.expire_overdue()
        except ServiceUnavailable as exc:
            raise CommandError(str(exc)) from exc
        self.stdout.write(self.style.SUCCESS(f"Expired {count} transaction(s)."))
