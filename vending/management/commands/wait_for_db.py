from django.core.management.base import BaseCommand, CommandError

from vending.store import LedgerStore


class Command(BaseCommand):
    help = "Waits for the database to be available, with bounded retries"

    def add_arguments(self, parser):
        parser.add_argument("--attempts", type=int, default=10)
        parser.add_argument("--delay", type=float, default=1.0, help="First wait, in seconds.")
        parser.add_argument("--backoff", type=float, default=2.0)
        parser.add_argument("--database", default="default")

    def handle(self, *args, **options):
        self.stdout.write("Waiting for database...")
        store = LedgerStore(alias=options["database"])
        if not store.wait_until_ready(
            attempts=options["attempts"],
            delay=options["delay"],
            backoff=options["backoff"],
        ):
            raise CommandError(
                f"Database unavailable after {options['attempts']} attempts."
            )
        self.stdout.write(self.style.SUCCESS("Database available!"))
