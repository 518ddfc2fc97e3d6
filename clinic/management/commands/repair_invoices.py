from django.core.management.base import BaseCommand

from clinic.services.billing import repair_invoices


class Command(BaseCommand):
    help = "Zero the balance of paid invoices and re-derive the status of open ones."

    def handle(self, *args, **options):
        fixed, changed = repair_invoices()
        self.stdout.write(self.style.SUCCESS(f"Zeroed {fixed} paid balances, updated {changed} statuses."))
