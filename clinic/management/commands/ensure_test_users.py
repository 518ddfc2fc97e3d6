from django.core.management.base import BaseCommand

from clinic.management.commands.seed_data import ensure_roles
from clinic.models import User

TEST_PASSWORD = "test1234"

TEST_SET = [
    ("admin.test@hospital.ch", "Test Admin", "Admin"),
    ("doctor.test@hospital.ch", "Test Doctor", "Doctor"),
    ("nurse.test@hospital.ch", "Test Nurse", "Nurse"),
    ("reception.test@hospital.ch", "Test Receptionist", "Receptionist"),
]


class Command(BaseCommand):
    help = f"Ensure one active test user per seeded role with password={TEST_PASSWORD} (idempotent)."

    def handle(self, *args, **opts):
        roles = ensure_roles()
        for email, name, role_name in TEST_SET:
            role = roles[role_name]
            u = User.objects.filter(email__iexact=email).first()
            if u is None:
                User.objects.create_user(email=email, password=TEST_PASSWORD, name=name, role=role)
            else:
                # reset password, role and active flag
                u.set_password(TEST_PASSWORD)
                u.role = role
                u.is_active = True
                u.save(update_fields=["password", "role", "is_active"])
            self.stdout.write(self.style.SUCCESS(f"ok: {email} ({role_name})"))
        self.stdout.write(self.style.SUCCESS("All test users ensured."))
