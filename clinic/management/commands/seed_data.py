"""
Management command to seed roles, default settings and the first admin.

Safe to run repeatedly: existing rows are updated in place, and an
existing admin keeps its password unless ``--reset-password`` is given.
"""
from django.core.management.base import BaseCommand
from django.db import transaction

from clinic.models import Role, SystemSetting, User
from clinic.services.config import DEFAULT_SETTINGS, upsert_setting

ROLE_DEFINITIONS = [
    ('Admin', 'Full system access', {}),
    ('Doctor', 'Medical staff with patient and prescription access', {
        'patients': ['create', 'read', 'update'],
        'appointments': ['create', 'read', 'update'],
        'prescriptions': ['create', 'read', 'update'],
        'inventory': ['read'],
        'reports': ['read'],
    }),
    ('Nurse', 'Nursing staff with limited patient access', {
        'patients': ['read', 'update'],
        'appointments': ['read', 'update'],
        'inventory': ['read'],
        'prescriptions': ['read'],
    }),
    ('Receptionist', 'Front desk staff with appointment and patient management', {
        'patients': ['create', 'read', 'update'],
        'appointments': ['create', 'read', 'update'],
        'billing': ['read'],
    }),
]

SEED_SETTINGS = {
    'address': 'Musterstrasse 123, 8001 Zürich',
    'phone': '+41 44 123 45 67',
    'email': 'info@hospital.ch',
    'website': 'https://hospital.ch',
    'taxId': 'CHE-123.456.789',
}

ADMIN_EMAIL = 'admin@hospital.ch'


def ensure_roles() -> dict[str, Role]:
    roles = {}
    for name, description, permissions in ROLE_DEFINITIONS:
        role, _ = Role.objects.update_or_create(
            name=name,
            defaults={'description': description, 'permissions': permissions, 'is_active': True},
        )
        roles[name] = role
    return roles


class Command(BaseCommand):
    help = "Create the default roles, system settings and admin user (idempotent)."

    def add_arguments(self, parser):
        parser.add_argument('--admin-password', default='password',
                            help='Password for %s when it is created' % ADMIN_EMAIL)
        parser.add_argument('--reset-password', action='store_true',
                            help='Also reset the password of an existing admin user')

    @transaction.atomic
    def handle(self, *args, **options):
        roles = ensure_roles()
        self.stdout.write(f"roles: {', '.join(sorted(roles))}")

        for key, value in {**DEFAULT_SETTINGS, **SEED_SETTINGS}.items():
            # keep values an administrator already changed
            if not SystemSetting.objects.filter(key=key).exists():
                upsert_setting(key, value)
        self.stdout.write("settings ensured")

        admin = User.objects.filter(email__iexact=ADMIN_EMAIL).first()
        if admin is None:
            User.objects.create_user(
                email=ADMIN_EMAIL,
                password=options['admin_password'],
                name='Admin User',
                role=roles[Role.ADMIN],
                is_staff=True,
            )
            self.stdout.write(self.style.WARNING(f"created {ADMIN_EMAIL}; change its password after first login"))
        else:
            admin.role = roles[Role.ADMIN]
            admin.is_active = True
            if options['reset_password']:
                admin.set_password(options['admin_password'])
            admin.save()
            self.stdout.write(f"admin user {ADMIN_EMAIL} ensured")
        self.stdout.write(self.style.SUCCESS("Seed data ensured."))
