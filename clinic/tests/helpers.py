"""Shared builders for the clinic tests."""
from decimal import Decimal

from clinic.models import Medication, Patient, Role, User

PASSWORD = 'P@ssw0rd1'


def make_role(name, permissions=None):
    role, _ = Role.objects.get_or_create(name=name, defaults={'permissions': permissions or {}})
    return role


def make_user(email, role=None, **extra):
    return User.objects.create_user(email=email, password=PASSWORD, name=email.split('@')[0], role=role, **extra)


def make_admin(email='admin@hospital.test'):
    return make_user(email, role=make_role(Role.ADMIN))


def make_patient(first_name='Anna', last_name='Muster', **extra):
    n = Patient.objects.count() + 1
    return Patient.objects.create(patient_no=f'P{n:03d}', first_name=first_name, last_name=last_name, **extra)


def make_medication(code='MED001', name='Ibuprofen', price='12.50', stock=10, **extra):
    return Medication.objects.create(code=code, name=name, price_per_unit=Decimal(price),
                                     current_stock=stock, **extra)
