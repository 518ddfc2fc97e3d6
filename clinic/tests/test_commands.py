from datetime import timedelta
from decimal import Decimal
from io import StringIO

import pytest
from django.core.management import call_command
from django.urls import reverse
from django.utils import timezone
from rest_framework.test import APIClient

from clinic.management.commands.ensure_test_users import TEST_PASSWORD
from clinic.management.commands.seed_data import ADMIN_EMAIL
from clinic.models import Invoice, Role, SystemSetting, User
from clinic.tests.helpers import make_patient

pytestmark = pytest.mark.django_db


def test_seed_data_is_idempotent():
    call_command('seed_data', stdout=StringIO())
    SystemSetting.objects.filter(key='currency').update(value='EUR')
    call_command('seed_data', stdout=StringIO())

    assert set(Role.objects.values_list('name', flat=True)) == {'Admin', 'Doctor', 'Nurse', 'Receptionist'}
    assert User.objects.filter(email=ADMIN_EMAIL).count() == 1
    assert User.objects.get(email=ADMIN_EMAIL).check_password('password')
    assert SystemSetting.objects.get(key='currency').value == 'EUR'


def test_seed_data_reset_password():
    call_command('seed_data', stdout=StringIO())
    call_command('seed_data', '--admin-password', 'changed!', stdout=StringIO())
    assert User.objects.get(email=ADMIN_EMAIL).check_password('password')
    call_command('seed_data', '--admin-password', 'changed!', '--reset-password', stdout=StringIO())
    assert User.objects.get(email=ADMIN_EMAIL).check_password('changed!')


def test_ensure_test_users_can_log_in():
    call_command('ensure_test_users', stdout=StringIO())
    call_command('ensure_test_users', stdout=StringIO())
    assert User.objects.filter(email__endswith='.test@hospital.ch').count() == 4

    client = APIClient()
    r = client.post(reverse('login_view'), {'email': 'nurse.test@hospital.ch', 'password': TEST_PASSWORD},
                    format='json')
    assert r.status_code == 200
    client.credentials(HTTP_AUTHORIZATION=f"Token {r.data['token']}")
    assert client.get(reverse('medications_list')).status_code == 200
    assert client.get(reverse('invoices_list')).status_code == 403


def test_repair_invoices():
    patient = make_patient()
    today = timezone.localdate()
    paid = Invoice.objects.create(invoice_no='INV-A', patient=patient, issue_date=today, due_date=today,
                                  amount=Decimal('50.00'), balance=Decimal('20.00'), status='paid')
    late = Invoice.objects.create(invoice_no='INV-B', patient=patient, issue_date=today - timedelta(days=60),
                                  due_date=today - timedelta(days=30), amount=Decimal('50.00'),
                                  balance=Decimal('50.00'), status='pending')
    out = StringIO()
    call_command('repair_invoices', stdout=out)
    paid.refresh_from_db()
    late.refresh_from_db()
    assert paid.balance == Decimal('0.00')
    assert late.status == 'overdue'
    assert 'Zeroed 1 paid balances, updated 1 statuses.' in out.getvalue()
