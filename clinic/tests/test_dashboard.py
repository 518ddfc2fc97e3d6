from datetime import timedelta
from decimal import Decimal

import pytest
from django.urls import reverse
from django.utils import timezone
from rest_framework.test import APIClient

from clinic.models import Appointment, Payment, Prescription
from clinic.services.billing import create_invoice
from clinic.tests.helpers import make_admin, make_patient

pytestmark = pytest.mark.django_db


@pytest.fixture
def admin_client():
    client = APIClient()
    client.force_authenticate(make_admin())
    return client


def _today_at(hour):
    now = timezone.localtime()
    return now.replace(hour=hour, minute=0, second=0, microsecond=0)


def test_summary_counts(admin_client):
    patient = make_patient()
    make_patient('Beat', 'Keller')
    Appointment.objects.create(patient=patient, start_at=_today_at(9), end_at=_today_at(10), status='completed')
    Appointment.objects.create(patient=patient, start_at=_today_at(11), end_at=_today_at(12))
    Appointment.objects.create(patient=patient, start_at=_today_at(9) + timedelta(days=2),
                               end_at=_today_at(10) + timedelta(days=2))
    Prescription.objects.create(prescription_no='RX001', patient=patient, status='active')
    Prescription.objects.create(prescription_no='RX002', patient=patient, status='draft')

    r = admin_client.get(reverse('dashboard_view'))
    assert r.status_code == 200
    data = r.data['data']
    assert data['totalPatients'] == 2
    assert data['todayAppointments'] == 2
    assert data['waitingPatients'] == 1
    assert data['activePrescriptions'] == 1
    assert [p['prescriptionNo'] for p in data['recentPrescriptions']] == ['RX002', 'RX001']


def test_live_reports_todays_revenue(admin_client):
    patient = make_patient()
    invoice = create_invoice(patient=patient, status='pending',
                             items=[{'description': 'Consultation', 'unit_price': '100.00'}])
    Payment.objects.create(invoice=invoice, amount=Decimal('30.00'), paid_at=timezone.localdate())
    Payment.objects.create(invoice=invoice, amount=Decimal('20.00'),
                           paid_at=timezone.localdate() - timedelta(days=1))

    r = admin_client.get(reverse('dashboard_live'))
    assert r.status_code == 200
    assert r.data['data']['todaysRevenue'] == 30.0
    assert 'timestamp' in r.data['data']


def test_live_upcoming_skips_only_cancelled(admin_client):
    patient = make_patient()
    soon = timezone.now() + timedelta(hours=1)
    for state in ('scheduled', 'no-show', 'cancelled'):
        Appointment.objects.create(patient=patient, start_at=soon, end_at=soon + timedelta(minutes=30), status=state)
    later = timezone.now() + timedelta(hours=5)
    Appointment.objects.create(patient=patient, start_at=later, end_at=later + timedelta(minutes=30))

    r = admin_client.get(reverse('dashboard_live'))
    assert r.data['data']['upcomingAppointments'] == 2


def test_healthz_is_public():
    r = APIClient().get(reverse('healthz'))
    assert r.status_code == 200
    assert r.json() == {'ok': True, 'db': True, 'cache': True}
