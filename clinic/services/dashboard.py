from datetime import timedelta
from decimal import Decimal

from django.db.models import Sum
from django.utils import timezone

from clinic.models import Appointment, Patient, Payment, Prescription
from clinic.services.appointments import WAITING_STATUSES, day_bounds
from clinic.services.prescriptions import serialize_prescription

UPCOMING_WINDOW = timedelta(hours=3)
RECENT_PRESCRIPTIONS = 5


def _today_appointments():
    return Appointment.objects.filter(start_at__range=day_bounds(timezone.localdate()))


def summary() -> dict:
    recent = (Prescription.objects
              .select_related('patient', 'prescriber', 'invoice')
              .order_by('-created_at', '-id')[:RECENT_PRESCRIPTIONS])
    return {
        'totalPatients': Patient.objects.count(),
        'todayAppointments': _today_appointments().count(),
        'waitingPatients': _today_appointments().filter(status__in=WAITING_STATUSES).count(),
        'activePrescriptions': Prescription.objects.filter(status='active').count(),
        'recentPrescriptions': [serialize_prescription(rx, with_items=False) for rx in recent],
    }


def live() -> dict:
    now = timezone.now()
    revenue = Payment.objects.filter(paid_at=timezone.localdate()).aggregate(s=Sum('amount'))['s'] or Decimal('0')
    upcoming = (Appointment.objects
                .filter(start_at__gte=now, start_at__lte=now + UPCOMING_WINDOW)
                .exclude(status='cancelled')
                .count())
    return {
        'todaysAppointments': _today_appointments().count(),
        'upcomingAppointments': upcoming,
        'waitingPatients': _today_appointments().filter(status__in=WAITING_STATUSES).count(),
        'todaysRevenue': float(revenue),
        'timestamp': now.isoformat(),
    }
