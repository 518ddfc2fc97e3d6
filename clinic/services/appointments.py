import logging
from datetime import date, datetime, time
from typing import Optional

from django.utils import timezone

from clinic.models import Appointment
from clinic.services.events import broadcast_dashboard_refresh
from clinic.services.patients import serialize_patient_ref

logger = logging.getLogger(__name__)

LIST_LIMIT = 100
DEFAULT_PROVIDER_NAME = 'Standard Provider'
WAITING_STATUSES = ('scheduled', 'confirmed')

APPOINTMENT_FIELDS = {
    'patientId': 'patient_id',
    'providerId': 'provider_id',
    'room': 'room',
    'startAt': 'start_at',
    'endAt': 'end_at',
    'reason': 'reason',
    'status': 'status',
}


def day_bounds(day: date) -> tuple[datetime, datetime]:
    tz = timezone.get_current_timezone()
    start = timezone.make_aware(datetime.combine(day, time.min), tz)
    end = timezone.make_aware(datetime.combine(day, time.max), tz)
    return start, end


def list_appointments(patient_id: Optional[int] = None, status: Optional[str] = None,
                      day: Optional[date] = None, limit: int = LIST_LIMIT):
    qs = Appointment.objects.select_related('patient', 'provider')
    if patient_id:
        qs = qs.filter(patient_id=patient_id)
    if status:
        qs = qs.filter(status=status)
    if day:
        qs = qs.filter(start_at__range=day_bounds(day))
    return qs.order_by('start_at', 'id')[:limit]


def save_appointment(appt: Appointment, data: dict) -> Appointment:
    created = appt.pk is None
    for api_name, field in APPOINTMENT_FIELDS.items():
        if api_name in data:
            setattr(appt, field, data[api_name])
    appt.save()
    logger.info('appointment %s %s', appt.pk, 'created' if created else 'updated')
    broadcast_dashboard_refresh('appointment', appointmentId=appt.pk)
    return appt


def delete_appointment(appt: Appointment) -> None:
    pk = appt.pk
    appt.delete()
    broadcast_dashboard_refresh('appointment', appointmentId=pk)


def serialize_appointment(a: Appointment, with_patient: bool = True) -> dict:
    provider = a.provider
    payload = {
        'id': a.id,
        'patientId': a.patient_id,
        'providerId': a.provider_id,
        'room': a.room,
        'startAt': a.start_at.isoformat() if a.start_at else None,
        'endAt': a.end_at.isoformat() if a.end_at else None,
        'reason': a.reason,
        'status': a.status,
        'provider': {
            'id': provider.id if provider else None,
            'name': provider.display_name if provider else DEFAULT_PROVIDER_NAME,
        },
        'createdAt': a.created_at.isoformat() if a.created_at else None,
        'updatedAt': a.updated_at.isoformat() if a.updated_at else None,
    }
    if with_patient:
        payload['patient'] = serialize_patient_ref(a.patient)
    return payload
