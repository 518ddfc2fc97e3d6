import logging
from typing import Optional

from django.db.models import Q

from clinic.models import Patient
from clinic.services.numbering import create_with_code

logger = logging.getLogger(__name__)

LIST_LIMIT = 50

# API name -> model field
PATIENT_FIELDS = {
    'firstName': 'first_name',
    'lastName': 'last_name',
    'dob': 'dob',
    'gender': 'gender',
    'address': 'address',
    'phone': 'phone',
    'email': 'email',
    'insurance': 'insurance',
    'weight': 'weight',
    'allergies': 'allergies',
    'dbStatus': 'db_status',
    'customFields': 'custom_fields',
}


def list_patients(q: Optional[str] = None, status: Optional[str] = None, limit: int = LIST_LIMIT):
    qs = Patient.objects.all()
    if q:
        qs = qs.filter(
            Q(first_name__icontains=q) | Q(last_name__icontains=q)
            | Q(patient_no__icontains=q) | Q(email__icontains=q)
        )
    if status:
        qs = qs.filter(db_status=status)
    return qs.order_by('-updated_at', '-id')[:limit]


def _model_values(data: dict) -> dict:
    values = {}
    for api_name, field in PATIENT_FIELDS.items():
        if api_name in data:
            values[field] = data[api_name]
    if 'email' in values and not values['email']:
        values['email'] = None
    return values


def create_patient(data: dict) -> Patient:
    patient = create_with_code(Patient, 'patient_no', 'P', **_model_values(data))
    logger.info('patient %s created', patient.patient_no)
    return patient


def update_patient(patient: Patient, data: dict) -> Patient:
    for field, value in _model_values(data).items():
        setattr(patient, field, value)
    patient.save()
    return patient


def email_taken(email: Optional[str], exclude_id: Optional[int] = None) -> bool:
    if not email:
        return False
    qs = Patient.objects.filter(email__iexact=email)
    if exclude_id:
        qs = qs.exclude(id=exclude_id)
    return qs.exists()


def serialize_patient_ref(p: Optional[Patient]) -> Optional[dict]:
    if p is None:
        return None
    return {
        'id': p.id,
        'patientNo': p.patient_no,
        'firstName': p.first_name,
        'lastName': p.last_name,
        'name': p.full_name,
    }


def serialize_patient(p: Patient) -> dict:
    return {
        'id': p.id,
        'patientNo': p.patient_no,
        'firstName': p.first_name,
        'lastName': p.last_name,
        'dob': p.dob.isoformat() if p.dob else None,
        'gender': p.gender,
        'address': p.address,
        'phone': p.phone,
        'email': p.email,
        'insurance': p.insurance,
        'weight': float(p.weight) if p.weight is not None else None,
        'allergies': p.allergies,
        'dbStatus': p.db_status,
        'customFields': p.custom_fields or {},
        'createdAt': p.created_at.isoformat() if p.created_at else None,
        'updatedAt': p.updated_at.isoformat() if p.updated_at else None,
    }
