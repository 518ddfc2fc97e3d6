"""
Prescriptions and their conversion to invoices.

A prescription points at no more than one invoice through
``Prescription.invoice``.  Conversion locks the prescription row(s)
before checking that pointer, so two concurrent conversions of the same
prescription cannot both succeed: the second one sees the invoice the
first one created and is answered with a conflict.
"""
from __future__ import annotations

import logging
from datetime import timedelta
from typing import Iterable, Optional

from django.db import transaction
from django.shortcuts import get_object_or_404
from django.utils import timezone

from clinic.exceptions import BusinessRuleError, ConflictError
from clinic.models import Invoice, Prescription, PrescriptionItem
from clinic.services import billing
from clinic.services.audit import log_action
from clinic.services.inventory import serialize_medication
from clinic.services.numbering import create_with_code
from clinic.services.patients import serialize_patient_ref

logger = logging.getLogger(__name__)

LIST_LIMIT = 50
CANCELLED_NOTE = 'Prescription deleted by user'

ITEM_FIELDS = ('type', 'medication', 'title', 'description', 'dosage', 'frequency',
               'duration', 'instructions', 'priority', 'quantity', 'due_date')


def list_prescriptions(patient_id: Optional[int] = None, status: Optional[str] = None, limit: int = LIST_LIMIT):
    qs = (Prescription.objects
          .select_related('patient', 'prescriber', 'invoice')
          .prefetch_related('items__medication__supplier'))
    if patient_id:
        qs = qs.filter(patient_id=patient_id)
    if status:
        qs = qs.filter(status=status)
    return qs.order_by('-created_at', '-id')[:limit]


def _create_items(rx: Prescription, items: Iterable[dict]) -> None:
    PrescriptionItem.objects.bulk_create([
        PrescriptionItem(prescription=rx, **{k: v for k, v in item.items() if k in ITEM_FIELDS})
        for item in items
    ])


def medication_lines(items: Iterable[PrescriptionItem], priced_only: bool = False) -> list[dict]:
    """Invoice lines for the medication items of a prescription."""
    lines = []
    for item in items:
        med = item.medication
        if item.type != 'medication' or med is None:
            continue
        if priced_only and med.price_per_unit <= 0:
            continue
        lines.append({
            'description': f'{med.name} {med.strength}'.strip() or item.title,
            'quantity': item.quantity or 1,
            'unit_price': med.price_per_unit,
            'medication': med,
        })
    return lines


def create_prescription(*, patient, items: list[dict], prescriber=None, status: str = 'draft',
                        notes: str = '', attachments: Optional[list] = None, user=None) -> Prescription:
    with transaction.atomic():
        rx = create_with_code(
            Prescription, 'prescription_no', 'RX',
            patient=patient,
            prescriber=prescriber,
            status=status,
            notes=notes or '',
            attachments=attachments or [],
        )
        _create_items(rx, items)
    log_action(user=user, action='prescription_create', object_type='prescription', object_id=rx.id,
               detail={'prescriptionNo': rx.prescription_no, 'items': len(items)})
    try:
        _invoice_priced_medications(rx, user)
    except Exception:
        # the prescription stands on its own; billing can convert it later
        logger.exception('automatic invoice for %s failed', rx.prescription_no)
    return rx


def _invoice_priced_medications(rx: Prescription, user=None) -> Optional[Invoice]:
    lines = medication_lines(rx.items.select_related('medication'), priced_only=True)
    if not lines:
        return None
    with transaction.atomic():
        locked = Prescription.objects.select_for_update().get(pk=rx.pk)
        if locked.invoice_id:
            return locked.invoice
        invoice = billing.create_invoice(
            patient=rx.patient,
            items=lines,
            status='pending',
            notes=f'Medications of prescription {rx.prescription_no}',
            user=user,
        )
        locked.invoice = invoice
        locked.save(update_fields=['invoice', 'updated_at'])
    rx.invoice = invoice
    return invoice


def replace_prescription(rx: Prescription, data: dict, user=None) -> Prescription:
    with transaction.atomic():
        for field in ('patient', 'prescriber', 'status', 'notes', 'attachments'):
            if field in data:
                setattr(rx, field, data[field])
        rx.save()
        if 'items' in data:
            rx.items.all().delete()
            _create_items(rx, data['items'])
    log_action(user=user, action='prescription_update', object_type='prescription', object_id=rx.id)
    return rx


def patch_prescription(rx: Prescription, data: dict, user=None) -> Prescription:
    fields = [f for f in ('status', 'notes', 'attachments') if f in data]
    for field in fields:
        setattr(rx, field, data[field])
    if fields:
        rx.save(update_fields=fields + ['updated_at'])
    log_action(user=user, action='prescription_update', object_type='prescription', object_id=rx.id,
               detail={'fields': fields})
    return rx


def cancel_prescription(rx: Prescription, user=None) -> Prescription:
    rx.status = 'cancelled'
    rx.notes = CANCELLED_NOTE
    rx.save(update_fields=['status', 'notes', 'updated_at'])
    log_action(user=user, action='prescription_cancel', object_type='prescription', object_id=rx.id)
    return rx


def update_item(item: PrescriptionItem, data: dict) -> PrescriptionItem:
    for field in ITEM_FIELDS:
        if field in data:
            setattr(item, field, data[field])
    item.save()
    return item


def convert_to_invoice(prescription_id: int, user=None) -> Invoice:
    with transaction.atomic():
        rx = get_object_or_404(Prescription.objects.select_for_update(), pk=prescription_id)
        if rx.status != 'completed':
            raise BusinessRuleError('Only completed prescriptions can be converted to an invoice')
        if rx.invoice_id:
            existing = Invoice.objects.get(pk=rx.invoice_id)
            raise ConflictError('Invoice already exists for this prescription',
                                invoiceId=existing.id, invoiceNo=existing.invoice_no)
        invoice = billing.create_invoice(
            patient=rx.patient,
            items=medication_lines(rx.items.select_related('medication')),
            status='draft',
            due_date=timezone.localdate() + timedelta(days=billing.DEFAULT_DUE_DAYS),
            notes=f'Generated from prescription {rx.prescription_no}',
            user=user,
        )
        rx.invoice = invoice
        rx.save(update_fields=['invoice', 'updated_at'])
    logger.info('prescription %s converted to invoice %s', rx.prescription_no, invoice.invoice_no)
    return invoice


def convert_all_to_invoice(prescription_id: int, user=None) -> tuple[Invoice, list[Prescription]]:
    """Bill every active, not yet invoiced prescription of the patient at once."""
    rx = get_object_or_404(Prescription, pk=prescription_id)
    with transaction.atomic():
        batch = list(
            Prescription.objects.select_for_update()
            .filter(patient_id=rx.patient_id, status='active', invoice__isnull=True)
            .order_by('created_at', 'id')
        )
        if not batch:
            raise BusinessRuleError('No active prescriptions found for this patient')
        items = PrescriptionItem.objects.filter(prescription__in=batch).select_related('medication')
        numbers = ', '.join(p.prescription_no for p in batch)
        invoice = billing.create_invoice(
            patient=rx.patient,
            items=medication_lines(items),
            status='pending',
            notes=f'Generated from prescriptions {numbers}',
            user=user,
        )
        Prescription.objects.filter(pk__in=[p.pk for p in batch]).update(
            invoice=invoice, status='completed', updated_at=timezone.now(),
        )
    logger.info('%d prescriptions of patient %s converted to invoice %s', len(batch), rx.patient_id, invoice.invoice_no)
    return invoice, batch


def serialize_item(i: PrescriptionItem) -> dict:
    return {
        'id': i.id,
        'type': i.type,
        'medicationId': i.medication_id,
        'medication': serialize_medication(i.medication) if i.medication else None,
        'title': i.title,
        'description': i.description,
        'dosage': i.dosage,
        'frequency': i.frequency,
        'duration': i.duration,
        'instructions': i.instructions,
        'priority': i.priority,
        'quantity': i.quantity,
        'dueDate': i.due_date.isoformat() if i.due_date else None,
    }


def serialize_prescription(rx: Prescription, with_items: bool = True) -> dict:
    prescriber = rx.prescriber
    payload = {
        'id': rx.id,
        'prescriptionNo': rx.prescription_no,
        'patientId': rx.patient_id,
        'patient': serialize_patient_ref(rx.patient),
        'prescriberId': rx.prescriber_id,
        'prescriber': {'id': prescriber.id, 'name': prescriber.display_name} if prescriber else None,
        'status': rx.status,
        'notes': rx.notes,
        'attachments': rx.attachments or [],
        'isInvoiced': rx.invoice_id is not None,
        'invoiceId': rx.invoice_id,
        'invoiceNo': rx.invoice.invoice_no if rx.invoice_id else None,
        'createdAt': rx.created_at.isoformat() if rx.created_at else None,
        'updatedAt': rx.updated_at.isoformat() if rx.updated_at else None,
    }
    if with_items:
        payload['items'] = [serialize_item(i) for i in rx.items.all()]
    return payload
