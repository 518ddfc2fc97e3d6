"""
Invoice arithmetic, payments and status handling.

Every read-modify-write on an invoice runs inside ``transaction.atomic``
with the invoice row locked via ``select_for_update``, so two payments
against the same invoice are applied one after the other and the
balance can never be driven below zero.  The database additionally
enforces ``0 <= balance <= amount``.
"""
from __future__ import annotations

import logging
from datetime import date, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional

from django.db import IntegrityError, transaction
from django.db.models import Sum
from django.shortcuts import get_object_or_404
from django.utils import timezone

from clinic.exceptions import BusinessRuleError, ConflictError
from clinic.models import Invoice, InvoiceItem, Payment
from clinic.services.audit import log_action
from clinic.services.config import system_currency
from clinic.services.events import broadcast_dashboard_refresh
from clinic.services.numbering import DEFAULT_ATTEMPTS, next_model_code
from clinic.services.patients import serialize_patient_ref

logger = logging.getLogger(__name__)

CENT = Decimal('0.01')
DEFAULT_DUE_DAYS = 30
MANUAL_STATUSES = ('draft', 'sent', 'paid', 'overdue', 'cancelled')
# statuses the automatic derivation leaves alone
HELD_STATUSES = ('draft', 'cancelled')


def money(value) -> Decimal:
    return Decimal(str(value if value is not None else 0)).quantize(CENT, rounding=ROUND_HALF_UP)


def compute_lines(items: Iterable[dict], tax_rate) -> tuple[list[dict], Decimal, Decimal, Decimal]:
    """Return ``(lines, subtotal, tax_amount, total)`` for raw item dicts.

    Each item needs ``description``, ``quantity`` and ``unit_price``;
    ``medication`` is optional.
    """
    lines = []
    subtotal = Decimal('0.00')
    for item in items:
        quantity = item.get('quantity')
        quantity = Decimal(str(1 if quantity is None else quantity))
        unit_price = money(item.get('unit_price'))
        total = money(quantity * unit_price)
        lines.append({
            'description': item['description'],
            'quantity': quantity,
            'unit_price': unit_price,
            'total': total,
            'medication': item.get('medication'),
        })
        subtotal += total
    tax_amount = money(subtotal * Decimal(str(tax_rate or 0)) / 100)
    return lines, subtotal, tax_amount, subtotal + tax_amount


def invoice_no_prefix(today: Optional[date] = None) -> str:
    today = today or timezone.localdate()
    return f'INV-{today:%Y%m}-'


def create_invoice(*, patient, items: Iterable[dict], tax_rate=0, issue_date: Optional[date] = None,
                   due_date: Optional[date] = None, status: str = 'draft', notes: str = '',
                   invoice_no: Optional[str] = None, user=None) -> Invoice:
    if status in ('paid', 'partial'):
        raise BusinessRuleError('A new invoice has no payments and cannot start as paid or partial')
    lines, subtotal, tax_amount, total = compute_lines(items, tax_rate)
    issue_date = issue_date or timezone.localdate()
    fields = dict(
        patient=patient,
        issue_date=issue_date,
        due_date=due_date or issue_date + timedelta(days=DEFAULT_DUE_DAYS),
        subtotal=subtotal,
        tax_rate=Decimal(str(tax_rate or 0)),
        tax_amount=tax_amount,
        amount=total,
        balance=total,
        currency=system_currency(),
        status=status,
        notes=notes or '',
    )
    attempts = 1 if invoice_no else DEFAULT_ATTEMPTS
    for attempt in range(1, attempts + 1):
        number = invoice_no or next_model_code(Invoice, 'invoice_no', invoice_no_prefix(issue_date), width=4)
        try:
            with transaction.atomic():
                invoice = Invoice.objects.create(invoice_no=number, **fields)
                InvoiceItem.objects.bulk_create([InvoiceItem(invoice=invoice, **line) for line in lines])
                break
        except IntegrityError:
            if invoice_no:
                raise BusinessRuleError('Invoice number already exists')
            if attempt == attempts:
                raise
            logger.warning('invoice number %s taken, retrying (%d/%d)', number, attempt, attempts)
    logger.info('invoice %s created for patient %s, total %s', invoice.invoice_no, patient.pk, total)
    log_action(user=user, action='invoice_create', object_type='invoice', object_id=invoice.id,
               detail={'invoiceNo': invoice.invoice_no, 'amount': str(total)})
    return invoice


def derive_status(invoice: Invoice, today: Optional[date] = None) -> str:
    if invoice.status in HELD_STATUSES:
        return invoice.status
    today = today or timezone.localdate()
    if invoice.balance <= 0:
        return 'paid'
    if invoice.balance < invoice.amount:
        return 'partial'
    if invoice.due_date and today > invoice.due_date:
        return 'overdue'
    return 'pending'


def refresh_status(invoice: Invoice, today: Optional[date] = None) -> bool:
    """Apply :func:`derive_status`; save only when it changed."""
    new_status = derive_status(invoice, today)
    if new_status == invoice.status:
        return False
    logger.info('invoice %s status %s -> %s', invoice.invoice_no, invoice.status, new_status)
    invoice.status = new_status
    invoice.save(update_fields=['status', 'updated_at'])
    return True


def record_payment(invoice_id: int, *, amount, method: str = 'cash', reference: str = '',
                   paid_at: Optional[date] = None, user=None) -> tuple[Payment, Invoice]:
    amount = money(amount)
    if amount <= 0:
        raise BusinessRuleError('Payment amount must be greater than 0')
    with transaction.atomic():
        invoice = get_object_or_404(Invoice.objects.select_for_update(), pk=invoice_id)
        if invoice.status == 'cancelled':
            raise BusinessRuleError('Cannot record a payment on a cancelled invoice')
        if amount > invoice.balance:
            raise BusinessRuleError('Payment amount exceeds the outstanding balance', balance=float(invoice.balance))
        payment = Payment.objects.create(
            invoice=invoice,
            amount=amount,
            method=method or 'cash',
            reference=reference or '',
            paid_at=paid_at or timezone.localdate(),
            received_by=user if getattr(user, 'pk', None) else None,
        )
        invoice.balance = invoice.balance - amount
        if invoice.balance <= 0:
            invoice.balance = Decimal('0.00')
            invoice.status = 'paid'
        elif invoice.balance < invoice.amount:
            invoice.status = 'partial'
        else:
            invoice.status = 'sent'
        invoice.save(update_fields=['balance', 'status', 'updated_at'])
    log_action(user=user, action='payment_record', object_type='invoice', object_id=invoice.id,
               detail={'paymentId': payment.id, 'amount': str(amount), 'balance': str(invoice.balance)})
    broadcast_dashboard_refresh('payment', invoiceId=invoice.id)
    return payment, invoice


def set_status(invoice_id: int, new_status: str, user=None) -> tuple[Invoice, str]:
    if new_status not in MANUAL_STATUSES:
        raise BusinessRuleError(f'Invalid status. Must be one of: {", ".join(MANUAL_STATUSES)}')
    with transaction.atomic():
        invoice = get_object_or_404(Invoice.objects.select_for_update(), pk=invoice_id)
        old_status = invoice.status
        invoice.status = new_status
        if new_status == 'paid':
            invoice.balance = Decimal('0.00')
        elif old_status == 'paid':
            invoice.balance = invoice.amount - paid_total(invoice)
        invoice.save(update_fields=['status', 'balance', 'updated_at'])
    log_action(user=user, action='invoice_status', object_type='invoice', object_id=invoice.id,
               detail={'from': old_status, 'to': new_status})
    return invoice, old_status


def auto_update_status(invoice_id: int) -> tuple[Invoice, str, bool]:
    with transaction.atomic():
        invoice = get_object_or_404(Invoice.objects.select_for_update(), pk=invoice_id)
        old_status = invoice.status
        changed = refresh_status(invoice)
    return invoice, old_status, changed


def paid_total(invoice: Invoice) -> Decimal:
    return money(invoice.payments.aggregate(s=Sum('amount'))['s'] or 0)


def update_invoice(invoice_id: int, data: dict, user=None) -> Invoice:
    """Update dates, notes, tax rate and/or lines of an invoice.

    When lines or the tax rate change the amount is recomputed and the
    balance becomes ``amount - paid``; an update that would leave the
    balance negative is refused.
    """
    with transaction.atomic():
        invoice = get_object_or_404(Invoice.objects.select_for_update(), pk=invoice_id)
        for field in ('issue_date', 'due_date', 'notes'):
            if field in data:
                setattr(invoice, field, data[field])
        if 'items' in data or 'tax_rate' in data:
            tax_rate = data.get('tax_rate', invoice.tax_rate)
            if 'items' in data:
                raw_items = data['items']
            else:
                raw_items = [
                    {'description': i.description, 'quantity': i.quantity, 'unit_price': i.unit_price, 'medication': i.medication}
                    for i in invoice.items.all()
                ]
            lines, subtotal, tax_amount, total = compute_lines(raw_items, tax_rate)
            balance = total - paid_total(invoice)
            if balance < 0:
                raise BusinessRuleError('Invoice total cannot be lower than the amount already paid')
            invoice.items.all().delete()
            InvoiceItem.objects.bulk_create([InvoiceItem(invoice=invoice, **line) for line in lines])
            invoice.tax_rate = Decimal(str(tax_rate or 0))
            invoice.subtotal, invoice.tax_amount, invoice.amount, invoice.balance = subtotal, tax_amount, total, balance
        invoice.save()
        refresh_status(invoice)
    log_action(user=user, action='invoice_update', object_type='invoice', object_id=invoice.id,
               detail={'fields': sorted(data.keys())})
    return invoice


def delete_invoice(invoice: Invoice, user=None) -> None:
    if invoice.payments.exists():
        raise ConflictError('Invoice has recorded payments and cannot be deleted', invoiceId=invoice.id)
    log_action(user=user, action='invoice_delete', object_type='invoice', object_id=invoice.id,
               detail={'invoiceNo': invoice.invoice_no})
    invoice.delete()


def update_currency_all() -> tuple[str, int]:
    currency = system_currency()
    count = Invoice.objects.update(currency=currency)
    logger.info('currency of %d invoices set to %s', count, currency)
    return currency, count


def repair_invoices() -> tuple[int, int]:
    """Zero the balance of paid invoices and re-derive the other statuses."""
    fixed = 0
    changed = 0
    with transaction.atomic():
        for invoice in Invoice.objects.select_for_update().filter(status='paid', balance__gt=0):
            invoice.balance = Decimal('0.00')
            invoice.save(update_fields=['balance', 'updated_at'])
            fixed += 1
        for invoice in Invoice.objects.select_for_update().exclude(status__in=HELD_STATUSES + ('paid',)):
            if refresh_status(invoice):
                changed += 1
    return fixed, changed


def serialize_payment(p: Payment) -> dict:
    return {
        'id': p.id,
        'invoiceId': p.invoice_id,
        'amount': float(p.amount),
        'method': p.method,
        'reference': p.reference,
        'paidAt': p.paid_at.isoformat() if p.paid_at else None,
        'receivedBy': p.received_by_id,
    }


def serialize_invoice_item(i: InvoiceItem) -> dict:
    return {
        'id': i.id,
        'description': i.description,
        'quantity': float(i.quantity),
        'unitPrice': float(i.unit_price),
        'total': float(i.total),
        'medicationId': i.medication_id,
    }


def serialize_invoice(inv: Invoice, with_lines: bool = True) -> dict:
    payload = {
        'id': inv.id,
        'invoiceNo': inv.invoice_no,
        'patientId': inv.patient_id,
        'patient': serialize_patient_ref(inv.patient),
        'issueDate': inv.issue_date.isoformat() if inv.issue_date else None,
        'dueDate': inv.due_date.isoformat() if inv.due_date else None,
        'subtotal': float(inv.subtotal),
        'taxRate': float(inv.tax_rate),
        'taxAmount': float(inv.tax_amount),
        'amount': float(inv.amount),
        'balance': float(inv.balance),
        'currency': inv.currency,
        'status': inv.status,
        'notes': inv.notes,
        'createdAt': inv.created_at.isoformat() if inv.created_at else None,
        'updatedAt': inv.updated_at.isoformat() if inv.updated_at else None,
    }
    if with_lines:
        payload['items'] = [serialize_invoice_item(i) for i in inv.items.all()]
        payload['payments'] = [serialize_payment(p) for p in inv.payments.all()]
        payload['prescriptionIds'] = [rx.id for rx in inv.prescriptions.all()]
    return payload
