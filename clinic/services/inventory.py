import logging
from typing import Optional

from django.db import transaction
from django.shortcuts import get_object_or_404

from clinic.models import Medication, StockMovement, Supplier
from clinic.services.audit import log_action
from clinic.services.events import broadcast_dashboard_refresh
from clinic.services.numbering import create_with_code, next_model_code

logger = logging.getLogger(__name__)

CODE_PREFIX = 'MED'

MEDICATION_FIELDS = {
    'code': 'code',
    'name': 'name',
    'form': 'form',
    'strength': 'strength',
    'supplierId': 'supplier_id',
    'minStock': 'min_stock',
    'currentStock': 'current_stock',
    'barcode': 'barcode',
    'imageFileId': 'image',
    'description': 'description',
    'pricePerUnit': 'price_per_unit',
}


def generate_medication_code() -> str:
    return next_model_code(Medication, 'code', CODE_PREFIX)


def _model_values(data: dict) -> dict:
    return {field: data[api_name] for api_name, field in MEDICATION_FIELDS.items() if api_name in data}


def create_medication(data: dict, user=None) -> Medication:
    values = _model_values(data)
    code = values.pop('code', '')
    if code:
        med = Medication.objects.create(code=code, **values)
    else:
        med = create_with_code(Medication, 'code', CODE_PREFIX, **values)
    if med.current_stock:
        StockMovement.objects.create(
            medication=med, kind='in', quantity=med.current_stock,
            stock_before=0, stock_after=med.current_stock, reason='Initial stock',
            user=user if getattr(user, 'pk', None) else None,
        )
    log_action(user=user, action='medication_create', object_type='medication', object_id=med.id,
               detail={'code': med.code})
    return med


def update_medication(med: Medication, data: dict, user=None) -> Medication:
    values = _model_values(data)
    # stock only moves through adjust_stock / set_stock
    new_stock = values.pop('current_stock', None)
    with transaction.atomic():
        med = get_object_or_404(Medication.objects.select_for_update(), pk=med.pk)
        old_image = med.image.name if med.image else ''
        for field, value in values.items():
            setattr(med, field, value)
        if values:
            med.save(update_fields=[*values, 'updated_at'])
    if 'image' in values and old_image and old_image != med.image.name:
        med.image.storage.delete(old_image)
    if new_stock is not None and new_stock != med.current_stock:
        med, _ = set_stock(med.id, new_stock, reason='Edited', user=user)
    return med


def adjust_stock(medication_id: int, change: int, reason: str = '', user=None) -> tuple[Medication, StockMovement]:
    """Apply ``change`` to the stock, clamping the result at zero."""
    with transaction.atomic():
        med = get_object_or_404(Medication.objects.select_for_update(), pk=medication_id)
        before = med.current_stock
        after = max(0, before + int(change))
        kind = 'in' if change > 0 else 'out' if change < 0 else 'adjustment'
        med.current_stock = after
        med.save(update_fields=['current_stock', 'updated_at'])
        movement = StockMovement.objects.create(
            medication=med, kind=kind, quantity=after - before,
            stock_before=before, stock_after=after, reason=reason or '',
            user=user if getattr(user, 'pk', None) else None,
        )
    if before + change < 0:
        logger.warning('stock of %s clamped at 0 (requested %+d from %d)', med.code, change, before)
    _after_stock_change(med, user, movement)
    return med, movement


def set_stock(medication_id: int, value: int, reason: str = '', user=None) -> tuple[Medication, StockMovement]:
    if value < 0:
        raise ValueError('currentStock must be >= 0')
    with transaction.atomic():
        med = get_object_or_404(Medication.objects.select_for_update(), pk=medication_id)
        before = med.current_stock
        med.current_stock = value
        med.save(update_fields=['current_stock', 'updated_at'])
        movement = StockMovement.objects.create(
            medication=med, kind='adjustment', quantity=value - before,
            stock_before=before, stock_after=value, reason=reason or 'Stock count',
            user=user if getattr(user, 'pk', None) else None,
        )
    _after_stock_change(med, user, movement)
    return med, movement


def _after_stock_change(med: Medication, user, movement: StockMovement) -> None:
    if med.low_stock:
        logger.warning('low stock: %s has %d (minimum %d)', med.code, med.current_stock, med.min_stock)
    log_action(user=user, action='stock_change', object_type='medication', object_id=med.id,
               detail={'from': movement.stock_before, 'to': movement.stock_after, 'reason': movement.reason})
    broadcast_dashboard_refresh('stock', medicationId=med.id)


def delete_medication(med: Medication, user=None) -> None:
    code = med.code
    if med.image:
        med.image.delete(save=False)
    med.delete()
    log_action(user=user, action='medication_delete', object_type='medication', object_id=None,
               detail={'code': code})


def serialize_supplier(s: Optional[Supplier]) -> Optional[dict]:
    if s is None:
        return None
    return {'id': s.id, 'name': s.name, 'contact': s.contact, 'phone': s.phone, 'email': s.email}


def serialize_medication(m: Medication) -> dict:
    return {
        'id': m.id,
        'code': m.code,
        'name': m.name,
        'form': m.form,
        'strength': m.strength,
        'supplierId': m.supplier_id,
        'supplier': serialize_supplier(m.supplier),
        'minStock': m.min_stock,
        'currentStock': m.current_stock,
        'lowStock': m.low_stock,
        'barcode': m.barcode,
        'imageUrl': m.image.url if m.image else None,
        'description': m.description,
        'pricePerUnit': float(m.price_per_unit),
        'createdAt': m.created_at.isoformat() if m.created_at else None,
        'updatedAt': m.updated_at.isoformat() if m.updated_at else None,
    }


def serialize_movement(mv: StockMovement) -> dict:
    return {
        'id': mv.id,
        'medicationId': mv.medication_id,
        'type': mv.kind,
        'quantity': mv.quantity,
        'stockBefore': mv.stock_before,
        'stockAfter': mv.stock_after,
        'reason': mv.reason,
        'userId': mv.user_id,
        'createdAt': mv.created_at.isoformat() if mv.created_at else None,
    }
