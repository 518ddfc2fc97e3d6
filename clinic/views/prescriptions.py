"""
Prescription views.

Besides plain CRUD this module exposes the two billing conversions:
``convert-to-invoice`` bills one completed prescription, and
``convert-all-to-invoice`` bills every active prescription of the same
patient on a single invoice.  The rules behind both live in
:mod:`clinic.services.prescriptions`; business rule failures surface as
400/409 responses through the API exception handler.
"""
from __future__ import annotations

from django.shortcuts import get_object_or_404
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework import status

from clinic.models import Prescription, PrescriptionItem
from clinic.permissions import resource_permission
from clinic.serializers.prescriptions import (
    PrescriptionItemSerializer,
    PrescriptionListQuerySerializer,
    PrescriptionPatchSerializer,
    PrescriptionSerializer,
)
from clinic.services import prescriptions as rx_service
from clinic.services.billing import serialize_invoice

PrescriptionsPermission = resource_permission('prescriptions')
# converting bills the patient, so it needs billing rights too
ConvertPermission = resource_permission('billing', 'create')


def _load(pk: int) -> Prescription:
    qs = (Prescription.objects
          .select_related('patient', 'prescriber', 'invoice')
          .prefetch_related('items__medication__supplier'))
    return get_object_or_404(qs, pk=pk)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, PrescriptionsPermission])
def prescriptions_list(request):
    if request.method == 'GET':
        q = PrescriptionListQuerySerializer(data=request.query_params)
        q.is_valid(raise_exception=True)
        qs = rx_service.list_prescriptions(patient_id=q.validated_data.get('patientId'),
                                           status=q.validated_data.get('status'))
        return Response({'ok': True, 'data': [rx_service.serialize_prescription(rx) for rx in qs]})
    s = PrescriptionSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    rx = rx_service.create_prescription(
        patient=vd['patient'],
        items=vd['items'],
        prescriber=vd.get('prescriber') or request.user,
        status=vd['status'],
        notes=vd.get('notes', ''),
        attachments=vd.get('attachments'),
        user=request.user,
    )
    return Response({'ok': True, 'data': rx_service.serialize_prescription(_load(rx.pk))},
                    status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, PrescriptionsPermission])
def prescription_detail(request, pk: int):
    rx = _load(pk)
    if request.method == 'GET':
        return Response({'ok': True, 'data': rx_service.serialize_prescription(rx)})
    if request.method == 'PUT':
        s = PrescriptionSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        rx_service.replace_prescription(rx, s.validated_data, user=request.user)
        return Response({'ok': True, 'data': rx_service.serialize_prescription(_load(pk))})
    if request.method == 'PATCH':
        s = PrescriptionPatchSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        rx_service.patch_prescription(rx, s.validated_data, user=request.user)
        return Response({'ok': True, 'data': rx_service.serialize_prescription(_load(pk))})
    # DELETE keeps the record and only cancels it
    rx_service.cancel_prescription(rx, user=request.user)
    return Response({'ok': True, 'data': rx_service.serialize_prescription(rx)})


@api_view(['PUT', 'DELETE'])
@permission_classes([IsAuthenticated, PrescriptionsPermission])
def prescription_item_detail(request, pk: int, item_id: int):
    item = get_object_or_404(PrescriptionItem.objects.select_related('medication'), pk=item_id, prescription_id=pk)
    if request.method == 'PUT':
        s = PrescriptionItemSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        rx_service.update_item(item, s.validated_data)
        return Response({'ok': True, 'data': rx_service.serialize_item(item)})
    item.delete()
    return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST'])
@permission_classes([IsAuthenticated, resource_permission('prescriptions', 'update'), ConvertPermission])
def prescription_convert(request, pk: int):
    invoice = rx_service.convert_to_invoice(pk, user=request.user)
    return Response({
        'ok': True,
        'message': 'Invoice created successfully',
        'invoiceId': invoice.id,
        'invoiceNo': invoice.invoice_no,
        'invoice': serialize_invoice(invoice),
    }, status=status.HTTP_201_CREATED)


@api_view(['POST'])
@permission_classes([IsAuthenticated, resource_permission('prescriptions', 'update'), ConvertPermission])
def prescription_convert_all(request, pk: int):
    invoice, batch = rx_service.convert_all_to_invoice(pk, user=request.user)
    return Response({
        'ok': True,
        'message': f'Invoice created for {len(batch)} prescription(s)',
        'invoiceId': invoice.id,
        'invoiceNo': invoice.invoice_no,
        'invoice': serialize_invoice(invoice),
        'prescriptionsUpdated': len(batch),
    }, status=status.HTTP_201_CREATED)
