"""
Billing views: invoices, payments, status changes and PDF export.

Listing re-derives each invoice's status (paid / partial / overdue /
pending) before returning it, so overdue invoices show up as such
without a background job.  Payments and status changes lock the
invoice row; see :mod:`clinic.services.billing`.
"""
from __future__ import annotations

from django.http import HttpResponse
from django.shortcuts import get_object_or_404
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework import status

from clinic.models import Invoice
from clinic.permissions import resource_permission
from clinic.serializers.billing import (
    InvoiceCreateSerializer,
    InvoiceListQuerySerializer,
    InvoiceStatusSerializer,
    InvoiceUpdateSerializer,
    PaymentSerializer,
)
from clinic.services import billing
from clinic.services.invoice_pdf import render_invoice_pdf

BillingPermission = resource_permission('billing')
BillingUpdatePermission = resource_permission('billing', 'update')


def _invoices():
    return Invoice.objects.select_related('patient').prefetch_related('items', 'payments', 'prescriptions')


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, BillingPermission])
def invoices_list(request):
    if request.method == 'GET':
        q = InvoiceListQuerySerializer(data=request.query_params)
        q.is_valid(raise_exception=True)
        vd = q.validated_data
        qs = _invoices()
        if vd.get('patientId'):
            qs = qs.filter(patient_id=vd['patientId'])
        if vd.get('prescriptionId'):
            qs = qs.filter(prescriptions__id=vd['prescriptionId'])
        invoices = list(qs.order_by('-issue_date', '-id'))
        for inv in invoices:
            billing.refresh_status(inv)
        if vd.get('status'):
            invoices = [inv for inv in invoices if inv.status == vd['status']]
        return Response({'ok': True, 'data': [billing.serialize_invoice(inv) for inv in invoices]})
    s = InvoiceCreateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    invoice = billing.create_invoice(
        patient=vd['patientId'],
        items=vd['items'],
        tax_rate=vd['taxRate'],
        issue_date=vd.get('issueDate'),
        due_date=vd.get('dueDate'),
        status=vd['status'],
        notes=vd.get('notes', ''),
        invoice_no=vd.get('invoiceNo'),
        user=request.user,
    )
    return Response({'ok': True, 'data': billing.serialize_invoice(invoice)}, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes([IsAuthenticated, BillingPermission])
def invoice_detail(request, pk: int):
    invoice = get_object_or_404(_invoices(), pk=pk)
    if request.method == 'GET':
        return Response({'ok': True, 'data': billing.serialize_invoice(invoice)})
    if request.method == 'PUT':
        s = InvoiceUpdateSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        billing.update_invoice(invoice.pk, s.to_service(), user=request.user)
        return Response({'ok': True, 'data': billing.serialize_invoice(get_object_or_404(_invoices(), pk=pk))})
    billing.delete_invoice(invoice, user=request.user)
    return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST'])
@permission_classes([IsAuthenticated, BillingUpdatePermission])
def invoice_payment(request, pk: int):
    s = PaymentSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    payment, invoice = billing.record_payment(
        pk,
        amount=vd['amount'],
        method=vd['method'],
        reference=vd.get('reference', ''),
        paid_at=vd.get('paidAt'),
        user=request.user,
    )
    invoice = get_object_or_404(_invoices(), pk=invoice.pk)
    return Response({
        'ok': True,
        'payment': billing.serialize_payment(payment),
        'invoice': billing.serialize_invoice(invoice),
    }, status=status.HTTP_201_CREATED)


@api_view(['PUT'])
@permission_classes([IsAuthenticated, BillingUpdatePermission])
def invoice_status(request, pk: int):
    s = InvoiceStatusSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    invoice, old_status = billing.set_status(pk, s.validated_data['status'], user=request.user)
    return Response({
        'ok': True,
        'invoice': billing.serialize_invoice(invoice),
        'oldStatus': old_status,
        'newStatus': invoice.status,
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated, BillingUpdatePermission])
def invoice_update_status(request, pk: int):
    invoice, old_status, changed = billing.auto_update_status(pk)
    return Response({
        'ok': True,
        'invoice': billing.serialize_invoice(invoice),
        'oldStatus': old_status,
        'newStatus': invoice.status,
        'updated': changed,
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated, resource_permission('billing', 'read')])
def invoice_pdf(request, pk: int):
    invoice = get_object_or_404(_invoices(), pk=pk)
    pdf = render_invoice_pdf(invoice)
    resp = HttpResponse(pdf, content_type='application/pdf')
    resp['Content-Disposition'] = f'attachment; filename="invoice-{invoice.invoice_no}.pdf"'
    return resp


@api_view(['POST'])
@permission_classes([IsAuthenticated, resource_permission('settings', 'update')])
def update_currency(request):
    currency, count = billing.update_currency_all()
    return Response({
        'ok': True,
        'message': f'Updated {count} invoices to {currency}',
        'updatedCount': count,
        'currency': currency,
    })
