from rest_framework import serializers

from clinic.models import Invoice, Medication, Patient, Payment
from clinic.serializers.fields import FlexibleDateField, SanitizedCharField

# a new invoice has no payments yet, so its balance equals its amount
CREATE_STATUSES = ['draft', 'sent', 'pending', 'overdue', 'cancelled']


class InvoiceItemSerializer(serializers.Serializer):
    description = SanitizedCharField(max_length=255)
    quantity = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0, default=1)
    unitPrice = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0)
    medicationId = serializers.IntegerField(min_value=1, required=False, allow_null=True)

    def validate(self, attrs):
        med_id = attrs.pop('medicationId', None)
        attrs['medication'] = Medication.objects.filter(id=med_id).first() if med_id else None
        attrs['unit_price'] = attrs.pop('unitPrice')
        return attrs


class InvoiceCreateSerializer(serializers.Serializer):
    patientId = serializers.IntegerField(min_value=1)
    invoiceNo = SanitizedCharField(max_length=32, required=False, allow_blank=True)
    issueDate = FlexibleDateField(required=False)
    dueDate = FlexibleDateField(required=False)
    items = InvoiceItemSerializer(many=True, allow_empty=False)
    taxRate = serializers.DecimalField(max_digits=5, decimal_places=2, min_value=0, max_value=100, default=0)
    status = serializers.ChoiceField(choices=CREATE_STATUSES, default='draft')
    notes = SanitizedCharField(required=False, allow_blank=True, default='')

    def validate_patientId(self, v):
        patient = Patient.objects.filter(id=v).first()
        if patient is None:
            raise serializers.ValidationError('Patient not found')
        return patient

    def validate_invoiceNo(self, v):
        if v and Invoice.objects.filter(invoice_no=v).exists():
            raise serializers.ValidationError('Invoice number already exists')
        return v or None

    def validate(self, attrs):
        issue, due = attrs.get('issueDate'), attrs.get('dueDate')
        if issue and due and due < issue:
            raise serializers.ValidationError({'dueDate': 'Due date cannot be before the issue date'})
        return attrs


class InvoiceUpdateSerializer(serializers.Serializer):
    issueDate = FlexibleDateField(required=False)
    dueDate = FlexibleDateField(required=False)
    items = InvoiceItemSerializer(many=True, allow_empty=False, required=False)
    taxRate = serializers.DecimalField(max_digits=5, decimal_places=2, min_value=0, max_value=100, required=False)
    notes = SanitizedCharField(required=False, allow_blank=True)

    def to_service(self) -> dict:
        mapping = {'issueDate': 'issue_date', 'dueDate': 'due_date', 'items': 'items',
                   'taxRate': 'tax_rate', 'notes': 'notes'}
        return {mapping[k]: v for k, v in self.validated_data.items()}


class PaymentSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    method = serializers.ChoiceField(choices=[c for c, _ in Payment.METHOD_CHOICES], default='cash')
    reference = SanitizedCharField(max_length=255, required=False, allow_blank=True, default='')
    paidAt = FlexibleDateField(required=False, allow_null=True)


class InvoiceStatusSerializer(serializers.Serializer):
    status = serializers.CharField()


class InvoiceListQuerySerializer(serializers.Serializer):
    patientId = serializers.IntegerField(min_value=1, required=False)
    prescriptionId = serializers.IntegerField(min_value=1, required=False)
    status = serializers.ChoiceField(choices=[c for c, _ in Invoice.STATUS_CHOICES], required=False)
