from django.core.files.storage import default_storage
from rest_framework import serializers

from clinic.models import Medication, Supplier
from clinic.serializers.fields import SanitizedCharField


class MedicationSerializer(serializers.Serializer):
    code = SanitizedCharField(max_length=20, required=False, allow_blank=True)
    name = SanitizedCharField(max_length=128)
    form = SanitizedCharField(max_length=64, required=False, allow_blank=True)
    strength = SanitizedCharField(max_length=64, required=False, allow_blank=True)
    supplierId = serializers.IntegerField(min_value=1, required=False, allow_null=True)
    minStock = serializers.IntegerField(min_value=0, required=False)
    currentStock = serializers.IntegerField(min_value=0, required=False)
    barcode = SanitizedCharField(max_length=64, required=False, allow_blank=True)
    imageFileId = serializers.CharField(max_length=255, required=False, allow_blank=True)
    description = SanitizedCharField(required=False, allow_blank=True)
    pricePerUnit = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0, required=False)

    def validate_code(self, v):
        v = (v or '').strip().upper()
        instance = self.context.get('instance')
        qs = Medication.objects.filter(code=v)
        if instance:
            qs = qs.exclude(id=instance.id)
        if v and qs.exists():
            raise serializers.ValidationError('Medication code already exists')
        return v

    def validate_supplierId(self, v):
        if v is not None and not Supplier.objects.filter(id=v).exists():
            raise serializers.ValidationError('Supplier not found')
        return v

    def validate_imageFileId(self, v):
        if v and not default_storage.exists(v):
            raise serializers.ValidationError('Uploaded file not found')
        return v


class StockChangeSerializer(serializers.Serializer):
    change = serializers.IntegerField()
    reason = SanitizedCharField(max_length=255, required=False, allow_blank=True)


class StockSetSerializer(serializers.Serializer):
    currentStock = serializers.IntegerField(min_value=0)
    reason = SanitizedCharField(max_length=255, required=False, allow_blank=True)


class SupplierSerializer(serializers.Serializer):
    name = SanitizedCharField(max_length=128)
    contact = SanitizedCharField(max_length=128, required=False, allow_blank=True)
    phone = SanitizedCharField(max_length=32, required=False, allow_blank=True)
    email = serializers.EmailField(required=False, allow_blank=True)

    def validate_name(self, v):
        if Supplier.objects.filter(name__iexact=v).exists():
            raise serializers.ValidationError('Supplier already exists')
        return v
