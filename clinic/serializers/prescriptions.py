from rest_framework import serializers

from clinic.models import Medication, Patient, Prescription, PrescriptionItem, User
from clinic.serializers.fields import FlexibleDateField, SanitizedCharField

STATUS_VALUES = [c for c, _ in Prescription.STATUS_CHOICES]


class PrescriptionItemSerializer(serializers.Serializer):
    type = serializers.ChoiceField(choices=[c for c, _ in PrescriptionItem.TYPE_CHOICES], default='medication')
    medicationId = serializers.IntegerField(min_value=1, required=False, allow_null=True)
    title = SanitizedCharField(max_length=255)
    description = SanitizedCharField(required=False, allow_blank=True)
    dosage = SanitizedCharField(max_length=128, required=False, allow_blank=True)
    frequency = SanitizedCharField(max_length=128, required=False, allow_blank=True)
    duration = SanitizedCharField(max_length=128, required=False, allow_blank=True)
    instructions = SanitizedCharField(required=False, allow_blank=True)
    priority = serializers.ChoiceField(choices=[c for c, _ in PrescriptionItem.PRIORITY_CHOICES], default='normal')
    quantity = serializers.IntegerField(min_value=1, default=1)
    dueDate = FlexibleDateField(required=False, allow_null=True)

    def validate(self, attrs):
        med_id = attrs.pop('medicationId', None)
        attrs['medication'] = None
        if med_id:
            med = Medication.objects.filter(id=med_id).first()
            if med is None:
                raise serializers.ValidationError({'medicationId': 'Medication not found'})
            attrs['medication'] = med
        if 'dueDate' in attrs:
            attrs['due_date'] = attrs.pop('dueDate')
        return attrs


class PrescriptionSerializer(serializers.Serializer):
    patientId = serializers.IntegerField(min_value=1)
    prescriberId = serializers.IntegerField(min_value=1, required=False, allow_null=True)
    status = serializers.ChoiceField(choices=STATUS_VALUES, default='draft')
    notes = SanitizedCharField(required=False, allow_blank=True, default='')
    attachments = serializers.ListField(child=serializers.CharField(max_length=512), required=False, default=list)
    items = PrescriptionItemSerializer(many=True, allow_empty=False)

    def validate_patientId(self, v):
        patient = Patient.objects.filter(id=v).first()
        if patient is None:
            raise serializers.ValidationError('Patient not found')
        return patient

    def validate_prescriberId(self, v):
        if v is None:
            return None
        user = User.objects.filter(id=v, is_active=True).first()
        if user is None:
            raise serializers.ValidationError('Prescriber not found')
        return user

    def validate(self, attrs):
        attrs['patient'] = attrs.pop('patientId')
        if 'prescriberId' in attrs:
            attrs['prescriber'] = attrs.pop('prescriberId')
        return attrs


class PrescriptionPatchSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=STATUS_VALUES, required=False)
    notes = SanitizedCharField(required=False, allow_blank=True)
    attachments = serializers.ListField(child=serializers.CharField(max_length=512), required=False)


class PrescriptionListQuerySerializer(serializers.Serializer):
    patientId = serializers.IntegerField(min_value=1, required=False)
    status = serializers.ChoiceField(choices=STATUS_VALUES, required=False)
