from rest_framework import serializers

from clinic.models import Patient
from clinic.serializers.fields import FlexibleDateField, SanitizedCharField


class PatientSerializer(serializers.Serializer):
    firstName = SanitizedCharField(max_length=100)
    lastName = SanitizedCharField(max_length=100)
    dob = FlexibleDateField(required=False, allow_null=True)
    gender = serializers.ChoiceField(choices=[c for c, _ in Patient.GENDER_CHOICES], required=False, allow_blank=True)
    address = SanitizedCharField(max_length=255, required=False, allow_blank=True)
    phone = SanitizedCharField(max_length=32, required=False, allow_blank=True)
    email = serializers.EmailField(required=False, allow_blank=True, allow_null=True)
    insurance = SanitizedCharField(max_length=128, required=False, allow_blank=True)
    weight = serializers.DecimalField(max_digits=5, decimal_places=1, min_value=0, required=False, allow_null=True)
    allergies = SanitizedCharField(required=False, allow_blank=True)
    dbStatus = serializers.ChoiceField(choices=[c for c, _ in Patient.STATUS_CHOICES], required=False)
    customFields = serializers.DictField(required=False)

    def validate_email(self, v):
        from clinic.services.patients import email_taken
        v = (v or '').strip().lower() or None
        instance = self.context.get('instance')
        if v and email_taken(v, exclude_id=instance.id if instance else None):
            raise serializers.ValidationError('A patient with this email already exists')
        return v

    def validate_customFields(self, v):
        from clinic.services.config import validate_custom_values
        try:
            return validate_custom_values(v, partial=self.partial)
        except ValueError as e:
            raise serializers.ValidationError(e.args[0])

    def validate(self, attrs):
        if not self.partial and 'customFields' not in attrs:
            try:
                attrs['customFields'] = self.validate_customFields({})
            except serializers.ValidationError as e:
                raise serializers.ValidationError({'customFields': e.detail})
        return attrs


class PatientListQuerySerializer(serializers.Serializer):
    q = serializers.CharField(max_length=64, required=False, allow_blank=True)
    status = serializers.ChoiceField(choices=[c for c, _ in Patient.STATUS_CHOICES], required=False)
