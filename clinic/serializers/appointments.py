from rest_framework import serializers

from clinic.models import Appointment, Patient, User
from clinic.serializers.fields import SanitizedCharField

STATUS_VALUES = [c for c, _ in Appointment.STATUS_CHOICES]


class AppointmentSerializer(serializers.Serializer):
    patientId = serializers.IntegerField(min_value=1)
    providerId = serializers.IntegerField(min_value=1, required=False, allow_null=True)
    room = SanitizedCharField(max_length=64, required=False, allow_blank=True)
    startAt = serializers.DateTimeField()
    endAt = serializers.DateTimeField()
    reason = SanitizedCharField(max_length=255, required=False, allow_blank=True)
    status = serializers.ChoiceField(choices=STATUS_VALUES, required=False)

    def validate_patientId(self, v):
        if not Patient.objects.filter(id=v).exists():
            raise serializers.ValidationError('Patient not found')
        return v

    def validate_providerId(self, v):
        if v is not None and not User.objects.filter(id=v, is_active=True).exists():
            raise serializers.ValidationError('Provider not found')
        return v

    def validate(self, attrs):
        instance = self.context.get('instance')
        start = attrs.get('startAt', getattr(instance, 'start_at', None))
        end = attrs.get('endAt', getattr(instance, 'end_at', None))
        if start and end and end <= start:
            raise serializers.ValidationError({'endAt': 'End time must be after start time'})
        return attrs


class AppointmentListQuerySerializer(serializers.Serializer):
    patientId = serializers.IntegerField(min_value=1, required=False)
    status = serializers.ChoiceField(choices=STATUS_VALUES, required=False)
    date = serializers.DateField(required=False)
