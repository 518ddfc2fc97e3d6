from rest_framework import serializers

from clinic.models import CustomField, Role
from clinic.permissions import validate_permission_map
from clinic.serializers.fields import SanitizedCharField

MIN_PASSWORD = 6


class UserCreateSerializer(serializers.Serializer):
    name = SanitizedCharField(max_length=150)
    email = serializers.EmailField()
    password = serializers.CharField(min_length=MIN_PASSWORD, write_only=True, trim_whitespace=False)
    roleId = serializers.IntegerField(min_value=1, required=False, allow_null=True)
    active = serializers.BooleanField(default=True)

    def validate_email(self, v):
        from clinic.services.accounts import email_taken
        v = v.strip().lower()
        instance = self.context.get('instance')
        if email_taken(v, exclude_id=instance.id if instance else None):
            raise serializers.ValidationError('User with this email already exists')
        return v

    def validate_roleId(self, v):
        if v is None:
            return None
        role = Role.objects.filter(id=v).first()
        if role is None:
            raise serializers.ValidationError('Role not found')
        return role


class UserUpdateSerializer(UserCreateSerializer):
    password = None
    active = serializers.BooleanField(required=False)

    def to_service(self) -> dict:
        data = dict(self.validated_data)
        if 'roleId' in data:
            data['role'] = data.pop('roleId')
        return data


class PasswordSerializer(serializers.Serializer):
    password = serializers.CharField(min_length=MIN_PASSWORD, trim_whitespace=False)


class RoleSerializer(serializers.Serializer):
    name = SanitizedCharField(max_length=64)
    description = SanitizedCharField(max_length=255, required=False, allow_blank=True)
    permissions = serializers.JSONField(required=False)
    isActive = serializers.BooleanField(required=False)

    def validate_name(self, v):
        instance = self.context.get('instance')
        qs = Role.objects.filter(name__iexact=v)
        if instance:
            qs = qs.exclude(id=instance.id)
        if qs.exists():
            raise serializers.ValidationError('Role with this name already exists')
        return v

    def validate_permissions(self, v):
        try:
            return validate_permission_map(v or {})
        except ValueError as e:
            raise serializers.ValidationError(str(e))


class CustomFieldSerializer(serializers.Serializer):
    name = SanitizedCharField(max_length=64)
    label = SanitizedCharField(max_length=128, required=False, allow_blank=True)
    type = serializers.ChoiceField(choices=[c for c, _ in CustomField.TYPE_CHOICES], default='text')
    required = serializers.BooleanField(default=False)
    options = serializers.ListField(child=SanitizedCharField(max_length=128), required=False, default=list)
    description = SanitizedCharField(max_length=255, required=False, allow_blank=True)
    placeholder = SanitizedCharField(max_length=128, required=False, allow_blank=True)
    isActive = serializers.BooleanField(default=True)

    def validate_name(self, v):
        instance = self.context.get('instance')
        qs = CustomField.objects.filter(name=v)
        if instance:
            qs = qs.exclude(id=instance.id)
        if qs.exists():
            raise serializers.ValidationError('Custom field with this name already exists')
        return v

    def validate(self, attrs):
        field_type = attrs.get('type', getattr(self.context.get('instance'), 'type', 'text'))
        options = attrs.get('options', getattr(self.context.get('instance'), 'options', []))
        if field_type == 'select' and not options:
            raise serializers.ValidationError({'options': 'Select fields need at least one option'})
        return attrs


class SettingSerializer(serializers.Serializer):
    key = serializers.RegexField(r'^[A-Za-z][A-Za-z0-9_.-]{0,63}$')
    value = SanitizedCharField(allow_blank=True)
    description = SanitizedCharField(max_length=255, required=False, allow_blank=True)


class CompanyInfoSerializer(serializers.Serializer):
    name = SanitizedCharField(max_length=255)
    address = SanitizedCharField(max_length=255)
    city = SanitizedCharField(max_length=128)
    postalCode = SanitizedCharField(max_length=32)
    country = SanitizedCharField(max_length=128)
    phone = SanitizedCharField(max_length=64, required=False, allow_blank=True)
    email = serializers.EmailField()
    website = SanitizedCharField(max_length=255, required=False, allow_blank=True)
    taxId = SanitizedCharField(max_length=64, required=False, allow_blank=True)
    registrationNumber = SanitizedCharField(max_length=64, required=False, allow_blank=True)
    logo = SanitizedCharField(max_length=255, required=False, allow_blank=True)
    description = SanitizedCharField(required=False, allow_blank=True)
