"""
Configuration views: custom patient fields, system settings and the
company letterhead.
"""
from __future__ import annotations

from django.shortcuts import get_object_or_404
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework import status

from clinic.models import CustomField, SystemSetting
from clinic.permissions import resource_permission
from clinic.serializers.accounts import CompanyInfoSerializer, CustomFieldSerializer, SettingSerializer
from clinic.services import config
from clinic.services.audit import log_action

SettingsPermission = resource_permission('settings')

CUSTOM_FIELD_ATTRS = {
    'name': 'name',
    'label': 'label',
    'type': 'type',
    'required': 'required',
    'options': 'options',
    'description': 'description',
    'placeholder': 'placeholder',
    'isActive': 'is_active',
}


def _apply_custom_field(field: CustomField, data: dict) -> CustomField:
    for api_name, attr in CUSTOM_FIELD_ATTRS.items():
        if api_name in data:
            setattr(field, attr, data[api_name])
    if not field.label:
        field.label = field.name
    field.save()
    return field


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, SettingsPermission])
def custom_fields_list(request):
    if request.method == 'GET':
        return Response({'ok': True, 'data': [config.serialize_custom_field(f) for f in CustomField.objects.all()]})
    s = CustomFieldSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    field = _apply_custom_field(CustomField(), s.validated_data)
    log_action(user=request.user, action='custom_field_create', object_type='custom_field', object_id=field.id,
               detail={'name': field.name})
    return Response({'ok': True, 'data': config.serialize_custom_field(field)}, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes([IsAuthenticated, SettingsPermission])
def custom_field_detail(request, pk: int):
    field = get_object_or_404(CustomField, pk=pk)
    if request.method == 'GET':
        return Response({'ok': True, 'data': config.serialize_custom_field(field)})
    if request.method == 'PUT':
        s = CustomFieldSerializer(data=request.data, partial=True, context={'instance': field})
        s.is_valid(raise_exception=True)
        _apply_custom_field(field, s.validated_data)
        return Response({'ok': True, 'data': config.serialize_custom_field(field)})
    log_action(user=request.user, action='custom_field_delete', object_type='custom_field', object_id=field.id,
               detail={'name': field.name})
    field.delete()
    return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET', 'POST', 'DELETE'])
@permission_classes([IsAuthenticated, SettingsPermission])
def settings_view(request):
    """GET lists settings plus the merged map; POST upserts one key; DELETE takes ``?id=``."""
    if request.method == 'GET':
        rows = [config.serialize_setting(s) for s in SystemSetting.objects.all()]
        return Response({'ok': True, 'data': rows, 'settings': config.get_system_settings()})
    if request.method == 'POST':
        s = SettingSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        vd = s.validated_data
        obj, created = config.upsert_setting(vd['key'], vd['value'], vd.get('description'))
        log_action(user=request.user, action='setting_save', object_type='setting', object_id=obj.id,
                   detail={'key': obj.key})
        return Response({'ok': True, 'data': config.serialize_setting(obj)},
                        status=status.HTTP_201_CREATED if created else status.HTTP_200_OK)
    setting_id = request.query_params.get('id')
    if not setting_id or not setting_id.isdigit():
        return Response({'ok': False, 'detail': 'Setting id is required'}, status=400)
    setting = get_object_or_404(SystemSetting, pk=int(setting_id))
    log_action(user=request.user, action='setting_delete', object_type='setting', object_id=setting.id,
               detail={'key': setting.key})
    config.delete_setting(setting)
    return Response({'ok': True, 'message': 'Setting deleted successfully'})


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, SettingsPermission])
def company_info_view(request):
    if request.method == 'GET':
        return Response({'ok': True, 'data': config.serialize_company_info(config.get_company_info())})
    s = CompanyInfoSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    info = config.save_company_info(s.validated_data)
    log_action(user=request.user, action='company_info_save', object_type='company_info', object_id=info.id)
    return Response({'ok': True, 'data': config.serialize_company_info(info)})
