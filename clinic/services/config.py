"""
System settings, company info and custom patient fields.

Settings are read far more often than written (every invoice needs the
currency), so the merged key/value map is cached for five minutes and
every write drops the cached copy.
"""
from __future__ import annotations

import logging
import re
from datetime import datetime
from decimal import Decimal, InvalidOperation

from django.conf import settings
from django.core.cache import cache
from django.core.validators import validate_email
from django.core.exceptions import ValidationError
from django.db import transaction

from clinic.models import CompanyInfo, CustomField, SystemSetting

logger = logging.getLogger(__name__)

SETTINGS_CACHE_KEY = 'settings:all'
SETTINGS_CACHE_TTL = 300

DEFAULT_SETTINGS = {
    'companyName': 'Hospital Management System',
    'currency': 'CHF',
    'address': '',
    'phone': '',
    'email': '',
    'website': '',
    'taxId': '',
    'favicon': '',
}


def get_system_settings() -> dict[str, str]:
    cached = cache.get(SETTINGS_CACHE_KEY)
    if cached is not None:
        return cached
    data = dict(DEFAULT_SETTINGS)
    data['currency'] = getattr(settings, 'DEFAULT_CURRENCY', None) or data['currency']
    data.update(dict(SystemSetting.objects.values_list('key', 'value')))
    cache.set(SETTINGS_CACHE_KEY, data, SETTINGS_CACHE_TTL)
    return data


def get_setting(key: str, default: str = '') -> str:
    return get_system_settings().get(key) or default


def system_currency() -> str:
    return get_setting('currency', 'CHF')


def clear_settings_cache() -> None:
    cache.delete(SETTINGS_CACHE_KEY)


def upsert_setting(key: str, value: str, description: str | None = None) -> tuple[SystemSetting, bool]:
    defaults = {'value': value}
    if description is not None:
        defaults['description'] = description
    obj, created = SystemSetting.objects.update_or_create(key=key, defaults=defaults)
    clear_settings_cache()
    logger.info('setting %s %s', key, 'created' if created else 'updated')
    return obj, created


def delete_setting(setting: SystemSetting) -> None:
    setting.delete()
    clear_settings_cache()


def serialize_setting(s: SystemSetting) -> dict:
    return {
        'id': s.id,
        'key': s.key,
        'value': s.value,
        'description': s.description,
        'updatedAt': s.updated_at.isoformat() if s.updated_at else None,
    }


# ---------------------------------------------------------------------
# Company info (singleton)
# ---------------------------------------------------------------------
COMPANY_FIELDS = {
    'name': 'name',
    'address': 'address',
    'city': 'city',
    'postalCode': 'postal_code',
    'country': 'country',
    'phone': 'phone',
    'email': 'email',
    'website': 'website',
    'taxId': 'tax_id',
    'registrationNumber': 'registration_number',
    'logo': 'logo',
    'description': 'description',
}


def get_company_info() -> CompanyInfo | None:
    return CompanyInfo.objects.order_by('id').first()


@transaction.atomic
def save_company_info(data: dict) -> CompanyInfo:
    info = CompanyInfo.objects.select_for_update().order_by('id').first() or CompanyInfo()
    for api_name, field in COMPANY_FIELDS.items():
        if api_name in data:
            setattr(info, field, data[api_name] or '')
    info.save()
    # the letterhead name doubles as the application title
    upsert_setting('companyName', info.name)
    return info


def serialize_company_info(info: CompanyInfo | None) -> dict | None:
    if info is None:
        return None
    payload = {api_name: getattr(info, field) for api_name, field in COMPANY_FIELDS.items()}
    payload['id'] = info.id
    return payload


# ---------------------------------------------------------------------
# Custom patient fields
# ---------------------------------------------------------------------
PHONE_RE = re.compile(r'^[+0-9 ()./-]{4,32}$')


def serialize_custom_field(f: CustomField) -> dict:
    return {
        'id': f.id,
        'name': f.name,
        'label': f.label or f.name,
        'type': f.type,
        'required': f.required,
        'options': f.options or [],
        'description': f.description,
        'placeholder': f.placeholder,
        'isActive': f.is_active,
    }


def _check_custom_value(field: CustomField, value):
    """Return the normalized value for ``field`` or raise ``ValueError``."""
    if field.type == 'number':
        try:
            number = Decimal(str(value))
        except (InvalidOperation, ValueError):
            raise ValueError('must be a number')
        return int(number) if number == number.to_integral_value() else float(number)
    if field.type == 'select':
        if value not in (field.options or []):
            raise ValueError(f'must be one of: {", ".join(map(str, field.options or []))}')
        return value
    if field.type == 'email':
        try:
            validate_email(value)
        except ValidationError:
            raise ValueError('must be a valid email address')
        return value
    if field.type == 'phone':
        if not PHONE_RE.match(str(value)):
            raise ValueError('must be a valid phone number')
        return str(value)
    if field.type == 'date':
        for fmt in ('%Y-%m-%d', '%d.%m.%Y'):
            try:
                return datetime.strptime(str(value), fmt).date().isoformat()
            except ValueError:
                continue
        raise ValueError('must be a date (YYYY-MM-DD)')
    return str(value)


def validate_custom_values(values: dict | None, *, partial: bool = False) -> dict:
    """Check ``values`` against the active custom field definitions.

    Unknown keys are kept as-is.  Raises ``ValueError`` with a dict of
    ``{field_name: message}`` when something is wrong.
    """
    values = dict(values or {})
    errors: dict[str, str] = {}
    for field in CustomField.objects.filter(is_active=True):
        value = values.get(field.name)
        if value in (None, ''):
            if field.required and not partial:
                errors[field.name] = 'This field is required.'
            continue
        try:
            values[field.name] = _check_custom_value(field, value)
        except ValueError as e:
            errors[field.name] = str(e)
    if errors:
        raise ValueError(errors)
    return values
