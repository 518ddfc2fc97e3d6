import html

import bleach
from rest_framework import serializers

DATE_INPUT_FORMATS = ['%Y-%m-%d', '%d.%m.%Y', 'iso-8601']


class SanitizedCharField(serializers.CharField):
    """CharField whose value is stripped of any markup."""

    def to_internal_value(self, data):
        value = super().to_internal_value(data)
        return html.unescape(bleach.clean(value, tags=[], strip=True))


class FlexibleDateField(serializers.DateField):
    """Accepts ``YYYY-MM-DD`` and the Swiss ``DD.MM.YYYY`` notation."""

    def __init__(self, **kwargs):
        kwargs.setdefault('input_formats', DATE_INPUT_FORMATS)
        super().__init__(**kwargs)
