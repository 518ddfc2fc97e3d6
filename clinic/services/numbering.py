"""
Sequential human readable numbers (``P001``, ``RX001``, ``MED001``,
``INV-202601-0001``).

The next number is derived from the highest existing one with the same
prefix.  Two concurrent writers may compute the same value; the unique
constraint on the column rejects the loser, which then retries with a
fresh number.
"""
from __future__ import annotations

import logging
import re
from typing import Iterable

from django.db import IntegrityError, transaction

logger = logging.getLogger(__name__)

DEFAULT_ATTEMPTS = 5


def next_code(prefix: str, existing: Iterable[str], width: int = 3) -> str:
    pattern = re.compile(rf'^{re.escape(prefix)}(\d+)$')
    highest = 0
    for value in existing:
        m = pattern.match(value or '')
        if m:
            highest = max(highest, int(m.group(1)))
    return f'{prefix}{highest + 1:0{width}d}'


def next_model_code(model, field: str, prefix: str, width: int = 3) -> str:
    values = model.objects.filter(**{f'{field}__startswith': prefix}).values_list(field, flat=True)
    return next_code(prefix, values, width)


def create_with_code(model, field: str, prefix: str, *, width: int = 3, attempts: int = DEFAULT_ATTEMPTS, **fields):
    """Create ``model`` with the next free code in ``field``."""
    for attempt in range(1, attempts + 1):
        code = next_model_code(model, field, prefix, width)
        try:
            with transaction.atomic():
                return model.objects.create(**{field: code}, **fields)
        except IntegrityError:
            if attempt == attempts:
                raise
            logger.warning('%s %s already taken, retrying (%d/%d)', model.__name__, code, attempt, attempts)
