import logging

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.db import transaction
from django.utils import timezone

logger = logging.getLogger(__name__)

DASHBOARD_GROUP = 'dashboard'


def _send(event: dict) -> None:
    channel_layer = get_channel_layer()
    if channel_layer is None:
        return
    try:
        async_to_sync(channel_layer.group_send)(DASHBOARD_GROUP, event)
    except Exception:
        # the data change is already committed; only the live view lags
        logger.exception('dashboard broadcast failed')


def broadcast_dashboard_refresh(reason: str, **data) -> None:
    """Tell connected dashboards to reload once the current transaction commits."""
    now = timezone.now()
    event = {'type': 'dashboard.refresh', 'reason': reason, 'ts': now.isoformat(), **data}
    transaction.on_commit(lambda: _send(event))
