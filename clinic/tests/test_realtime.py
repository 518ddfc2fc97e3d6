import pytest
from asgiref.sync import async_to_sync, sync_to_async
from channels.testing import WebsocketCommunicator
from django.contrib.auth.models import AnonymousUser

from clinic.realtime.consumers import DashboardConsumer
from clinic.services.billing import create_invoice, record_payment
from clinic.services.inventory import adjust_stock
from clinic.tests.helpers import make_admin, make_medication, make_patient

pytestmark = pytest.mark.django_db


def _as_user(user):
    """The dashboard consumer with ``user`` placed in the scope, as AuthMiddlewareStack would."""
    app = DashboardConsumer.as_asgi()

    async def asgi(scope, receive, send):
        return await app(dict(scope, user=user), receive, send)

    return asgi


def _refresh_after(user, action):
    """Connect as ``user``, run ``action`` and return the next pushed message."""

    async def scenario():
        communicator = WebsocketCommunicator(_as_user(user), '/ws/dashboard/')
        connected, _ = await communicator.connect()
        assert connected
        welcome = await communicator.receive_json_from()
        assert welcome == {'type': 'welcome', 'message': 'connected'}
        await sync_to_async(action)()
        event = await communicator.receive_json_from(timeout=2)
        await communicator.disconnect()
        return event

    return async_to_sync(scenario)()


def test_anonymous_socket_is_closed_with_4001():
    async def scenario():
        communicator = WebsocketCommunicator(_as_user(AnonymousUser()), '/ws/dashboard/')
        return await communicator.connect()

    connected, code = async_to_sync(scenario)()
    assert connected is False
    assert code == 4001


def test_payment_pushes_dashboard_refresh(django_capture_on_commit_callbacks):
    user = make_admin()
    invoice = create_invoice(patient=make_patient(), status='pending',
                             items=[{'description': 'Consultation', 'unit_price': '100.00'}])

    def pay():
        with django_capture_on_commit_callbacks(execute=True):
            record_payment(invoice.id, amount='40.00', user=user)

    event = _refresh_after(user, pay)
    assert event['type'] == 'dashboard.refresh'
    assert event['reason'] == 'payment'
    assert event['invoiceId'] == invoice.id
    assert 'ts' in event


def test_stock_change_pushes_dashboard_refresh(django_capture_on_commit_callbacks):
    user = make_admin()
    med = make_medication(stock=10)

    def restock():
        with django_capture_on_commit_callbacks(execute=True):
            adjust_stock(med.id, 5, reason='Delivery', user=user)

    event = _refresh_after(user, restock)
    assert (event['reason'], event['medicationId']) == ('stock', med.id)


def test_nothing_is_pushed_before_commit(django_capture_on_commit_callbacks):
    user = make_admin()
    invoice = create_invoice(patient=make_patient(), status='pending',
                             items=[{'description': 'Consultation', 'unit_price': '100.00'}])
    pending = []

    def pay_uncommitted():
        with django_capture_on_commit_callbacks() as callbacks:
            record_payment(invoice.id, amount='10.00', user=user)
        pending.extend(callbacks)

    async def scenario():
        communicator = WebsocketCommunicator(_as_user(user), '/ws/dashboard/')
        await communicator.connect()
        await communicator.receive_json_from()
        await sync_to_async(pay_uncommitted)()
        silent = await communicator.receive_nothing(timeout=0.2)
        await communicator.disconnect()
        return silent

    assert async_to_sync(scenario)()
    assert len(pending) == 1
