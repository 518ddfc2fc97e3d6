from datetime import timedelta

import pytest
from django.urls import reverse
from django.utils import timezone
from rest_framework.authtoken.models import Token
from rest_framework.test import APIClient

from clinic.models import AuditEvent, Role
from clinic.tests.helpers import PASSWORD, make_role, make_user

pytestmark = pytest.mark.django_db


def login(client, email, password=PASSWORD):
    return client.post(reverse('login_view'), {'email': email, 'password': password}, format='json')


def test_login_returns_jwt_and_legacy_token():
    client = APIClient()
    make_user('doc@hospital.test', role=make_role('Doctor', {'patients': ['read']}))
    r = login(client, 'doc@hospital.test')
    assert r.status_code == 200
    assert r.data['token']
    assert r.data['jwt_access'] and r.data['jwt_refresh']
    assert r.data['role'] == 'Doctor'
    assert r.data['permissions'] == {'patients': ['read']}
    assert r.data['user']['email'] == 'doc@hospital.test'


def test_login_email_is_case_insensitive():
    client = APIClient()
    make_user('nurse@hospital.test')
    r = login(client, 'Nurse@Hospital.TEST')
    assert r.status_code == 200


def test_login_wrong_password_is_rejected_and_audited():
    client = APIClient()
    make_user('doc@hospital.test')
    r = login(client, 'doc@hospital.test', 'wrong-password')
    assert r.status_code == 400
    assert r.data['ok'] is False
    assert AuditEvent.objects.filter(action='login', detail__result='fail').exists()


def test_login_requires_email():
    client = APIClient()
    r = client.post(reverse('login_view'), {'password': 'x'}, format='json')
    assert r.status_code == 400
    assert 'email' in r.data['error']['message']


def test_inactive_user_cannot_login():
    client = APIClient()
    make_user('gone@hospital.test', is_active=False)
    r = login(client, 'gone@hospital.test')
    assert r.status_code == 400


def test_token_and_bearer_both_authenticate():
    client = APIClient()
    make_user('doc@hospital.test', role=make_role(Role.ADMIN))
    r = login(client, 'doc@hospital.test')
    token, access = r.data['token'], r.data['jwt_access']

    other = APIClient()
    other.credentials(HTTP_AUTHORIZATION=f'Token {token}')
    resp = other.get(reverse('user_role_view'))
    assert resp.status_code == 200
    assert resp.data['role'] == 'Admin'
    assert resp.data['user']['isAdmin'] is True

    bearer = APIClient()
    bearer.credentials(HTTP_AUTHORIZATION=f'Bearer {access}')
    assert bearer.get(reverse('user_role_view')).status_code == 200


def test_expired_token_is_rejected_and_deleted():
    client = APIClient()
    make_user('doc@hospital.test')
    token = login(client, 'doc@hospital.test').data['token']
    Token.objects.filter(key=token).update(created=timezone.now() - timedelta(hours=48))

    other = APIClient()
    other.credentials(HTTP_AUTHORIZATION=f'Token {token}')
    r = other.get(reverse('user_role_view'))
    assert r.status_code == 401
    assert not Token.objects.filter(key=token).exists()


def test_logout_revokes_legacy_token():
    client = APIClient()
    make_user('doc@hospital.test')
    token = login(client, 'doc@hospital.test').data['token']
    client.credentials(HTTP_AUTHORIZATION=f'Token {token}')
    r = client.post(reverse('logout_view'), {}, format='json')
    assert r.status_code == 200
    assert r.data['blacklisted'] >= 1
    assert not Token.objects.filter(key=token).exists()

    fresh = APIClient()
    fresh.credentials(HTTP_AUTHORIZATION=f'Token {token}')
    assert fresh.get(reverse('user_role_view')).status_code == 401


def test_jwt_refresh_returns_new_access_token():
    client = APIClient()
    make_user('doc@hospital.test')
    refresh = login(client, 'doc@hospital.test').data['jwt_refresh']
    r = APIClient().post(reverse('jwt_refresh_view'), {'refresh': refresh}, format='json')
    assert r.status_code == 200
    assert r.data['jwt_access']
