import pytest
from django.urls import reverse
from rest_framework.test import APIClient

from clinic.models import Role, User
from clinic.permissions import resource_permission, validate_permission_map
from clinic.tests.helpers import make_role, make_user

pytestmark = pytest.mark.django_db

NURSE_PERMISSIONS = {
    'patients': ['read', 'update'],
    'appointments': ['read', 'update'],
    'prescriptions': ['read'],
}


@pytest.fixture
def nurse_client():
    client = APIClient()
    client.force_authenticate(make_user('nurse@hospital.test', role=make_role('Nurse', NURSE_PERMISSIONS)))
    return client


def test_anonymous_gets_401():
    client = APIClient()
    r = client.get(reverse('patients_list'))
    assert r.status_code == 401
    assert r.data['ok'] is False
    assert r.data['error']['code'] == 'not_authenticated'


def test_role_allows_listed_actions_only(nurse_client):
    assert nurse_client.get(reverse('patients_list')).status_code == 200
    r = nurse_client.post(reverse('patients_list'), {'firstName': 'A', 'lastName': 'B'}, format='json')
    assert r.status_code == 403
    assert r.data['error']['code'] == 'permission_denied'


def test_resource_missing_from_map_is_denied(nurse_client):
    assert nurse_client.get(reverse('invoices_list')).status_code == 403
    assert nurse_client.get(reverse('users_list')).status_code == 403
    assert nurse_client.get(reverse('dashboard_view')).status_code == 403


def test_inactive_role_grants_nothing(nurse_client):
    Role.objects.filter(name='Nurse').update(is_active=False)
    nurse_client.force_authenticate(User.objects.get(email='nurse@hospital.test'))
    assert nurse_client.get(reverse('patients_list')).status_code == 403


def test_admin_role_and_superuser_pass_everything():
    client = APIClient()
    client.force_authenticate(make_user('admin@hospital.test', role=make_role(Role.ADMIN)))
    assert client.get(reverse('users_list')).status_code == 200
    root = APIClient()
    root.force_authenticate(make_user('root@hospital.test', is_superuser=True))
    assert root.get(reverse('settings_view')).status_code == 200


def test_user_without_role_is_denied():
    client = APIClient()
    client.force_authenticate(make_user('nobody@hospital.test'))
    assert client.get(reverse('patients_list')).status_code == 403


def test_resource_permission_rejects_unknown_resource():
    with pytest.raises(ValueError):
        resource_permission('wards')


def test_validate_permission_map():
    assert validate_permission_map({'billing': ['update', 'read']}) == {'billing': ['read', 'update']}
    with pytest.raises(ValueError):
        validate_permission_map({'billing': ['approve']})
    with pytest.raises(ValueError):
        validate_permission_map({'wards': ['read']})
    with pytest.raises(ValueError):
        validate_permission_map(['patients'])
