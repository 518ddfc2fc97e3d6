"""
User, role and configuration administration tests.
"""
from django.urls import reverse
from rest_framework import status
from rest_framework.authtoken.models import Token
from rest_framework.test import APITestCase

from clinic.models import CompanyInfo, CustomField, Role, SystemSetting, User
from clinic.services.config import get_setting, system_currency
from clinic.tests.helpers import make_admin, make_role, make_user


class UserAdminTests(APITestCase):
    def setUp(self) -> None:
        self.admin = make_admin()
        self.client.force_authenticate(user=self.admin)
        self.doctor_role = make_role('Doctor', {'patients': ['read']})

    def test_create_user(self):
        r = self.client.post(reverse('users_list'), {
            'name': 'Dr. House', 'email': 'House@Hospital.test', 'password': 'secret1', 'roleId': self.doctor_role.id,
        }, format='json')
        self.assertEqual(r.status_code, status.HTTP_201_CREATED)
        self.assertEqual(r.data['data']['email'], 'house@hospital.test')
        self.assertEqual(r.data['data']['role']['name'], 'Doctor')
        self.assertTrue(User.objects.get(email='house@hospital.test').check_password('secret1'))

    def test_create_user_validation(self):
        r = self.client.post(reverse('users_list'), {
            'name': 'Copy', 'email': 'ADMIN@hospital.test', 'password': 'secret1',
        }, format='json')
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('email', r.data['error']['message'])

        r = self.client.post(reverse('users_list'), {
            'name': 'Short', 'email': 'short@hospital.test', 'password': '12345',
        }, format='json')
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('password', r.data['error']['message'])

        r = self.client.post(reverse('users_list'), {
            'name': 'Ghost', 'email': 'ghost@hospital.test', 'password': 'secret1', 'roleId': 999,
        }, format='json')
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)

    def test_update_user_role_and_deactivate(self):
        user = make_user('nurse@hospital.test')
        Token.objects.create(user=user)
        r = self.client.put(reverse('user_detail', args=[user.id]),
                            {'roleId': self.doctor_role.id, 'active': False}, format='json')
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertEqual(r.data['data']['roleId'], self.doctor_role.id)
        self.assertFalse(r.data['data']['active'])
        self.assertFalse(Token.objects.filter(user=user).exists())

    def test_cannot_deactivate_or_delete_self(self):
        r = self.client.put(reverse('user_detail', args=[self.admin.id]), {'active': False}, format='json')
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)
        r = self.client.delete(reverse('user_detail', args=[self.admin.id]))
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertTrue(User.objects.filter(pk=self.admin.id).exists())

    def test_last_active_admin_cannot_be_removed(self):
        root = make_user('root@hospital.test', is_superuser=True)
        self.client.force_authenticate(user=root)
        r = self.client.delete(reverse('user_detail', args=[self.admin.id]))
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertTrue(User.objects.filter(pk=self.admin.id).exists())

        r = self.client.put(reverse('user_detail', args=[self.admin.id]), {'roleId': self.doctor_role.id},
                            format='json')
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)

        second = make_admin('second@hospital.test')
        r = self.client.delete(reverse('user_detail', args=[self.admin.id]))
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertEqual(list(User.objects.filter(role__name=Role.ADMIN)), [second])

    def test_password_change_revokes_tokens(self):
        user = make_user('nurse@hospital.test')
        Token.objects.create(user=user)
        r = self.client.put(reverse('user_password', args=[user.id]), {'password': '123'}, format='json')
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)
        r = self.client.put(reverse('user_password', args=[user.id]), {'password': 'new-secret'}, format='json')
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        user.refresh_from_db()
        self.assertTrue(user.check_password('new-secret'))
        self.assertFalse(Token.objects.filter(user=user).exists())


class RoleAdminTests(APITestCase):
    def setUp(self) -> None:
        self.admin = make_admin()
        self.client.force_authenticate(user=self.admin)

    def test_create_role_validates_permission_map(self):
        r = self.client.post(reverse('roles_list'), {
            'name': 'Pharmacist', 'permissions': {'inventory': ['read', 'delete']},
        }, format='json')
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('permissions', r.data['error']['message'])

        r = self.client.post(reverse('roles_list'), {
            'name': 'Pharmacist', 'permissions': {'inventory': ['update', 'read']},
        }, format='json')
        self.assertEqual(r.status_code, status.HTTP_201_CREATED)
        self.assertEqual(r.data['data']['permissions'], {'inventory': ['read', 'update']})
        self.assertEqual(r.data['data']['userCount'], 0)

        r = self.client.post(reverse('roles_list'), {'name': 'pharmacist'}, format='json')
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)

    def test_list_counts_users(self):
        nurse = make_role('Nurse', {'patients': ['read']})
        make_user('n1@hospital.test', role=nurse)
        make_user('n2@hospital.test', role=nurse)
        r = self.client.get(reverse('roles_list'))
        counts = {row['name']: row['userCount'] for row in r.data['data']}
        self.assertEqual(counts, {'Admin': 1, 'Nurse': 2})

    def test_role_in_use_cannot_be_deleted(self):
        nurse = make_role('Nurse', {'patients': ['read']})
        make_user('n1@hospital.test', role=nurse)
        r = self.client.delete(reverse('role_detail', args=[nurse.id]))
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(r.data['userCount'], 1)

        User.objects.filter(role=nurse).delete()
        r = self.client.delete(reverse('role_detail', args=[nurse.id]))
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertFalse(Role.objects.filter(pk=nurse.id).exists())

    def test_admin_role_is_protected(self):
        admin_role = self.admin.role
        r = self.client.put(reverse('role_detail', args=[admin_role.id]), {'name': 'Boss'}, format='json')
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)
        r = self.client.delete(reverse('role_detail', args=[admin_role.id]))
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)

    def test_update_role_permissions(self):
        nurse = make_role('Nurse', {'patients': ['read']})
        r = self.client.put(reverse('role_detail', args=[nurse.id]),
                            {'permissions': {'patients': ['read', 'update']}, 'isActive': False}, format='json')
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        nurse.refresh_from_db()
        self.assertEqual(nurse.permissions, {'patients': ['read', 'update']})
        self.assertFalse(nurse.is_active)


class ConfigurationTests(APITestCase):
    def setUp(self) -> None:
        self.admin = make_admin()
        self.client.force_authenticate(user=self.admin)

    def test_settings_defaults_and_upsert(self):
        r = self.client.get(reverse('settings_view'))
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertEqual(r.data['data'], [])
        self.assertEqual(r.data['settings']['currency'], 'CHF')
        self.assertEqual(r.data['settings']['favicon'], '')
        self.assertNotIn('companyLogo', r.data['settings'])

        r = self.client.post(reverse('settings_view'), {'key': 'currency', 'value': 'EUR'}, format='json')
        self.assertEqual(r.status_code, status.HTTP_201_CREATED)
        self.assertEqual(system_currency(), 'EUR')

        r = self.client.post(reverse('settings_view'), {'key': 'currency', 'value': 'USD'}, format='json')
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertEqual(system_currency(), 'USD')
        self.assertEqual(SystemSetting.objects.count(), 1)

    def test_delete_setting(self):
        setting = SystemSetting.objects.create(key='currency', value='EUR')
        r = self.client.delete(reverse('settings_view'))
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)
        r = self.client.delete(f"{reverse('settings_view')}?id={setting.id}")
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertFalse(SystemSetting.objects.exists())
        self.assertEqual(system_currency(), 'CHF')

    def test_company_info(self):
        r = self.client.get(reverse('company_info_view'))
        self.assertIsNone(r.data['data'])
        payload = {
            'name': 'Klinik Zürich', 'address': 'Bahnhofstrasse 1', 'city': 'Zürich', 'postalCode': '8001',
            'country': 'Switzerland', 'email': 'info@klinik.test',
        }
        r = self.client.post(reverse('company_info_view'), payload, format='json')
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        r = self.client.post(reverse('company_info_view'), {**payload, 'phone': '+41 44 000 00 00'}, format='json')
        self.assertEqual(r.data['data']['phone'], '+41 44 000 00 00')
        self.assertEqual(CompanyInfo.objects.count(), 1)
        self.assertEqual(get_setting('companyName'), 'Klinik Zürich')

    def test_custom_fields(self):
        r = self.client.post(reverse('custom_fields_list'), {'name': 'bloodType', 'type': 'select'}, format='json')
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('options', r.data['error']['message'])

        r = self.client.post(reverse('custom_fields_list'), {
            'name': 'bloodType', 'type': 'select', 'options': ['A', 'B'],
        }, format='json')
        self.assertEqual(r.status_code, status.HTTP_201_CREATED)
        field_id = r.data['data']['id']
        self.assertEqual(r.data['data']['label'], 'bloodType')

        r = self.client.put(reverse('custom_field_detail', args=[field_id]), {'required': True}, format='json')
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertTrue(CustomField.objects.get(pk=field_id).required)

        r = self.client.delete(reverse('custom_field_detail', args=[field_id]))
        self.assertEqual(r.status_code, status.HTTP_204_NO_CONTENT)
