from django.core.files.storage import default_storage
from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import override_settings
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from clinic.models import Medication, StockMovement, Supplier
from clinic.services.inventory import adjust_stock, update_medication
from clinic.tests.helpers import make_admin, make_medication

PNG_BYTES = b'\x89PNG\r\n\x1a\n' + b'\x00' * 64


class InventoryAPITests(APITestCase):
    def setUp(self) -> None:
        self.user = make_admin()
        self.client.force_authenticate(user=self.user)

    def test_create_generates_code_and_records_initial_stock(self):
        supplier = Supplier.objects.create(name='Pharma AG')
        r = self.client.post(reverse('medications_list'), {
            'name': 'Paracetamol', 'strength': '500 mg', 'supplierId': supplier.id,
            'minStock': 5, 'currentStock': 20, 'pricePerUnit': '3.20',
        }, format='json')
        self.assertEqual(r.status_code, status.HTTP_201_CREATED)
        self.assertEqual(r.data['data']['code'], 'MED001')
        self.assertEqual(r.data['data']['supplier']['name'], 'Pharma AG')
        self.assertFalse(r.data['data']['lowStock'])
        movement = StockMovement.objects.get()
        self.assertEqual((movement.kind, movement.quantity, movement.stock_after), ('in', 20, 20))

    def test_generate_code_follows_highest_existing(self):
        make_medication(code='MED001')
        make_medication(code='MED007', name='Aspirin')
        r = self.client.get(reverse('medication_generate_code'))
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertEqual(r.data['code'], 'MED008')

    def test_duplicate_code_and_negative_values_are_rejected(self):
        make_medication(code='MED001')
        r = self.client.post(reverse('medications_list'), {'code': 'med001', 'name': 'Copy'}, format='json')
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('code', r.data['error']['message'])
        r = self.client.post(reverse('medications_list'), {'name': 'Bad', 'minStock': -1}, format='json')
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)
        r = self.client.post(reverse('medications_list'), {'name': 'Bad', 'pricePerUnit': '-0.50'}, format='json')
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)

    def test_stock_change_is_clamped_at_zero(self):
        med = make_medication(stock=10)
        r = self.client.post(reverse('medication_stock', args=[med.id]), {'change': -50, 'reason': 'Expired'},
                             format='json')
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertEqual(r.data['data']['currentStock'], 0)
        self.assertTrue(r.data['data']['lowStock'])
        self.assertEqual(r.data['movement']['quantity'], -10)
        self.assertEqual(r.data['movement']['type'], 'out')

        r = self.client.post(reverse('medication_stock', args=[med.id]), {'change': 15}, format='json')
        self.assertEqual(r.data['data']['currentStock'], 15)

    def test_set_stock(self):
        med = make_medication(stock=10)
        r = self.client.put(reverse('medication_stock', args=[med.id]), {'currentStock': 7}, format='json')
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertEqual(r.data['data']['currentStock'], 7)
        self.assertEqual(r.data['movement']['type'], 'adjustment')
        r = self.client.put(reverse('medication_stock', args=[med.id]), {'currentStock': -1}, format='json')
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)

    def test_movement_history_newest_first(self):
        med = make_medication(stock=10)
        self.client.post(reverse('medication_stock', args=[med.id]), {'change': -2}, format='json')
        self.client.post(reverse('medication_stock', args=[med.id]), {'change': 5}, format='json')
        r = self.client.get(reverse('medication_movements', args=[med.id]))
        self.assertEqual([m['quantity'] for m in r.data['data']], [5, -2])

    def test_update_and_delete(self):
        med = make_medication()
        r = self.client.put(reverse('medication_detail', args=[med.id]), {'name': 'Ibuprofen 600'}, format='json')
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertEqual(r.data['data']['name'], 'Ibuprofen 600')
        self.assertEqual(r.data['data']['code'], 'MED001')
        r = self.client.delete(reverse('medication_detail', args=[med.id]))
        self.assertEqual(r.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Medication.objects.exists())

    def test_update_keeps_stock_changed_since_load(self):
        stale = make_medication(stock=10)
        adjust_stock(stale.id, 5)
        med = update_medication(stale, {'name': 'Renamed'}, user=self.user)
        self.assertEqual(med.current_stock, 15)
        med.refresh_from_db()
        self.assertEqual((med.name, med.current_stock), ('Renamed', 15))
        self.assertEqual(StockMovement.objects.get().stock_after, 15)

    def test_upload_then_attach_image(self):
        upload = SimpleUploadedFile('pill.png', PNG_BYTES, content_type='image/png')
        r = self.client.post(reverse('upload_view'), {'file': upload}, format='multipart')
        self.assertEqual(r.status_code, status.HTTP_201_CREATED)
        file_id = r.data['fileId']
        self.assertTrue(file_id.startswith('medication_images/'))
        self.assertEqual(r.data['type'], 'image/png')
        self.assertTrue(default_storage.exists(file_id))

        r = self.client.post(reverse('medications_list'), {'name': 'Pill', 'imageFileId': file_id}, format='json')
        self.assertEqual(r.status_code, status.HTTP_201_CREATED)
        self.assertTrue(r.data['data']['imageUrl'])

        r = self.client.delete(reverse('medication_detail', args=[r.data['data']['id']]))
        self.assertEqual(r.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(default_storage.exists(file_id))

    def test_upload_rejects_unsupported_type(self):
        upload = SimpleUploadedFile('notes.txt', b'hello', content_type='text/plain')
        r = self.client.post(reverse('upload_view'), {'file': upload}, format='multipart')
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)

    @override_settings(UPLOAD_MAX_MB=0)
    def test_upload_rejects_large_file(self):
        upload = SimpleUploadedFile('big.png', PNG_BYTES, content_type='image/png')
        r = self.client.post(reverse('upload_view'), {'file': upload}, format='multipart')
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)

    def test_upload_without_file(self):
        r = self.client.post(reverse('upload_view'), {}, format='multipart')
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)

    def test_suppliers(self):
        r = self.client.post(reverse('suppliers_list'), {'name': 'Pharma AG'}, format='json')
        self.assertEqual(r.status_code, status.HTTP_201_CREATED)
        r = self.client.post(reverse('suppliers_list'), {'name': 'pharma ag'}, format='json')
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)
        r = self.client.get(reverse('suppliers_list'))
        self.assertEqual(len(r.data['data']), 1)
