"""
Invoice API tests: totals, payments, status handling, PDF export and
currency rewrites.
"""
from datetime import timedelta

from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from clinic.exceptions import BusinessRuleError
from clinic.models import Invoice, InvoiceItem, Payment
from clinic.services.billing import create_invoice
from clinic.services.config import upsert_setting
from clinic.tests.helpers import make_admin, make_patient


class InvoiceAPITests(APITestCase):
    def setUp(self) -> None:
        self.user = make_admin()
        self.client.force_authenticate(user=self.user)
        self.patient = make_patient()

    def _invoice(self, amount='100.00', status_='pending', **kwargs):
        return create_invoice(patient=self.patient, status=status_,
                              items=[{'description': 'Consultation', 'quantity': 1, 'unit_price': amount}], **kwargs)

    def test_create_computes_totals_and_number(self):
        r = self.client.post(reverse('invoices_list'), {
            'patientId': self.patient.id,
            'items': [{'description': 'Consultation', 'quantity': 2, 'unitPrice': '50.00'}],
            'taxRate': '7.7',
        }, format='json')
        self.assertEqual(r.status_code, status.HTTP_201_CREATED)
        data = r.data['data']
        self.assertEqual(data['subtotal'], 100.0)
        self.assertEqual(data['taxAmount'], 7.7)
        self.assertEqual(data['amount'], 107.7)
        self.assertEqual(data['balance'], 107.7)
        self.assertEqual(data['currency'], 'CHF')
        self.assertEqual(data['status'], 'draft')
        self.assertEqual(data['invoiceNo'], f'INV-{timezone.localdate():%Y%m}-0001')

        r = self.client.post(reverse('invoices_list'), {
            'patientId': self.patient.id,
            'items': [{'description': 'X-ray', 'unitPrice': '80.00'}],
        }, format='json')
        self.assertEqual(r.data['data']['invoiceNo'], f'INV-{timezone.localdate():%Y%m}-0002')

    def test_create_validation(self):
        self._invoice(invoice_no='INV-CUSTOM-1')
        r = self.client.post(reverse('invoices_list'), {
            'patientId': self.patient.id, 'invoiceNo': 'INV-CUSTOM-1',
            'items': [{'description': 'Consultation', 'unitPrice': '10.00'}],
        }, format='json')
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('invoiceNo', r.data['error']['message'])

        r = self.client.post(reverse('invoices_list'), {'patientId': self.patient.id, 'items': []}, format='json')
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)

        today = timezone.localdate()
        r = self.client.post(reverse('invoices_list'), {
            'patientId': self.patient.id,
            'issueDate': today.isoformat(),
            'dueDate': (today - timedelta(days=1)).isoformat(),
            'items': [{'description': 'Consultation', 'unitPrice': '10.00'}],
        }, format='json')
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)

    def test_payments_move_invoice_to_partial_then_paid(self):
        invoice = self._invoice()
        url = reverse('invoice_payment', args=[invoice.id])

        r = self.client.post(url, {'amount': '0'}, format='json')
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)

        r = self.client.post(url, {'amount': '150.00'}, format='json')
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(r.data['balance'], 100.0)

        r = self.client.post(url, {'amount': '50.00', 'method': 'card'}, format='json')
        self.assertEqual(r.status_code, status.HTTP_201_CREATED)
        self.assertEqual(r.data['payment']['amount'], 50.0)
        self.assertEqual(r.data['invoice']['balance'], 50.0)
        self.assertEqual(r.data['invoice']['status'], 'partial')

        r = self.client.post(url, {'amount': '50.00'}, format='json')
        self.assertEqual(r.data['invoice']['balance'], 0.0)
        self.assertEqual(r.data['invoice']['status'], 'paid')
        self.assertEqual(len(r.data['invoice']['payments']), 2)

    def test_payment_on_cancelled_invoice_is_refused(self):
        invoice = self._invoice(status_='cancelled')
        r = self.client.post(reverse('invoice_payment', args=[invoice.id]), {'amount': '10'}, format='json')
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(Payment.objects.exists())

    def test_manual_status(self):
        invoice = self._invoice()
        url = reverse('invoice_status', args=[invoice.id])
        r = self.client.put(url, {'status': 'bogus'}, format='json')
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)

        r = self.client.put(url, {'status': 'paid'}, format='json')
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertEqual(r.data['oldStatus'], 'pending')
        self.assertEqual(r.data['newStatus'], 'paid')
        self.assertEqual(r.data['invoice']['balance'], 0.0)

    def test_leaving_paid_restores_the_open_balance(self):
        invoice = self._invoice()
        self.client.post(reverse('invoice_payment', args=[invoice.id]), {'amount': '30.00'}, format='json')
        url = reverse('invoice_status', args=[invoice.id])
        self.client.put(url, {'status': 'paid'}, format='json')
        r = self.client.put(url, {'status': 'sent'}, format='json')
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertEqual(r.data['oldStatus'], 'paid')
        self.assertEqual(r.data['invoice']['balance'], 70.0)

        r = self.client.get(reverse('invoices_list'))
        listed = r.data['data'][0]
        self.assertEqual((listed['balance'], listed['status']), (70.0, 'partial'))

    def test_create_refuses_paid_and_partial(self):
        for state in ('paid', 'partial'):
            r = self.client.post(reverse('invoices_list'), {
                'patientId': self.patient.id, 'status': state,
                'items': [{'description': 'Consultation', 'unitPrice': '10.00'}],
            }, format='json')
            self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(Invoice.objects.exists())
        with self.assertRaises(BusinessRuleError):
            self._invoice(status_='paid')

    def test_zero_quantity_line_is_free(self):
        r = self.client.post(reverse('invoices_list'), {
            'patientId': self.patient.id,
            'items': [{'description': 'Follow-up', 'quantity': '0', 'unitPrice': '10.00'},
                      {'description': 'Consultation', 'unitPrice': '25.00'}],
        }, format='json')
        self.assertEqual(r.status_code, status.HTTP_201_CREATED)
        self.assertEqual(r.data['data']['amount'], 25.0)
        totals = InvoiceItem.objects.order_by('id').values_list('total', flat=True)
        self.assertEqual([float(t) for t in totals], [0.0, 25.0])

    def test_update_status_marks_overdue(self):
        past = timezone.localdate() - timedelta(days=40)
        invoice = self._invoice(status_='sent', issue_date=past, due_date=past + timedelta(days=10))
        r = self.client.post(reverse('invoice_update_status', args=[invoice.id]))
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertEqual(r.data['oldStatus'], 'sent')
        self.assertEqual(r.data['newStatus'], 'overdue')
        self.assertTrue(r.data['updated'])

        r = self.client.post(reverse('invoice_update_status', args=[invoice.id]))
        self.assertFalse(r.data['updated'])

    def test_list_filters_and_refreshes_status(self):
        past = timezone.localdate() - timedelta(days=40)
        overdue = self._invoice(issue_date=past, due_date=past + timedelta(days=5))
        self._invoice(status_='draft')
        other = make_patient('Beat', 'Keller')
        create_invoice(patient=other, items=[{'description': 'Lab', 'unit_price': '20.00'}])

        r = self.client.get(reverse('invoices_list'), {'status': 'overdue'})
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertEqual([i['id'] for i in r.data['data']], [overdue.id])

        r = self.client.get(reverse('invoices_list'), {'patientId': other.id})
        self.assertEqual(len(r.data['data']), 1)

    def test_update_recomputes_amount_against_payments(self):
        invoice = self._invoice()
        self.client.post(reverse('invoice_payment', args=[invoice.id]), {'amount': '40.00'}, format='json')
        url = reverse('invoice_detail', args=[invoice.id])

        r = self.client.put(url, {'items': [{'description': 'Short visit', 'unitPrice': '30.00'}]}, format='json')
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)

        r = self.client.put(url, {
            'items': [{'description': 'Consultation', 'quantity': 3, 'unitPrice': '50.00'}],
            'notes': 'Extended',
        }, format='json')
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertEqual(r.data['data']['amount'], 150.0)
        self.assertEqual(r.data['data']['balance'], 110.0)
        self.assertEqual(r.data['data']['status'], 'partial')
        self.assertEqual(r.data['data']['notes'], 'Extended')

    def test_delete(self):
        invoice = self._invoice()
        r = self.client.delete(reverse('invoice_detail', args=[invoice.id]))
        self.assertEqual(r.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Invoice.objects.exists())

    def test_delete_with_payments_conflicts(self):
        invoice = self._invoice()
        self.client.post(reverse('invoice_payment', args=[invoice.id]), {'amount': '10.00'}, format='json')
        r = self.client.delete(reverse('invoice_detail', args=[invoice.id]))
        self.assertEqual(r.status_code, status.HTTP_409_CONFLICT)
        self.assertTrue(Invoice.objects.filter(pk=invoice.id).exists())

    def test_pdf_export(self):
        invoice = create_invoice(patient=self.patient, status='pending', notes='Bank A & B',
                                 items=[{'description': 'X-ray <left> & lab', 'unit_price': '80.00'}])
        r = self.client.get(reverse('invoice_pdf', args=[invoice.id]))
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertEqual(r['Content-Type'], 'application/pdf')
        self.assertIn(f'invoice-{invoice.invoice_no}.pdf', r['Content-Disposition'])
        self.assertTrue(r.content.startswith(b'%PDF'))

    def test_update_currency_rewrites_all_invoices(self):
        self._invoice()
        self._invoice(amount='20.00')
        upsert_setting('currency', 'EUR')
        r = self.client.post(reverse('update_currency'))
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertEqual(r.data['updatedCount'], 2)
        self.assertEqual(r.data['currency'], 'EUR')
        self.assertEqual(set(Invoice.objects.values_list('currency', flat=True)), {'EUR'})
