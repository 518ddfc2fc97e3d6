"""
URL mappings for the clinic API.

Every endpoint lives under ``/api`` without a trailing slash.  Each route
carries a name matching its view so tests can ``reverse()`` it.
"""
from django.urls import path, include

from .auth_views import jwt_refresh_view, login_view, logout_view, user_role_view
from .views import accounts, appointments, billing, config, dashboard, health, inventory, patients, prescriptions


urlpatterns = [
    path('metrics', include('django_prometheus.urls')),
    path('api/healthz', health.healthz, name='healthz'),

    # Authentication
    path('api/auth/login', login_view, name='login_view'),
    path('api/auth/logout', logout_view, name='logout_view'),
    path('api/auth/jwt/refresh', jwt_refresh_view, name='jwt_refresh_view'),
    path('api/user/role', user_role_view, name='user_role_view'),

    # Patients
    path('api/patients', patients.patients_list, name='patients_list'),
    path('api/patients/<int:pk>', patients.patient_detail, name='patient_detail'),
    path('api/patients/<int:pk>/prescriptions', patients.patient_prescriptions, name='patient_prescriptions'),

    # Appointments
    path('api/appointments', appointments.appointments_list, name='appointments_list'),
    path('api/appointments/<int:pk>', appointments.appointment_detail, name='appointment_detail'),

    # Prescriptions
    path('api/prescriptions', prescriptions.prescriptions_list, name='prescriptions_list'),
    path('api/prescriptions/<int:pk>', prescriptions.prescription_detail, name='prescription_detail'),
    path('api/prescriptions/<int:pk>/items/<int:item_id>', prescriptions.prescription_item_detail,
         name='prescription_item_detail'),
    path('api/prescriptions/<int:pk>/convert-to-invoice', prescriptions.prescription_convert,
         name='prescription_convert'),
    path('api/prescriptions/<int:pk>/convert-all-to-invoice', prescriptions.prescription_convert_all,
         name='prescription_convert_all'),

    # Inventory
    path('api/inventory', inventory.medications_list, name='medications_list'),
    path('api/inventory/generate-code', inventory.medication_generate_code, name='medication_generate_code'),
    path('api/inventory/<int:pk>', inventory.medication_detail, name='medication_detail'),
    path('api/inventory/<int:pk>/stock', inventory.medication_stock, name='medication_stock'),
    path('api/inventory/<int:pk>/movements', inventory.medication_movements, name='medication_movements'),
    path('api/suppliers', inventory.suppliers_list, name='suppliers_list'),
    path('api/upload', inventory.upload_view, name='upload_view'),

    # Billing
    path('api/billing', billing.invoices_list, name='invoices_list'),
    path('api/billing/<int:pk>', billing.invoice_detail, name='invoice_detail'),
    path('api/billing/<int:pk>/payment', billing.invoice_payment, name='invoice_payment'),
    path('api/billing/<int:pk>/status', billing.invoice_status, name='invoice_status'),
    path('api/billing/<int:pk>/update-status', billing.invoice_update_status, name='invoice_update_status'),
    path('api/billing/<int:pk>/pdf', billing.invoice_pdf, name='invoice_pdf'),

    # Administration
    path('api/admin/update-currency', billing.update_currency, name='update_currency'),
    path('api/admin/users', accounts.users_list, name='users_list'),
    path('api/admin/users/<int:pk>', accounts.user_detail, name='user_detail'),
    path('api/admin/users/<int:pk>/password', accounts.user_password, name='user_password'),
    path('api/admin/roles', accounts.roles_list, name='roles_list'),
    path('api/admin/roles/<int:pk>', accounts.role_detail, name='role_detail'),
    path('api/admin/custom-fields', config.custom_fields_list, name='custom_fields_list'),
    path('api/admin/custom-fields/<int:pk>', config.custom_field_detail, name='custom_field_detail'),
    path('api/admin/settings', config.settings_view, name='settings_view'),
    path('api/admin/company-info', config.company_info_view, name='company_info_view'),

    # Dashboard
    path('api/dashboard', dashboard.dashboard_view, name='dashboard_view'),
    path('api/dashboard/live', dashboard.dashboard_live, name='dashboard_live'),
]
