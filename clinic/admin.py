"""
Django admin registrations for the clinic models.

Superusers can inspect and correct records through ``/admin/``.  Only
light configuration is applied: list columns, filters and search.
"""

from django.contrib import admin

from .models import (
    AuditEvent,
    Appointment,
    CompanyInfo,
    CustomField,
    Invoice,
    InvoiceItem,
    Medication,
    Patient,
    Payment,
    Prescription,
    PrescriptionItem,
    Role,
    StockMovement,
    Supplier,
    SystemSetting,
    User,
)


@admin.register(Role)
class RoleAdmin(admin.ModelAdmin):
    list_display = ('name', 'is_active', 'created_at')
    search_fields = ('name',)


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    list_display = ('email', 'name', 'role', 'is_active', 'is_superuser')
    list_filter = ('role', 'is_active')
    search_fields = ('email', 'name', 'username')
    exclude = ('password',)


@admin.register(Patient)
class PatientAdmin(admin.ModelAdmin):
    list_display = ('patient_no', 'first_name', 'last_name', 'dob', 'db_status')
    list_filter = ('db_status', 'gender')
    search_fields = ('patient_no', 'first_name', 'last_name', 'email')


@admin.register(Appointment)
class AppointmentAdmin(admin.ModelAdmin):
    list_display = ('patient', 'provider', 'start_at', 'end_at', 'status')
    list_filter = ('status',)
    search_fields = ('patient__last_name', 'reason', 'room')


@admin.register(Supplier)
class SupplierAdmin(admin.ModelAdmin):
    list_display = ('name', 'contact', 'phone', 'email')
    search_fields = ('name',)


@admin.register(Medication)
class MedicationAdmin(admin.ModelAdmin):
    list_display = ('code', 'name', 'current_stock', 'min_stock', 'price_per_unit')
    search_fields = ('code', 'name', 'barcode')


@admin.register(StockMovement)
class StockMovementAdmin(admin.ModelAdmin):
    list_display = ('medication', 'kind', 'quantity', 'stock_after', 'user', 'created_at')
    list_filter = ('kind',)


class InvoiceItemInline(admin.TabularInline):
    model = InvoiceItem
    extra = 0


class PaymentInline(admin.TabularInline):
    model = Payment
    extra = 0


@admin.register(Invoice)
class InvoiceAdmin(admin.ModelAdmin):
    list_display = ('invoice_no', 'patient', 'issue_date', 'due_date', 'amount', 'balance', 'status')
    list_filter = ('status', 'currency')
    search_fields = ('invoice_no', 'patient__last_name')
    inlines = [InvoiceItemInline, PaymentInline]


class PrescriptionItemInline(admin.TabularInline):
    model = PrescriptionItem
    extra = 0


@admin.register(Prescription)
class PrescriptionAdmin(admin.ModelAdmin):
    list_display = ('prescription_no', 'patient', 'prescriber', 'status', 'invoice', 'created_at')
    list_filter = ('status',)
    search_fields = ('prescription_no', 'patient__last_name')
    inlines = [PrescriptionItemInline]


@admin.register(CustomField)
class CustomFieldAdmin(admin.ModelAdmin):
    list_display = ('name', 'label', 'type', 'required', 'is_active')


@admin.register(SystemSetting)
class SystemSettingAdmin(admin.ModelAdmin):
    list_display = ('key', 'value', 'updated_at')
    search_fields = ('key',)


admin.site.register(CompanyInfo)


@admin.register(AuditEvent)
class AuditEventAdmin(admin.ModelAdmin):
    list_display = ('action', 'user', 'object_type', 'object_id', 'created_at')
    list_filter = ('action', 'object_type')
