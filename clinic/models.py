"""
Database models for the hospital administration backend.

The models cover the clinical records (patients, appointments,
prescriptions), the pharmacy stock (medications, suppliers, stock
movements), billing (invoices, invoice items, payments) and the
administrative configuration (roles, users, custom fields, system
settings, company info).  Field names follow Django conventions; the
JSON shapes exposed by the API are produced by the ``serialize_*``
helpers in :mod:`clinic.services`.
"""
from __future__ import annotations

from decimal import Decimal

from django.contrib.auth.models import AbstractUser, UserManager
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models


MONEY = dict(max_digits=12, decimal_places=2, default=Decimal('0.00'))


class Role(models.Model):
    """A named set of permissions.

    ``permissions`` maps a resource name to the list of actions the role
    may perform on it, e.g. ``{"patients": ["read", "update"]}``.  The
    role named ``Admin`` is granted everything regardless of the map.
    """
    ADMIN = 'Admin'

    name = models.CharField(max_length=64, unique=True)
    description = models.CharField(max_length=255, blank=True)
    permissions = models.JSONField(default=dict, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['name']

    def __str__(self) -> str:
        return self.name

    def allows(self, resource: str, action: str) -> bool:
        if not self.is_active:
            return False
        if self.name == self.ADMIN:
            return True
        return action in (self.permissions or {}).get(resource, [])


class StaffUserManager(UserManager):
    """Users log in with their email; the username mirrors it."""

    def create_user(self, username=None, email=None, password=None, **extra_fields):
        email = self.normalize_email(email or username)
        return super().create_user(username=username or email, email=email, password=password, **extra_fields)

    def create_superuser(self, username=None, email=None, password=None, **extra_fields):
        email = self.normalize_email(email or username)
        return super().create_superuser(username=username or email, email=email, password=password, **extra_fields)


class User(AbstractUser):
    """Staff account bound to a :class:`Role`."""
    email = models.EmailField(unique=True)
    name = models.CharField(max_length=150, blank=True)
    role = models.ForeignKey(Role, null=True, blank=True, on_delete=models.PROTECT, related_name='users')
    updated_at = models.DateTimeField(auto_now=True)

    objects = StaffUserManager()

    def __str__(self) -> str:
        return self.email or self.username

    @property
    def display_name(self) -> str:
        return self.name or self.get_full_name() or self.email

    @property
    def is_admin(self) -> bool:
        return bool(self.is_superuser or (self.role_id and self.role.name == Role.ADMIN and self.role.is_active))

    def has_resource_permission(self, resource: str, action: str) -> bool:
        if not self.is_active:
            return False
        if self.is_superuser:
            return True
        return bool(self.role_id and self.role.allows(resource, action))

    def permission_map(self) -> dict:
        if self.is_admin:
            from clinic.permissions import RESOURCES, ACTIONS
            return {r: list(ACTIONS) for r in RESOURCES}
        if not self.role_id or not self.role.is_active:
            return {}
        return dict(self.role.permissions or {})


class Patient(models.Model):
    GENDER_CHOICES = [
        ('male', 'Male'),
        ('female', 'Female'),
        ('other', 'Other'),
    ]
    STATUS_CHOICES = [
        ('active', 'Active'),
        ('inactive', 'Inactive'),
        ('archived', 'Archived'),
        ('pending', 'Pending'),
    ]
    patient_no = models.CharField(max_length=20, unique=True)
    first_name = models.CharField(max_length=100)
    last_name = models.CharField(max_length=100)
    dob = models.DateField(null=True, blank=True)
    gender = models.CharField(max_length=10, choices=GENDER_CHOICES, blank=True)
    address = models.CharField(max_length=255, blank=True)
    phone = models.CharField(max_length=32, blank=True)
    # NULL rather than '' so that the unique constraint ignores missing emails
    email = models.EmailField(null=True, blank=True, unique=True)
    insurance = models.CharField(max_length=128, blank=True)
    weight = models.DecimalField(max_digits=5, decimal_places=1, null=True, blank=True)
    allergies = models.TextField(blank=True)
    db_status = models.CharField(max_length=10, choices=STATUS_CHOICES, default='active', db_index=True)
    custom_fields = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True, db_index=True)

    def __str__(self) -> str:
        return f"{self.patient_no} {self.full_name}"

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class Appointment(models.Model):
    STATUS_CHOICES = [
        ('scheduled', 'Scheduled'),
        ('confirmed', 'Confirmed'),
        ('in-progress', 'In progress'),
        ('completed', 'Completed'),
        ('cancelled', 'Cancelled'),
        ('no-show', 'No show'),
    ]
    patient = models.ForeignKey(Patient, on_delete=models.CASCADE, related_name='appointments')
    provider = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL, related_name='appointments')
    room = models.CharField(max_length=64, blank=True)
    start_at = models.DateTimeField(db_index=True)
    end_at = models.DateTimeField()
    reason = models.CharField(max_length=255, blank=True)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default='scheduled', db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['start_at']

    def __str__(self) -> str:
        return f"{self.patient_id} @ {self.start_at:%Y-%m-%d %H:%M}"


class Supplier(models.Model):
    name = models.CharField(max_length=128, unique=True)
    contact = models.CharField(max_length=128, blank=True)
    phone = models.CharField(max_length=32, blank=True)
    email = models.EmailField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self) -> str:
        return self.name


class Medication(models.Model):
    code = models.CharField(max_length=20, unique=True)
    name = models.CharField(max_length=128, db_index=True)
    form = models.CharField(max_length=64, blank=True)
    strength = models.CharField(max_length=64, blank=True)
    supplier = models.ForeignKey(Supplier, null=True, blank=True, on_delete=models.SET_NULL, related_name='medications')
    min_stock = models.PositiveIntegerField(default=0)
    current_stock = models.PositiveIntegerField(default=0)
    barcode = models.CharField(max_length=64, blank=True)
    image = models.FileField(upload_to='medication_images/', blank=True)
    description = models.TextField(blank=True)
    price_per_unit = models.DecimalField(validators=[MinValueValidator(Decimal('0'))], **MONEY)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['name']

    def __str__(self) -> str:
        return f"{self.code} {self.name}"

    @property
    def low_stock(self) -> bool:
        return self.current_stock <= self.min_stock


class StockMovement(models.Model):
    KIND_CHOICES = [
        ('in', 'In'),
        ('out', 'Out'),
        ('adjustment', 'Adjustment'),
    ]
    medication = models.ForeignKey(Medication, on_delete=models.CASCADE, related_name='movements')
    kind = models.CharField(max_length=10, choices=KIND_CHOICES)
    # applied delta after clamping, may differ from the requested change
    quantity = models.IntegerField()
    stock_before = models.PositiveIntegerField()
    stock_after = models.PositiveIntegerField()
    reason = models.CharField(max_length=255, blank=True)
    user = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at', '-id']


class Invoice(models.Model):
    STATUS_CHOICES = [
        ('draft', 'Draft'),
        ('sent', 'Sent'),
        ('pending', 'Pending'),
        ('partial', 'Partially paid'),
        ('paid', 'Paid'),
        ('overdue', 'Overdue'),
        ('cancelled', 'Cancelled'),
    ]
    invoice_no = models.CharField(max_length=32, unique=True)
    patient = models.ForeignKey(Patient, on_delete=models.CASCADE, related_name='invoices')
    issue_date = models.DateField()
    due_date = models.DateField()
    subtotal = models.DecimalField(**MONEY)
    tax_rate = models.DecimalField(
        max_digits=5, decimal_places=2, default=Decimal('0'),
        validators=[MinValueValidator(Decimal('0')), MaxValueValidator(Decimal('100'))],
    )
    tax_amount = models.DecimalField(**MONEY)
    amount = models.DecimalField(**MONEY)
    balance = models.DecimalField(**MONEY)
    currency = models.CharField(max_length=8, default='CHF')
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default='draft', db_index=True)
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-issue_date', '-id']
        constraints = [
            models.CheckConstraint(
                condition=models.Q(balance__gte=0) & models.Q(balance__lte=models.F('amount')),
                name='invoice_balance_within_amount',
            ),
        ]

    def __str__(self) -> str:
        return self.invoice_no


class InvoiceItem(models.Model):
    invoice = models.ForeignKey(Invoice, on_delete=models.CASCADE, related_name='items')
    medication = models.ForeignKey(Medication, null=True, blank=True, on_delete=models.SET_NULL)
    description = models.CharField(max_length=255)
    quantity = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('1'))
    unit_price = models.DecimalField(**MONEY)
    total = models.DecimalField(**MONEY)

    class Meta:
        ordering = ['id']


class Payment(models.Model):
    METHOD_CHOICES = [
        ('cash', 'Cash'),
        ('card', 'Card'),
        ('transfer', 'Bank transfer'),
        ('insurance', 'Insurance'),
        ('other', 'Other'),
    ]
    invoice = models.ForeignKey(Invoice, on_delete=models.CASCADE, related_name='payments')
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    method = models.CharField(max_length=10, choices=METHOD_CHOICES, default='cash')
    reference = models.CharField(max_length=255, blank=True)
    paid_at = models.DateField(db_index=True)
    received_by = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-paid_at', '-id']


class Prescription(models.Model):
    STATUS_CHOICES = [
        ('draft', 'Draft'),
        ('active', 'Active'),
        ('completed', 'Completed'),
        ('cancelled', 'Cancelled'),
    ]
    prescription_no = models.CharField(max_length=20, unique=True)
    patient = models.ForeignKey(Patient, on_delete=models.CASCADE, related_name='prescriptions')
    prescriber = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL, related_name='prescriptions')
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default='draft', db_index=True)
    notes = models.TextField(blank=True)
    attachments = models.JSONField(default=list, blank=True)
    # a single reference, so a prescription can be billed at most once
    invoice = models.ForeignKey(Invoice, null=True, blank=True, on_delete=models.SET_NULL, related_name='prescriptions')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at', '-id']

    def __str__(self) -> str:
        return self.prescription_no


class PrescriptionItem(models.Model):
    TYPE_CHOICES = [
        ('medication', 'Medication'),
        ('bloodtest', 'Blood test'),
        ('referral', 'Referral'),
        ('info', 'Information'),
        ('other', 'Other'),
    ]
    PRIORITY_CHOICES = [
        ('urgent', 'Urgent'),
        ('high', 'High'),
        ('normal', 'Normal'),
        ('low', 'Low'),
    ]
    prescription = models.ForeignKey(Prescription, on_delete=models.CASCADE, related_name='items')
    type = models.CharField(max_length=12, choices=TYPE_CHOICES, default='medication')
    medication = models.ForeignKey(Medication, null=True, blank=True, on_delete=models.SET_NULL)
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    dosage = models.CharField(max_length=128, blank=True)
    frequency = models.CharField(max_length=128, blank=True)
    duration = models.CharField(max_length=128, blank=True)
    instructions = models.TextField(blank=True)
    priority = models.CharField(max_length=8, choices=PRIORITY_CHOICES, default='normal')
    quantity = models.PositiveIntegerField(default=1)
    due_date = models.DateField(null=True, blank=True)

    class Meta:
        ordering = ['id']


class CustomField(models.Model):
    TYPE_CHOICES = [
        ('text', 'Text'),
        ('number', 'Number'),
        ('email', 'Email'),
        ('phone', 'Phone'),
        ('date', 'Date'),
        ('select', 'Select'),
        ('textarea', 'Textarea'),
    ]
    name = models.CharField(max_length=64, unique=True)
    label = models.CharField(max_length=128, blank=True)
    type = models.CharField(max_length=10, choices=TYPE_CHOICES, default='text')
    required = models.BooleanField(default=False)
    options = models.JSONField(default=list, blank=True)
    description = models.CharField(max_length=255, blank=True)
    placeholder = models.CharField(max_length=128, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['id']

    def __str__(self) -> str:
        return self.name


class SystemSetting(models.Model):
    key = models.CharField(max_length=64, unique=True)
    value = models.TextField(blank=True)
    description = models.CharField(max_length=255, blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['key']

    def __str__(self) -> str:
        return f"{self.key}={self.value}"


class CompanyInfo(models.Model):
    """Singleton holding the letterhead printed on invoices."""
    name = models.CharField(max_length=255)
    address = models.CharField(max_length=255)
    city = models.CharField(max_length=128)
    postal_code = models.CharField(max_length=32)
    country = models.CharField(max_length=128)
    phone = models.CharField(max_length=64, blank=True)
    email = models.EmailField()
    website = models.CharField(max_length=255, blank=True)
    tax_id = models.CharField(max_length=64, blank=True)
    registration_number = models.CharField(max_length=64, blank=True)
    logo = models.CharField(max_length=255, blank=True)
    description = models.TextField(blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return self.name


class AuditEvent(models.Model):
    user = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL)
    action = models.CharField(max_length=64)
    object_type = models.CharField(max_length=64, null=True, blank=True)
    object_id = models.BigIntegerField(null=True, blank=True)
    detail = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=['action', 'created_at'], name='audit_action_created_idx'),
            models.Index(fields=['object_type', 'object_id'], name='audit_object_idx'),
        ]
