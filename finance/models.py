from decimal import Decimal

from django.db import models
from django.contrib.auth import get_user_model
from django.utils import timezone

from customer.models import Customer
from home.models import Store

User = get_user_model()


# ========================================
# SALE MODEL
# ========================================

class Sale(models.Model):
    """
    A sale, optionally financed through installments.

    Business Rules:
    - balance_due never exceeds total_amount
    - A credit sale whose balance reaches zero is PAID_OFF
    - Payments only ever lower the balance; edits to the sale may raise it
    """

    DAILY = 'daily'
    WEEKLY = 'weekly'
    FORTNIGHTLY = 'fortnightly'
    MONTHLY = 'monthly'

    FREQUENCY_CHOICES = [
        (DAILY, 'Daily'),
        (WEEKLY, 'Weekly'),
        (FORTNIGHTLY, 'Fortnightly (15 days)'),
        (MONTHLY, 'Monthly'),
    ]

    PENDING_CREDIT = 'pending_credit'
    ACTIVE = 'active'
    COMPLETED = 'completed'
    PAID_OFF = 'paid_off'

    STATUS_CHOICES = [
        (PENDING_CREDIT, 'Pending Credit'),
        (ACTIVE, 'Active'),
        (COMPLETED, 'Completed'),
        (PAID_OFF, 'Paid Off'),
    ]

    customer = models.ForeignKey(
        Customer,
        on_delete=models.PROTECT,
        related_name='sales'
    )
    store = models.ForeignKey(
        Store,
        on_delete=models.PROTECT,
        related_name='sales'
    )

    sale_date = models.DateTimeField(default=timezone.now)
    total_amount = models.DecimalField(max_digits=10, decimal_places=2)
    down_payment = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'))
    balance_due = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'))

    is_credit = models.BooleanField(default=False)
    # Legacy rows may hold values outside the choices; see finance.delinquency.
    payment_frequency = models.CharField(
        max_length=20,
        choices=FREQUENCY_CHOICES,
        default=WEEKLY
    )
    number_of_payments = models.PositiveIntegerField(null=True, blank=True)
    installment_amount = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        null=True,
        blank=True,
        help_text="Amount expected on every installment"
    )

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=COMPLETED)

    created_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='sales_created'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'sales'
        ordering = ['-sale_date']
        indexes = [
            models.Index(fields=['store', 'status'], name='sales_store_status_idx'),
            models.Index(fields=['is_credit', 'status'], name='sales_credit_status_idx'),
            models.Index(fields=['customer'], name='sales_customer_idx'),
        ]

    def __str__(self):
        return f"Sale #{self.pk} - {self.customer} ({self.status})"

    @property
    def is_paid_off(self):
        return self.status == self.PAID_OFF or self.balance_due <= 0

    def save(self, *args, **kwargs):
        if self.total_amount is not None and self.balance_due > self.total_amount:
            self.balance_due = self.total_amount

        if self.is_credit:
            if self.balance_due <= 0:
                self.status = self.PAID_OFF
            elif self.status == self.PAID_OFF:
                # Balance was raised by an edit after payoff
                self.status = self.ACTIVE

        update_fields = kwargs.get('update_fields')
        if update_fields is not None and 'balance_due' in update_fields:
            kwargs['update_fields'] = set(update_fields) | {'status', 'updated_at'}

        super().save(*args, **kwargs)


# ========================================
# PAYMENT MODEL
# ========================================

class Payment(models.Model):
    """
    An installment payment. Payments are immutable once recorded; a
    correction is a new payment, never an edit.
    """

    PAYMENT_METHOD_CHOICES = [
        ('CASH', 'Cash'),
        ('CARD', 'Card'),
        ('BANK_TRANSFER', 'Bank Transfer'),
        ('OTHER', 'Other'),
    ]

    sale = models.ForeignKey(
        Sale,
        on_delete=models.CASCADE,
        related_name='payments'
    )
    amount = models.DecimalField(max_digits=10, decimal_places=2)
    payment_date = models.DateTimeField(default=timezone.now)
    payment_method = models.CharField(
        max_length=20,
        choices=PAYMENT_METHOD_CHOICES,
        default='CASH'
    )
    notes = models.TextField(null=True, blank=True)

    received_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='payments_received'
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'payments'
        ordering = ['-payment_date']
        indexes = [
            models.Index(fields=['sale', '-payment_date'], name='payments_sale_date_idx'),
        ]

    def __str__(self):
        return f"Payment {self.amount} for Sale #{self.sale_id}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValueError("Payments are immutable once recorded")
        super().save(*args, **kwargs)


# ========================================
# AUDIT LOG MODEL
# ========================================

class AuditLog(models.Model):
    """
    Append-only trail of device lock/unlock actions. A null user means the
    action was taken by the system (scheduled or on-demand cycle).
    """

    ACTION_TYPE_CHOICES = [
        ('DEVICE_LINKED', 'Device Linked'),
        ('DEVICE_LOCKED', 'Device Locked'),
        ('DEVICE_UNLOCKED', 'Device Unlocked'),
        ('DEVICE_AUTO_LOCKED', 'Device Locked Automatically'),
        ('DEVICE_AUTO_UNLOCKED', 'Device Unlocked Automatically'),
    ]

    action_type = models.CharField(max_length=50, choices=ACTION_TYPE_CHOICES)
    user = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='audit_logs'
    )
    customer = models.ForeignKey(
        Customer,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='audit_logs'
    )
    sale = models.ForeignKey(
        Sale,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='audit_logs'
    )
    store = models.ForeignKey(
        Store,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='audit_logs'
    )

    description = models.TextField()
    metadata = models.JSONField(
        null=True,
        blank=True,
        help_text="Additional data related to the action"
    )

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'audit_logs'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['store', '-created_at'], name='audit_store_created_idx'),
            models.Index(fields=['action_type'], name='audit_action_type_idx'),
        ]

    def __str__(self):
        actor = self.user or 'system'
        return f"{self.action_type} by {actor} at {self.created_at}"

    @property
    def actor(self):
        return self.user.get_full_name() if self.user else 'system'

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValueError("Audit log entries cannot be modified")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValueError("Audit log entries cannot be deleted")
