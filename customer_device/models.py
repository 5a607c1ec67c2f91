from django.db import models

from customer.models import Customer
from finance.models import Sale
from home.models import Store


class ManagedDevice(models.Model):
    """
    A phone enrolled in the device management backend and linked to the
    financed sale that paid for it.

    Status transitions driven by the lockout engine:
    - active -> locked when the sale falls DAYS_TO_BLOCK days behind
    - locked -> active when the sale is paid off or catches up
    wiped / returned / lost are administrative end states the engine never
    touches.
    """

    ACTIVE = 'active'
    LOCKED = 'locked'
    WIPED = 'wiped'
    RETURNED = 'returned'
    LOST = 'lost'

    STATUS_CHOICES = [
        (ACTIVE, 'Active'),
        (LOCKED, 'Locked'),
        (WIPED, 'Wiped'),
        (RETURNED, 'Returned'),
        (LOST, 'Lost'),
    ]

    TERMINAL_STATUSES = (WIPED, RETURNED, LOST)

    sale = models.OneToOneField(
        Sale,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='device'
    )
    customer = models.ForeignKey(
        Customer,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='devices'
    )
    store = models.ForeignKey(
        Store,
        on_delete=models.PROTECT,
        related_name='devices'
    )

    # Device Information
    device_number = models.CharField(
        max_length=100,
        help_text="Device identifier in the device management backend"
    )
    imei = models.CharField(max_length=20, null=True, blank=True)
    serial_number = models.CharField(max_length=50, null=True, blank=True)
    brand = models.CharField(max_length=50, null=True, blank=True)
    model = models.CharField(max_length=100, null=True, blank=True)

    # Lock State
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=ACTIVE)
    last_locked_at = models.DateTimeField(null=True, blank=True)
    last_unlocked_at = models.DateTimeField(null=True, blank=True)
    lock_reason = models.CharField(max_length=255, null=True, blank=True)
    mdm_configuration_id = models.CharField(
        max_length=50,
        null=True,
        blank=True,
        help_text="Configuration profile currently applied in the backend"
    )

    notes = models.TextField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'devices_mdm'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['device_number'], name='devices_number_idx'),
            models.Index(fields=['imei'], name='devices_imei_idx'),
            models.Index(fields=['store', 'status'], name='devices_store_status_idx'),
            models.Index(fields=['status'], name='devices_status_idx'),
        ]

    def __str__(self):
        return f"Device {self.device_number} - {self.status}"

    @property
    def is_terminal(self):
        return self.status in self.TERMINAL_STATUSES

    @property
    def client_name(self):
        if self.customer_id:
            return self.customer.get_full_name()
        if self.sale_id:
            return self.sale.customer.get_full_name()
        return 'Unknown client'
