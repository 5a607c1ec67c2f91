"""
Customer (client) records.

Clients are created by the sales team and own financed sales. The lockout
engine only reads them, to put a name on audit entries and reports.
"""

from django.db import models
from django.contrib.auth import get_user_model

from home.models import Store

User = get_user_model()


# ========================================
# CUSTOMER MODEL
# ========================================

class Customer(models.Model):
    """
    Core customer model storing basic customer information.

    Business Rules:
    - Document number must be unique
    - Customer belongs to the store that registered them
    """

    STATUS_CHOICES = [
        ('ACTIVE', 'Active'),
        ('INACTIVE', 'Inactive'),
        ('BLOCKED', 'Blocked'),
    ]

    document_number = models.CharField(
        max_length=50,
        unique=True,
        help_text="National ID or passport number"
    )
    first_name = models.CharField(max_length=100)
    last_name = models.CharField(max_length=100, blank=True)
    email = models.EmailField(blank=True)
    phone_number = models.CharField(max_length=20, blank=True)

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='ACTIVE')

    store = models.ForeignKey(
        Store,
        on_delete=models.PROTECT,
        related_name='customers'
    )
    created_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='customers_created'
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'customers'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['document_number'], name='customers_document_idx'),
            models.Index(fields=['phone_number'], name='customers_phone_idx'),
            models.Index(fields=['store'], name='customers_store_idx'),
        ]

    def __str__(self):
        return f"{self.get_full_name()} ({self.document_number})"

    def get_full_name(self):
        return f"{self.first_name} {self.last_name}".strip()
