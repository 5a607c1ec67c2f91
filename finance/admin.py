from django.contrib import admin
from .models import AuditLog, Payment, Sale


class PaymentInline(admin.TabularInline):
    model = Payment
    extra = 0
    fields = ['amount', 'payment_date', 'payment_method', 'received_by']

    def has_change_permission(self, request, obj=None):
        return False


@admin.register(Sale)
class SaleAdmin(admin.ModelAdmin):
    list_display = [
        'id',
        'customer',
        'store',
        'sale_date',
        'total_amount',
        'balance_due',
        'payment_frequency',
        'status',
    ]
    list_filter = ['status', 'is_credit', 'payment_frequency', 'store']
    search_fields = ['customer__first_name', 'customer__last_name', 'customer__document_number']
    inlines = [PaymentInline]


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    """
    Read-only view of the audit trail.
    """
    list_display = ['action_type', 'user', 'store', 'sale', 'created_at']
    list_filter = ['action_type', 'store']
    search_fields = ['description']
    readonly_fields = [f.name for f in AuditLog._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
