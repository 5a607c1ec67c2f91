from django.contrib import admin
from .models import ManagedDevice


@admin.register(ManagedDevice)
class ManagedDeviceAdmin(admin.ModelAdmin):
    list_display = [
        'device_number',
        'imei',
        'sale',
        'store',
        'status',
        'last_locked_at',
        'last_unlocked_at',
    ]
    list_filter = ['status', 'store']
    search_fields = ['device_number', 'imei', 'serial_number']
    readonly_fields = ['last_locked_at', 'last_unlocked_at', 'created_at', 'updated_at']
