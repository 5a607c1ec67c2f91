from django.contrib import admin
from .models import Customer


@admin.register(Customer)
class CustomerAdmin(admin.ModelAdmin):
    list_display = ['document_number', 'first_name', 'last_name', 'phone_number', 'store', 'status']
    list_filter = ['status', 'store']
    search_fields = ['document_number', 'first_name', 'last_name', 'phone_number']
