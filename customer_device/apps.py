from django.apps import AppConfig


class CustomerDeviceConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'customer_device'
    verbose_name = 'Managed Devices'
