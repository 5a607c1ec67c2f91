# serializers.py
from rest_framework import serializers

from finance.models import Sale
from .models import ManagedDevice


# --------------------------------------------------------
# Managed Device Link Serializer
# --------------------------------------------------------
class ManagedDeviceLinkSerializer(serializers.Serializer):
    sale_id = serializers.IntegerField(
        help_text="Financed sale the device was sold under - required"
    )
    device_number = serializers.CharField(
        max_length=100,
        required=False,
        allow_blank=True,
        help_text="Device identifier in the device management backend (or give imei)"
    )
    imei = serializers.CharField(
        max_length=20,
        required=False,
        allow_blank=True,
        help_text="Device IMEI number (15 digits)"
    )
    serial_number = serializers.CharField(max_length=50, required=False, allow_blank=True)
    brand = serializers.CharField(max_length=50, required=False, allow_blank=True)
    model = serializers.CharField(max_length=100, required=False, allow_blank=True)
    notes = serializers.CharField(required=False, allow_blank=True)

    def validate_sale_id(self, value):
        """Validate that the sale exists, is financed and has no device yet"""
        try:
            sale = Sale.objects.get(id=value)
        except Sale.DoesNotExist:
            raise serializers.ValidationError(
                f"Sale with ID {value} does not exist"
            )

        if not sale.is_credit:
            raise serializers.ValidationError(
                "Only credit sales can have a managed device"
            )
        if ManagedDevice.objects.filter(sale=sale).exists():
            raise serializers.ValidationError(
                f"Sale #{value} already has a linked device"
            )

        return value

    def validate_imei(self, value):
        """Validate IMEI format and uniqueness"""
        if not value:
            return value

        if not value.isdigit() or len(value) != 15:
            raise serializers.ValidationError(
                "IMEI must be exactly 15 digits"
            )
        if ManagedDevice.objects.filter(imei=value).exists():
            raise serializers.ValidationError(
                f"Device with IMEI {value} is already linked"
            )

        return value

    def validate(self, attrs):
        if not attrs.get('device_number') and not attrs.get('imei'):
            raise serializers.ValidationError(
                "Either device_number or imei is required"
            )
        return attrs


# --------------------------------------------------------
# Managed Device Detail Serializer
# --------------------------------------------------------
class ManagedDeviceSerializer(serializers.ModelSerializer):
    sale_id = serializers.IntegerField(read_only=True)
    store_id = serializers.IntegerField(read_only=True)
    customer_id = serializers.IntegerField(read_only=True)
    client_name = serializers.CharField(read_only=True)
    status_display = serializers.CharField(
        source='get_status_display',
        read_only=True
    )
    is_locked = serializers.SerializerMethodField()

    class Meta:
        model = ManagedDevice
        fields = [
            'id',
            'sale_id',
            'store_id',
            'customer_id',
            'client_name',
            'device_number',
            'imei',
            'serial_number',
            'brand',
            'model',
            'status',
            'status_display',
            'is_locked',
            'last_locked_at',
            'last_unlocked_at',
            'lock_reason',
            'mdm_configuration_id',
            'notes',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields

    def get_is_locked(self, obj):
        return obj.status == ManagedDevice.LOCKED


# --------------------------------------------------------
# Manual Lock / Unlock Serializer
# --------------------------------------------------------
class LockActionSerializer(serializers.Serializer):
    """Body of the manual lock/unlock endpoints"""
    reason = serializers.CharField(
        max_length=255,
        help_text="Why the device is being locked or unlocked - required"
    )
    store_id = serializers.IntegerField(
        required=False,
        help_text="Store filter, honoured only for users who can view all stores"
    )


class StoreFilterSerializer(serializers.Serializer):
    """Body of the cycle endpoints"""
    store_id = serializers.IntegerField(
        required=False,
        help_text="Store filter, honoured only for users who can view all stores"
    )
