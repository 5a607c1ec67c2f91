# ============================================================
# Standard Library Imports
# ============================================================
import logging

# ============================================================
# Third-Party Imports
# ============================================================
from django.db import IntegrityError, transaction
from drf_yasg import openapi
from drf_yasg.utils import swagger_auto_schema
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

# ============================================================
# Local Application Imports
# ============================================================
from finance.models import AuditLog, Sale
from home.permissions import CanManageStore, CanRunLockout, IsAdminUser, IsAuthenticatedUser
from .exceptions import GatewayError, NotFoundError, ValidationError
from .lockout_engine import build_lockout_engine
from .mdm_service import get_mdm_service
from .models import ManagedDevice
from .serializers import (
    LockActionSerializer,
    ManagedDeviceLinkSerializer,
    ManagedDeviceSerializer,
    StoreFilterSerializer,
)

# ============================================================
# Logger Setup
# ============================================================
logger = logging.getLogger(__name__)


STORE_ID_PARAM = openapi.Parameter(
    'store_id',
    openapi.IN_QUERY,
    description="Store filter (only for users who can view all stores)",
    type=openapi.TYPE_INTEGER,
)


def get_store_filter(request):
    """
    Resolve the store a request is scoped to.

    Users who can view all stores may pass store_id (query param on GET,
    body field otherwise) or omit it for every store. Everybody else is
    pinned to their own store.
    """
    user = request.user
    if request.method == 'GET':
        raw = request.query_params.get('store_id')
    else:
        raw = request.data.get('store_id') if hasattr(request.data, 'get') else None

    if user.can_view_all_stores():
        if raw in (None, ''):
            return None
        try:
            return int(raw)
        except (TypeError, ValueError):
            raise ValidationError("store_id must be an integer")

    if user.store_id is None:
        raise ValidationError("User is not assigned to a store")
    return user.store_id


def error_response(message, http_status, errors=None):
    body = {"status": "error", "message": message}
    if errors is not None:
        body["errors"] = errors
    return Response(body, status=http_status)


def remote_field(remote, key):
    """Read a backend device field as a string, or None when absent."""
    if not isinstance(remote, dict):
        return None
    value = remote.get(key)
    return str(value) if value not in (None, '') else None


class LockoutErrorMixin:
    """Maps lockout errors to HTTP responses."""

    def handle_lockout_error(self, e):
        if isinstance(e, NotFoundError):
            return error_response(str(e), status.HTTP_404_NOT_FOUND)
        if isinstance(e, ValidationError):
            return error_response(str(e), status.HTTP_400_BAD_REQUEST)
        if isinstance(e, GatewayError):
            logger.error(f"[Lockout] Gateway error in {self.__class__.__name__}: {str(e)}")
            return error_response(
                f"Device management backend error: {str(e)}",
                status.HTTP_502_BAD_GATEWAY
            )
        logger.exception(f"Error in {self.__class__.__name__}: {str(e)}")
        return error_response("Internal server error.", status.HTTP_500_INTERNAL_SERVER_ERROR)


# --------------------------------------------------------
# API: Lockout cycles
# --------------------------------------------------------
class RunLockoutCycleAPIView(LockoutErrorMixin, APIView):
    """
    Runs a full reconciliation cycle (block pass then unblock pass).
    """
    permission_classes = [IsAdminUser]

    @swagger_auto_schema(
        operation_summary="Run lockout cycle",
        request_body=StoreFilterSerializer(),
        responses={200: "Cycle summary", 400: "Validation Error", 500: "Internal Server Error"},
        tags=["Device Lockout"]
    )
    def post(self, request):
        try:
            store_id = get_store_filter(request)
            results = build_lockout_engine().run_full_cycle(store_id)
            return Response(
                {
                    "status": "success",
                    "message": (
                        f"Cycle finished: {results['blocks']['blocked']} locked, "
                        f"{results['unblocks']['unblocked']} unlocked."
                    ),
                    "data": results,
                },
                status=status.HTTP_200_OK,
            )
        except Exception as e:
            return self.handle_lockout_error(e)


class ProcessBlocksAPIView(LockoutErrorMixin, APIView):
    permission_classes = [CanRunLockout]

    @swagger_auto_schema(
        operation_summary="Run block pass",
        request_body=StoreFilterSerializer(),
        responses={200: "Block pass summary", 400: "Validation Error", 500: "Internal Server Error"},
        tags=["Device Lockout"]
    )
    def post(self, request):
        try:
            store_id = get_store_filter(request)
            results = build_lockout_engine().process_auto_blocks(store_id)
            return Response(
                {
                    "status": "success",
                    "message": f"{results['blocked']} devices locked.",
                    "data": results,
                },
                status=status.HTTP_200_OK,
            )
        except Exception as e:
            return self.handle_lockout_error(e)


class ProcessUnblocksAPIView(LockoutErrorMixin, APIView):
    permission_classes = [CanRunLockout]

    @swagger_auto_schema(
        operation_summary="Run unblock pass",
        request_body=StoreFilterSerializer(),
        responses={200: "Unblock pass summary", 400: "Validation Error", 500: "Internal Server Error"},
        tags=["Device Lockout"]
    )
    def post(self, request):
        try:
            store_id = get_store_filter(request)
            results = build_lockout_engine().process_auto_unblocks(store_id)
            return Response(
                {
                    "status": "success",
                    "message": f"{results['unblocked']} devices unlocked.",
                    "data": results,
                },
                status=status.HTTP_200_OK,
            )
        except Exception as e:
            return self.handle_lockout_error(e)


# --------------------------------------------------------
# API: Lockout reports
# --------------------------------------------------------
class LockoutStatsAPIView(LockoutErrorMixin, APIView):
    permission_classes = [CanManageStore]

    @swagger_auto_schema(
        operation_summary="Device lock statistics",
        manual_parameters=[STORE_ID_PARAM],
        responses={200: "Counts per device status plus at-risk count"},
        tags=["Device Lockout"]
    )
    def get(self, request):
        try:
            store_id = get_store_filter(request)
            stats = build_lockout_engine().get_stats(store_id)
            return Response(
                {"status": "success", "message": "Device statistics.", "data": stats},
                status=status.HTTP_200_OK,
            )
        except Exception as e:
            return self.handle_lockout_error(e)


class AtRiskDevicesAPIView(LockoutErrorMixin, APIView):
    """
    Active devices that are late enough to warn the client but not yet
    late enough to lock.
    """
    permission_classes = [IsAuthenticatedUser]

    @swagger_auto_schema(
        operation_summary="Devices at risk of being locked",
        manual_parameters=[STORE_ID_PARAM],
        responses={200: "List of at-risk sales"},
        tags=["Device Lockout"]
    )
    def get(self, request):
        try:
            store_id = get_store_filter(request)
            devices = build_lockout_engine().get_at_risk_devices(store_id)
            return Response(
                {
                    "status": "success",
                    "message": f"{len(devices)} devices at risk.",
                    "data": devices,
                },
                status=status.HTTP_200_OK,
            )
        except Exception as e:
            return self.handle_lockout_error(e)


class OverdueSalesAPIView(LockoutErrorMixin, APIView):
    permission_classes = [IsAuthenticatedUser]

    @swagger_auto_schema(
        operation_summary="Overdue financed sales",
        operation_description="Every financed sale with a live device that is past due, most overdue first.",
        manual_parameters=[STORE_ID_PARAM],
        responses={200: "List of overdue sales"},
        tags=["Device Lockout"]
    )
    def get(self, request):
        try:
            store_id = get_store_filter(request)
            sales = build_lockout_engine().get_overdue_sales(store_id)
            return Response(
                {
                    "status": "success",
                    "message": f"{len(sales)} overdue sales.",
                    "data": sales,
                },
                status=status.HTTP_200_OK,
            )
        except Exception as e:
            return self.handle_lockout_error(e)


class LockoutConfigAPIView(LockoutErrorMixin, APIView):
    permission_classes = [IsAdminUser]

    @swagger_auto_schema(
        operation_summary="Lockout configuration",
        responses={200: "Thresholds and device management backend settings"},
        tags=["Device Lockout"]
    )
    def get(self, request):
        try:
            config = build_lockout_engine().get_config()
            return Response(
                {"status": "success", "message": "Lockout configuration.", "data": config},
                status=status.HTTP_200_OK,
            )
        except Exception as e:
            return self.handle_lockout_error(e)


class LockoutStatusAPIView(LockoutErrorMixin, APIView):
    """
    Checks that the device management backend accepts our credentials.
    """
    permission_classes = [IsAdminUser]

    @swagger_auto_schema(
        operation_summary="Device management backend status",
        responses={200: "Backend reachable", 503: "Backend unreachable"},
        tags=["Device Lockout"]
    )
    def get(self, request):
        gateway = get_mdm_service()
        data = {"base_url": gateway.base_url, "lock_mode": gateway.lock_mode}
        try:
            gateway.authenticate()
        except GatewayError as e:
            logger.error(f"[Lockout] Device management backend unreachable: {str(e)}")
            return Response(
                {
                    "status": "error",
                    "message": f"Device management backend unreachable: {str(e)}",
                    "data": {**data, "connected": False},
                },
                status=status.HTTP_503_SERVICE_UNAVAILABLE,
            )
        except Exception as e:
            return self.handle_lockout_error(e)

        return Response(
            {
                "status": "success",
                "message": "Device management backend connected.",
                "data": {**data, "connected": True},
            },
            status=status.HTTP_200_OK,
        )


# --------------------------------------------------------
# API: Manual lock / unlock
# --------------------------------------------------------
class ManualBlockAPIView(LockoutErrorMixin, APIView):
    """
    Locks the device of a sale regardless of its payment status.
    """
    permission_classes = [CanRunLockout]

    @swagger_auto_schema(
        operation_summary="Lock a sale's device",
        request_body=LockActionSerializer(),
        responses={
            200: ManagedDeviceSerializer(),
            400: "Validation Error",
            404: "Sale or device not found",
            502: "Device management backend error",
        },
        tags=["Device Lockout"]
    )
    def post(self, request, sale_id):
        serializer = LockActionSerializer(data=request.data)
        if not serializer.is_valid():
            return error_response("Validation error.", status.HTTP_400_BAD_REQUEST, serializer.errors)

        try:
            store_id = get_store_filter(request)
            device = build_lockout_engine().lock_device_for_sale(
                sale_id,
                serializer.validated_data['reason'],
                user=request.user,
                store_id=store_id,
            )
            return Response(
                {
                    "status": "success",
                    "message": f"Device {device.device_number} locked.",
                    "data": ManagedDeviceSerializer(device).data,
                },
                status=status.HTTP_200_OK,
            )
        except Exception as e:
            return self.handle_lockout_error(e)


class ManualUnblockAPIView(LockoutErrorMixin, APIView):
    """
    Unlocks the device of a sale regardless of its payment status.
    """
    permission_classes = [CanRunLockout]

    @swagger_auto_schema(
        operation_summary="Unlock a sale's device",
        request_body=LockActionSerializer(),
        responses={
            200: ManagedDeviceSerializer(),
            400: "Validation Error",
            404: "Sale or device not found",
            502: "Device management backend error",
        },
        tags=["Device Lockout"]
    )
    def post(self, request, sale_id):
        serializer = LockActionSerializer(data=request.data)
        if not serializer.is_valid():
            return error_response("Validation error.", status.HTTP_400_BAD_REQUEST, serializer.errors)

        try:
            store_id = get_store_filter(request)
            device = build_lockout_engine().unlock_device_for_sale(
                sale_id,
                serializer.validated_data['reason'],
                user=request.user,
                store_id=store_id,
            )
            return Response(
                {
                    "status": "success",
                    "message": f"Device {device.device_number} unlocked.",
                    "data": ManagedDeviceSerializer(device).data,
                },
                status=status.HTTP_200_OK,
            )
        except Exception as e:
            return self.handle_lockout_error(e)


# --------------------------------------------------------
# API: Managed devices
# --------------------------------------------------------
class ManagedDeviceAPIView(LockoutErrorMixin, APIView):
    """
    Lists managed devices, or links a new device to a financed sale.
    """
    permission_classes = [IsAuthenticatedUser]

    @swagger_auto_schema(
        operation_summary="List managed devices",
        manual_parameters=[
            STORE_ID_PARAM,
            openapi.Parameter(
                'status', openapi.IN_QUERY,
                description="Filter by device status",
                type=openapi.TYPE_STRING,
                enum=[choice[0] for choice in ManagedDevice.STATUS_CHOICES],
            ),
        ],
        responses={200: ManagedDeviceSerializer(many=True)},
        tags=["Managed Devices"]
    )
    def get(self, request):
        try:
            store_id = get_store_filter(request)
            queryset = ManagedDevice.objects.select_related('customer', 'sale__customer')
            if store_id is not None:
                queryset = queryset.filter(store_id=store_id)

            device_status = request.query_params.get('status')
            if device_status:
                queryset = queryset.filter(status=device_status)

            return Response(
                {
                    "status": "success",
                    "message": "Managed devices.",
                    "data": ManagedDeviceSerializer(queryset, many=True).data,
                },
                status=status.HTTP_200_OK,
            )
        except Exception as e:
            return self.handle_lockout_error(e)

    @swagger_auto_schema(
        operation_summary="Link a device to a financed sale",
        request_body=ManagedDeviceLinkSerializer(),
        responses={
            201: ManagedDeviceSerializer(),
            400: "Validation Error",
            404: "Sale not found",
            502: "Device management backend error",
        },
        tags=["Managed Devices"]
    )
    def post(self, request):
        serializer = ManagedDeviceLinkSerializer(data=request.data)
        if not serializer.is_valid():
            return error_response("Validation error.", status.HTTP_400_BAD_REQUEST, serializer.errors)

        try:
            store_id = get_store_filter(request)
            data = serializer.validated_data

            sale = Sale.objects.select_related('customer').get(id=data['sale_id'])
            if store_id is not None and sale.store_id != store_id:
                raise NotFoundError(f"Sale {sale.id} not found")

            # The device must be enrolled in the backend before it can be locked
            gateway = get_mdm_service()
            device_number = data.get('device_number')
            if device_number:
                remote = gateway.find_device(device_number)
            else:
                remote = gateway.find_device_by_imei(data['imei'])
                if remote:
                    device_number = remote_field(remote, 'device_id') or remote_field(remote, 'device_name')
            if not remote or not device_number:
                raise ValidationError("Device not found in device management backend")

            try:
                with transaction.atomic():
                    device = ManagedDevice.objects.create(
                        sale=sale,
                        customer=sale.customer,
                        store_id=sale.store_id,
                        device_number=device_number,
                        imei=data.get('imei') or None,
                        serial_number=data.get('serial_number') or remote_field(remote, 'serial_number'),
                        brand=data.get('brand') or remote_field(remote, 'product_name'),
                        model=data.get('model') or remote_field(remote, 'model'),
                        notes=data.get('notes') or None,
                    )

                    AuditLog.objects.create(
                        action_type='DEVICE_LINKED',
                        user=request.user,
                        customer=sale.customer,
                        sale=sale,
                        store_id=sale.store_id,
                        description=(
                            f"Device {device.device_number} linked to sale #{sale.id} "
                            f"by {request.user.get_full_name()}"
                        ),
                        metadata={'device_id': device.id, 'imei': device.imei},
                    )
            except IntegrityError:
                # Another request linked a device to this sale after validation
                raise ValidationError(f"Sale #{sale.id} already has a linked device")
            logger.info(f"[Lockout] Device {device.device_number} linked to sale #{sale.id}")

            return Response(
                {
                    "status": "success",
                    "message": "Device linked successfully.",
                    "data": ManagedDeviceSerializer(device).data,
                },
                status=status.HTTP_201_CREATED,
            )
        except Exception as e:
            return self.handle_lockout_error(e)
