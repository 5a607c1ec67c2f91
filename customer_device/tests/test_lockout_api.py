import pytest
from unittest.mock import patch
from django.db import IntegrityError
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APIClient

from customer.models import Customer
from customer_device.exceptions import GatewayError
from customer_device.models import ManagedDevice
from finance.models import AuditLog


@pytest.fixture
def client():
    return APIClient()


@pytest.fixture(autouse=True)
def mdm(gateway):
    with patch("customer_device.lockout_engine.get_mdm_service", return_value=gateway), \
            patch("customer_device.views.get_mdm_service", return_value=gateway):
        yield gateway


@pytest.fixture
def overdue_device(make_sale, make_device, days_ago):
    return make_device(make_sale(days_ago(10)))


@pytest.fixture
def other_store_device(make_sale, make_device, days_ago, other_store):
    other_customer = Customer.objects.create(
        document_number="DOC-0002", first_name="Luisa", last_name="Lopez", store=other_store
    )
    return make_device(make_sale(days_ago(10), store=other_store, customer=other_customer))


@pytest.mark.django_db
class TestLockoutCycleAPI:
    def test_admin_runs_full_cycle(self, client, admin_user, overdue_device, mdm):
        client.force_authenticate(user=admin_user)

        response = client.post(reverse("lockout-run-cycle"), {}, format="json")

        assert response.status_code == status.HTTP_200_OK
        assert response.data["status"] == "success"
        assert response.data["data"]["blocks"]["blocked"] == 1
        assert response.data["data"]["unblocks"]["unblocked"] == 0
        mdm.lock_device.assert_called_once()

    def test_run_cycle_requires_admin(self, client, store_manager):
        client.force_authenticate(user=store_manager)

        response = client.post(reverse("lockout-run-cycle"), {}, format="json")

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_anonymous_is_rejected(self, client):
        response = client.post(reverse("lockout-run-cycle"), {}, format="json")

        assert response.status_code in [status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN]

    def test_cycle_with_failures_still_returns_200(self, client, admin_user, overdue_device, mdm):
        mdm.lock_device.side_effect = GatewayError("Request timed out after 20s")
        client.force_authenticate(user=admin_user)

        response = client.post(reverse("lockout-run-cycle"), {}, format="json")

        assert response.status_code == status.HTTP_200_OK
        errors = response.data["data"]["blocks"]["errors"]
        assert errors[0]["device_number"] == overdue_device.device_number

    def test_store_manager_is_pinned_to_own_store(self, client, store_manager, overdue_device,
                                                  other_store_device, other_store):
        client.force_authenticate(user=store_manager)

        response = client.post(
            reverse("lockout-process-blocks"), {"store_id": other_store.id}, format="json"
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data["data"]["blocked"] == 1
        overdue_device.refresh_from_db()
        other_store_device.refresh_from_db()
        assert overdue_device.status == ManagedDevice.LOCKED
        assert other_store_device.status == ManagedDevice.ACTIVE

    def test_global_manager_can_pick_a_store(self, client, global_manager, overdue_device,
                                             other_store_device, other_store):
        client.force_authenticate(user=global_manager)

        response = client.post(
            reverse("lockout-process-blocks"), {"store_id": other_store.id}, format="json"
        )

        assert response.status_code == status.HTTP_200_OK
        other_store_device.refresh_from_db()
        overdue_device.refresh_from_db()
        assert other_store_device.status == ManagedDevice.LOCKED
        assert overdue_device.status == ManagedDevice.ACTIVE

    def test_invalid_store_id(self, client, admin_user):
        client.force_authenticate(user=admin_user)

        response = client.post(reverse("lockout-process-blocks"), {"store_id": "abc"}, format="json")

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_process_unblocks(self, client, store_manager, make_sale, make_device, days_ago):
        from decimal import Decimal
        device = make_device(make_sale(days_ago(30), balance_due=Decimal("0.00")), status=ManagedDevice.LOCKED)
        client.force_authenticate(user=store_manager)

        response = client.post(reverse("lockout-process-unblocks"), {}, format="json")

        assert response.status_code == status.HTTP_200_OK
        assert response.data["data"]["unblocked"] == 1
        device.refresh_from_db()
        assert device.status == ManagedDevice.ACTIVE

    def test_salesperson_cannot_run_passes(self, client, salesperson):
        client.force_authenticate(user=salesperson)

        response = client.post(reverse("lockout-process-blocks"), {}, format="json")

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_collector_runs_passes_but_cannot_see_stats(self, client, collector, overdue_device):
        client.force_authenticate(user=collector)

        response = client.post(reverse("lockout-process-blocks"), {}, format="json")

        assert response.status_code == status.HTTP_200_OK
        assert response.data["data"]["blocked"] == 1
        assert client.get(reverse("lockout-stats")).status_code == status.HTTP_403_FORBIDDEN


@pytest.mark.django_db
class TestLockoutReportsAPI:
    def test_overdue(self, client, salesperson, overdue_device):
        client.force_authenticate(user=salesperson)

        response = client.get(reverse("lockout-overdue"))

        assert response.status_code == status.HTTP_200_OK
        assert [item["sale_id"] for item in response.data["data"]] == [overdue_device.sale_id]
        assert response.data["data"][0]["days_late"] == 3

    def test_at_risk(self, client, salesperson, make_sale, make_device, days_ago):
        device = make_device(make_sale(days_ago(8)))
        client.force_authenticate(user=salesperson)

        response = client.get(reverse("lockout-at-risk"))

        assert response.status_code == status.HTTP_200_OK
        assert [item["device_id"] for item in response.data["data"]] == [device.pk]

    def test_user_without_store_gets_400(self, client, store):
        from django.contrib.auth import get_user_model
        user = get_user_model().objects.create_user(email="nostore@phonecredit.test", password="pass123")
        client.force_authenticate(user=user)

        response = client.get(reverse("lockout-overdue"))

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_stats(self, client, store_manager, overdue_device, other_store_device):
        client.force_authenticate(user=store_manager)

        response = client.get(reverse("lockout-stats"))

        assert response.status_code == status.HTTP_200_OK
        assert response.data["data"]["total"] == 1
        assert response.data["data"]["active"] == 1

    def test_config_is_admin_only(self, client, admin_user, salesperson):
        client.force_authenticate(user=salesperson)
        assert client.get(reverse("lockout-config")).status_code == status.HTTP_403_FORBIDDEN

        client.force_authenticate(user=admin_user)
        response = client.get(reverse("lockout-config"))

        assert response.status_code == status.HTTP_200_OK
        assert response.data["data"]["days_to_block"] == 2
        assert response.data["data"]["days_to_warn"] == 1

    def test_backend_status(self, client, admin_user, mdm):
        client.force_authenticate(user=admin_user)

        response = client.get(reverse("lockout-status"))

        assert response.status_code == status.HTTP_200_OK
        assert response.data["data"]["connected"] is True
        assert response.data["data"]["lock_mode"] == "lost_mode"
        mdm.authenticate.assert_called_once()

    def test_backend_status_unreachable_is_503(self, client, admin_user, mdm):
        mdm.authenticate.side_effect = GatewayError("Authentication rejected with HTTP 400", status_code=400)
        client.force_authenticate(user=admin_user)

        response = client.get(reverse("lockout-status"))

        assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
        assert response.data["data"]["connected"] is False

    def test_backend_status_is_admin_only(self, client, store_manager, mdm):
        client.force_authenticate(user=store_manager)

        assert client.get(reverse("lockout-status")).status_code == status.HTTP_403_FORBIDDEN
        mdm.authenticate.assert_not_called()


@pytest.mark.django_db
class TestManualLockAPI:
    def test_block_and_unblock(self, client, store_manager, overdue_device, mdm):
        client.force_authenticate(user=store_manager)

        response = client.post(
            reverse("lockout-block", args=[overdue_device.sale_id]),
            {"reason": "Client stopped answering"}, format="json"
        )
        assert response.status_code == status.HTTP_200_OK
        assert response.data["data"]["status"] == ManagedDevice.LOCKED
        assert response.data["data"]["is_locked"] is True

        response = client.post(
            reverse("lockout-unblock", args=[overdue_device.sale_id]),
            {"reason": "Promise to pay"}, format="json"
        )
        assert response.status_code == status.HTTP_200_OK
        assert response.data["data"]["status"] == ManagedDevice.ACTIVE

        assert AuditLog.objects.filter(user=store_manager, action_type="DEVICE_LOCKED").count() == 1
        assert AuditLog.objects.filter(user=store_manager, action_type="DEVICE_UNLOCKED").count() == 1

    def test_missing_reason(self, client, store_manager, overdue_device):
        client.force_authenticate(user=store_manager)

        response = client.post(reverse("lockout-block", args=[overdue_device.sale_id]), {}, format="json")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert "reason" in response.data["errors"]

    def test_unknown_sale(self, client, store_manager):
        client.force_authenticate(user=store_manager)

        response = client.post(reverse("lockout-block", args=[999999]), {"reason": "late"}, format="json")

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.data["status"] == "error"

    def test_sale_from_another_store_is_not_found(self, client, store_manager, other_store_device):
        client.force_authenticate(user=store_manager)

        response = client.post(
            reverse("lockout-block", args=[other_store_device.sale_id]), {"reason": "late"}, format="json"
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_unblock_active_device(self, client, store_manager, overdue_device):
        client.force_authenticate(user=store_manager)

        response = client.post(
            reverse("lockout-unblock", args=[overdue_device.sale_id]), {"reason": "ok"}, format="json"
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_gateway_failure_is_502(self, client, store_manager, overdue_device, mdm):
        mdm.lock_device.side_effect = GatewayError("Lock device failed with HTTP 500", status_code=500)
        client.force_authenticate(user=store_manager)

        response = client.post(
            reverse("lockout-block", args=[overdue_device.sale_id]), {"reason": "late"}, format="json"
        )

        assert response.status_code == status.HTTP_502_BAD_GATEWAY
        overdue_device.refresh_from_db()
        assert overdue_device.status == ManagedDevice.ACTIVE

    def test_collector_can_block(self, client, collector, overdue_device, mdm):
        client.force_authenticate(user=collector)

        response = client.post(
            reverse("lockout-block", args=[overdue_device.sale_id]), {"reason": "late"}, format="json"
        )

        assert response.status_code == status.HTTP_200_OK
        mdm.lock_device.assert_called_once()

    def test_salesperson_cannot_block(self, client, salesperson, overdue_device, mdm):
        client.force_authenticate(user=salesperson)

        response = client.post(
            reverse("lockout-block", args=[overdue_device.sale_id]), {"reason": "late"}, format="json"
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN
        mdm.lock_device.assert_not_called()


@pytest.mark.django_db
class TestManagedDeviceAPI:
    def test_link_device_to_sale(self, client, store_manager, make_sale, days_ago):
        sale = make_sale(days_ago(1))
        client.force_authenticate(user=store_manager)

        response = client.post(reverse("managed-device-list-create"), {
            "sale_id": sale.id,
            "device_number": "MDM-9001",
            "imei": "356789012345678",
            "brand": "Samsung",
            "model": "A15",
        }, format="json")

        assert response.status_code == status.HTTP_201_CREATED
        device = ManagedDevice.objects.get(sale=sale)
        assert device.store_id == sale.store_id
        assert device.customer_id == sale.customer_id
        assert device.status == ManagedDevice.ACTIVE
        assert AuditLog.objects.filter(action_type="DEVICE_LINKED", sale=sale).exists()

    def test_rejects_bad_imei(self, client, store_manager, make_sale, days_ago):
        sale = make_sale(days_ago(1))
        client.force_authenticate(user=store_manager)

        response = client.post(reverse("managed-device-list-create"), {
            "sale_id": sale.id, "device_number": "MDM-9001", "imei": "12345",
        }, format="json")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert "imei" in response.data["errors"]

    def test_rejects_second_device_and_cash_sales(self, client, store_manager, overdue_device,
                                                  make_sale, days_ago):
        cash_sale = make_sale(days_ago(1), is_credit=False)
        client.force_authenticate(user=store_manager)
        url = reverse("managed-device-list-create")

        duplicate = client.post(url, {"sale_id": overdue_device.sale_id, "device_number": "X"}, format="json")
        cash = client.post(url, {"sale_id": cash_sale.id, "device_number": "Y"}, format="json")

        assert duplicate.status_code == status.HTTP_400_BAD_REQUEST
        assert cash.status_code == status.HTTP_400_BAD_REQUEST

    def test_list_is_scoped_to_the_store(self, client, salesperson, overdue_device, other_store_device):
        client.force_authenticate(user=salesperson)

        response = client.get(reverse("managed-device-list-create"))

        assert response.status_code == status.HTTP_200_OK
        assert [item["id"] for item in response.data["data"]] == [overdue_device.pk]
        assert response.data["data"][0]["client_name"] == "Juan Perez"

    def test_rejects_device_unknown_to_backend(self, client, store_manager, make_sale, days_ago, mdm):
        mdm.find_device.side_effect = None
        mdm.find_device.return_value = None
        sale = make_sale(days_ago(1))
        client.force_authenticate(user=store_manager)

        response = client.post(reverse("managed-device-list-create"), {
            "sale_id": sale.id, "device_number": "MDM-9001",
        }, format="json")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert "not found" in response.data["message"]
        mdm.find_device.assert_called_once_with("MDM-9001")
        assert not ManagedDevice.objects.filter(sale=sale).exists()

    def test_backend_failure_while_linking_is_502(self, client, store_manager, make_sale, days_ago, mdm):
        mdm.find_device.side_effect = GatewayError("Find device failed with HTTP 500", status_code=500)
        sale = make_sale(days_ago(1))
        client.force_authenticate(user=store_manager)

        response = client.post(reverse("managed-device-list-create"), {
            "sale_id": sale.id, "device_number": "MDM-9001",
        }, format="json")

        assert response.status_code == status.HTTP_502_BAD_GATEWAY
        assert not ManagedDevice.objects.filter(sale=sale).exists()

    def test_link_by_imei_uses_backend_device_id(self, client, store_manager, make_sale, days_ago, mdm):
        mdm.find_device_by_imei.return_value = {
            "device_id": 90210, "imei": ["356789012345678"], "product_name": "Samsung", "model": "A15",
        }
        sale = make_sale(days_ago(1))
        client.force_authenticate(user=store_manager)

        response = client.post(reverse("managed-device-list-create"), {
            "sale_id": sale.id, "imei": "356789012345678",
        }, format="json")

        assert response.status_code == status.HTTP_201_CREATED
        device = ManagedDevice.objects.get(sale=sale)
        assert device.device_number == "90210"
        assert device.brand == "Samsung"
        assert device.model == "A15"
        mdm.find_device_by_imei.assert_called_once_with("356789012345678")
        mdm.find_device.assert_not_called()

    def test_requires_device_number_or_imei(self, client, store_manager, make_sale, days_ago, mdm):
        sale = make_sale(days_ago(1))
        client.force_authenticate(user=store_manager)

        response = client.post(reverse("managed-device-list-create"), {"sale_id": sale.id}, format="json")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        mdm.find_device.assert_not_called()

    def test_concurrent_link_is_400(self, client, store_manager, make_sale, days_ago):
        sale = make_sale(days_ago(1))
        client.force_authenticate(user=store_manager)

        with patch("customer_device.views.ManagedDevice.objects.create",
                   side_effect=IntegrityError("UNIQUE constraint failed: managed_devices.sale_id")):
            response = client.post(reverse("managed-device-list-create"), {
                "sale_id": sale.id, "device_number": "MDM-9001",
            }, format="json")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert "already has a linked device" in response.data["message"]
        assert not AuditLog.objects.filter(action_type="DEVICE_LINKED", sale=sale).exists()
