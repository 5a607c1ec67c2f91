# conftest.py - shared fixtures for the API and lockout tests

from datetime import datetime, timedelta
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from django.contrib.auth import get_user_model
from django.utils import timezone

from customer.models import Customer
from customer_device.mdm_service import MDMService
from customer_device.models import ManagedDevice
from finance.models import Payment, Sale
from home.models import Store

User = get_user_model()


@pytest.fixture(autouse=True)
def _fast_password_hashing(settings):
    settings.PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]


# ------------------------------------------------------------------
# Stores and users
# ------------------------------------------------------------------
@pytest.fixture
def store(db):
    return Store.objects.create(name="Centro", code="CEN-01")


@pytest.fixture
def other_store(db):
    return Store.objects.create(name="Norte", code="NOR-01")


@pytest.fixture
def admin_user(db):
    return User.objects.create_user(
        email="admin@phonecredit.test", password="pass123",
        first_name="Ana", last_name="Admin", role=User.ADMIN,
    )


@pytest.fixture
def global_manager(db):
    return User.objects.create_user(
        email="global@phonecredit.test", password="pass123",
        first_name="Gabriel", last_name="Global", role=User.GLOBAL_MANAGER,
    )


@pytest.fixture
def store_manager(store):
    return User.objects.create_user(
        email="manager@phonecredit.test", password="pass123",
        first_name="Marta", last_name="Manager", role=User.STORE_MANAGER, store=store,
    )


@pytest.fixture
def salesperson(store):
    return User.objects.create_user(
        email="sales@phonecredit.test", password="pass123",
        first_name="Sergio", last_name="Sales", role=User.SALESPERSON, store=store,
    )


@pytest.fixture
def collector(store):
    return User.objects.create_user(
        email="collector@phonecredit.test", password="pass123",
        first_name="Carla", last_name="Collector", role=User.COLLECTOR, store=store,
    )


@pytest.fixture
def customer(store):
    return Customer.objects.create(
        document_number="DOC-0001", first_name="Juan", last_name="Perez",
        phone_number="5551234567", store=store,
    )


# ------------------------------------------------------------------
# Sales, payments and devices
# ------------------------------------------------------------------
@pytest.fixture
def fixed_now():
    """Noon in the business time zone, away from any midnight boundary."""
    return timezone.make_aware(datetime(2025, 3, 20, 12, 0))


@pytest.fixture
def make_sale(store, customer):
    def _make(sale_date, payment_frequency=Sale.WEEKLY, balance_due=Decimal("500.00"),
              is_credit=True, **extra):
        extra.setdefault("store", store)
        extra.setdefault("customer", customer)
        return Sale.objects.create(
            sale_date=sale_date,
            total_amount=Decimal("1000.00"),
            down_payment=Decimal("200.00"),
            balance_due=balance_due,
            is_credit=is_credit,
            payment_frequency=payment_frequency,
            installment_amount=Decimal("100.00"),
            status=Sale.ACTIVE if is_credit else Sale.COMPLETED,
            **extra
        )
    return _make


@pytest.fixture
def make_payment():
    def _make(sale, payment_date, amount=Decimal("50.00")):
        return Payment.objects.create(sale=sale, amount=amount, payment_date=payment_date)
    return _make


@pytest.fixture
def make_device(store):
    counter = {"n": 0}

    def _make(sale=None, status=ManagedDevice.ACTIVE, **extra):
        counter["n"] += 1
        if sale is not None:
            extra.setdefault("store", sale.store)
            extra.setdefault("customer", sale.customer)
        else:
            extra.setdefault("store", store)
        return ManagedDevice.objects.create(
            sale=sale,
            device_number=extra.pop("device_number", f"MDM-{counter['n']:04d}"),
            imei=extra.pop("imei", f"35000000000{counter['n']:04d}"),
            status=status,
            **extra
        )
    return _make


@pytest.fixture
def gateway():
    """Stand-in for the device management backend."""
    mock = MagicMock(spec=MDMService)
    mock.lock_device.side_effect = lambda identifier, reason: {
        "success": True, "action": "locked", "device_id": identifier,
    }
    mock.unlock_device.side_effect = lambda identifier: {
        "success": True, "action": "unlocked", "device_id": identifier,
    }
    mock.find_device.side_effect = lambda identifier: {
        "device_id": identifier, "device_name": identifier,
    }
    mock.find_device_by_imei.return_value = None
    mock.authenticate.return_value = "token"
    mock.base_url = "https://mdm.test"
    mock.lock_mode = "lost_mode"
    return mock


@pytest.fixture
def days_ago():
    def _days_ago(days, now=None):
        return (now or timezone.now()) - timedelta(days=days)
    return _days_ago
