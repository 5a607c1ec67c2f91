from decimal import Decimal

import pytest
from django.utils import timezone

from finance.models import AuditLog, Payment, Sale


@pytest.mark.django_db
class TestPaymentBalance:
    def test_payment_lowers_the_balance(self, make_sale):
        sale = make_sale(timezone.now(), balance_due=Decimal("300.00"))

        Payment.objects.create(sale=sale, amount=Decimal("100.00"))

        sale.refresh_from_db()
        assert sale.balance_due == Decimal("200.00")
        assert sale.status == Sale.ACTIVE

    def test_final_payment_marks_the_sale_paid_off(self, make_sale):
        sale = make_sale(timezone.now(), balance_due=Decimal("300.00"))

        Payment.objects.create(sale=sale, amount=Decimal("100.00"))
        Payment.objects.create(sale=sale, amount=Decimal("200.00"))

        sale.refresh_from_db()
        assert sale.balance_due == Decimal("0.00")
        assert sale.status == Sale.PAID_OFF
        assert sale.is_paid_off

    def test_payments_cannot_be_edited(self, make_sale):
        sale = make_sale(timezone.now())
        payment = Payment.objects.create(sale=sale, amount=Decimal("10.00"))

        payment.amount = Decimal("20.00")
        with pytest.raises(ValueError):
            payment.save()


@pytest.mark.django_db
class TestSaleInvariants:
    def test_balance_never_exceeds_total(self, make_sale):
        sale = make_sale(timezone.now(), balance_due=Decimal("5000.00"))

        assert sale.balance_due == sale.total_amount

    def test_raising_the_balance_reopens_a_paid_off_sale(self, make_sale):
        sale = make_sale(timezone.now(), balance_due=Decimal("0.00"))
        assert sale.status == Sale.PAID_OFF

        sale.balance_due = Decimal("50.00")
        sale.save()

        assert sale.status == Sale.ACTIVE


@pytest.mark.django_db
class TestAuditLog:
    def test_entries_are_append_only(self, store):
        entry = AuditLog.objects.create(
            action_type='DEVICE_LOCKED', store=store, description="Device locked"
        )

        entry.description = "changed"
        with pytest.raises(ValueError):
            entry.save()
        with pytest.raises(ValueError):
            entry.delete()

    def test_actor_is_system_without_user(self, store):
        entry = AuditLog.objects.create(
            action_type='DEVICE_AUTO_LOCKED', store=store, description="Device locked"
        )

        assert entry.actor == 'system'
