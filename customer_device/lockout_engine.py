"""
Delinquency-driven device lockout.

The engine reconciles the lock state of every financed device with its
sale's payment status:

- block pass: active devices whose sale is DAYS_TO_BLOCK or more days late
  are locked through the device management backend
- unblock pass: locked devices whose sale is paid off, gone, or back under
  the threshold are unlocked

Passes walk devices one at a time. Each device is re-read right before the
backend call and the local update is conditional on the state that was
read, so two cycles racing each other at worst repeat a no-op. A failure on
one device is recorded and the pass moves on to the next.
"""

import logging

from django.conf import settings
from django.db.models import Count, Q
from django.utils import timezone

from finance.delinquency import calculate_days_late
from finance.models import AuditLog, Sale
from .exceptions import GatewayError, NotFoundError, ValidationError
from .mdm_service import get_mdm_service
from .models import ManagedDevice

logger = logging.getLogger(__name__)


# Outcomes of a single guarded lock/unlock attempt
CHANGED = 'changed'
UNCHANGED = 'unchanged'
SKIPPED = 'skipped'


class LockoutEngine:
    """
    Runs lock/unlock passes and the read-only lockout reports.

    Args:
        gateway: object exposing lock_device(identifier, reason) and
            unlock_device(identifier), e.g. MDMService
        days_to_block: days late at which a device is locked
        days_to_warn: days late at which a device is reported as at risk
        clock: callable returning the current aware datetime
    """

    AUTO_LOCK_MESSAGE = (
        "Payment overdue by {days_late} days on sale #{sale_id}. "
        "Please contact your store to unlock this device."
    )

    def __init__(self, gateway, days_to_block=None, days_to_warn=None, clock=None):
        self.gateway = gateway
        if days_to_block is None:
            days_to_block = getattr(settings, 'MDM_DAYS_TO_BLOCK', 2)
        if days_to_warn is None:
            days_to_warn = getattr(settings, 'MDM_DAYS_TO_WARN', 1)
        self.days_to_block = int(days_to_block)
        self.days_to_warn = int(days_to_warn)
        self.clock = clock or timezone.now

        if self.days_to_warn > self.days_to_block:
            logger.warning(
                f"[Lockout] DAYS_TO_WARN ({self.days_to_warn}) is above DAYS_TO_BLOCK "
                f"({self.days_to_block}); the at-risk report will always be empty"
            )

    def get_config(self):
        config = {
            'days_to_block': self.days_to_block,
            'days_to_warn': self.days_to_warn,
        }
        for attr in ('base_url', 'lock_mode', 'normal_config_id', 'blocked_config_id'):
            if hasattr(self.gateway, attr):
                config[attr] = getattr(self.gateway, attr)
        return config

    # ------------------------------------------------------------------
    # Querysets
    # ------------------------------------------------------------------
    def _financed_sales(self, store_id=None):
        """Credit sales with an outstanding balance and a live linked device."""
        queryset = (
            Sale.objects
            .filter(is_credit=True, balance_due__gt=0, device__isnull=False)
            .exclude(status=Sale.PAID_OFF)
            .exclude(device__status__in=ManagedDevice.TERMINAL_STATUSES)
            .select_related('device', 'customer')
            .prefetch_related('payments')
            .order_by('pk')
        )
        if store_id is not None:
            queryset = queryset.filter(store_id=store_id)
        return queryset

    def _locked_devices(self, store_id=None):
        queryset = (
            ManagedDevice.objects
            .filter(status=ManagedDevice.LOCKED)
            .select_related('sale', 'sale__customer', 'customer')
            .prefetch_related('sale__payments')
            .order_by('pk')
        )
        if store_id is not None:
            queryset = queryset.filter(store_id=store_id)
        return queryset

    # ------------------------------------------------------------------
    # Guarded transitions
    # ------------------------------------------------------------------
    def _current_status(self, device):
        status = (
            ManagedDevice.objects
            .filter(pk=device.pk)
            .values_list('status', flat=True)
            .first()
        )
        if status is None:
            raise NotFoundError(f"Device {device.device_number} no longer exists")
        return status

    def _apply(self, device, expected_status, fields):
        """
        Write `fields` only if the device still has `expected_status`.
        Returns False when another run changed the device in between.
        """
        updated = (
            ManagedDevice.objects
            .filter(pk=device.pk, status=expected_status)
            .update(**fields)
        )
        if not updated:
            device.refresh_from_db()
            return False
        for name, value in fields.items():
            setattr(device, name, value)
        return True

    def _lock(self, device, reason, message, action_type, description, user=None, sale=None, metadata=None):
        current = self._current_status(device)
        if current != ManagedDevice.ACTIVE:
            device.status = current
            return UNCHANGED if current == ManagedDevice.LOCKED else SKIPPED

        result = self.gateway.lock_device(device.device_number, message)

        now = self.clock()
        fields = {
            'status': ManagedDevice.LOCKED,
            'last_locked_at': now,
            'lock_reason': reason[:255],
            'updated_at': now,
        }
        if isinstance(result, dict) and result.get('configuration_id') is not None:
            fields['mdm_configuration_id'] = str(result['configuration_id'])

        if not self._apply(device, current, fields):
            return UNCHANGED if device.status == ManagedDevice.LOCKED else SKIPPED

        self._audit(action_type, device, description, user=user, sale=sale, metadata=metadata)
        return CHANGED

    def _unlock(self, device, action_type, description, user=None, sale=None, metadata=None):
        current = self._current_status(device)
        if current != ManagedDevice.LOCKED:
            device.status = current
            return UNCHANGED if current == ManagedDevice.ACTIVE else SKIPPED

        result = self.gateway.unlock_device(device.device_number)

        now = self.clock()
        fields = {
            'status': ManagedDevice.ACTIVE,
            'last_unlocked_at': now,
            'lock_reason': None,
            'updated_at': now,
        }
        if isinstance(result, dict) and result.get('configuration_id') is not None:
            fields['mdm_configuration_id'] = str(result['configuration_id'])

        if not self._apply(device, current, fields):
            return UNCHANGED if device.status == ManagedDevice.ACTIVE else SKIPPED

        self._audit(action_type, device, description, user=user, sale=sale, metadata=metadata)
        return CHANGED

    def _audit(self, action_type, device, description, user=None, sale=None, metadata=None):
        customer_id = device.customer_id or (sale.customer_id if sale else None)
        AuditLog.objects.create(
            action_type=action_type,
            user=user,
            customer_id=customer_id,
            sale=sale,
            store_id=device.store_id,
            description=description,
            metadata=metadata,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _client_name(sale, device=None):
        if sale is not None and sale.customer_id:
            return sale.customer.get_full_name() or 'Unnamed client'
        if device is not None:
            return device.client_name
        return 'Unknown client'

    @staticmethod
    def _error_entry(sale, device, error):
        return {
            'sale_id': sale.pk if sale else None,
            'device_id': device.pk,
            'device_number': device.device_number,
            'error': str(error),
        }

    def _log_device_error(self, device, sale, error, action):
        if isinstance(error, GatewayError):
            logger.error(f"[Lockout] {action} failed for device {device.device_number}: {error}")
        else:
            logger.exception(
                f"[Lockout] Unexpected error during {action} of device {device.device_number} "
                f"(sale #{sale.pk if sale else 'n/a'})"
            )

    def _sale_summary(self, sale, delinquency):
        device = sale.device
        customer = sale.customer
        return {
            'sale_id': sale.pk,
            'client_id': customer.pk if customer else None,
            'client_name': self._client_name(sale),
            'client_phone': customer.phone_number if customer else None,
            'store_id': sale.store_id,
            'device_id': device.pk,
            'device_number': device.device_number,
            'imei': device.imei,
            'device_status': device.status,
            'days_late': delinquency.days_late,
            'due_date': delinquency.due_date.isoformat(),
            'balance_due': str(sale.balance_due),
            'installment_amount': str(sale.installment_amount) if sale.installment_amount is not None else None,
            'is_blocked': device.status == ManagedDevice.LOCKED,
        }

    # ------------------------------------------------------------------
    # Passes
    # ------------------------------------------------------------------
    def process_auto_blocks(self, store_id=None):
        """
        Lock every active device whose sale is DAYS_TO_BLOCK or more days late.

        Returns:
            dict: {'processed', 'blocked', 'already_blocked', 'errors', 'details'}
        """
        results = {'processed': 0, 'blocked': 0, 'already_blocked': 0, 'errors': [], 'details': []}
        now = self.clock()

        try:
            sales = list(self._financed_sales(store_id))
        except Exception as e:
            logger.exception("[Lockout] Auto-block aborted: could not load financed sales")
            results['errors'].append({'general': str(e)})
            return results

        logger.info(f"[Lockout] Auto-block: checking {len(sales)} financed sales with devices")

        for sale in sales:
            results['processed'] += 1
            device = sale.device
            try:
                if device.status == ManagedDevice.LOCKED:
                    results['already_blocked'] += 1
                    continue

                delinquency = calculate_days_late(sale, sale.payments.all(), now=now)
                if delinquency.days_late < self.days_to_block:
                    continue

                client_name = self._client_name(sale)
                days_late = delinquency.days_late
                outcome = self._lock(
                    device,
                    reason=f"Auto-lock: {days_late} days late on sale #{sale.pk}",
                    message=self.AUTO_LOCK_MESSAGE.format(days_late=days_late, sale_id=sale.pk),
                    action_type='DEVICE_AUTO_LOCKED',
                    description=(
                        f"Device {device.device_number} locked automatically. "
                        f"Client: {client_name}. Sale #{sale.pk}. Days late: {days_late}"
                    ),
                    sale=sale,
                    metadata={'days_late': days_late, 'due_date': delinquency.due_date.isoformat()},
                )

                if outcome == CHANGED:
                    logger.info(f"[Lockout] Locked {device.device_number} ({client_name}, {days_late} days late)")
                    results['blocked'] += 1
                    results['details'].append({
                        'action': 'blocked',
                        'sale_id': sale.pk,
                        'device_id': device.pk,
                        'device_number': device.device_number,
                        'client_name': client_name,
                        'days_late': days_late,
                    })
                elif outcome == UNCHANGED:
                    results['already_blocked'] += 1

            except Exception as e:
                self._log_device_error(device, sale, e, 'auto-lock')
                results['errors'].append(self._error_entry(sale, device, e))

        logger.info(
            f"[Lockout] Auto-block finished: {results['blocked']} locked, "
            f"{results['already_blocked']} already locked, {len(results['errors'])} errors"
        )
        return results

    def process_auto_unblocks(self, store_id=None):
        """
        Unlock every locked device whose sale is paid off, missing, or back
        under DAYS_TO_BLOCK days late.

        Returns:
            dict: {'processed', 'unblocked', 'errors', 'details'}
        """
        results = {'processed': 0, 'unblocked': 0, 'errors': [], 'details': []}
        now = self.clock()

        try:
            devices = list(self._locked_devices(store_id))
        except Exception as e:
            logger.exception("[Lockout] Auto-unblock aborted: could not load locked devices")
            results['errors'].append({'general': str(e)})
            return results

        logger.info(f"[Lockout] Auto-unblock: checking {len(devices)} locked devices")

        for device in devices:
            results['processed'] += 1
            sale = device.sale
            try:
                days_late = None
                if sale is None:
                    why = 'sale no longer exists'
                elif sale.is_paid_off:
                    why = 'sale paid off'
                else:
                    delinquency = calculate_days_late(sale, sale.payments.all(), now=now)
                    if delinquency.days_late >= self.days_to_block:
                        continue
                    days_late = delinquency.days_late
                    why = f'{days_late} days late, under the {self.days_to_block} day threshold'

                client_name = self._client_name(sale, device)
                outcome = self._unlock(
                    device,
                    action_type='DEVICE_AUTO_UNLOCKED',
                    description=(
                        f"Device {device.device_number} unlocked automatically. "
                        f"Client: {client_name}. Sale #{sale.pk if sale else 'n/a'}. Reason: {why}"
                    ),
                    sale=sale,
                    metadata={'days_late': days_late, 'reason': why},
                )

                if outcome == CHANGED:
                    logger.info(f"[Lockout] Unlocked {device.device_number} ({client_name}): {why}")
                    results['unblocked'] += 1
                    results['details'].append({
                        'action': 'unblocked',
                        'sale_id': sale.pk if sale else None,
                        'device_id': device.pk,
                        'device_number': device.device_number,
                        'client_name': client_name,
                        'days_late': days_late,
                        'reason': why,
                    })

            except Exception as e:
                self._log_device_error(device, sale, e, 'auto-unlock')
                results['errors'].append(self._error_entry(sale, device, e))

        logger.info(
            f"[Lockout] Auto-unblock finished: {results['unblocked']} unlocked, "
            f"{len(results['errors'])} errors"
        )
        return results

    def run_full_cycle(self, store_id=None):
        """
        Block pass followed by unblock pass.

        Returns:
            dict: {'timestamp', 'config', 'blocks', 'unblocks'}
        """
        started_at = self.clock()
        logger.info(f"[Lockout] Starting reconciliation cycle (store={store_id or 'all'})")

        blocks = self.process_auto_blocks(store_id)
        unblocks = self.process_auto_unblocks(store_id)

        return {
            'timestamp': started_at.isoformat(),
            'config': {
                'days_to_block': self.days_to_block,
                'days_to_warn': self.days_to_warn,
            },
            'blocks': blocks,
            'unblocks': unblocks,
        }

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------
    def get_at_risk_devices(self, store_id=None):
        """Active devices that will be locked if the client does not pay soon."""
        now = self.clock()
        at_risk = []
        sales = self._financed_sales(store_id).filter(device__status=ManagedDevice.ACTIVE)
        for sale in sales:
            delinquency = calculate_days_late(sale, sale.payments.all(), now=now)
            if self.days_to_warn <= delinquency.days_late < self.days_to_block:
                at_risk.append(self._sale_summary(sale, delinquency))
        return at_risk

    def get_overdue_sales(self, store_id=None):
        """Every financed sale with a live device that is past due, most overdue first."""
        now = self.clock()
        overdue = []
        for sale in self._financed_sales(store_id):
            delinquency = calculate_days_late(sale, sale.payments.all(), now=now)
            if delinquency.is_overdue:
                overdue.append(self._sale_summary(sale, delinquency))
        overdue.sort(key=lambda item: item['days_late'], reverse=True)
        return overdue

    def get_stats(self, store_id=None):
        queryset = ManagedDevice.objects.all()
        if store_id is not None:
            queryset = queryset.filter(store_id=store_id)

        stats = queryset.aggregate(
            total=Count('id'),
            active=Count('id', filter=Q(status=ManagedDevice.ACTIVE)),
            locked=Count('id', filter=Q(status=ManagedDevice.LOCKED)),
            wiped=Count('id', filter=Q(status=ManagedDevice.WIPED)),
            returned=Count('id', filter=Q(status=ManagedDevice.RETURNED)),
            lost=Count('id', filter=Q(status=ManagedDevice.LOST)),
        )
        stats['at_risk'] = len(self.get_at_risk_devices(store_id))
        return stats

    # ------------------------------------------------------------------
    # Manual overrides
    # ------------------------------------------------------------------
    def _get_sale_device(self, sale_id, store_id=None):
        queryset = Sale.objects.select_related('customer')
        if store_id is not None:
            queryset = queryset.filter(store_id=store_id)
        try:
            sale = queryset.get(pk=sale_id)
        except Sale.DoesNotExist:
            raise NotFoundError(f"Sale {sale_id} not found")
        try:
            device = sale.device
        except ManagedDevice.DoesNotExist:
            raise NotFoundError(f"Sale #{sale_id} has no linked device")
        return sale, device

    @staticmethod
    def _clean_reason(reason):
        reason = (reason or '').strip()
        if not reason:
            raise ValidationError("A reason is required")
        return reason

    def lock_device_for_sale(self, sale_id, reason, user=None, store_id=None):
        """
        Lock the device of a sale regardless of its delinquency.

        Raises:
            ValidationError: missing reason, or device not active
            NotFoundError: sale or device missing
            GatewayError: backend call failed
        """
        reason = self._clean_reason(reason)
        sale, device = self._get_sale_device(sale_id, store_id)
        actor = user.get_full_name() if user else 'system'

        outcome = self._lock(
            device,
            reason=reason,
            message=reason,
            action_type='DEVICE_LOCKED',
            description=(
                f"Device {device.device_number} locked manually by {actor}. "
                f"Client: {self._client_name(sale)}. Sale #{sale.pk}. Reason: {reason}"
            ),
            user=user,
            sale=sale,
            metadata={'reason': reason},
        )
        if outcome == UNCHANGED:
            raise ValidationError(f"Device {device.device_number} is already locked")
        if outcome == SKIPPED:
            raise ValidationError(f"Device {device.device_number} is {device.status} and cannot be locked")

        logger.info(f"[Lockout] Device {device.device_number} locked manually by {actor}")
        return device

    def unlock_device_for_sale(self, sale_id, reason, user=None, store_id=None):
        """
        Unlock the device of a sale regardless of its delinquency.

        Raises:
            ValidationError: missing reason, or device not locked
            NotFoundError: sale or device missing
            GatewayError: backend call failed
        """
        reason = self._clean_reason(reason)
        sale, device = self._get_sale_device(sale_id, store_id)
        actor = user.get_full_name() if user else 'system'

        outcome = self._unlock(
            device,
            action_type='DEVICE_UNLOCKED',
            description=(
                f"Device {device.device_number} unlocked manually by {actor}. "
                f"Client: {self._client_name(sale)}. Sale #{sale.pk}. Reason: {reason}"
            ),
            user=user,
            sale=sale,
            metadata={'reason': reason},
        )
        if outcome != CHANGED:
            raise ValidationError(f"Device {device.device_number} is not locked")

        logger.info(f"[Lockout] Device {device.device_number} unlocked manually by {actor}")
        return device


def build_lockout_engine():
    """Engine wired to the process-wide gateway and current settings."""
    return LockoutEngine(get_mdm_service())
