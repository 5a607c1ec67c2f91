import logging

from django.db import transaction
from django.db.models.signals import post_save
from django.dispatch import receiver

from finance.models import Payment, Sale

logger = logging.getLogger(__name__)


# ============================================================
# SIGNAL: Apply every new payment to its sale's balance
# ============================================================
@receiver(post_save, sender=Payment)
def apply_payment_to_sale(sender, instance, created, **kwargs):
    """
    Lower the sale balance by the payment amount. Sale.save() flips the
    sale to PAID_OFF once the balance reaches zero, which the next unblock
    pass picks up.
    """
    if not created:
        return

    with transaction.atomic():
        sale = Sale.objects.select_for_update().get(pk=instance.sale_id)
        sale.balance_due = sale.balance_due - instance.amount
        sale.save(update_fields=['balance_due'])

    logger.info(
        f"[Payments] Applied {instance.amount} to sale #{sale.pk}; "
        f"balance now {sale.balance_due} ({sale.status})"
    )
