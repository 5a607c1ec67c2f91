"""
Periodic lockout cycle.

Runs LockoutEngine.run_full_cycle for every store, either every
MDM_CYCLE_INTERVAL_MINUTES or at the fixed hours listed in MDM_CYCLE_HOURS
(e.g. "8,12,16,20"). The first run fires a few seconds after start-up.
"""

import logging
from datetime import timedelta

from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger
from django.conf import settings
from django.db import close_old_connections
from django.utils import timezone

from .lockout_engine import build_lockout_engine

logger = logging.getLogger(__name__)

JOB_ID = 'lockout_cycle'


def run_scheduled_cycle():
    """
    Run one full cycle. Never raises, so a failing run does not stop the
    scheduler from firing the next one.
    """
    close_old_connections()
    try:
        logger.info("[Scheduler] Running lockout cycle")
        results = build_lockout_engine().run_full_cycle()

        errors = len(results['blocks']['errors']) + len(results['unblocks']['errors'])
        logger.info(
            f"[Scheduler] Cycle finished: {results['blocks']['blocked']} locked, "
            f"{results['unblocks']['unblocked']} unlocked, {errors} errors"
        )
        return results
    except Exception as e:
        logger.exception(f"[Scheduler] Lockout cycle failed: {str(e)}")
        return None
    finally:
        close_old_connections()


def get_trigger(tz=None):
    tz = tz or settings.TIME_ZONE
    hours = str(getattr(settings, 'MDM_CYCLE_HOURS', '') or '').replace(' ', '')
    if hours:
        return CronTrigger(hour=hours, minute=0, timezone=tz)

    minutes = int(getattr(settings, 'MDM_CYCLE_INTERVAL_MINUTES', 60))
    return IntervalTrigger(minutes=minutes, timezone=tz)


def build_scheduler():
    """Blocking scheduler with the lockout cycle job registered."""
    tz = settings.TIME_ZONE
    scheduler = BlockingScheduler(timezone=tz)

    delay = int(getattr(settings, 'MDM_CYCLE_STARTUP_DELAY_SECONDS', 5))
    trigger = get_trigger(tz)

    scheduler.add_job(
        run_scheduled_cycle,
        trigger,
        id=JOB_ID,
        name="Device lockout cycle",
        max_instances=1,
        coalesce=True,
        replace_existing=True,
        next_run_time=timezone.now() + timedelta(seconds=delay),
    )
    logger.info(f"[Scheduler] Lockout cycle scheduled ({trigger}), first run in {delay}s")
    return scheduler
