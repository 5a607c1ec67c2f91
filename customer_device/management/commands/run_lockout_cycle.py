"""
Run one device lockout cycle on demand.

Usage:
    python manage.py run_lockout_cycle
    python manage.py run_lockout_cycle --store-id=3 --blocks-only
"""

import json

from django.core.management.base import BaseCommand

from customer_device.lockout_engine import build_lockout_engine


class Command(BaseCommand):
    help = 'Lock overdue financed devices and unlock the ones that caught up'

    def add_arguments(self, parser):
        parser.add_argument(
            '--store-id',
            type=int,
            default=None,
            help='Only process devices of this store (default: all stores)'
        )
        passes = parser.add_mutually_exclusive_group()
        passes.add_argument(
            '--blocks-only',
            action='store_true',
            help='Run the block pass only'
        )
        passes.add_argument(
            '--unblocks-only',
            action='store_true',
            help='Run the unblock pass only'
        )

    def handle(self, *args, **options):
        store_id = options['store_id']
        engine = build_lockout_engine()

        if options['blocks_only']:
            results = {'blocks': engine.process_auto_blocks(store_id)}
        elif options['unblocks_only']:
            results = {'unblocks': engine.process_auto_unblocks(store_id)}
        else:
            results = engine.run_full_cycle(store_id)

        self.stdout.write(json.dumps(results, indent=2, default=str))

        blocked = results.get('blocks', {}).get('blocked', 0)
        unblocked = results.get('unblocks', {}).get('unblocked', 0)
        errors = (
            len(results.get('blocks', {}).get('errors', []))
            + len(results.get('unblocks', {}).get('errors', []))
        )
        summary = f"Lockout cycle finished: {blocked} locked, {unblocked} unlocked, {errors} errors"
        if errors:
            self.stderr.write(self.style.WARNING(summary))
        else:
            self.stderr.write(self.style.SUCCESS(summary))
