from django.core.management.base import BaseCommand

from customer_device.scheduler import build_scheduler


class Command(BaseCommand):
    help = 'Start the blocking scheduler that runs the device lockout cycle periodically'

    def handle(self, *args, **options):
        scheduler = build_scheduler()
        self.stdout.write(self.style.SUCCESS('Lockout scheduler started. Press Ctrl+C to stop.'))
        try:
            scheduler.start()
        except (KeyboardInterrupt, SystemExit):
            scheduler.shutdown(wait=False)
            self.stdout.write('Lockout scheduler stopped.')
