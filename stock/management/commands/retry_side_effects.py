import logging

from django.core.management.base import BaseCommand

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = 'Replay queued side effects (last price updates, receipt stock movements)'

    def add_arguments(self, parser):
        parser.add_argument('--limit', type=int, default=100, help='Max queued entries to replay (default: 100)')

    def handle(self, *args, **options):
        from stock.services import SideEffectRunner

        pending_count = SideEffectRunner.pending_count()

        if pending_count == 0:
            self.stdout.write('No pending side effects.')
            return

        self.stdout.write(f'Found {pending_count} pending side effects.')

        resolved, failed = SideEffectRunner.retry_pending(limit=options['limit'])
        logger.info(f'Side effect replay: {resolved} resolved, {failed} failed')

        self.stdout.write(self.style.SUCCESS(f'Resolved: {resolved}, Failed: {failed}'))
        if failed:
            self.stdout.write(self.style.WARNING(f'{failed} still pending, see last_error in admin'))
