"""Management command to validate storage disk configuration."""

import logging
from typing import Any

from django.conf import settings
from django.core.management.base import BaseCommand, CommandError
from django.utils.module_loading import import_string
from storages.backends.s3 import S3Storage

from server.apps.filebrowser.exceptions import StorageConfigurationError
from server.apps.filebrowser.infrastructure.disks import validate_disk

logger = logging.getLogger(__name__)


def _is_s3_backed(disk_config: dict[str, Any]) -> bool:
    try:
        backend = import_string(disk_config.get('BACKEND', ''))
    except ImportError:
        return False
    return isinstance(backend, type) and issubclass(backend, S3Storage)


class Command(BaseCommand):
    """Check that S3-compatible disks are configured correctly.

    Runs the same checks the file browser runs before every request,
    without contacting the store.
    """

    help = 'Validate configuration of S3-compatible storage disks'

    def add_arguments(self, parser: Any) -> None:
        """Add command line arguments.

        Args:
            parser: Argument parser.
        """
        parser.add_argument(
            '--disk',
            help='Check only this disk (default: every S3-backed disk)',
        )

    def handle(self, *args: Any, **options: Any) -> None:
        """Execute the check command.

        Args:
            args: Positional arguments (unused).
            options: Command options.

        Raises:
            CommandError: If any checked disk is misconfigured.
        """
        disk = options['disk']
        if disk:
            disks = [disk]
        else:
            disks = [
                name
                for name, disk_config in settings.STORAGES.items()
                if _is_s3_backed(disk_config)
            ]

        if not disks:
            self.stdout.write('No S3-compatible disks configured')
            return

        failed = 0
        for name in disks:
            try:
                validate_disk(name)
            except StorageConfigurationError as exc:
                self.stderr.write(f'{name}: {exc}')
                logger.warning('Storage disk check failed: %s', name)
                failed += 1
                continue
            self.stdout.write(f'{name}: OK')

        if failed:
            raise CommandError(f'{failed} of {len(disks)} disks misconfigured')

        self.stdout.write(
            self.style.SUCCESS(f'Checked {len(disks)} disks, all valid'),
        )
