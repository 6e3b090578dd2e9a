from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.management.base import BaseCommand, CommandError

from gamification.badges import load_badges_from_file


class Command(BaseCommand):
    help = "Upsert the badge catalog from a JSON feed."

    def add_arguments(self, parser):
        parser.add_argument('path', nargs='?', default=None,
                            help='Catalog file (defaults to GAMIFICATION_BADGE_CATALOG)')

    def handle(self, *args, **options):
        path = options['path'] or settings.GAMIFICATION_BADGE_CATALOG
        try:
            result = load_badges_from_file(path)
        except ValidationError as exc:
            raise CommandError('; '.join(exc.messages))

        self.stdout.write(self.style.SUCCESS(
            f"Created: {result.created}, Updated: {result.updated}, Errors: {len(result.errors)}"
        ))
        for error in result.errors:
            self.stderr.write(f"  - {error['slug']}: {error['error']}")
