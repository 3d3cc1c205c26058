from django.core.management.base import BaseCommand

from donation_core.services.store import repair_mirror_drift


class Command(BaseCommand):
    help = "Find and repair application status mirrors that disagree with Application.status"

    def add_arguments(self, parser):
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Only report drift; do not write anything.",
        )

    def handle(self, *args, **options):
        dry_run = options["dry_run"]
        drift = repair_mirror_drift(dry_run=dry_run)

        for item in drift:
            self.stdout.write(
                f"{item['kind']} application={item['application_id']} donor={item['donor_id']} "
                f"found={item['found']!r} expected={item['expected']!r}"
            )

        verb = "Found" if dry_run else "Repaired"
        self.stdout.write(self.style.SUCCESS(f"{verb} {len(drift)} drifted mirror(s)."))
