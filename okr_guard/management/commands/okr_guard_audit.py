"""
Management command for access audits.
"""

import json
import logging
from datetime import timedelta
from typing import Any

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand, CommandError
from django.db.models import Count
from django.utils import timezone

from okr_guard.engine import get_access_engine
from okr_guard.models import AccessAuditEvent, KeyResult, Objective
from okr_guard.rbac import Action, build_matrix
from okr_guard.scopes import ScopeChain

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = "Inspect access rules: role matrix, decision explanations, audit summaries and cleanup."

    def add_arguments(self, parser):
        subparsers = parser.add_subparsers(dest="command_name", required=True)

        matrix_parser = subparsers.add_parser("matrix", help="Print the role/action matrix")
        matrix_parser.add_argument("--json", action="store_true", help="Output JSON")

        explain_parser = subparsers.add_parser("explain", help="Explain an access decision")
        explain_parser.add_argument("--user", required=True, help="Username of the principal")
        explain_parser.add_argument(
            "--action", required=True, choices=[action.value for action in Action]
        )
        target = explain_parser.add_mutually_exclusive_group()
        target.add_argument("--objective", type=int, help="Objective id")
        target.add_argument("--key-result", type=int, help="Key result id")
        target.add_argument("--tenant", type=int, help="Tenant id for tenant-level actions")

        summary_parser = subparsers.add_parser("summary", help="Summarize recent audit events")
        summary_parser.add_argument(
            "--hours", type=int, default=24, help="Show summary for the last N hours"
        )

        cleanup_parser = subparsers.add_parser("cleanup", help="Delete old audit events")
        cleanup_parser.add_argument(
            "--days", type=int, required=True, help="Delete events older than N days"
        )
        cleanup_parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Show what would be deleted without actually deleting",
        )

    def handle(self, *args, **options):
        handlers = {
            "matrix": self._handle_matrix,
            "explain": self._handle_explain,
            "summary": self._handle_summary,
            "cleanup": self._handle_cleanup,
        }
        handlers[options["command_name"]](options)

    def _handle_matrix(self, options: dict[str, Any]):
        matrix = build_matrix()
        if options["json"]:
            self.stdout.write(json.dumps(matrix, indent=2))
            return

        actions = [action.value for action in Action]
        width = max(len(role) for role in matrix) + 2
        self.stdout.write("".ljust(width) + " ".join(a[:8].ljust(8) for a in actions))
        for role, row in matrix.items():
            cells = " ".join(("yes" if row[a] else "-").ljust(8) for a in actions)
            self.stdout.write(role.ljust(width) + cells)

    def _handle_explain(self, options: dict[str, Any]):
        user_model = get_user_model()
        try:
            user = user_model.objects.get(**{user_model.USERNAME_FIELD: options["user"]})
        except user_model.DoesNotExist:
            raise CommandError(f"User {options['user']!r} not found")

        kwargs: dict[str, Any] = {}
        if options.get("objective"):
            kwargs["resource"] = self._get(Objective, options["objective"])
        elif options.get("key_result"):
            kwargs["resource"] = self._get(KeyResult, options["key_result"])
        elif options.get("tenant"):
            kwargs["scope"] = ScopeChain(tenant_id=options["tenant"])
            kwargs["tenant_id"] = options["tenant"]

        explanation = get_access_engine().explain(user, options["action"], **kwargs)
        self.stdout.write(json.dumps(explanation.to_dict(), indent=2, default=str))
        if explanation.decision.allowed:
            self.stdout.write(self.style.SUCCESS("ALLOW"))
        else:
            self.stdout.write(self.style.ERROR(f"DENY ({explanation.decision.reason.value})"))

    def _get(self, model, pk):
        try:
            return model.objects.get(pk=pk)
        except model.DoesNotExist:
            raise CommandError(f"{model.__name__} {pk} not found")

    def _handle_summary(self, options: dict[str, Any]):
        hours = options["hours"]
        cutoff = timezone.now() - timedelta(hours=hours)
        events = AccessAuditEvent.objects.filter(timestamp__gte=cutoff)

        self.stdout.write(f"Access audit summary (last {hours} hours)")
        self.stdout.write(f"Total events: {events.count()}")

        self.stdout.write("\nBy event type:")
        for row in events.values("event_type").annotate(count=Count("id")).order_by("-count"):
            self.stdout.write(f"  {row['event_type']}: {row['count']}")

        self.stdout.write("\nDenials by reason:")
        denials = events.filter(outcome="denied")
        for row in denials.values("reason").annotate(count=Count("id")).order_by("-count"):
            self.stdout.write(f"  {row['reason']}: {row['count']}")

        self.stdout.write("\nMost denied principals:")
        top = (
            denials.exclude(principal_id__isnull=True)
            .values("principal_id")
            .annotate(count=Count("id"))
            .order_by("-count")[:10]
        )
        for row in top:
            self.stdout.write(f"  {row['principal_id']}: {row['count']}")

    def _handle_cleanup(self, options: dict[str, Any]):
        days = options["days"]
        cutoff = timezone.now() - timedelta(days=days)
        events = AccessAuditEvent.objects.filter(timestamp__lt=cutoff)
        count = events.count()

        if options["dry_run"]:
            self.stdout.write(f"Would delete {count} events older than {cutoff}")
            return

        events.delete()
        logger.info("Deleted %s access audit events older than %s", count, cutoff)
        self.stdout.write(self.style.SUCCESS(f"Deleted {count} events older than {cutoff}"))
