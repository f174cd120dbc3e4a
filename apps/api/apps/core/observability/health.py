"""
Health, readiness and metrics endpoints.

/healthz answers as long as the process is up, /readyz checks that the
database is reachable and migrated, /metrics exposes Prometheus text.
"""
import logging
from django.conf import settings
from django.db import DatabaseError, connection
from django.db.migrations.executor import MigrationExecutor
from django.http import HttpResponse, JsonResponse
from django.views import View
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

logger = logging.getLogger(__name__)


class HealthzView(View):
    """Liveness probe. Does not touch dependencies."""

    def get(self, request):
        health_data = {
            'status': 'ok',
            'version': getattr(settings, 'VERSION', 'unknown'),
        }

        commit_hash = getattr(settings, 'COMMIT_HASH', None)
        if commit_hash:
            health_data['commit'] = commit_hash

        return JsonResponse(health_data, status=200)


class ReadyzView(View):
    """
    Readiness probe.

    Returns 503 while the database is unreachable or has unapplied
    migrations, so the practice store never loads against a partial schema.
    """

    def get(self, request):
        database_ok = self._check_database()
        checks = {
            'database': database_ok,
            'migrations': database_ok and self._check_migrations(),
        }
        all_healthy = all(checks.values())

        return JsonResponse(
            {'status': 'ready' if all_healthy else 'not_ready', 'checks': checks},
            status=200 if all_healthy else 503,
        )

    def _check_database(self):
        try:
            with connection.cursor() as cursor:
                cursor.execute('SELECT 1')
            return True
        except DatabaseError as e:
            logger.error(
                'Database health check failed',
                extra={'event': 'health_check_failed', 'check': 'database', 'error': str(e)}
            )
            return False

    def _check_migrations(self):
        executor = MigrationExecutor(connection)
        pending = executor.migration_plan(executor.loader.graph.leaf_nodes())
        if pending:
            logger.warning(
                'Unapplied migrations',
                extra={'event': 'health_check_failed', 'check': 'migrations', 'pending': len(pending)}
            )
        return not pending


class MetricsView(View):
    """Prometheus scrape endpoint."""

    def get(self, request):
        return HttpResponse(generate_latest(), content_type=CONTENT_TYPE_LATEST)
