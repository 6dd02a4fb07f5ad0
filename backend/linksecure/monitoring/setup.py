import logging
import time

from fastapi import Request
from fastapi.responses import JSONResponse
from prometheus_client import Counter, Histogram
from prometheus_fastapi_instrumentator import Instrumentator
from starlette.types import ASGIApp

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

links_created = Counter("links_created_total", "Links created", ["kind"])
link_access = Counter("link_access_total", "Link access attempts by outcome", ["kind", "outcome"])
link_password_failures = Counter("link_password_failures_total", "Wrong passwords submitted for a link", ["kind"])

cleanup_runs = Counter("cleanup_runs_total", "Cleanup loop runs")
cleanup_files_purged = Counter("cleanup_files_purged_total", "Trashed files purged by cleanup")
cleanup_links_deactivated = Counter("cleanup_links_deactivated_total", "Links deactivated or expired by cleanup")
cleanup_failed_deletes = Counter("cleanup_failed_deletes_total", "Failed blob deletes in cleanup")
cleanup_duration = Histogram("cleanup_duration_seconds", "Duration of a cleanup run in seconds")

KIND_SECURE = "secure"
KIND_SHORT = "short"


def report_link_created(kind: str) -> None:
    links_created.labels(kind=kind).inc()


def report_link_access(kind: str, outcome: str) -> None:
    link_access.labels(kind=kind, outcome=outcome).inc()


def report_password_failure(kind: str) -> None:
    link_password_failures.labels(kind=kind).inc()


def report_cleanup(files_purged: int, links_deactivated: int, failed: int, duration: float) -> None:
    """Record cleanup metrics to Prometheus."""
    cleanup_runs.inc()
    if files_purged:
        cleanup_files_purged.inc(files_purged)
    if links_deactivated:
        cleanup_links_deactivated.inc(links_deactivated)
    if failed:
        cleanup_failed_deletes.inc(failed)
    cleanup_duration.observe(duration)


def setup_monitoring(app: ASGIApp):
    Instrumentator().instrument(app).expose(app, endpoint="/api/metrics", include_in_schema=False)

    @app.middleware("http")
    async def monitor_requests(request: Request, call_next):
        start_time = time.time()
        response = None
        try:
            response = await call_next(request)
        except Exception as e:
            logger.exception("Unhandled error: %s %s -> %s", request.method, request.url.path, e)
            response = JSONResponse(status_code=500, content={"detail": "Internal Server Error"})
        finally:
            process_time = time.time() - start_time
            logger.info(
                "method=%s path=%s status=%s duration=%.4fs",
                request.method,
                request.url.path,
                getattr(response, "status_code", "?"),
                process_time,
            )
        return response
