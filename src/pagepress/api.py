"""Framework-neutral request handlers.

Each :class:`PublishAPI` method takes an :class:`InboundRequest`,
authenticates it, calls the orchestrator and returns an
:class:`ApiResponse`.  Every :class:`PagepressError` becomes its
structured error body with the error's HTTP status; anything else
propagates to the web framework.
"""

from __future__ import annotations

import math
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from pagepress.errors import PagepressError, PagepressRateLimitError, PagepressValidationError
from pagepress.models import InboundRequest
from pagepress.observability import correlation_scope, get_logger
from pagepress.publisher import PublishOrchestrator
from pagepress.validation import parse_json_body

log = get_logger("pagepress.api")

CORRELATION_HEADER = "X-Correlation-ID"


@dataclass(frozen=True)
class ApiResponse:
    status: int
    body: dict[str, Any]
    headers: dict[str, str] = field(default_factory=dict)


def _int_param(value: Any, name: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise PagepressValidationError(
            message=f"'{name}' must be an integer",
            context={"issues": [{"field": name, "message": "must be an integer"}]},
            cause=exc,
        ) from exc


class PublishAPI:
    """HTTP-shaped facade over :class:`PublishOrchestrator`."""

    def __init__(self, orchestrator: PublishOrchestrator) -> None:
        self._orchestrator = orchestrator

    @property
    def orchestrator(self) -> PublishOrchestrator:
        return self._orchestrator

    # -- endpoints ---------------------------------------------------------

    def publish(self, request: InboundRequest) -> ApiResponse:
        def run() -> tuple[int, dict[str, Any]]:
            body = self._orchestrator.handle_publish(request)
            return (201 if body.get("action") == "created" else 200), body

        return self._dispatch(request, run)

    def validate(self, request: InboundRequest) -> ApiResponse:
        def run() -> tuple[int, dict[str, Any]]:
            self._authenticate(request, mutating=False)
            report = self._orchestrator.validate(parse_json_body(request.body))
            return 200, report.to_dict()

        return self._dispatch(request, run)

    def page_by_slug(self, request: InboundRequest, slug: str) -> ApiResponse:
        def run() -> tuple[int, dict[str, Any]]:
            self._authenticate(request, mutating=False)
            return 200, self._orchestrator.page_by_slug(slug)

        return self._dispatch(request, run)

    def versions(self, request: InboundRequest, page_id: Any) -> ApiResponse:
        def run() -> tuple[int, dict[str, Any]]:
            self._authenticate(request, mutating=False)
            return 200, self._orchestrator.versions(_int_param(page_id, "page_id"))

        return self._dispatch(request, run)

    def page_logs(self, request: InboundRequest, page_id: Any) -> ApiResponse:
        def run() -> tuple[int, dict[str, Any]]:
            self._authenticate(request, mutating=False)
            return 200, self._orchestrator.logs_for_page(_int_param(page_id, "page_id"))

        return self._dispatch(request, run)

    def correlation_logs(self, request: InboundRequest, correlation_id: str) -> ApiResponse:
        def run() -> tuple[int, dict[str, Any]]:
            self._authenticate(request, mutating=False)
            return 200, self._orchestrator.logs_by_correlation(correlation_id)

        return self._dispatch(request, run)

    def rollback(self, request: InboundRequest, page_id: Any) -> ApiResponse:
        """Roll back to the version named by ``version_id`` in the body or query."""

        def run() -> tuple[int, dict[str, Any]]:
            self._authenticate(request, mutating=True)
            payload = parse_json_body(request.body) if request.body.strip() else {}
            if not isinstance(payload, dict):
                payload = {}
            version = payload.get("version_id", payload.get("version"))
            if version is None:
                version = request.query.get("version_id", request.query.get("version"))
            if version is None:
                raise PagepressValidationError(
                    message="'version_id' is required",
                    context={"issues": [{"field": "version_id", "message": "is required"}]},
                )
            return 200, self._orchestrator.rollback(
                _int_param(page_id, "page_id"),
                _int_param(version, "version_id"),
            )

        return self._dispatch(request, run)

    def retitle(self, request: InboundRequest, page_id: Any) -> ApiResponse:
        def run() -> tuple[int, dict[str, Any]]:
            self._authenticate(request, mutating=True)
            payload = parse_json_body(request.body)
            title = payload.get("title") if isinstance(payload, dict) else None
            return 200, self._orchestrator.retitle(_int_param(page_id, "page_id"), title or "")

        return self._dispatch(request, run)

    def schedule(self, request: InboundRequest) -> ApiResponse:
        """Accept a publish payload plus ``publish_at`` (or ``scheduled_time``)."""

        def run() -> tuple[int, dict[str, Any]]:
            self._authenticate(request, mutating=True)
            payload = parse_json_body(request.body)
            if not isinstance(payload, dict):
                raise PagepressValidationError(
                    message="Request body must be a JSON object",
                    context={"issues": [{"field": "", "message": "expected an object"}]},
                )
            payload = dict(payload)
            publish_at = payload.pop("publish_at", None) or payload.pop("scheduled_time", None)
            if not publish_at:
                raise PagepressValidationError(
                    message="'publish_at' is required",
                    context={"issues": [{"field": "publish_at", "message": "is required"}]},
                )
            return 202, self._orchestrator.schedule(payload, publish_at)

        return self._dispatch(request, run)

    def capabilities(self, request: InboundRequest) -> ApiResponse:
        def run() -> tuple[int, dict[str, Any]]:
            self._authenticate(request, mutating=False)
            return 200, self._orchestrator.capabilities()

        return self._dispatch(request, run)

    # -- internals ---------------------------------------------------------

    def _authenticate(self, request: InboundRequest, *, mutating: bool) -> None:
        self._orchestrator.auth_gate.authenticate(request, mutating=mutating)

    def _dispatch(
        self,
        request: InboundRequest,
        run: Callable[[], tuple[int, dict[str, Any]]],
    ) -> ApiResponse:
        with correlation_scope(request.header(CORRELATION_HEADER)) as correlation_id:
            headers = {CORRELATION_HEADER: correlation_id}
            try:
                status, body = run()
            except PagepressError as exc:
                log.info(
                    "Request rejected",
                    extra={
                        "extra_fields": {
                            "op": "api",
                            "path": request.path,
                            "status": exc.status,
                            "code": exc.to_dict()["code"],
                        }
                    },
                )
                if isinstance(exc, PagepressRateLimitError):
                    retry_after = exc.context.get("retry_after_seconds", 1)
                    headers["Retry-After"] = str(max(1, math.ceil(retry_after)))
                return ApiResponse(status=exc.status, body=exc.to_dict(), headers=headers)
            return ApiResponse(status=status, body=body, headers=headers)
