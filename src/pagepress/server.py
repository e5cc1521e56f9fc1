"""FastAPI application exposing the publishing API.

Handlers read the raw body (signatures are computed over it), hand an
:class:`InboundRequest` to :class:`PublishAPI` on the thread pool and turn
the :class:`ApiResponse` into JSON.

Usage::

    from pagepress.server import create_app

    app = create_app(api)
    # uvicorn module:app
"""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from pagepress import __version__
from pagepress.api import ApiResponse, PublishAPI
from pagepress.models import InboundRequest


async def _inbound(request: Request) -> InboundRequest:
    body = await request.body()
    return InboundRequest(
        method=request.method,
        path=request.url.path,
        headers=dict(request.headers),
        query=dict(request.query_params),
        body=body,
        remote_addr=request.client.host if request.client else None,
    )


def _respond(response: ApiResponse) -> JSONResponse:
    return JSONResponse(status_code=response.status, content=response.body, headers=response.headers or None)


def create_app(api: PublishAPI) -> FastAPI:
    """Build the FastAPI app serving *api*."""
    app = FastAPI(title="pagepress", version=__version__)

    @app.get("/")
    def health() -> dict:
        return {"status": "ok", "version": __version__}

    @app.post("/publish-page")
    async def publish_page(request: Request) -> JSONResponse:
        inbound = await _inbound(request)
        return _respond(await run_in_threadpool(api.publish, inbound))

    @app.post("/validate-page")
    async def validate_page(request: Request) -> JSONResponse:
        inbound = await _inbound(request)
        return _respond(await run_in_threadpool(api.validate, inbound))

    @app.get("/page-by-slug/{slug}")
    async def page_by_slug(slug: str, request: Request) -> JSONResponse:
        inbound = await _inbound(request)
        return _respond(await run_in_threadpool(api.page_by_slug, inbound, slug))

    @app.get("/versions/{page_id}")
    async def versions(page_id: str, request: Request) -> JSONResponse:
        inbound = await _inbound(request)
        return _respond(await run_in_threadpool(api.versions, inbound, page_id))

    @app.get("/logs/{page_id}")
    async def page_logs(page_id: str, request: Request) -> JSONResponse:
        inbound = await _inbound(request)
        return _respond(await run_in_threadpool(api.page_logs, inbound, page_id))

    @app.get("/logs/correlation/{correlation_id}")
    async def correlation_logs(correlation_id: str, request: Request) -> JSONResponse:
        inbound = await _inbound(request)
        return _respond(await run_in_threadpool(api.correlation_logs, inbound, correlation_id))

    @app.post("/rollback/{page_id}")
    async def rollback(page_id: str, request: Request) -> JSONResponse:
        inbound = await _inbound(request)
        return _respond(await run_in_threadpool(api.rollback, inbound, page_id))

    @app.post("/pages/{page_id}/title")
    async def retitle(page_id: str, request: Request) -> JSONResponse:
        inbound = await _inbound(request)
        return _respond(await run_in_threadpool(api.retitle, inbound, page_id))

    @app.post("/schedule-page")
    async def schedule_page(request: Request) -> JSONResponse:
        inbound = await _inbound(request)
        return _respond(await run_in_threadpool(api.schedule, inbound))

    @app.get("/capabilities")
    async def capabilities(request: Request) -> JSONResponse:
        inbound = await _inbound(request)
        return _respond(await run_in_threadpool(api.capabilities, inbound))

    return app
