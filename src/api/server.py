# src/api/server.py - v1
"""FastAPI application: run control, SSE streams, paywall, wallet, memories, projects.

``create_app`` takes ready-built services (tests) or builds them from
Settings at startup. Errors map to JSON bodies of the form
``{"error": message}``: unknown ids are 404, bad input is 400 and
anything else is 500.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Header, HTTPException, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, StreamingResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from paygent.api.container import AppServices, build_services
from paygent.api.models import (
    CountResponse,
    HealthResponse,
    MemoryCreateRequest,
    MemorySearchRequest,
    MemoryView,
    ResetResponse,
    RunRequest,
    RunStartedResponse,
    SubscribeRequest,
    TokenVerifyRequest,
    TokenVerifyResponse,
)
from paygent.api.sse import SSE_HEADERS, parse_last_event_id, sse_frames
from paygent.config.settings import Settings
from paygent.core.errors import (
    InvalidEntitlementTokenError,
    PaygentError,
    RunNotFoundError,
    UnknownServiceError,
)
from paygent.core.models import (
    Artifact,
    LogEntry,
    PhaseHistoryEntry,
    RetrievedMemory,
    Run,
    SubscriptionResult,
    Transaction,
)
from paygent.payments.wallet import WalletInfo, get_wallet_info
from paygent.paywall.models import EntitlementView, ServiceStatus
from paygent.version import __version__

logger = logging.getLogger(__name__)


def create_app(
    services: AppServices | None = None,
    settings: Settings | None = None,
) -> FastAPI:
    """Application factory.

    Args:
        services: Prebuilt services. When omitted they are built from
            ``settings`` (or the environment) at startup and closed at
            shutdown.
        settings: Settings used when ``services`` is omitted.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = services is None
        app.state.services = services or build_services(settings or Settings())
        try:
            yield
        finally:
            if owned:
                await app.state.services.aclose()
            else:
                await app.state.services.runs.shutdown()

    app = FastAPI(title="paygent", version=__version__, lifespan=lifespan)
    _register_error_handlers(app)

    def svc(request: Request) -> AppServices:
        return request.app.state.services

    # --- Health ---

    @app.get("/api/health", response_model=HealthResponse)
    async def health(request: Request) -> HealthResponse:
        s = svc(request)
        return HealthResponse(
            version=__version__,
            llm_provider=s.settings.llm_provider,
            embedding_provider=s.embedder.provider_name,
            payment_provider=s.payment_client.provider_name,
            store_backend=s.settings.store_backend,
            demo_mode=s.settings.demo_mode,
            active_runs=len(s.runs.registry.in_flight()),
        )

    # --- Agent runs ---

    @app.post("/api/agent/run", response_model=RunStartedResponse, response_model_by_alias=True)
    async def start_run(body: RunRequest, request: Request) -> RunStartedResponse:
        run = await svc(request).runs.start_run(body.goal)
        return RunStartedResponse(run_id=run.id, status=run.status)

    @app.post("/api/agent/run/stream")
    async def start_run_stream(body: RunRequest, request: Request) -> StreamingResponse:
        runs = svc(request).runs
        run = await runs.start_run(body.goal)
        stream = await runs.open_stream(run.id)
        return StreamingResponse(
            sse_frames(stream), media_type="text/event-stream", headers=SSE_HEADERS
        )

    @app.get("/api/agent/run/{run_id}/stream")
    async def attach_stream(
        run_id: str,
        request: Request,
        after: int | None = Query(default=None, ge=0),
        last_event_id: str | None = Header(default=None, alias="Last-Event-ID"),
    ) -> StreamingResponse:
        start = after if after is not None else parse_last_event_id(last_event_id)
        stream = await svc(request).runs.open_stream(run_id, after=start)
        return StreamingResponse(
            sse_frames(stream), media_type="text/event-stream", headers=SSE_HEADERS
        )

    @app.get("/api/agent/run/{run_id}", response_model=Run)
    async def get_run(run_id: str, request: Request) -> Run:
        return await svc(request).runs.get_run(run_id)

    @app.get("/api/agent/run/{run_id}/history", response_model=list[PhaseHistoryEntry])
    async def get_history(run_id: str, request: Request) -> list[PhaseHistoryEntry]:
        return await svc(request).runs.get_history(run_id)

    @app.get("/api/agent/run/{run_id}/logs", response_model=list[LogEntry])
    async def get_logs(run_id: str, request: Request) -> list[LogEntry]:
        return await svc(request).runs.get_logs(run_id)

    @app.post("/api/agent/run/{run_id}/cancel", response_model=Run)
    async def cancel_run(run_id: str, request: Request) -> Run:
        return await svc(request).runs.cancel_run(run_id)

    @app.get("/api/agent/runs", response_model=list[Run])
    async def list_runs(request: Request, limit: int = Query(default=20, ge=1, le=200)) -> list[Run]:
        return await svc(request).runs.list_runs(limit)

    # --- Entitlements ---

    @app.get("/api/entitlements", response_model=list[EntitlementView])
    async def list_entitlements(
        request: Request, run_id: str | None = Query(default=None, alias="runId")
    ) -> list[EntitlementView]:
        return await svc(request).entitlements.list_entitlements(run_id)

    @app.get("/api/entitlements/status", response_model=dict[str, ServiceStatus])
    async def entitlement_status(request: Request) -> dict[str, ServiceStatus]:
        return await svc(request).entitlements.status()

    @app.get("/api/entitlements/prices")
    async def entitlement_prices(request: Request) -> dict[str, float]:
        return svc(request).entitlements.prices()

    @app.delete("/api/entitlements/reset", response_model=ResetResponse)
    async def reset_entitlements(request: Request) -> ResetResponse:
        return ResetResponse(deactivated=await svc(request).entitlements.reset())

    @app.post("/api/entitlements/subscribe/{service}", response_model=SubscriptionResult)
    async def subscribe(service: str, body: SubscribeRequest, request: Request) -> SubscriptionResult:
        s = svc(request)
        await s.runs.get_run(body.run_id)
        return await s.entitlements.subscribe(body.run_id, service)

    @app.post(
        "/api/entitlements/verify",
        response_model=TokenVerifyResponse,
        response_model_by_alias=True,
    )
    async def verify_token(body: TokenVerifyRequest, request: Request) -> TokenVerifyResponse:
        try:
            claims = svc(request).entitlements.verify_token(body.token)
        except InvalidEntitlementTokenError as exc:
            return TokenVerifyResponse(valid=False, error=str(exc))
        return TokenVerifyResponse(
            valid=True,
            service=claims.service.value,
            run_id=claims.run_id,
            tx_id=claims.tx_id,
            expires_at=claims.expires_at,
        )

    # --- Wallet ---

    @app.get("/api/wallet", response_model=WalletInfo)
    async def wallet(request: Request) -> WalletInfo:
        s = svc(request)
        return await get_wallet_info(s.payment_client, s.settings.paywall_recipient)

    @app.get("/api/wallet/transactions", response_model=list[Transaction])
    async def list_transactions(
        request: Request,
        run_id: str | None = Query(default=None, alias="runId"),
        limit: int = Query(default=50, ge=1, le=500),
    ) -> list[Transaction]:
        return await svc(request).store.list_transactions(run_id, limit)

    @app.get("/api/wallet/transactions/{tx_hash}", response_model=Transaction)
    async def get_transaction(tx_hash: str, request: Request) -> Transaction:
        tx = await svc(request).store.get_transaction_by_hash(tx_hash)
        if tx is None:
            raise HTTPException(status_code=404, detail=f"Transaction not found: {tx_hash}")
        return tx

    # --- Memories ---

    @app.get("/api/memories", response_model=list[MemoryView])
    async def list_memories(
        request: Request, limit: int = Query(default=50, ge=1, le=500)
    ) -> list[MemoryView]:
        return [MemoryView.of(m) for m in await svc(request).store.list_memories(limit)]

    @app.post("/api/memories", response_model=MemoryView, status_code=201)
    async def add_memory(body: MemoryCreateRequest, request: Request) -> MemoryView:
        memory = await svc(request).retriever.add(body.text, body.metadata, body.source)
        return MemoryView.of(memory)

    @app.post("/api/memories/search", response_model=list[RetrievedMemory])
    async def search_memories(body: MemorySearchRequest, request: Request) -> list[RetrievedMemory]:
        return await svc(request).retriever.search(body.query, body.limit)

    @app.get("/api/memories/count", response_model=CountResponse)
    async def count_memories(request: Request) -> CountResponse:
        return CountResponse(count=await svc(request).store.count_memories())

    # --- Projects ---

    @app.get("/api/projects", response_model=list[Artifact])
    async def list_projects(
        request: Request,
        run_id: str | None = Query(default=None, alias="runId"),
        limit: int = Query(default=50, ge=1, le=500),
    ) -> list[Artifact]:
        return await svc(request).store.list_artifacts(run_id, limit)

    @app.get("/api/projects/{artifact_id}", response_model=Artifact)
    async def get_project(artifact_id: str, request: Request) -> Artifact:
        artifact = await svc(request).store.get_artifact(artifact_id)
        if artifact is None:
            raise HTTPException(status_code=404, detail=f"Project not found: {artifact_id}")
        return artifact

    return app


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})

    @app.exception_handler(RunNotFoundError)
    async def not_found(request: Request, exc: RunNotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"error": str(exc)})

    @app.exception_handler(RequestValidationError)
    async def invalid_request(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={"error": "Invalid request", "details": jsonable_errors(exc)},
        )

    @app.exception_handler(UnknownServiceError)
    async def unknown_service(request: Request, exc: UnknownServiceError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"error": str(exc)})

    @app.exception_handler(ValueError)
    async def bad_value(request: Request, exc: ValueError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"error": str(exc)})

    @app.exception_handler(PaygentError)
    async def domain_error(request: Request, exc: PaygentError) -> JSONResponse:
        logger.error("Request failed: %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=500, content={"error": str(exc)})

    @app.exception_handler(Exception)
    async def unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error: %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})


def jsonable_errors(exc: RequestValidationError) -> list[str]:
    return [
        f"{'/'.join(str(p) for p in err.get('loc', ())) or '$'}: {err.get('msg', '')}"
        for err in exc.errors()
    ]
