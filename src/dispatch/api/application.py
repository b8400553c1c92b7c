"""Application factory for the Dispatch API.

Builds the broadcast hub, the event publisher and the services, and hands
them to the routes through ``app.state``. The hub is started before any
router is registered and drained when the app shuts down.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from protean.domain import Domain

from dispatch.api.errors import register_exception_handlers
from dispatch.api.realtime import realtime_router
from dispatch.api.routes import delivery_router, order_router
from dispatch.assignment.engine import AssignmentEngine
from dispatch.identity import TokenVerifier
from dispatch.notifier import Notifier
from dispatch.order.lifecycle import OrderLifecycle
from dispatch.publishing import EventPublisher, build_publisher
from dispatch.realtime.hub import BroadcastHub
from dispatch.utils.logging import add_context, clear_context


def create_app(
    domain: Domain,
    publisher: EventPublisher | None = None,
    verifier: TokenVerifier | None = None,
) -> FastAPI:
    verifier = verifier or TokenVerifier()
    publisher = publisher or build_publisher()

    hub = BroadcastHub(domain, verifier)
    hub.init()

    notifier = Notifier(hub, publisher)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await hub.shutdown()
        publisher.close()

    app = FastAPI(
        title="Dispatch API",
        description="Order lifecycle, delivery assignment and live tracking",
        lifespan=lifespan,
    )
    app.state.domain = domain
    app.state.verifier = verifier
    app.state.publisher = publisher
    app.state.hub = hub
    app.state.lifecycle = OrderLifecycle(notifier)
    app.state.engine = AssignmentEngine(notifier)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def domain_context_middleware(request: Request, call_next):
        """Push the dispatch domain context and bind request log context."""
        clear_context()
        add_context(method=request.method, path=request.url.path)
        with domain.domain_context():
            response = await call_next(request)
        return response

    app.include_router(order_router)
    app.include_router(delivery_router)
    app.include_router(realtime_router)
    register_exception_handlers(app)

    @app.get("/health")
    async def health():
        return JSONResponse(
            content={
                "status": "ok",
                "domain": domain.name,
                "hub": "running" if hub.is_running else "stopped",
            }
        )

    return app
