from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from typing import Optional
import structlog

from intentui.application.api.route import sessions
from intentui.application.session_registry import SessionRegistry
from intentui.application.websocket import ws_server
from intentui.application.websocket.connection_manager import ConnectionManager
from intentui.domain.errors import OrchestratorBusyError
from intentui.domain.models.ui_state import utcnow
from intentui.domain.streaming.streaming_handler import StreamingHandler
from intentui.infrastructure.config.settings import Settings, get_settings
from intentui.infrastructure.observability.logging import metrics, setup_logging

logger = structlog.get_logger(__name__)


def create_app(settings: Optional[Settings] = None, policy_factory=None) -> FastAPI:
    """Build the HTTP and WebSocket surface over a fresh session registry"""

    settings = settings or get_settings()
    setup_logging(settings.log_level, settings.log_format, settings.service_name)

    app = FastAPI(title="intentui")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    connections = ConnectionManager()
    app.state.settings = settings
    app.state.sessions = SessionRegistry(settings, policy_factory)
    app.state.connections = connections
    app.state.streaming = StreamingHandler(connections)

    app.include_router(sessions.router)
    app.include_router(ws_server.router)

    @app.exception_handler(OrchestratorBusyError)
    async def busy_handler(request: Request, exc: OrchestratorBusyError):
        logger.warning("Rejected concurrent intent", path=request.url.path)
        return JSONResponse(status_code=409, content={"detail": str(exc)})

    @app.get("/health")
    async def health_check():
        return {
            "status": "healthy",
            "sessions": len(app.state.sessions.list_ids()),
            "active_connections": len(connections.get_active_sessions()),
            "metrics": metrics.get_metrics_summary(),
            "timestamp": utcnow().isoformat()
        }

    logger.info("API server configured", service=settings.service_name)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=get_settings().api_host, port=get_settings().api_port)
