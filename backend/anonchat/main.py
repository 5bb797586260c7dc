"""
Anonchat API и WebSocket.
"""
import logging

from fastapi import FastAPI, Request, WebSocket
from fastapi.middleware.cors import CORSMiddleware

from .config import get_config
from .pairing import Matchmaker
from .ws_handlers import ws_loop
from .ws_manager import WSManager

config = get_config()

logging.basicConfig(
    level=logging.DEBUG if config.debug else logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    app = FastAPI(title="Anonchat API")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )
    app.state.manager = WSManager()
    app.state.matchmaker = Matchmaker(
        emitter=app.state.manager,
        max_name_length=config.max_name_length,
    )

    @app.get("/health")
    def health():
        return {"status": "ok"}

    @app.get("/stats")
    def stats(request: Request):
        return request.app.state.matchmaker.stats()

    @app.websocket("/ws")
    async def websocket_endpoint(ws: WebSocket):
        logger.info("WS: connection attempt from %s", ws.client)
        await ws_loop(ws, ws.app.state.matchmaker, ws.app.state.manager)

    return app


app = create_app()


def run() -> None:  # pragma: no cover
    import uvicorn

    uvicorn.run(app, host=config.host, port=config.port)
