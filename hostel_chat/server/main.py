"""FastAPI application entrypoint for the hostel messaging server."""
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.engine import Engine

from . import messages, realtime, users
from .config import HOST, PORT
from .database import Base, build_session_factory, engine as default_engine
from .errors import ChatError
from .logging_config import configure_logging
from .presence import PresenceRegistry

logger = configure_logging()


def create_app(engine: Optional[Engine] = None) -> FastAPI:
    bind = engine or default_engine
    Base.metadata.create_all(bind=bind)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        presence = PresenceRegistry()
        app.state.presence = presence
        app.state.sessions = realtime.SessionManager(presence, app.state.session_factory)
        logger.info("SERVER_START")
        try:
            yield
        finally:
            app.state.sessions.shutdown()
            logger.info("SERVER_STOP")

    app = FastAPI(title="Hostel Chat Server", version="1.0.0", lifespan=lifespan)
    app.state.session_factory = build_session_factory(bind)

    @app.exception_handler(ChatError)
    async def chat_error_handler(request: Request, exc: ChatError):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        first = exc.errors()[0]
        field = ".".join(str(part) for part in first["loc"][1:]) or "request"
        logger.info("REQUEST_INVALID path=%s field=%s", request.url.path, field)
        return JSONResponse(status_code=400, content={"error": f"{field}: {first['msg']}"})

    app.include_router(users.router)
    app.include_router(messages.router)
    app.include_router(realtime.router)

    @app.get("/")
    def root():
        return {"status": "ok"}

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run("hostel_chat.server.main:app", host=HOST, port=PORT, reload=False)
