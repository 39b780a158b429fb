from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi_pagination import add_pagination

from handoff.config import get_settings
from handoff.infra.logging_config import LoggingConfig, get_logger
from handoff.routers import conversations, handoff_events, tools


def create_app(testing: bool = False) -> FastAPI:
    settings = get_settings()
    LoggingConfig(level="DEBUG" if testing else settings.log_level)
    logger = get_logger("main")

    app = FastAPI(
        title="Handoff API",
        description="Routes conversations between an AI assistant and a human workflow",
        version="0.1.0",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(conversations.router)
    app.include_router(tools.router)
    app.include_router(handoff_events.router)

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok"}

    add_pagination(app)

    logger.info(
        "Application created",
        extra={"context": {"environment": settings.environment, "testing": testing}},
    )
    return app


app = create_app()
