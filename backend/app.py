from fastapi import FastAPI

from backend.core.config import settings
from backend.core.observability import init_observability
from backend.core.observability.health import router as health_router
from backend.apps.premiums.api import router as premiums_router
from backend.apps.reminders.api import router as reminders_router


def create_app() -> FastAPI:
    init_observability(enable_metrics=settings.enable_metrics)

    app = FastAPI(title="Premium Desk Backend")

    # Routers
    app.include_router(health_router)
    app.include_router(premiums_router)
    app.include_router(reminders_router)

    return app


# ASGI app instance
app = create_app()
