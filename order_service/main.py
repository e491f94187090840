# order_service/main.py
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from order_service.api import include_routers
from order_service.data.database import create_schema
from order_service.resources import Resources, build_resources
from order_service.utils.logging import configure_logging, get_logger
from order_service.utils.settings import Settings, get_settings

logger = get_logger(__name__)


def create_app(resources: Resources | None = None, settings: Settings | None = None) -> FastAPI:
    """
    Without `resources` the app builds its own at start-up and closes them
    at shutdown. Passed-in resources stay owned by the caller.
    """
    settings = settings or (resources.settings if resources else get_settings())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(settings.log_level)
        owned = app.state.resources is None
        if owned:
            app.state.resources = build_resources(settings)
            create_schema(app.state.resources.engine)
        logger.info(f"Tables ready, sweeper mode: {settings.expiry_sweeper_mode}")

        sweeper = None
        if settings.expiry_sweeper_mode == "inline":
            sweeper = app.state.resources.expiry_sweeper()
            sweeper.start()
        try:
            yield
        finally:
            if sweeper is not None:
                sweeper.stop()
            if owned:
                app.state.resources.close()
                app.state.resources = None

    app = FastAPI(title="Order Service", version="1.0.0", lifespan=lifespan)
    app.state.resources = resources
    include_routers(app)
    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
