from fastapi import FastAPI

from medstock.api.v1.router import api_router
from medstock.core.config import get_settings
from medstock.core.errors import StockError, stock_error_handler
from medstock.core.logging_config import configure_logging

settings = get_settings()

configure_logging(settings.log_level)

app = FastAPI(
    title="Hospital Stock Management Backend",
)

app.add_exception_handler(StockError, stock_error_handler)


@app.get("/health", tags=["health"])
async def root_health() -> dict:
    """
    Global health check endpoint.
    """
    return {"status": "ok"}


# Mount versioned API router
app.include_router(api_router, prefix=settings.api_v1_prefix)
