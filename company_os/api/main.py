import logging

from fastapi import FastAPI

from company_os.api.errors import register_error_handlers
from company_os.api.middleware import user_context_middleware
from company_os.api.routes.notifications import router as notifications_router
from company_os.core.config import settings

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)

app = FastAPI(title="Company OS Notifications")
app.middleware("http")(user_context_middleware)
register_error_handlers(app)
app.include_router(notifications_router, prefix="/api/v1")


@app.get("/health", tags=["system"])
async def health_check() -> dict[str, str]:
    return {"status": "ok"}
