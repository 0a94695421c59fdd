import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI
import uvicorn
from fastapi.middleware.cors import CORSMiddleware

from core.auth import auth_backend, fastapi_users
from core.config import settings
from core.errors import register_exception_handlers
from core.logging_config import setup_logging
from core.responses import ok
from db.database import create_db_and_tables
from routers.activity import router as activity_router
from routers.auth import router as auth_router
from routers.deliveries import router as deliveries_router
from routers.inventory import router as inventory_router
from routers.products import router as products_router
from routers.reports import router as reports_router
from routers.users import router as users_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    await create_db_and_tables()
    logger.info("Bar Stock Manager API started (environment=%s)", settings.environment)
    yield


app = FastAPI(
    title="Bar Stock Manager API",
    description="Warehouse and bar inventory for the Bulldog bars",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in settings.cors_origin.split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)


@app.get("/api/health", tags=["health"])
async def health():
    return ok(
        {
            "status": "ok",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "environment": settings.environment,
        }
    )


# Authentication routes (fastapi-users login/logout)
app.include_router(fastapi_users.get_auth_router(auth_backend), prefix="/api/auth/jwt", tags=["auth"])
app.include_router(auth_router, prefix="/api/auth", tags=["auth"])

app.include_router(products_router, prefix="/api/products", tags=["products"])
app.include_router(inventory_router, prefix="/api/inventory", tags=["inventory"])
app.include_router(deliveries_router, prefix="/api/deliveries", tags=["deliveries"])
app.include_router(reports_router, prefix="/api/reports", tags=["reports"])
app.include_router(users_router, prefix="/api/users", tags=["users"])
app.include_router(activity_router, prefix="/api/activity", tags=["activity"])

if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=settings.is_development)
