import logging
from contextlib import asynccontextmanager

import psycopg2
import uvicorn
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from admin.routes import admin
from auth.routes import organizers, sellers
from common import config
from common.database import DatabasePool, RedisConnection, log_database_error
from common.middleware import RequestLoggingMiddleware
from common.rate_limit import rate_limit
from dashboard.routes import dashboard
from event.routes import organizer_events, public_events
from tickets.routes import organizer_tickets, ticket

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting %s (%s)", config.APP_NAME, config.ENVIRONMENT)
    try:
        app.state.db_pool = DatabasePool.from_config()
        app.state.db_pool.check_connection()
    except psycopg2.Error as e:
        log_database_error("Database unavailable at startup", e)
        raise

    yield

    app.state.db_pool.close()
    if config.REDIS_HOST:
        RedisConnection().close()
    logger.info("Shutdown complete")


app = FastAPI(title=config.APP_NAME, lifespan=lifespan)

app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(psycopg2.Error)
async def database_error_handler(request: Request, exc: psycopg2.Error):
    log_database_error(f"Unhandled database error on {request.url.path}", exc)
    return JSONResponse(
        status_code=500,
        content={"status": "error", "detail": "Database operation failed"},
    )


@app.get("/health", tags=["health"])
async def health_check(request: Request):
    try:
        request.app.state.db_pool.check_connection()
    except psycopg2.Error as e:
        log_database_error("Health check failed", e)
        return JSONResponse(
            status_code=503, content={"status": "error", "database": "unavailable"}
        )
    return {"status": "ok", "database": "connected", "environment": config.ENVIRONMENT}


limited = [Depends(rate_limit)]

# Organizer sub-resources are mounted ahead of the organizer account routes.
app.include_router(
    organizer_events, prefix="/api/organizers/events", tags=["events"], dependencies=limited
)
app.include_router(
    organizer_tickets, prefix="/api/organizers/tickets", tags=["tickets"], dependencies=limited
)
app.include_router(
    dashboard, prefix="/api/organizers/dashboard", tags=["dashboard"], dependencies=limited
)
app.include_router(organizers, prefix="/api/organizers", tags=["organizers"], dependencies=limited)
app.include_router(sellers, prefix="/api/sellers", tags=["sellers"], dependencies=limited)
app.include_router(public_events, prefix="/api/events/public", tags=["events"], dependencies=limited)
app.include_router(ticket, prefix="/api/tickets", tags=["tickets"], dependencies=limited)
app.include_router(admin, prefix="/api/admin", tags=["admin"], dependencies=limited)

if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=not config.is_production())
