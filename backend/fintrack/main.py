from fastapi import FastAPI, APIRouter, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging
from sqlalchemy.exc import SQLAlchemyError
from fintrack.config import settings
from prometheus_fastapi_instrumentator import Instrumentator
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from fintrack.api import (
    accounts,
    transactions,
    categories,
    budgets,
    import_transactions,
    dashboard,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle startup and shutdown events."""
    logger.info("Starting Personal Finance Tracker API")
    from fintrack.database.postgres_db import init_db
    init_db(settings.DATABASE_URL)
    logger.info("Database initialized")

    yield

    logger.info("Shutting down...")
    from fintrack.database.postgres_db import close_db
    close_db()


app = FastAPI(
    title="Personal Finance Tracker API",
    description="API for accounts, transactions, budgets and CSV imports",
    version="1.0.0",
    lifespan=lifespan
)

app.state.limiter = import_transactions.limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error(f"Database error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Database unavailable, please try again later"},
    )


api_router = APIRouter(prefix="/api")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

api_router.include_router(accounts.router)
api_router.include_router(transactions.router)
api_router.include_router(categories.router)
api_router.include_router(budgets.router)
api_router.include_router(import_transactions.router)
api_router.include_router(dashboard.router)

app.include_router(api_router)

# Initialize Prometheus metrics instrumentation
Instrumentator().instrument(app).expose(app)

@app.get("/")
async def root():
    return {
        "message": "Personal Finance Tracker API",
        "version": "1.0.0",
        "docs": "/docs"
    }

@app.get("/health")
async def health_check():
    return {"status": "healthy"}

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "fintrack.main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        reload=True
    )
