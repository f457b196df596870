from fastapi import FastAPI, APIRouter
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging
from app.config import settings
from prometheus_fastapi_instrumentator import Instrumentator
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from app.api import (
    assistant,
    categories,
    import_statements,
    stats,
    transactions,
    user_settings,
)

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle startup and shutdown events."""
    # Startup
    logger.info("Starting Expense Tracker API")
    from app.database.postgres_db import init_db
    init_db(settings.DATABASE_URL)
    logger.info("Database initialized")

    yield

    # Shutdown
    logger.info("Shutting down...")
    from app.database.postgres_db import close_db
    close_db()


app = FastAPI(
    title="Expense Tracker API",
    description="API for tracking income and expenses and importing bank statements",
    version="1.0.0",
    lifespan=lifespan
)

# Rate limiting is applied to statement imports
app.state.limiter = import_statements.limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

api_router = APIRouter(prefix="/api")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

api_router.include_router(import_statements.router)
api_router.include_router(transactions.router)
api_router.include_router(categories.router)
api_router.include_router(stats.router)
api_router.include_router(user_settings.router)
api_router.include_router(assistant.router)

app.include_router(api_router)

# Initialize Prometheus metrics instrumentation
Instrumentator().instrument(app).expose(app)


@app.get("/")
async def root():
    return {
        "message": "Expense Tracker API",
        "version": "1.0.0",
        "docs": "/docs"
    }


@app.get("/health")
async def health_check():
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app.main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        reload=True
    )
