from datetime import datetime, timezone
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from hrmatch.routers import matches
from hrmatch.utils.logging_config import configure_for_environment, get_logger
from hrmatch.middleware.error_handlers import ExceptionHandlerMiddleware, RequestLoggingMiddleware

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan context manager"""
    configure_for_environment()
    logger.info("HR match API starting up...")

    try:
        from hrmatch.services.db import init_indexes
        await init_indexes()
    except Exception as e:
        logger.warning(f"Cache index initialization had issues: {e}")
        logger.info("Application will continue - expired cache entries are still ignored on read")

    logger.info("HR match API startup completed")

    yield

    logger.info("HR match API shutting down...")


app = FastAPI(title="HR Match API", version="1.0.0", lifespan=lifespan)

# Exception handler should be the outermost middleware (LIFO)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(ExceptionHandlerMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
@app.head("/")
async def root():
    return {"message": "Welcome to the HR Match API", "version": "1.0.0", "status": "ok"}


@app.get("/health")
@app.head("/health")
async def health_check():
    return {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}


app.include_router(matches.router, prefix="/api/match")
