import asyncio
from datetime import datetime
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from hireveno.config import get_settings
from hireveno.database.database import SessionLocal, init_db
from hireveno.logger import logger
from hireveno.rate_limit import limiter
from hireveno.services.content_filter import seed_default_keywords
from hireveno.services.sessions import session_sweeper

### ROUTERS
from hireveno.routers.admin import router as admin_router
from hireveno.routers.appeals import router as appeals_router
from hireveno.routers.chat import router as chat_router
from hireveno.routers.notifications import router as notifications_router
from hireveno.routers.payments import router as payments_router
from hireveno.routers.quiz import router as quiz_router
from hireveno.routers.reviews import router as reviews_router
from hireveno.routers.sessions import router as sessions_router
from hireveno.routers.users import router as users_router
from hireveno.routers.wallet import router as wallet_router


class LoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs one line per request and one per response.

    Only the path is logged, query strings can carry payment references.
    Unhandled errors are logged with the request line and re-raised.
    """
    async def dispatch(self, request: Request, call_next):
        start_time = datetime.now()
        request_line = f"{request.method} {request.url.path}"
        logger.info(f"Request: {request_line}")

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(f"Error processing {request_line}: {str(e)}")
            raise

        duration = (datetime.now() - start_time).total_seconds()
        logger.info(f"Response: {request_line} -> {response.status_code} ({duration:.3f}s)")
        return response

app = FastAPI(
    title=get_settings().app_name,
    version=get_settings().app_version,
    openapi_url="/openapi.json",
    docs_url="/docs",
    redoc_url="/redoc"
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Add logging middleware
app.add_middleware(LoggingMiddleware)

# Add CORS middleware with environment configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
    allow_headers=["*"],
    max_age=3600
)

# Include routers
app.include_router(admin_router, tags=['admin'])
app.include_router(appeals_router, tags=['appeals'])
app.include_router(chat_router, tags=['chat'])
app.include_router(notifications_router, tags=['notifications'])
app.include_router(payments_router, tags=['payments'])
app.include_router(quiz_router, tags=['quiz'])
app.include_router(reviews_router, tags=['reviews'])
app.include_router(sessions_router, tags=['sessions'])
app.include_router(users_router, tags=['users'])
app.include_router(wallet_router, tags=['wallet'])

@app.get("/")
def read_root():
    """
    Root endpoint returning API welcome message.

    Returns:
    - dict: Welcome message
    """
    return {"message": f"Welcome to the {get_settings().app_name} API"}

@app.on_event("startup")
async def startup_event():
    """
    Application startup handler.
    Creates tables, seeds the chat keyword list and starts the session sweeper.
    """
    logger.info("Server starting up...")
    init_db()
    db = SessionLocal()
    try:
        seed_default_keywords(db)
    finally:
        db.close()

    settings = get_settings()
    app.state.sweeper_task = None
    if settings.session_sweeper_enabled:
        app.state.sweeper_task = asyncio.create_task(session_sweeper(settings.session_sweep_interval_seconds))

@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Server shutting down...")
    task = getattr(app.state, "sweeper_task", None)
    if task:
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

if __name__ == '__main__':
    import uvicorn
    uvicorn.run(app, host=get_settings().app_host, port=get_settings().app_port)
