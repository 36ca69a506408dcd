# @role: FastAPI app entrypoint with route mounting and startup hooks
# @used_by: NA
# @filter_type: utility
# @tags: main, entrypoint, fastapi
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from routes.portfolio_router import router as portfolio_router
from routes.kite_auth_router import kite_router
from config.env_setup import env
from config.logging_config import get_loggers

# Set up logging first
logger, sync_logger = get_loggers()

# App setup
app = FastAPI(title="Kite Portfolio Dashboard", version="1.0")

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=[env.FRONTEND_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
app.include_router(portfolio_router, prefix="/api")
app.include_router(kite_router, prefix="/api")

# Scheduler hooks
@app.on_event("startup")
def start_background_scheduler():
    if env.SYNC_SCHEDULE_ENABLED:
        from schedulers.scheduler import start
        logger.info("🔁 Starting snapshot sync scheduler...")
        start()

@app.on_event("shutdown")
def on_shutdown():
    if env.SYNC_SCHEDULE_ENABLED:
        from schedulers.scheduler import shutdown
        logger.info("🛑 Shutting down snapshot sync scheduler...")
        shutdown()
