from logging_config import setup_logging

# Initialize logging BEFORE anything else
setup_logging()

from contextlib import asynccontextmanager
from logging_config import get_logger, request_id_var
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from middleware import RequestLifecycleMiddleware
from routes import notifications, tasks
from exceptions import InternTrackError
from database import client, db, NOTIFICATIONS
from utils.notification_store import NotificationStore
from config import config

logger = get_logger("app")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup: make sure the notification indexes exist."""
    logger.info(f"Starting InternTrack API | env={config.ENV}")
    if config.ENV != "testing":
        await NotificationStore(db[NOTIFICATIONS]).ensure_indexes()
    yield
    client.reset()


app = FastAPI(title="InternTrack API", lifespan=lifespan)

# CORS remains here as it's a global setting
app.add_middleware(
    CORSMiddleware,
    allow_origins=[config.FRONTEND_URL] if config.ENV == "production" else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Request lifecycle middleware (request ID, context vars, duration logging)
app.add_middleware(RequestLifecycleMiddleware)


@app.exception_handler(InternTrackError)
async def interntrack_error_handler(request: Request, exc: InternTrackError):
    log_fn = logger.error if exc.status_code >= 500 else logger.warning
    log_fn(
        f"{exc.code}: {exc.message}",
        extra={"data": {"path": request.url.path, "status": exc.status_code, **exc.details}}
    )
    content = exc.to_dict()
    content["request_id"] = request_id_var.get("-")
    return JSONResponse(status_code=exc.status_code, content=content)


# REGISTER ROUTERS
app.include_router(notifications.router)
app.include_router(tasks.router)

logger.info("All routers registered, InternTrack API ready")

@app.get("/")
async def root():
    return {"status": "online", "message": "InternTrack API is up!"}
