import logging
from contextlib import asynccontextmanager

import uvicorn
from apscheduler.schedulers.background import BackgroundScheduler
from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

import config
from auth import auth_router
from router import router
from services import check_all_budget_alerts
from storage import get_storage

logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger("fintrack")


def scheduled_budget_check():
    try:
        check_all_budget_alerts(get_storage())
    except Exception:
        # a failed run must not kill the scheduler thread
        logger.exception("Scheduled budget check failed")


def create_scheduler() -> BackgroundScheduler:
    scheduler = BackgroundScheduler()
    scheduler.add_job(
        scheduled_budget_check,
        "interval",
        minutes=config.ALERT_CHECK_INTERVAL_MINUTES,
        id="budget-alerts",
    )
    return scheduler


@asynccontextmanager
async def lifespan(app: FastAPI):
    get_storage()
    scheduler = None
    if config.ALERT_CHECK_ENABLED:
        scheduler = create_scheduler()
        scheduler.start()
        logger.info(
            "Budget alert check every %d minute(s)", config.ALERT_CHECK_INTERVAL_MINUTES
        )
    yield
    if scheduler is not None:
        scheduler.shutdown(wait=False)


app = FastAPI(title="FinTrack Personal Finance API", lifespan=lifespan)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": "Invalid request data", "errors": jsonable_encoder(exc.errors())},
    )


app.include_router(router, prefix="/api", tags=["finance"])
app.include_router(auth_router, prefix="/api/auth", tags=["authentication"])


@app.get("/")
def home():
    return {"message": "Welcome to FinTrack Personal Finance API"}


@app.get("/health")
def health():
    return {"status": "ok"}


if __name__ == "__main__":
    uvicorn.run(app, host=config.HOST, port=config.PORT)
