"""
Print-shop back office – FastAPI application entry point.

Run with:
    uvicorn printshop.main:app --reload --host 0.0.0.0 --port 8000
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from printshop.api.routes import router
from printshop.api.account_routes import account_router, rule_router
from printshop.api.expense_routes import cron_router, expense_router
from printshop.api.material_routes import material_router
from printshop.api.notification_routes import notification_router
from printshop.api.order_routes import client_router, order_router
from printshop.api.settings_routes import settings_router
from printshop.core.config import settings
from printshop.core.database import create_db_and_tables
from printshop.core.errors import AppError, ValidationError, app_error_handler
from printshop.core.logging import setup_logging


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown hooks."""
    setup_logging()
    logger.info("Starting print-shop back office …")
    create_db_and_tables()
    logger.info("Database tables ready")
    yield
    logger.info("Print-shop back office shut down")


app = FastAPI(
    title="Print Shop Back Office API",
    description="Orders, material purchases, expenses and account allocations for a print shop",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS – allow frontend dev server
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(AppError, app_error_handler)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Body/query validation failures use the same envelope as ValidationError."""
    err = ValidationError(
        "Invalid request",
        details=[
            {"loc": list(e.get("loc", ())), "msg": e.get("msg", "")} for e in exc.errors()
        ],
    )
    return JSONResponse(status_code=err.status_code, content=err.to_dict())


app.include_router(router)
app.include_router(account_router)
app.include_router(rule_router)
app.include_router(settings_router)
app.include_router(client_router)
app.include_router(order_router)
app.include_router(material_router)
app.include_router(expense_router)
app.include_router(cron_router)
app.include_router(notification_router)


@app.get("/")
def root():
    return {"message": "Print Shop Back Office API", "docs": "/docs"}
