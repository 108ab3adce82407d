import logging
import os

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .database import init_db
from .errors import BookingError, InvalidTransition
from .routers import admin, auth, catalog, reservations

logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))
logger = logging.getLogger(__name__)

# Create tables
init_db()

app = FastAPI(title="Vet Clinic Booking System", version="1.0.0")

app.include_router(auth.router)
app.include_router(catalog.router)
app.include_router(catalog.admin_router)
app.include_router(reservations.router)
app.include_router(admin.router)


@app.exception_handler(BookingError)
async def booking_error_handler(request: Request, exc: BookingError):
    """Render engine errors as {kind, detail} with their own status code"""
    if isinstance(exc, InvalidTransition):
        logger.error(f"Integrity error on {request.method} {request.url.path}: {exc.message}")
    else:
        logger.info(f"{exc.kind} on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.get("/")
def root():
    """Service status"""
    return {"service": app.title, "version": app.version, "status": "ok"}
