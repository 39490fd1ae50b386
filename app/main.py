from fastapi import FastAPI, Depends, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from app.config import settings
from app.database import Database
from app.features.auth.dependencies import authenticate_request
from app.features.auth.router import router as auth_router
from app.features.patients.router import router as patients_router
from app.features.doctors.router import router as doctors_router
from app.features.connections.router import router as connections_router
from app.features.health_data.router import router as health_data_router
from app.features.appointments.router import router as appointments_router
from app.features.medical_records.router import router as medical_records_router
from app.features.notifications.router import router as notifications_router
from app.routers import health_router
from app.shared.exceptions import AppException
from app.shared.schemas import ErrorResponse
from app.core.logging import logger


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan events for FastAPI application."""
    # Startup
    logger.info("Starting Remote Patient Monitoring API...")
    await Database.connect_db()
    logger.info("Application started successfully")

    yield

    # Shutdown
    logger.info("Shutting down...")
    await Database.close_db()
    logger.info("Application shutdown complete")


# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    description="Remote patient monitoring backend: vitals, doctor-patient access, records and scheduling",
    version="1.0.0",
    lifespan=lifespan,
    dependencies=[Depends(authenticate_request)],
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AppException)
async def app_exception_handler(request: Request, exc: AppException):
    """Render API errors as ``{success: false, kind, message}``."""
    body = ErrorResponse(kind=exc.kind, message=str(exc.detail))
    return JSONResponse(
        status_code=exc.status_code,
        content=body.model_dump(exclude_none=True),
        headers=getattr(exc, "headers", None),
    )


# Register routers
app.include_router(health_router)
app.include_router(auth_router, prefix=settings.API_V1_PREFIX)
app.include_router(patients_router, prefix=settings.API_V1_PREFIX)
app.include_router(doctors_router, prefix=settings.API_V1_PREFIX)
app.include_router(connections_router, prefix=settings.API_V1_PREFIX)
app.include_router(health_data_router, prefix=settings.API_V1_PREFIX)
app.include_router(appointments_router, prefix=settings.API_V1_PREFIX)
app.include_router(medical_records_router, prefix=settings.API_V1_PREFIX)
app.include_router(notifications_router, prefix=settings.API_V1_PREFIX)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Welcome to Remote Patient Monitoring API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
    }
