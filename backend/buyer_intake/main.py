"""Main FastAPI application for the buyer lead intake API."""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging

# Import database and models first so every table is registered on Base
from buyer_intake.database import Base, create_tables
from buyer_intake import models  # noqa: F401
from buyer_intake import __version__
from buyer_intake.config import settings
from buyer_intake.errors import BuyerIntakeError, InternalError, ValidationError
from buyer_intake.routers import auth, buyers, filters, reports

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="Buyer Lead Intake API",
    description="Buyer lead capture, search, import/export and audit history",
    version=__version__,
    redirect_slashes=False
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================
# ERROR HANDLERS
# ============================================

def error_response(error: BuyerIntakeError) -> JSONResponse:
    return JSONResponse(
        status_code=error.status_code,
        content=error.to_dict(),
        headers=error.headers(),
    )


@app.exception_handler(BuyerIntakeError)
async def buyer_intake_error_handler(request: Request, exc: BuyerIntakeError):
    return error_response(exc)


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    # Malformed requests share the 400 shape of field validation failures
    return error_response(ValidationError.from_pydantic(exc.errors()))


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return error_response(InternalError())


# ============================================
# ROUTER REGISTRATION
# ============================================

app.include_router(auth.router, prefix="/api/auth", tags=["Authentication"])
app.include_router(buyers.router, prefix="/api/buyers", tags=["Buyers"])
app.include_router(filters.router, prefix="/api/filters", tags=["Filters"])
app.include_router(reports.router, prefix="/api/reports", tags=["Reports"])


# ============================================
# HEALTH & ROOT ENDPOINTS
# ============================================

@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "version": __version__,
        "environment": settings.ENVIRONMENT,
        "registered_tables": len(Base.metadata.tables),
    }


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Buyer Lead Intake API",
        "version": __version__,
        "docs": "/docs",
        "health": "/health"
    }


# ============================================
# STARTUP & SHUTDOWN
# ============================================

@app.on_event("startup")
async def startup_event():
    """Run on application startup."""
    logger.info("Starting Buyer Lead Intake API...")
    if settings.AUTO_CREATE_TABLES:
        await create_tables()
        logger.info(f"Ensured {len(Base.metadata.tables)} tables: {sorted(Base.metadata.tables.keys())}")
    logger.info("Application started successfully!")


@app.on_event("shutdown")
async def shutdown_event():
    """Run on application shutdown."""
    logger.info("Shutting down Buyer Lead Intake API...")
