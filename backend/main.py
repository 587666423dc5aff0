"""
ClaimPortal Backend - Main Application Entry Point
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from claimportal.api.errors import register_exception_handlers
from claimportal.api.routes import claims, policies
from claimportal.core import logger, settings
from claimportal.db import Base, SessionLocal, engine
from claimportal.db.seed import seed_demo_data


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle management."""
    # Startup
    logger.info(f"Starting {settings.APP_NAME} in {settings.APP_ENV} mode")
    if settings.APP_ENV == "development":
        Base.metadata.create_all(bind=engine)
        if settings.SEED_DEMO_DATA:
            db = SessionLocal()
            try:
                seed_demo_data(db)
            finally:
                db.close()
    yield
    # Shutdown
    logger.info("Shutting down...")


app = FastAPI(
    title=settings.APP_NAME,
    description="Device Insurance Claim Intake and Adjudication",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS Configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://localhost:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# Include API Routers
app.include_router(policies.router, prefix="/policies", tags=["Policies"])
app.include_router(claims.router, prefix="/claims", tags=["Claims"])


@app.get("/")
async def root():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "app": settings.APP_NAME,
        "env": settings.APP_ENV,
    }
