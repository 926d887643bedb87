"""
Nexus Compliance - FastAPI Application Entry Point

This is the main entry point for the FastAPI application.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import settings
from app.database import close_db, init_db
from app.utils.error_handling import setup_exception_handlers

# Configure logging
logging.basicConfig(
    level=logging.INFO if not settings.debug else logging.DEBUG,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for FastAPI.
    Handles startup and shutdown events.
    """
    logger.info(f"Starting {settings.app_name}...")
    logger.info(f"Environment: {settings.app_env}")

    # Initialize database (dev only - use migrations in production)
    if settings.is_development:
        await init_db()
        logger.info("Database tables initialized")

    if not settings.openai_configured:
        logger.warning("OPENAI_API_KEY is not set; dashboard sections will use fallback data")

    yield

    logger.info(f"Shutting down {settings.app_name}...")
    await close_db()
    logger.info("Database connections closed")


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    description="Economic nexus monitoring and compliance dashboards for CPA firms",
    version=settings.app_version,
    docs_url="/api/docs" if settings.is_development else None,
    redoc_url="/api/redoc" if settings.is_development else None,
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

setup_exception_handlers(app)


# ===========================================
# API ROUTES
# ===========================================

@app.get("/api")
async def api_info():
    """API information endpoint."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "status": "running",
        "environment": settings.app_env,
        "api_docs": "/api/docs" if settings.is_development else "disabled",
        "endpoints": {
            "auth": "/api/auth",
            "dashboards": "/api/dashboards",
            "personalizedDashboard": "/api/personalized-dashboard",
            "nexus": "/api/nexus",
            "riskPortfolio": "/api/risk-portfolio",
            "roleDashboards": "/api/role-dashboards",
            "memos": "/api/memos",
            "nexusMemos": "/api/nexus-memos",
            "audit": "/api/audit",
            "pii": "/api/pii",
        },
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "service": settings.app_name,
        "version": settings.app_version,
        "openaiConfigured": settings.openai_configured,
    }


# ===========================================
# INCLUDE ROUTERS
# ===========================================

from app.routers import (  # noqa: E402
    auth,
    dashboards,
    personalized_dashboard,
    nexus,
    risk_portfolio,
    role_dashboards,
    memos,
    nexus_memos,
    audit,
    pii,
    doctrine_rules,
    statutes,
    approvals,
)

app.include_router(auth.router, prefix="/api/auth", tags=["Authentication"])
app.include_router(dashboards.router, prefix="/api/dashboards", tags=["Dashboards"])
app.include_router(personalized_dashboard.router, prefix="/api/personalized-dashboard", tags=["Personalized Dashboard"])
app.include_router(nexus.router, prefix="/api/nexus", tags=["Nexus"])
app.include_router(risk_portfolio.router, prefix="/api/risk-portfolio", tags=["Risk Portfolio"])
app.include_router(role_dashboards.router, prefix="/api/role-dashboards", tags=["Role Dashboards"])
app.include_router(memos.router, prefix="/api/memos", tags=["Nexus Memos"])
app.include_router(nexus_memos.router, prefix="/api/nexus-memos", tags=["Nexus Memo Workflow"])
app.include_router(audit.router, prefix="/api/audit", tags=["Audit Trail"])
app.include_router(pii.router, prefix="/api/pii", tags=["PII Detection"])
app.include_router(doctrine_rules.router, prefix="/api/doctrine-rules", tags=["Doctrine Rules"])
app.include_router(statutes.router, prefix="/api/statutes", tags=["Statute Overrides"])
app.include_router(approvals.router, prefix="/api/approvals", tags=["Approvals"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.is_development,
    )
