# Elastic License 2.0
# Copyright (c) 2025 sliptonic
# SPDX-License-Identifier: Elastic-2.0

"""
Main FastAPI application entry point.

This module creates and configures the FastAPI application.

Assumptions:
- API versioning is handled via path prefix
- Database schema is created on startup if missing
"""
import uvicorn
from fastapi import FastAPI

from assent.api.auth import router as auth_router
from assent.config import settings
from assent.logging_utils import log_application_event
from assent.strategies.registry import available_providers


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.
    
    Returns:
        FastAPI: Configured FastAPI application instance
    """
    from assent.database.session import init_db
    init_db()
    
    app = FastAPI(
        title="Assent",
        description="OAuth2 provider sign-in and identity linking",
        version="0.1.0",
        docs_url=f"/api/{settings.api_version}/docs",
        redoc_url=f"/api/{settings.api_version}/redoc",
        openapi_url=f"/api/{settings.api_version}/openapi.json",
    )
    
    @app.get("/api/health")
    async def health_check():
        """API health check endpoint.
        
        Returns:
            dict: Service status and the providers that are configured
        """
        return {
            "service": "assent",
            "version": "0.1.0",
            "status": "running",
            "providers": sorted(
                name for name in settings.providers if name in available_providers()
            ),
        }
    
    app.include_router(auth_router)
    
    log_application_event("app_created", providers=sorted(settings.providers))
    
    return app


def cli() -> None:
    """Run the API server with uvicorn."""
    uvicorn.run(
        "assent.main:create_app",
        factory=True,
        host=settings.api_host,
        port=settings.api_port,
    )


if __name__ == "__main__":
    cli()
