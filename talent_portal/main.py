"""
Talent Portal - Main Application

FastAPI backend with:
- MongoDB for every record (tenants, RQs, candidates, applications)
- Gemini (OpenAI-compatible API) for CV matching and document extraction
- JWT authentication for staff, magic-link sessions for candidates
- Indeed / LinkedIn job feeds

Run: uvicorn talent_portal.main:app --reload
"""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from talent_portal import __version__
from talent_portal.api import api_router
from talent_portal.core.config import get_settings
from talent_portal.core.exceptions import (
    ServiceException,
    service_exception_handler,
    http_exception_handler,
    general_exception_handler,
)
from talent_portal.core.rate_limit import rate_limiter
from talent_portal.db.mongodb import init_mongo_indexes, test_mongo_connection

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="Talent Portal",
    description="""
    Multi-tenant recruitment backend.

    ## Features
    - **Tenants**: Holdings, marcas and tiendas with staff users per role
    - **RQs**: Requisitions with a multi-level approval chain
    - **Portal**: Candidate registration, magic links, applications and interview booking
    - **Feeds**: Indeed XML, LinkedIn XML and schema.org JobPosting
    - **AI**: CV matching, CV parsing, DNI and CUL extraction
    - **Analytics**: Recruitment funnel per marca
    """,
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Uniform error bodies
app.add_exception_handler(ServiceException, service_exception_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(Exception, general_exception_handler)

# Include API routes
app.include_router(api_router, prefix="/api")


@app.on_event("startup")
async def startup_event():
    """Initialize MongoDB indexes."""
    try:
        init_mongo_indexes()
    except Exception as e:
        logger.warning(f"MongoDB index initialization failed: {e}")


@app.on_event("shutdown")
async def shutdown_event():
    rate_limiter.reset()


@app.get("/health", tags=["Health"])
async def health_check():
    return {
        "status": "healthy",
        "version": __version__,
        "mongodb": "connected" if test_mongo_connection() else "disconnected"
    }
