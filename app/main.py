"""
University Consistency Engine - Main Application

FastAPI backend with:
- Link reconciliation for every many-to-many relation
- Year advancement and exam period checks
- Notification audience resolution and delivery
- MongoDB or the university REST service as the entity store

Run: uvicorn app.main:app --reload
"""

import logging

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pymongo.errors import PyMongoError

from app.api.routes import api_router
from app.core.config import get_settings
from app.db.mongodb import init_mongo_indexes
from app.services.store import EntityStore, get_entity_store

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="University Consistency Engine",
    description="""
    Keeps university records consistent across independently stored documents.

    ## Features
    - **Relations**: reconcile a relation to a desired set, retry failed edges
    - **Administration**: department, major, subject and professor forms
    - **Students**: year advancement eligibility
    - **Exams**: exam periods, sessions and grades
    - **Notifications**: audience preview and delivery

    ## Outcomes
    Every form returns success, partial_failure (saved, some edges not
    synced) or failure (nothing saved).
    """,
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    debug=settings.debug
)

# CORS middleware (allow all for development)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(api_router, prefix="/api")


# Startup event
@app.on_event("startup")
async def startup_event():
    """Initialize MongoDB indexes on startup."""
    if settings.store_backend != "mongo":
        return
    try:
        init_mongo_indexes()
        logger.info("MongoDB indexes initialized")
    except PyMongoError as e:
        logger.warning("MongoDB index initialization failed: %s", e)


@app.get("/", tags=["Health"])
async def root():
    return {"status": "healthy", "app": "University Consistency Engine"}


@app.get("/health", tags=["Health"])
def health_check(store: EntityStore = Depends(get_entity_store)):
    """Store connectivity check."""
    connected = store.ping()
    return {
        "status": "healthy" if connected else "degraded",
        "store_backend": settings.store_backend,
        "store": "connected" if connected else "disconnected"
    }
