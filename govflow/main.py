import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from govflow.config import settings
from govflow.database import connect_to_mongo, close_mongo_connection
from govflow.dependencies import get_catalog
from govflow.routes import applications_router, eligibility_router, forms_router, services_router
from govflow.services import CatalogIndex

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    if settings.storage_backend == "mongo":
        await connect_to_mongo()
    if settings.catalog_path:
        snapshot = get_catalog().load_file(settings.catalog_path)
        logger.info(f"Catalog version {snapshot.catalog_version} ready with {len(snapshot.services)} services")
    else:
        logger.warning("CATALOG_PATH not set; catalog is empty until one is published")
    yield
    # Shutdown
    if settings.storage_backend == "mongo":
        await close_mongo_connection()
        logger.info("Disconnected from MongoDB")


app = FastAPI(
    title=settings.app_name,
    description="Eligibility matching, guided form filling and submission for government services",
    version=settings.app_version,
    debug=settings.debug,
    lifespan=lifespan
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(services_router, prefix=settings.api_prefix)
app.include_router(eligibility_router, prefix=settings.api_prefix)
app.include_router(forms_router, prefix=settings.api_prefix)
app.include_router(applications_router, prefix=settings.api_prefix)


@app.get("/")
async def root():
    return {"message": f"{settings.app_name} is running", "version": settings.app_version}


@app.get("/health")
async def health_check(catalog: CatalogIndex = Depends(get_catalog)):
    """Health check endpoint"""
    return {
        "status": "healthy",
        "service": "govflow",
        "storage_backend": settings.storage_backend,
        "catalog_version": catalog.catalog_version
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("govflow.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
