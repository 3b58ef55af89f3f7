from fastapi import FastAPI
from .database import engine, Base
from .routers import projects, settings as panel_settings
from .config import get_settings
import asyncio
import logging
import os

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

app = FastAPI(title="SupaPanel API")


# Create tables
@app.on_event("startup")
async def startup():
    # Retry database connection up to 5 times with exponential backoff
    max_retries = 5
    for attempt in range(max_retries):
        try:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            logger.info("Database tables created successfully")
            break
        except Exception as e:
            if attempt < max_retries - 1:
                wait_time = 2 ** attempt  # 1, 2, 4, 8 seconds
                logger.warning(f"Database connection attempt {attempt + 1} failed: {type(e).__name__}: {str(e) or 'No error message'}")
                logger.info(f"Retrying in {wait_time} seconds...")
                await asyncio.sleep(wait_time)
            else:
                logger.error(f"Failed to connect to database after {max_retries} attempts: {type(e).__name__}: {str(e) or 'No error message'}")
                raise

    os.makedirs(settings.resolved_projects_path, exist_ok=True)
    os.makedirs(settings.resolved_traefik_dynamic_path, exist_ok=True)
    logger.info(f"Panel mode: {settings.mode}")
    logger.info(f"Routing config directory: {settings.resolved_traefik_dynamic_path}")


app.include_router(projects.router, prefix="/api/projects", tags=["projects"])
app.include_router(panel_settings.router, prefix="/api/settings", tags=["settings"])


@app.get("/health")
async def health_check():
    return {"status": "healthy", "service": "supapanel"}
