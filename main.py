from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger
from streamhub.core.config import settings
from streamhub.api.mcp import router as mcp_router
from streamhub.services.realdebrid import credentials, realdebrid_service

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting {settings.PROJECT_NAME} v{settings.VERSION}")
    if credentials.reload():
        logger.info("Real-Debrid API token loaded")
    else:
        logger.warning("No Real-Debrid API token configured; set one with the set_token tool")
    yield
    await realdebrid_service.aclose()

app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    lifespan=lifespan,
)

# CORS (the browser UI is served from another origin during development)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.get("/")
async def root():
    return {"message": f"{settings.PROJECT_NAME} is running"}

app.include_router(mcp_router, prefix="/mcp")
