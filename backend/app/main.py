from dotenv import load_dotenv
import pathlib

# Load .env from backend folder (parent of app)
env_path = pathlib.Path(__file__).parent.parent / '.env'
load_dotenv(env_path)
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import asyncio
import logging
import os
import sys
from contextlib import asynccontextmanager

from memory_agent import MemoryConfig, __version__
import memory_api
from memory_api import router as memory_router

# ===== WINDOWS FIX FOR PLAYWRIGHT =====
# Fix for Windows: Playwright needs ProactorEventLoop on Windows
if sys.platform == 'win32':
    asyncio.set_event_loop_policy(asyncio.WindowsProactorEventLoopPolicy())
# ======================================

config = MemoryConfig.from_env()
logging.basicConfig(
    level=getattr(logging, config.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    # Close the browser session if an agent was ever created and is still open
    tools = memory_api._tools
    if tools is not None and tools.agent.driver.is_active:
        logger.info("Closing browser session on shutdown")
        await tools.close_session()


app = FastAPI(title="Browser Sequence Memory", version=__version__, lifespan=lifespan)

# CORS Configuration
# In production, set CORS_ORIGINS environment variable to comma-separated allowed origins
cors_origins_env = os.getenv("CORS_ORIGINS", "")
if cors_origins_env:
    allowed_origins = [origin.strip() for origin in cors_origins_env.split(",")]
else:
    # Development defaults - localhost only
    allowed_origins = [
        "http://localhost:5173",
        "http://localhost:3000",
        "http://127.0.0.1:5173",
        "http://127.0.0.1:3000",
    ]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Accept"],
)

# Include routers
app.include_router(memory_router)


@app.get("/")
async def root():
    return {"name": "Browser Sequence Memory", "version": __version__, "docs": "/docs"}

