"""FastAPI application entry point."""
import logging
import os

from dotenv import load_dotenv
from fastapi import FastAPI

from api.routes import router

load_dotenv()

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

app = FastAPI(title="FlyBy Views API", version="0.1.0")
app.include_router(router)
