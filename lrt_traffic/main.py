"""FastAPI application setup for the LRT traffic dashboard backend."""

from contextlib import asynccontextmanager

from fastapi import FastAPI

from .api import dashboard, router as api_router


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """Run the range controllers for as long as the app is up."""
    dashboard.start()
    try:
        yield
    finally:
        await dashboard.stop()


app = FastAPI(title="LRT Traffic Dashboard", lifespan=lifespan)

# API routes
app.include_router(api_router, prefix="/v1")
