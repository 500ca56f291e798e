from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api import ai, health, transactions, vault
from .config import settings
from .core.execution import get_transaction_submitter
from .logging_config import setup_logging


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    submitter = get_transaction_submitter()
    if settings.queue_autostart:
        await submitter.start()
    try:
        yield
    finally:
        await submitter.close()


# Create FastAPI app
app = FastAPI(
    title="Susu Relay API",
    description="Group-savings vault backend with a nonce-ordered transaction relay",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router, tags=["Health"])
app.include_router(transactions.router, tags=["Transactions"])
app.include_router(vault.router, tags=["Vault"])
app.include_router(ai.router, tags=["AI"])


@app.get("/")
async def root():
    """Root endpoint with basic info"""
    return {
        "name": "Susu Relay API",
        "version": "0.1.0",
        "docs": "/docs",
        "health": "/api/health"
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "susu.main:app",
        host=settings.host,
        port=settings.port,
        reload=True,
        log_level=settings.log_level.lower()
    )
