"""FastAPI application definition."""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from clibridge import __version__

from .deps import lifespan
from .routes import api_router, callback_router

app = FastAPI(
    title="clibridge",
    description="Browser-mediated login and API keys for command line tools",
    version=__version__,
    lifespan=lifespan,
    redirect_slashes=False,  # Prevent 307 redirects that lose auth headers
)

# CORS middleware for the provider selection page
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(api_router, prefix="/api/v1")
app.include_router(callback_router)


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy"}


if __name__ == "__main__":
    import os

    import uvicorn

    uvicorn.run(
        "clibridge.entrypoints.api.app:app",
        host=os.getenv("HOST", "127.0.0.1"),
        port=int(os.getenv("PORT", "8000")),
    )
