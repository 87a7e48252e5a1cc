# snippet_runner/main.py
import logging

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import settings

logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

from .api.endpoints import execution  # noqa: E402

app = FastAPI(title="Snippet Runner", version="1.0.0")

# CORS for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(execution.router)

@app.get("/")
async def root():
    return {"message": "Snippet Runner API", "version": "1.0.0"}

@app.get("/health")
async def health():
    return {"status": "healthy", "service": "snippet-runner"}


def run():
    """Serve the API with uvicorn (``snippet-runner`` console script)."""
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    run()
