from __future__ import annotations

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from app.handlers import posts_handler, scheduled_handler
from app.services.storage import storage_service

app = FastAPI(title="Inkwell CMS API")

app.include_router(posts_handler.router)
app.include_router(scheduled_handler.router)

# Canonical /uploads/<filename> URLs are served straight from the primary root
storage_service.ensure_root()
app.mount("/uploads", StaticFiles(directory=storage_service.root), name="uploads")


@app.get("/healthz")
async def healthz():
    return {"status": "ok"}
