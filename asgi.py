"""
asgi.py -- Application assembly for Tradepost.

Joins the JSON API with the static avatar files it hands out URLs for.
api/main.py knows nothing about where avatars are served from; core/media.py
only writes them to MEDIA_DIR.

Run with:  uvicorn asgi:app --reload
"""

from pathlib import Path

from fastapi.staticfiles import StaticFiles

from api.main import app, settings

# Serve uploaded avatars at MEDIA_BASE_URL. The directory must exist before
# StaticFiles checks it, which AvatarStore would otherwise do at startup.
Path(settings.media_dir).mkdir(parents=True, exist_ok=True)
app.mount(settings.media_base_url, StaticFiles(directory=settings.media_dir), name="media")
