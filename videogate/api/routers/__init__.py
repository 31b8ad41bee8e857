"""
Videogate • HTTP routers

Only one public surface today: `video` (metadata + stream).
"""

from .video import router as video_router

__all__ = ["video_router"]
