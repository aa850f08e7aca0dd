from fastapi import APIRouter, Request

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(request: Request):
    toolkit = getattr(request.app.state, "media_toolkit", None)
    return {
        "status": "ok",
        "ffmpeg_loaded": bool(toolkit and toolkit.is_loaded),
    }
