"""
Route handlers for candidate model listing.
"""
from fastapi import APIRouter
from config import Config
from services.relay_service import resolve_dialect

router = APIRouter()

@router.get("/models")
async def list_models():
    """List the configured candidate models in the order they are attempted."""
    models = [
        {"model": model_id, "dialect": resolve_dialect(model_id).value}
        for model_id in Config.candidate_models()
    ]
    return {"models": models}
