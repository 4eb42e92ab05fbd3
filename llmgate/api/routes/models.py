"""Models listing endpoint - OpenAI compatible."""

import logging
import time

from ...core.registry import get_settings

logger = logging.getLogger("llmgate")


async def list_models() -> dict:
    """List configured model aliases in OpenAI API format.

    GET /models
    """
    logger.info("Received models list request")

    settings = get_settings()
    created = int(time.time())
    models = [
        {
            "id": model.name,
            "object": "model",
            "owned_by": settings.owned_by,
            "created": created,
            "owned": True,
        }
        for model in settings.registry.models
    ]
    return {"object": "list", "data": models}
