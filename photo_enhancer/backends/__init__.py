from photo_enhancer.backends.base import (
    INPAINT_INSERT,
    INPAINT_REMOVE,
    ConversationTurn,
    EditResult,
    InpaintingBackend,
    ModelClient,
    MultimodalBackend,
)
from photo_enhancer.backends.gemini import GeminiImageClient
from photo_enhancer.backends.imagen import ImagenClient
from photo_enhancer.config import EnhancementConfig


def build_model_client(config: EnhancementConfig) -> ModelClient:
    """Create the facade from configuration; Imagen is attached only when configured."""
    gemini = GeminiImageClient(
        config.gemini_api_key,
        image_model=config.gemini_image_model,
        analysis_model=config.gemini_analysis_model,
        max_retries=config.request_retries,
    )
    imagen = None
    if config.inpainting_configured:
        imagen = ImagenClient(
            config.vertex_project,
            config.vertex_location,
            config.vertex_access_token,
            model=config.imagen_model,
        )
    return ModelClient(gemini, imagen)


__all__ = [
    "INPAINT_INSERT",
    "INPAINT_REMOVE",
    "ConversationTurn",
    "EditResult",
    "GeminiImageClient",
    "ImagenClient",
    "InpaintingBackend",
    "ModelClient",
    "MultimodalBackend",
    "build_model_client",
]
