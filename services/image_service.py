"""Image generation for portraits, crime scenes and the case map.

Uses HuggingFace Inference API with the fal-ai provider. The service returns
PNG bytes; storing them is the job of `services.media_storage`.
"""

import io
import logging
from typing import Optional, Protocol

from huggingface_hub import InferenceClient

from config.settings import get_env_settings

logger = logging.getLogger(__name__)

ART_STYLE = (
    "moody noir illustration, cinematic lighting, muted palette, "
    "detailed painterly texture, investigation game art"
)


class ImageGenerator(Protocol):
    def generate_image(self, prompt: str) -> Optional[bytes]:
        ...


def portrait_prompt(name: str, role: str, personality: str, setting: str) -> str:
    return (
        f"Head-and-shoulders character portrait of {name}, {role}. "
        f"Personality: {personality}. Costume and background fit the setting: {setting}. "
        f"{ART_STYLE}"
    )


def scene_prompt(location: str, setting: str, detail: str = "") -> str:
    focus = f" Close attention to: {detail}." if detail else ""
    return (
        f"Crime scene photograph of {location} in {setting}. "
        f"No people visible.{focus} {ART_STYLE}"
    )


class ImageService:
    """Text-to-image client."""

    def __init__(self, hf_token: Optional[str] = None, model: Optional[str] = None):
        """Initialize the image service.

        Args:
            hf_token: HuggingFace API token. Falls back to HF_TOKEN env var.
            model: Model id. Falls back to IMAGE_MODEL env var.
        """
        settings = get_env_settings()
        self.hf_token = hf_token or settings.hf_token
        self.model = model or settings.image_model
        self._client = None

    @property
    def is_available(self) -> bool:
        """Check if image generation is available."""
        return bool(self.hf_token)

    @property
    def client(self):
        """Lazy-load the HuggingFace client."""
        if self._client is None and self.is_available:
            self._client = InferenceClient(provider="fal-ai", api_key=self.hf_token)
            logger.info("HuggingFace InferenceClient initialized")
        return self._client

    def generate_image(self, prompt: str, width: int = 1024, height: int = 576) -> Optional[bytes]:
        """Generate an image and return it as PNG bytes, or None on error."""
        if not self.client:
            logger.warning("Image client not available")
            return None

        try:
            image = self.client.text_to_image(prompt, model=self.model, width=width, height=height)
        except Exception as e:
            logger.error("Error generating image: %s", e)
            return None

        buffer = io.BytesIO()
        image.save(buffer, format="PNG")
        logger.info("Generated image (%d bytes) for prompt: %.60s...", buffer.tell(), prompt)
        return buffer.getvalue()


# Global image service instance
_image_service: Optional[ImageService] = None


def get_image_service() -> ImageService:
    """Get or create the global image service."""
    global _image_service
    if _image_service is None:
        _image_service = ImageService()
    return _image_service
