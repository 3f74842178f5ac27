"""
Free-text edits of an already generated design image
"""
import logging
from typing import Optional

from core.config import Settings, settings as default_settings
from core.exceptions import EditImagePartMissingError
from services.genai_client import GenAIClient
from services.image_codec import decode_from_transmission, parse_transmittable_from_reference

logger = logging.getLogger(__name__)


class ImageEditService:
    """Applies a text instruction to an image with the image model"""

    def __init__(self, genai_client: GenAIClient, settings: Optional[Settings] = None):
        self.genai_client = genai_client
        self.settings = settings or default_settings

    async def edit_image(self, base_image_url: str, instruction: str) -> str:
        """
        Edit an image with a free-text instruction.

        The image is sent as-is; edits keep the shape of their input, so no
        letterboxing or cropping is applied.

        Args:
            base_image_url: data URI of the image to edit
            instruction: The user's edit instruction, sent verbatim as the prompt

        Returns:
            data URI of the edited image
        """
        base_image = parse_transmittable_from_reference(base_image_url)
        logger.info(f"Editing {base_image.mime_type} image: {instruction[:100]!r}")

        response = await self.genai_client.generate_content(
            self.settings.image_model,
            [base_image, instruction],
            response_modalities=["IMAGE"],
        )

        edited = response.first_inline_image()
        if edited is None:
            logger.error("Edit call returned no inline image")
            raise EditImagePartMissingError()

        return decode_from_transmission(edited.payload, edited.mime_type)
