"""
Design generation: planning call, concurrent image synthesis, aspect-ratio restore.

Flow for one request:
1. Letterbox the upload into a square for the image model
2. Planning call (text) with maps grounding -> N design plans + store chunks
3. One image-synthesis call per plan, all issued before any is awaited
4. Crop every synthesized square back to the upload's aspect ratio

All N designs are returned or the whole call fails.
"""
import asyncio
import logging
import time
from typing import Optional

from core.config import Settings, settings as default_settings
from core.exceptions import ImagePartMissingError
from services.genai_client import GenAIClient
from services.grounding import extract_grounding_references
from services.image_codec import TransmittableImage, decode_from_transmission, encode_for_transmission
from services.image_geometry import crop_to_original_aspect, letterbox_to_square
from services.plan_parser import parse_design_plans
from services.staging_models import (
    CoordinatesLocation,
    DesignPlan,
    DesignResult,
    GenerationOutcome,
    LocationInput,
    UploadedImage,
)
from services.staging_prompts import StagingPrompts

logger = logging.getLogger(__name__)

IMAGE_ONLY = ["IMAGE"]


class DesignGenerationService:
    """Generates redesigned room images for an uploaded photo"""

    def __init__(self, genai_client: GenAIClient, settings: Optional[Settings] = None):
        self.genai_client = genai_client
        self.settings = settings or default_settings
        if self.settings.design_count not in (1, 2):
            raise ValueError(f"design_count must be 1 or 2, got {self.settings.design_count}")

    async def generate_designs(self, image: UploadedImage, location: LocationInput = None) -> GenerationOutcome:
        """
        Produce design_count redesigned images of the room.

        Args:
            image: The uploaded room photo
            location: Coordinates, a place query, or None

        Returns:
            GenerationOutcome with designs in planning order and store references

        Raises:
            PlanParseError: planning response malformed or wrong concept count
            ImagePartMissingError: a synthesis call returned no image
            RemoteGenerationError: the remote service failed
        """
        start_time = time.time()
        target_size = self.settings.letterbox_size
        logger.info(
            f"Generating {self.settings.design_count} designs for {image.width}x{image.height} {image.mime_type} upload"
        )

        letterboxed = letterbox_to_square(
            image.content,
            target_size=target_size,
            background=self.settings.letterbox_background,
            quality=self.settings.jpeg_quality,
        )
        square_image = encode_for_transmission(letterboxed, "image/jpeg")

        plans, grounding_chunks = await self._plan_designs(square_image, location)

        # Issue every synthesis call before awaiting any; gather fails the batch on the first error
        results = await asyncio.gather(*(self._synthesize_design(square_image, plan, image) for plan in plans))

        references = extract_grounding_references(grounding_chunks)
        logger.info(
            f"Generated {len(results)} designs with {len(references)} store references in {time.time() - start_time:.2f}s"
        )
        return GenerationOutcome(designs=list(results), grounding_references=references)

    async def _plan_designs(self, square_image: TransmittableImage, location: LocationInput):
        design_count = self.settings.design_count
        coordinates = location if isinstance(location, CoordinatesLocation) else None

        response = await self.genai_client.generate_content(
            self.settings.planning_model,
            [square_image, *StagingPrompts.planning_user_prompt(design_count, location)],
            system_instruction=StagingPrompts.planning_system_instruction(design_count, self.settings.plan_format),
            use_maps_grounding=self.settings.use_maps_grounding,
            coordinates=coordinates,
            temperature=self.settings.planning_temperature,
        )

        plans = parse_design_plans(response.text, design_count, self.settings.plan_format)
        logger.info(f"Planned designs: {[plan.title for plan in plans]}")
        return plans, response.grounding_chunks

    async def _synthesize_design(
        self, square_image: TransmittableImage, plan: DesignPlan, original: UploadedImage
    ) -> DesignResult:
        response = await self.genai_client.generate_content(
            self.settings.image_model,
            [square_image, StagingPrompts.design_image_prompt(plan)],
            response_modalities=IMAGE_ONLY,
        )

        generated = response.first_inline_image()
        if generated is None:
            logger.error(f"No inline image returned for design '{plan.title}'")
            raise ImagePartMissingError(plan.title)

        cropped = crop_to_original_aspect(
            generated.to_bytes(),
            original.width,
            original.height,
            target_size=self.settings.letterbox_size,
            quality=self.settings.jpeg_quality,
        )
        restored = encode_for_transmission(cropped, "image/jpeg")
        return DesignResult(
            design_title=plan.title,
            design_description=plan.description,
            redesigned_image_url=decode_from_transmission(restored.payload, restored.mime_type),
        )
