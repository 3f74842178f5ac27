"""
Furniture identification with local purchase suggestions.

The model's bounding boxes are untrusted input: they are clamped into the
image before being returned.
"""
import logging
from typing import Any, Dict, List, Optional

from core.config import Settings, settings as default_settings
from core.exceptions import IdentificationParseError
from services.genai_client import GenAIClient
from services.image_codec import parse_transmittable_from_reference
from services.plan_parser import extract_json_object
from services.staging_models import (
    BoundingBox,
    CoordinatesLocation,
    IdentifiedObject,
    LocationInput,
    ProductSuggestion,
)
from services.staging_prompts import StagingPrompts

logger = logging.getLogger(__name__)


def _fraction(value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if number != number:  # NaN
        return 0.0
    return min(max(number, 0.0), 1.0)


def sanitize_bounding_box(raw: Any) -> Optional[BoundingBox]:
    """
    Clamp a model-supplied box into the unit square.

    Returns None when nothing of the box is left inside the image.
    """
    if not isinstance(raw, dict):
        return None
    top = _fraction(raw.get("top"))
    left = _fraction(raw.get("left"))
    width = min(_fraction(raw.get("width")), 1.0 - left)
    height = min(_fraction(raw.get("height")), 1.0 - top)
    if width <= 0 or height <= 0:
        return None
    return BoundingBox(top=top, left=left, width=width, height=height)


def _parse_products(raw_products: Any) -> List[ProductSuggestion]:
    products = []
    for raw in raw_products if isinstance(raw_products, list) else []:
        if not isinstance(raw, dict):
            continue
        name = str(raw.get("productName") or "").strip()
        if not name:
            continue
        products.append(
            ProductSuggestion(
                product_name=name,
                store_name=str(raw.get("storeName") or "").strip(),
                product_url=str(raw.get("productUrl") or "").strip(),
            )
        )
    return products


def parse_identified_objects(text: str) -> List[IdentifiedObject]:
    """Parse the identification JSON, dropping entries that cannot be displayed."""
    data: Optional[Dict[str, Any]] = extract_json_object(text)
    if data is None or not isinstance(data.get("objects"), list):
        logger.error(f"Identification response has no 'objects' array: {text[:500]!r}")
        raise IdentificationParseError("Could not parse the identified objects from the model's response.")

    objects = []
    for raw in data["objects"]:
        if not isinstance(raw, dict):
            continue
        name = str(raw.get("objectName") or "").strip()
        box = sanitize_bounding_box(raw.get("boundingBox"))
        if not name or box is None:
            logger.warning(f"Dropping unusable identified object: {raw!r}")
            continue
        objects.append(IdentifiedObject(object_name=name, bounding_box=box, products=_parse_products(raw.get("products"))))
    return objects


class ObjectIdentificationService:
    """Finds furniture in an image and suggests where to buy it"""

    def __init__(self, genai_client: GenAIClient, settings: Optional[Settings] = None):
        self.genai_client = genai_client
        self.settings = settings or default_settings

    async def identify_objects(self, image_url: str, location: LocationInput = None) -> List[IdentifiedObject]:
        image = parse_transmittable_from_reference(image_url)
        coordinates = location if isinstance(location, CoordinatesLocation) else None

        response = await self.genai_client.generate_content(
            self.settings.planning_model,
            [image, StagingPrompts.identification_prompt(location)],
            use_maps_grounding=self.settings.use_maps_grounding,
            coordinates=coordinates,
        )

        objects = parse_identified_objects(response.text)
        logger.info(f"Identified {len(objects)} objects")
        return objects
