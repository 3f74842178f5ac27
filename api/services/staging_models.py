"""
Data structures shared by the staging services
"""
from dataclasses import dataclass, field
from typing import List, Optional, Union

from services.grounding import GroundingReference
from services.image_geometry import measure_dimensions


@dataclass(frozen=True)
class UploadedImage:
    """A room photo captured from the user, with its intrinsic pixel size."""

    content: bytes
    mime_type: str
    width: int
    height: int

    @classmethod
    def from_bytes(cls, content: bytes, mime_type: str) -> "UploadedImage":
        """Capture an upload, measuring its size. Raises DecodeError for non-images."""
        width, height = measure_dimensions(content)
        return cls(content=content, mime_type=mime_type, width=width, height=height)

    @property
    def aspect_ratio(self) -> float:
        return self.width / self.height


@dataclass(frozen=True)
class CoordinatesLocation:
    """Geographic coordinates in degrees."""

    latitude: float
    longitude: float


@dataclass(frozen=True)
class QueryLocation:
    """Free-text place query, e.g. "Austin, TX"."""

    query: str


# Absent location is represented by None
LocationInput = Optional[Union[CoordinatesLocation, QueryLocation]]


@dataclass(frozen=True)
class DesignPlan:
    """A design concept produced by the planning call, before any image exists."""

    title: str
    description: str
    image_prompt: Optional[str] = None


@dataclass(frozen=True)
class DesignResult:
    """A finished design concept with its redesigned image."""

    design_title: str
    design_description: str
    redesigned_image_url: str  # data URI


@dataclass
class GenerationOutcome:
    """Everything a successful generate_designs call produces."""

    designs: List[DesignResult]
    grounding_references: List[GroundingReference] = field(default_factory=list)


@dataclass(frozen=True)
class BoundingBox:
    """Box as fractions of the image dimensions, all in [0, 1]."""

    top: float
    left: float
    width: float
    height: float


@dataclass(frozen=True)
class ProductSuggestion:
    product_name: str
    store_name: str
    product_url: str


@dataclass(frozen=True)
class IdentifiedObject:
    """A furniture or decor item found in a generated image."""

    object_name: str
    bounding_box: BoundingBox
    products: List[ProductSuggestion] = field(default_factory=list)
