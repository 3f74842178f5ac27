"""
Pydantic schemas for staging API endpoints
"""
from datetime import datetime, timezone
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, Field, field_serializer

from services.grounding import GroundingReference, build_map_search_url, categorize_store
from services.staging_models import (
    CoordinatesLocation,
    DesignResult,
    IdentifiedObject,
    LocationInput,
    QueryLocation,
)
from services.staging_session import Stage, StagingSession


class CoordinatesLocationSchema(BaseModel):
    """Browser geolocation result"""

    type: Literal["coords"] = "coords"
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class QueryLocationSchema(BaseModel):
    """Free-text location such as a city or address"""

    type: Literal["query"] = "query"
    query: str = Field(..., min_length=1, description="e.g. 'Paris, France' or a full address")


LocationSchema = Annotated[Union[CoordinatesLocationSchema, QueryLocationSchema], Field(discriminator="type")]


def to_location_input(location: Optional[LocationSchema]) -> LocationInput:
    if isinstance(location, CoordinatesLocationSchema):
        return CoordinatesLocation(latitude=location.latitude, longitude=location.longitude)
    if isinstance(location, QueryLocationSchema) and location.query.strip():
        return QueryLocation(query=location.query.strip())
    return None


class UploadRequest(BaseModel):
    """Room photo as a data URI"""

    image: str = Field(..., description="data:<mime-type>;base64,<payload>")


class GenerateRequest(BaseModel):
    location: Optional[LocationSchema] = None


class SelectDesignRequest(BaseModel):
    index: int = Field(..., ge=0)


class EditRequest(BaseModel):
    prompt: str = Field(..., min_length=1)


class DesignResultSchema(BaseModel):
    design_title: str
    design_description: str
    redesigned_image_url: str

    @classmethod
    def from_result(cls, design: DesignResult) -> "DesignResultSchema":
        return cls(
            design_title=design.design_title,
            design_description=design.design_description,
            redesigned_image_url=design.redesigned_image_url,
        )


class StoreReferenceSchema(BaseModel):
    """Store suggestion from location grounding"""

    title: str
    uri: str
    subtitle: Optional[str] = None
    category: str
    map_url: str

    @classmethod
    def from_reference(cls, reference: GroundingReference) -> "StoreReferenceSchema":
        return cls(
            title=reference.title,
            uri=reference.uri,
            subtitle=reference.subtitle,
            category=categorize_store(reference.title),
            map_url=build_map_search_url(reference),
        )


class BoundingBoxSchema(BaseModel):
    top: float = Field(..., ge=0, le=1)
    left: float = Field(..., ge=0, le=1)
    width: float = Field(..., ge=0, le=1)
    height: float = Field(..., ge=0, le=1)


class ProductSuggestionSchema(BaseModel):
    product_name: str
    store_name: str
    product_url: str


class IdentifiedObjectSchema(BaseModel):
    object_name: str
    bounding_box: BoundingBoxSchema
    products: List[ProductSuggestionSchema] = []

    @classmethod
    def from_object(cls, identified: IdentifiedObject) -> "IdentifiedObjectSchema":
        box = identified.bounding_box
        return cls(
            object_name=identified.object_name,
            bounding_box=BoundingBoxSchema(top=box.top, left=box.left, width=box.width, height=box.height),
            products=[
                ProductSuggestionSchema(
                    product_name=product.product_name,
                    store_name=product.store_name,
                    product_url=product.product_url,
                )
                for product in identified.products
            ],
        )


class SessionStateResponse(BaseModel):
    """Snapshot of a staging session after a transition"""

    session_id: str
    stage: Stage
    has_uploaded_image: bool = False
    original_width: Optional[int] = None
    original_height: Optional[int] = None
    designs: List[DesignResultSchema] = []
    stores: List[StoreReferenceSchema] = []
    active_design_index: int = 0
    displayed_image_url: Optional[str] = None
    is_edited: bool = False
    is_editing: bool = False
    is_identifying: bool = False
    identified_objects: List[IdentifiedObjectSchema] = []
    error_message: Optional[str] = None
    inline_error_message: Optional[str] = None
    updated_at: datetime

    @field_serializer("updated_at")
    def serialize_timestamp(self, value: datetime) -> str:
        """Serialize timestamp as ISO format with UTC indicator for correct JS parsing"""
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.isoformat()

    @classmethod
    def from_session(cls, session: StagingSession) -> "SessionStateResponse":
        image = session.uploaded_image
        return cls(
            session_id=session.session_id,
            stage=session.stage,
            has_uploaded_image=image is not None,
            original_width=image.width if image else None,
            original_height=image.height if image else None,
            designs=[DesignResultSchema.from_result(design) for design in session.designs],
            stores=[StoreReferenceSchema.from_reference(reference) for reference in session.grounding_references],
            active_design_index=session.active_design_index,
            displayed_image_url=session.displayed_image_url,
            is_edited=session.edited_image_url is not None,
            is_editing=session.is_editing,
            is_identifying=session.is_identifying,
            identified_objects=[IdentifiedObjectSchema.from_object(obj) for obj in session.identified_objects],
            error_message=session.error_message,
            inline_error_message=session.inline_error_message,
            updated_at=session.updated_at,
        )


class StoreListResponse(BaseModel):
    categories: List[str]
    active_category: str
    stores: List[StoreReferenceSchema]


class HealthResponse(BaseModel):
    status: str
    service: str
    version: str
    api_key_configured: bool
