"""
Google GenAI adapter for the staging services.

This is the only module that talks to the network. It translates between the
services' typed parts (text and TransmittableImage) and google-genai request and
response objects.
"""
import asyncio
import base64
import logging
import time
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Union

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from core.exceptions import RemoteGenerationError
from services.grounding import GroundingChunk
from services.image_codec import TransmittableImage
from services.staging_models import CoordinatesLocation

logger = logging.getLogger(__name__)

ContentPart = Union[str, TransmittableImage]

# Raw PNG: 89504e47, Raw JPEG: ffd8ff, Raw WEBP: 52494646 ("RIFF")
RAW_IMAGE_SIGNATURES = ("89504e47", "ffd8ff", "52494646")


@dataclass(frozen=True)
class ResponsePart:
    """One part of a model response: text or an inline image."""

    text: Optional[str] = None
    inline_image: Optional[TransmittableImage] = None


@dataclass
class GenerationResponse:
    """Typed view of a generate_content response."""

    parts: List[ResponsePart] = field(default_factory=list)
    grounding_chunks: List[GroundingChunk] = field(default_factory=list)

    @property
    def text(self) -> str:
        return "".join(part.text for part in self.parts if part.text)

    def first_inline_image(self) -> Optional[TransmittableImage]:
        for part in self.parts:
            if part.inline_image is not None:
                return part.inline_image
        return None


class GenAIClient:
    """Explicitly constructed wrapper around google.genai.Client"""

    def __init__(self, api_key: Optional[str] = None, client: Optional[genai.Client] = None):
        if client is None:
            if not api_key:
                raise ValueError("A Google AI API key is required to create the GenAI client")
            client = genai.Client(api_key=api_key)
        self._client = client
        logger.info("Google GenAI client initialized")

    async def generate_content(
        self,
        model: str,
        parts: Sequence[ContentPart],
        *,
        system_instruction: Optional[str] = None,
        response_modalities: Optional[List[str]] = None,
        use_maps_grounding: bool = False,
        coordinates: Optional[CoordinatesLocation] = None,
        temperature: Optional[float] = None,
    ) -> GenerationResponse:
        """
        Run one generate_content call.

        Args:
            model: Model identifier
            parts: Text prompts and inline images, in order
            system_instruction: Optional system prompt
            response_modalities: e.g. ["IMAGE"] for image-only output
            use_maps_grounding: Request the Google Maps retrieval tool
            coordinates: Lat/long retrieval hint for maps grounding
            temperature: Optional sampling temperature

        Returns:
            GenerationResponse with ordered parts and grounding chunks
        """
        contents = [self._to_part(part) for part in parts]
        config = self._build_config(
            system_instruction=system_instruction,
            response_modalities=response_modalities,
            use_maps_grounding=use_maps_grounding,
            coordinates=coordinates,
            temperature=temperature,
        )

        def _run_generate():
            """Run the blocking generate_content call in a separate thread"""
            return self._client.models.generate_content(model=model, contents=contents, config=config)

        start_time = time.time()
        logger.info(f"Calling {model} with {len(contents)} parts (modalities={response_modalities or ['TEXT']})")
        try:
            loop = asyncio.get_running_loop()
            response = await loop.run_in_executor(None, _run_generate)
        except genai_errors.APIError as e:
            logger.error(f"{model} request failed with status {e.code}: {e.message}")
            raise RemoteGenerationError(f"The design service rejected the request ({e.code}): {e.message}") from e
        except httpx.HTTPError as e:
            logger.error(f"{model} request failed in transport: {e}")
            raise RemoteGenerationError(f"Could not reach the design service: {e}") from e

        logger.info(f"{model} responded in {time.time() - start_time:.2f}s")
        return self._to_generation_response(response)

    @staticmethod
    def _to_part(part: ContentPart) -> types.Part:
        if isinstance(part, TransmittableImage):
            return types.Part.from_bytes(data=part.to_bytes(), mime_type=part.mime_type)
        return types.Part.from_text(text=part)

    @staticmethod
    def _build_config(
        system_instruction: Optional[str],
        response_modalities: Optional[List[str]],
        use_maps_grounding: bool,
        coordinates: Optional[CoordinatesLocation],
        temperature: Optional[float],
    ) -> types.GenerateContentConfig:
        config = types.GenerateContentConfig(
            system_instruction=system_instruction,
            response_modalities=response_modalities,
            temperature=temperature,
        )
        if use_maps_grounding:
            config.tools = [types.Tool(google_maps=types.GoogleMaps())]
            if coordinates is not None:
                config.tool_config = types.ToolConfig(
                    retrieval_config=types.RetrievalConfig(
                        lat_lng=types.LatLng(latitude=coordinates.latitude, longitude=coordinates.longitude)
                    )
                )
        return config

    @classmethod
    def _to_generation_response(cls, response) -> GenerationResponse:
        candidates = getattr(response, "candidates", None) or []
        if not candidates:
            logger.warning(f"Response has no candidates: {type(response)}")
            return GenerationResponse()

        candidate = candidates[0]
        content = getattr(candidate, "content", None)
        raw_parts = getattr(content, "parts", None) or []

        parts: List[ResponsePart] = []
        for part in raw_parts:
            inline_data = getattr(part, "inline_data", None)
            if inline_data is not None and getattr(inline_data, "data", None):
                parts.append(ResponsePart(inline_image=cls._to_transmittable(inline_data)))
            elif getattr(part, "text", None) is not None:
                parts.append(ResponsePart(text=part.text))

        return GenerationResponse(parts=parts, grounding_chunks=cls._to_grounding_chunks(candidate))

    @staticmethod
    def _to_transmittable(inline_data) -> TransmittableImage:
        data = inline_data.data
        mime_type = getattr(inline_data, "mime_type", None) or "image/png"
        if isinstance(data, str):
            return TransmittableImage(mime_type=mime_type, payload=data)
        if data[:4].hex().startswith(RAW_IMAGE_SIGNATURES):
            payload = base64.b64encode(data).decode("utf-8")
        else:
            # Bytes are an already base64-encoded string
            payload = data.decode("utf-8")
        return TransmittableImage(mime_type=mime_type, payload=payload)

    @staticmethod
    def _to_grounding_chunks(candidate) -> List[GroundingChunk]:
        metadata = getattr(candidate, "grounding_metadata", None)
        raw_chunks = getattr(metadata, "grounding_chunks", None) or []

        chunks: List[GroundingChunk] = []
        for raw_chunk in raw_chunks:
            source = getattr(raw_chunk, "maps", None) or getattr(raw_chunk, "web", None)
            if source is None:
                continue
            chunks.append(
                GroundingChunk(
                    title=getattr(source, "title", None),
                    uri=getattr(source, "uri", None),
                    subtitle=getattr(source, "text", None),
                )
            )
        return chunks
