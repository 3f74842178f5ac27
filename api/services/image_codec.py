"""
Conversions between binary images, base64 payloads and data URIs
"""
import base64
import binascii
import re
from dataclasses import dataclass
from typing import BinaryIO, Union

from core.exceptions import FormatError, ReadError

DATA_URI_HEADER = re.compile(r"^data:([\w.+-]+/[\w.+-]+);base64$")


@dataclass(frozen=True)
class TransmittableImage:
    """Inline image representation used at the remote-call boundary."""

    mime_type: str
    payload: str  # base64-encoded bytes

    def to_bytes(self) -> bytes:
        """Decode the payload back into raw bytes."""
        try:
            return base64.b64decode(self.payload, validate=True)
        except (binascii.Error, ValueError) as e:
            raise FormatError(f"Image payload is not valid base64: {e}") from e


def encode_for_transmission(content: Union[bytes, BinaryIO], mime_type: str) -> TransmittableImage:
    """
    Base64-encode binary image content.

    Accepts raw bytes or a readable binary stream.
    """
    if hasattr(content, "read"):
        try:
            content = content.read()
        except (OSError, ValueError) as e:
            raise ReadError(f"Could not read image content: {e}") from e

    if not isinstance(content, (bytes, bytearray)):
        raise ReadError(f"Expected binary image content, got {type(content).__name__}")
    if not content:
        raise ReadError("Image content is empty.")
    if not mime_type:
        raise ReadError("Image MIME type is missing.")

    return TransmittableImage(mime_type=mime_type, payload=base64.b64encode(bytes(content)).decode("utf-8"))


def decode_from_transmission(payload: str, mime_type: str) -> str:
    """Build an embeddable data URI for a base64 payload."""
    return f"data:{mime_type};base64,{payload}"


def parse_transmittable_from_reference(reference: str) -> TransmittableImage:
    """Split a data URI produced by decode_from_transmission back into its parts."""
    if not reference or "," not in reference:
        raise FormatError("Image reference is missing the ',' separator.")

    header, payload = reference.split(",", 1)
    match = DATA_URI_HEADER.match(header.strip())
    if not match:
        raise FormatError("Image reference is missing a 'data:<mime-type>;base64' header.")
    if not payload:
        raise FormatError("Image reference has an empty payload.")

    return TransmittableImage(mime_type=match.group(1), payload=payload)


def bytes_to_data_uri(content: bytes, mime_type: str) -> str:
    """Shortcut for encode_for_transmission followed by decode_from_transmission."""
    image = encode_for_transmission(content, mime_type)
    return decode_from_transmission(image.payload, image.mime_type)
