"""
Error taxonomy for the staging pipeline.

Every error raised by the generation and edit clients derives from StagingError
and carries a message that can be shown to the user as-is.
"""

GENERIC_GENERATION_FAILURE = "An error occurred while generating the design. Please try again."


class StagingError(Exception):
    """Base exception for staging pipeline failures."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class DecodeError(StagingError):
    """Image bytes could not be decoded."""


class ReadError(StagingError):
    """Binary content could not be read."""


class FormatError(StagingError):
    """An embedded image reference is not well-formed."""


class PlanParseError(StagingError):
    """The planning response did not contain the expected design concepts."""


class ImagePartMissingError(StagingError):
    """An image-synthesis call returned no inline image for a design."""

    def __init__(self, design_title: str):
        self.design_title = design_title
        super().__init__(f"The model returned no image for design '{design_title}'.")


class EditImagePartMissingError(StagingError):
    """An edit call returned no inline image."""

    def __init__(self, message: str = "Failed to generate edited image."):
        super().__init__(message)


class IdentificationParseError(StagingError):
    """The object-identification response could not be parsed."""


class RemoteGenerationError(StagingError):
    """The remote generative service rejected or failed the call."""


class SessionStateError(StagingError):
    """An operation is not allowed in the session's current state."""


def describe_failure(error: Exception) -> str:
    """Human-readable message for a failed generation or edit."""
    if isinstance(error, StagingError):
        return error.message
    return GENERIC_GENERATION_FAILURE
