"""
Staging session state machine and in-memory session store.

    upload --submit--> generating --success--> results
                            |
                            +--failure--> error

results accepts select_design / apply_edit / clear_edit / identify_objects
without leaving the stage. reset returns any stage to upload with an empty
session. A failed generation is never retried; the user has to reset.
"""
import logging
import uuid
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Awaitable, Callable, List, Optional

from core.exceptions import SessionStateError, describe_failure
from services.grounding import GroundingReference
from services.staging_models import (
    DesignResult,
    GenerationOutcome,
    IdentifiedObject,
    LocationInput,
    UploadedImage,
)

logger = logging.getLogger(__name__)

GenerateDesigns = Callable[[UploadedImage, LocationInput], Awaitable[GenerationOutcome]]
EditImage = Callable[[str, str], Awaitable[str]]
IdentifyObjects = Callable[[str, LocationInput], Awaitable[List[IdentifiedObject]]]

MISSING_UPLOAD_MESSAGE = "Please upload an image first."


class Stage(str, Enum):
    """Stages of a staging session"""

    UPLOAD = "upload"
    GENERATING = "generating"
    RESULTS = "results"
    ERROR = "error"


@dataclass
class StagingSession:
    """One user's staging workflow"""

    session_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    stage: Stage = Stage.UPLOAD
    uploaded_image: Optional[UploadedImage] = None
    location: LocationInput = None
    designs: List[DesignResult] = field(default_factory=list)
    grounding_references: List[GroundingReference] = field(default_factory=list)
    active_design_index: int = 0
    edited_image_url: Optional[str] = None
    identified_objects: List[IdentifiedObject] = field(default_factory=list)
    error_message: Optional[str] = None
    inline_error_message: Optional[str] = None  # non-fatal edit/identify failure shown in results
    is_editing: bool = False
    is_identifying: bool = False
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)
    # Bumped by submit and reset so results of superseded requests are dropped
    request_token: int = field(default=0, repr=False)

    @property
    def active_design(self) -> Optional[DesignResult]:
        if not self.designs:
            return None
        return self.designs[self.active_design_index]

    @property
    def displayed_image_url(self) -> Optional[str]:
        """Edited override if present, else the active design's image."""
        if self.edited_image_url:
            return self.edited_image_url
        design = self.active_design
        return design.redesigned_image_url if design else None

    def _touch(self) -> None:
        self.updated_at = datetime.utcnow()

    def _require_stage(self, stage: Stage, action: str) -> None:
        if self.stage != stage:
            raise SessionStateError(f"Cannot {action} while the session is in the '{self.stage.value}' stage.")

    def _require_idle_results(self, action: str) -> None:
        self._require_stage(Stage.RESULTS, action)
        if self.is_editing or self.is_identifying:
            raise SessionStateError(f"Cannot {action} while another request for this design is in progress.")

    def capture_upload(self, image: UploadedImage) -> None:
        """Store the user's photo, replacing any earlier upload."""
        self._require_stage(Stage.UPLOAD, "upload an image")
        self.uploaded_image = image
        self.error_message = None
        self._touch()
        logger.info(f"Session {self.session_id[:8]}: captured {image.width}x{image.height} {image.mime_type} upload")

    async def submit(self, generate: GenerateDesigns, location: LocationInput = None) -> Stage:
        """
        Run a generation for the uploaded image.

        A missing upload goes straight to ERROR. Any failure of generate lands
        in ERROR with a readable message; success lands in RESULTS.
        """
        self._require_stage(Stage.UPLOAD, "generate designs")

        if self.uploaded_image is None:
            self.stage = Stage.ERROR
            self.error_message = MISSING_UPLOAD_MESSAGE
            self._touch()
            logger.warning(f"Session {self.session_id[:8]}: submit without an uploaded image")
            return self.stage

        self.stage = Stage.GENERATING
        self.location = location
        self.request_token += 1
        token = self.request_token
        self.error_message = None
        self._touch()

        try:
            outcome = await generate(self.uploaded_image, location)
        except Exception as e:
            if self._is_stale(token, "generation"):
                return self.stage
            logger.error(f"Session {self.session_id[:8]}: generation failed: {e}", exc_info=True)
            self.stage = Stage.ERROR
            self.error_message = describe_failure(e)
            self._touch()
            return self.stage

        if self._is_stale(token, "generation"):
            return self.stage

        self.designs = list(outcome.designs)
        self.grounding_references = list(outcome.grounding_references)
        self.active_design_index = 0
        self.edited_image_url = None
        self.identified_objects = []
        self.inline_error_message = None
        self.stage = Stage.RESULTS
        self._touch()
        logger.info(f"Session {self.session_id[:8]}: {len(self.designs)} designs ready")
        return self.stage

    def select_design(self, index: int) -> None:
        """Switch the active design. Any edit belongs to the previous design and is dropped."""
        self._require_idle_results("select a design")
        if not 0 <= index < len(self.designs):
            raise SessionStateError(f"Design index {index} is out of range (0..{len(self.designs) - 1}).")
        self.active_design_index = index
        self._clear_display_overrides()

    async def apply_edit(self, edit: EditImage, prompt: str) -> bool:
        """
        Edit the displayed image. Failures are reported in place and keep RESULTS.

        Returns True when the edit was applied.
        """
        self._require_idle_results("edit the design")
        instruction = (prompt or "").strip()
        if not instruction:
            raise SessionStateError("Please enter an edit instruction.")

        token = self.request_token
        base_image_url = self.displayed_image_url
        self.is_editing = True
        self.inline_error_message = None
        self._touch()
        try:
            edited_url = await edit(base_image_url, instruction)
        except Exception as e:
            if self._is_stale(token, "edit"):
                return False
            logger.error(f"Session {self.session_id[:8]}: edit failed: {e}", exc_info=True)
            self.inline_error_message = describe_failure(e)
            return False
        finally:
            # reset already cleared the flag for superseded requests
            if token == self.request_token:
                self.is_editing = False
                self._touch()

        if self._is_stale(token, "edit"):
            return False
        self.edited_image_url = edited_url
        self.identified_objects = []
        return True

    def clear_edit(self) -> None:
        """Revert the active design to its generated image."""
        self._require_idle_results("clear the edit")
        self._clear_display_overrides()

    async def identify_objects(self, identify: IdentifyObjects) -> bool:
        """Find furniture in the displayed image. Failures are non-fatal like edits."""
        self._require_idle_results("identify objects")
        token = self.request_token
        image_url = self.displayed_image_url
        self.is_identifying = True
        self.inline_error_message = None
        self._touch()
        try:
            objects = await identify(image_url, self.location)
        except Exception as e:
            if self._is_stale(token, "object identification"):
                return False
            logger.error(f"Session {self.session_id[:8]}: object identification failed: {e}", exc_info=True)
            self.inline_error_message = describe_failure(e)
            return False
        finally:
            if token == self.request_token:
                self.is_identifying = False
                self._touch()

        if self._is_stale(token, "object identification"):
            return False
        self.identified_objects = list(objects)
        return True

    def reset(self) -> None:
        """Return to UPLOAD and forget everything."""
        self.request_token += 1
        self.stage = Stage.UPLOAD
        self.uploaded_image = None
        self.location = None
        self.designs = []
        self.grounding_references = []
        self.active_design_index = 0
        self.edited_image_url = None
        self.identified_objects = []
        self.error_message = None
        self.inline_error_message = None
        self.is_editing = False
        self.is_identifying = False
        self._touch()
        logger.info(f"Session {self.session_id[:8]}: reset")

    def _is_stale(self, token: int, operation: str) -> bool:
        if token == self.request_token:
            return False
        logger.info(f"Session {self.session_id[:8]}: discarding {operation} result after reset")
        return True

    def _clear_display_overrides(self) -> None:
        self.edited_image_url = None
        self.identified_objects = []
        self.inline_error_message = None
        self._touch()


class StagingSessionStore:
    """In-memory sessions, oldest evicted beyond max_sessions"""

    def __init__(self, max_sessions: int = 500):
        self.max_sessions = max_sessions
        self.sessions: "OrderedDict[str, StagingSession]" = OrderedDict()

    def create(self) -> StagingSession:
        session = StagingSession()
        self.sessions[session.session_id] = session
        while len(self.sessions) > self.max_sessions:
            evicted_id, _ = self.sessions.popitem(last=False)
            logger.info(f"Evicted staging session {evicted_id[:8]}")
        return session

    def get(self, session_id: str) -> Optional[StagingSession]:
        return self.sessions.get(session_id)

    def delete(self, session_id: str) -> bool:
        return self.sessions.pop(session_id, None) is not None

    def __len__(self) -> int:
        return len(self.sessions)
