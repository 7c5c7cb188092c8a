"""Turn generation outcomes into gallery entries and user-facing messages."""

from __future__ import annotations

from dataclasses import dataclass, field

from .compose.policy import PreconditionError, RESPONSE_TEXT
from .orchestrator import GenerationOutcome
from .runs.artifacts import Artifact

NO_IMAGES_MESSAGE = (
    "The model did not return any images after multiple retries. "
    "Please try a different prompt or check your connection."
)
NO_TEXT_MESSAGE = "The model did not return any analysis text. Please try again."
GENERIC_ERROR_MESSAGE = "An error occurred. Please check the event log for details."
IDLE_MESSAGE = "Your generated image will appear here."

KIND_GALLERY = "gallery"
KIND_TEXT = "text"
KIND_MESSAGE = "message"


@dataclass(frozen=True)
class GalleryEntry:
    index: int
    artifact: Artifact
    alt: str = ""

    @property
    def data_url(self) -> str:
        return self.artifact.data_url


@dataclass
class Presentation:
    kind: str
    message: str = ""
    is_error: bool = False
    entries: list[GalleryEntry] = field(default_factory=list)
    warning: str | None = None
    error_code: str | None = None

    @property
    def artifacts(self) -> list[Artifact]:
        return [entry.artifact for entry in self.entries]


def progress_message(collected: int, target: int) -> str:
    return f"Generating... {collected} / {target} complete."


def pending_message(target: int) -> str:
    return f"Generating {target} image(s)..."


def present(outcome: GenerationOutcome, alt: str = "") -> Presentation:
    if outcome.response_kind == RESPONSE_TEXT:
        if outcome.text is None:
            return Presentation(kind=KIND_MESSAGE, message=NO_TEXT_MESSAGE, is_error=True)
        return Presentation(kind=KIND_TEXT, message=outcome.text)
    if not outcome.artifacts:
        return Presentation(kind=KIND_MESSAGE, message=NO_IMAGES_MESSAGE, is_error=True)
    entries = [GalleryEntry(index=index, artifact=artifact, alt=alt) for index, artifact in enumerate(outcome.artifacts)]
    warning = None
    if outcome.partial:
        warning = f"Could only generate {len(outcome.artifacts)} of the requested {outcome.target_count} images."
    return Presentation(kind=KIND_GALLERY, entries=entries, warning=warning)


def refused(error: PreconditionError) -> Presentation:
    return Presentation(kind=KIND_MESSAGE, message=error.message, is_error=True, error_code=error.code)


def failed() -> Presentation:
    return Presentation(kind=KIND_MESSAGE, message=GENERIC_ERROR_MESSAGE, is_error=True, error_code="unexpected")
