"""Mode policy: what each editing mode needs and which backend it targets."""

from __future__ import annotations

from dataclasses import dataclass, replace

from ..session.state import Mode, SessionState

BACKEND_EDIT = "edit"
BACKEND_TEXT_TO_IMAGE = "text_to_image"
BACKEND_ANALYSIS = "analysis"

RESPONSE_IMAGE = "image"
RESPONSE_TEXT = "text"

LIGHTING_TEMPERATURE = 0.4

MISSING_IMAGE_MESSAGE = "Please upload an image to edit."
MISSING_IMAGE_OR_REFERENCE_MESSAGE = "Please upload an image or add a reference image."
MISSING_PROMPT_MESSAGE = "Please enter a prompt."


class PreconditionError(RuntimeError):
    """Raised before dispatch when the session cannot produce a request."""

    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


@dataclass(frozen=True)
class ModePolicy:
    mode: Mode
    requires_image: bool
    requires_prompt: bool
    backend: str = BACKEND_EDIT
    response_kind: str = RESPONSE_IMAGE
    uses_references: bool = True
    uses_mask: bool = False
    fold_negative: bool = True
    wrap_references: bool = True
    fixed_temperature: float | None = None
    temperature: float = 0.9


def _editing(mode: Mode, **overrides: object) -> ModePolicy:
    return ModePolicy(mode=mode, requires_image=True, requires_prompt=True, **overrides)


_POLICIES: dict[Mode, ModePolicy] = {
    Mode.CHARACTER: _editing(Mode.CHARACTER),
    Mode.MATCH3: _editing(Mode.MATCH3),
    Mode.SKETCH: _editing(Mode.SKETCH),
    Mode.INPAINT: _editing(Mode.INPAINT, uses_references=False, uses_mask=True, wrap_references=False),
    Mode.FREE: ModePolicy(mode=Mode.FREE, requires_image=False, requires_prompt=True),
    Mode.ANALYZE: _editing(
        Mode.ANALYZE,
        backend=BACKEND_ANALYSIS,
        response_kind=RESPONSE_TEXT,
        wrap_references=False,
    ),
    Mode.LIGHTING: ModePolicy(
        mode=Mode.LIGHTING,
        requires_image=True,
        requires_prompt=False,
        fold_negative=False,
        wrap_references=False,
        fixed_temperature=LIGHTING_TEMPERATURE,
    ),
    Mode.CONCEPT: _editing(Mode.CONCEPT),
}


def resolve(mode: Mode | str, session: SessionState) -> ModePolicy:
    """Resolve the static policy for ``mode`` against the current session."""
    policy = _POLICIES[Mode.parse(mode)]
    backend = policy.backend
    if policy.mode == Mode.FREE and session.primary is None and not session.references:
        backend = BACKEND_TEXT_TO_IMAGE
    temperature = policy.fixed_temperature if policy.fixed_temperature is not None else session.creativity
    return replace(policy, backend=backend, temperature=temperature)


def check_preconditions(policy: ModePolicy, session: SessionState) -> None:
    """Image check first, then prompt check."""
    if policy.requires_image and session.primary is None:
        if policy.mode == Mode.CONCEPT:
            if not session.references:
                raise PreconditionError("missing_image", MISSING_IMAGE_OR_REFERENCE_MESSAGE)
        else:
            raise PreconditionError("missing_image", MISSING_IMAGE_MESSAGE)
    if policy.requires_prompt and not session.prompt.strip():
        raise PreconditionError("missing_prompt", MISSING_PROMPT_MESSAGE)
