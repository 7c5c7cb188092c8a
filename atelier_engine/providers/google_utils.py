"""Shared helpers for the Google backends."""

from __future__ import annotations

import base64
import os
from typing import Any, Mapping, Sequence

from google import genai
from google.genai import types

from ..compose.requests import ContentRequest, InlinePart, Part, TextPart
from ..runs.artifacts import Artifact

IMAGEN_ASPECT_RATIOS = {"1:1", "3:4", "4:3", "9:16", "16:9"}


def make_client() -> genai.Client:
    api_key = os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY")
    if not api_key:
        raise RuntimeError("GEMINI_API_KEY or GOOGLE_API_KEY not set.")
    return genai.Client(api_key=api_key)


def to_genai_part(part: Part) -> types.Part:
    if isinstance(part, TextPart):
        return types.Part(text=part.text)
    if isinstance(part, InlinePart):
        return types.Part(
            inline_data=types.Blob(data=base64.b64decode(part.data), mime_type=part.mime_type)
        )
    raise TypeError(f"Unsupported part type: {type(part).__name__}")


def build_content_config(request: ContentRequest) -> types.GenerateContentConfig:
    config_kwargs: dict[str, Any] = {
        "response_modalities": list(request.response_modalities),
        "temperature": request.temperature,
    }
    if request.aspect_ratio:
        config_kwargs["image_config"] = types.ImageConfig(aspect_ratio=request.aspect_ratio)
    return types.GenerateContentConfig(**config_kwargs)


def extract_inline_images(candidates: Sequence[Any]) -> list[Artifact]:
    images: list[Artifact] = []
    for candidate in candidates:
        content = getattr(candidate, "content", None)
        parts = getattr(content, "parts", None) or []
        for part in parts:
            inline_data = getattr(part, "inline_data", None)
            data = getattr(inline_data, "data", None) if inline_data else None
            if not data:
                continue
            mime_type = getattr(inline_data, "mime_type", None) or "image/png"
            if isinstance(data, str):
                images.append(Artifact(mime_type=mime_type, data=data))
            elif isinstance(data, (bytes, bytearray)):
                images.append(Artifact.from_bytes(bytes(data), mime_type))
    return images


def extract_text(response: Any) -> str | None:
    try:
        text = getattr(response, "text", None)
    except ValueError:
        text = None
    if isinstance(text, str) and text.strip():
        return text
    return None


def summarize_response(response: Any, model: str) -> Mapping[str, Any]:
    candidates = getattr(response, "candidates", None) or []
    summary: dict[str, Any] = {"model": model, "candidates": len(candidates)}
    usage = getattr(response, "usage_metadata", None)
    if usage is not None and hasattr(usage, "model_dump"):
        summary["usage"] = usage.model_dump(exclude_none=True)
    finish_reasons = [str(getattr(candidate, "finish_reason", "")) for candidate in candidates]
    if any(finish_reasons):
        summary["finish_reasons"] = finish_reasons
    return summary
