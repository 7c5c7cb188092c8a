"""Model registry: which model serves each backend role."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping

from ..config import EngineConfig

ROLE_EDIT = "edit"
ROLE_TEXT_TO_IMAGE = "text_to_image"
ROLE_ANALYSIS = "analysis"
ROLE_PROBE = "probe"


@dataclass(frozen=True)
class ModelSpec:
    name: str
    role: str


def _default_models(config: EngineConfig) -> dict[str, ModelSpec]:
    return {
        ROLE_EDIT: ModelSpec(name=config.edit_model, role=ROLE_EDIT),
        ROLE_TEXT_TO_IMAGE: ModelSpec(name=config.text_to_image_model, role=ROLE_TEXT_TO_IMAGE),
        ROLE_ANALYSIS: ModelSpec(name=config.analysis_model, role=ROLE_ANALYSIS),
        ROLE_PROBE: ModelSpec(name=config.probe_model, role=ROLE_PROBE),
    }


class ModelRegistry:
    def __init__(
        self,
        models: Mapping[str, ModelSpec] | None = None,
        config: EngineConfig | None = None,
    ) -> None:
        self._models = dict(models) if models else _default_models(config or EngineConfig())

    def get(self, role: str) -> ModelSpec:
        model = self._models.get(role)
        if model is None:
            raise RuntimeError(f"No model configured for role '{role}'.")
        return model

    def model_for(self, role: str) -> str:
        return self.get(role).name
