"""Model hierarchy: ordered candidate lists per request."""

from __future__ import annotations

from typing import TYPE_CHECKING

from tenderai.errors import AIError, ErrorKind
from tenderai.models import CandidateModel, ModelTier

if TYPE_CHECKING:
    from tenderai.config import Config


def _tier_for(config: Config, model_id: str) -> ModelTier:
    if model_id == config.primary_model:
        return ModelTier.PRIMARY
    if model_id == config.fallback_model:
        return ModelTier.FALLBACK
    if model_id in (config.backup_primary_model, config.backup_fallback_model):
        return ModelTier.BACKUP
    return ModelTier.PRIMARY


def build_candidates(
    config: Config,
    *,
    is_complex: bool = False,
    model: str | None = None,
) -> tuple[CandidateModel, ...]:
    """Return the ordered candidates to attempt for one generation call.

    - An explicit *model* override yields exactly that one candidate.
    - Complex requests favor the stronger model: primary, fallback, then the
      backup primary and backup fallback.
    - Simple requests favor the cheaper model: fallback, primary, then the
      backup fallback and backup primary.
    """
    if model is not None:
        override = model.strip()
        if not override:
            raise AIError(
                "Model override must be a non-empty model id",
                ErrorKind.VALIDATION,
                hint="Omit the override to use the configured hierarchy.",
            )
        return (CandidateModel.from_id(override, _tier_for(config, override)),)

    if is_complex:
        ordered = (
            (config.primary_model, ModelTier.PRIMARY),
            (config.fallback_model, ModelTier.FALLBACK),
            (config.backup_primary_model, ModelTier.BACKUP),
            (config.backup_fallback_model, ModelTier.BACKUP),
        )
    else:
        ordered = (
            (config.fallback_model, ModelTier.FALLBACK),
            (config.primary_model, ModelTier.PRIMARY),
            (config.backup_fallback_model, ModelTier.BACKUP),
            (config.backup_primary_model, ModelTier.BACKUP),
        )
    return tuple(CandidateModel.from_id(model_id, tier) for model_id, tier in ordered)
