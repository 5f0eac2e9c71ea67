from __future__ import annotations

import pytest

from tenderai.config import Config
from tenderai.errors import AIError, ErrorKind
from tenderai.hierarchy import build_candidates
from tenderai.models import ModelTier, is_fine_tuned_model
from tests.conftest import (
    BACKUP_FALLBACK_MODEL,
    BACKUP_PRIMARY_MODEL,
    FALLBACK_MODEL,
    PRIMARY_MODEL,
)

pytestmark = pytest.mark.unit


def test_complex_requests_favor_primary(config: Config) -> None:
    candidates = build_candidates(config, is_complex=True)

    assert [c.id for c in candidates] == [
        PRIMARY_MODEL,
        FALLBACK_MODEL,
        BACKUP_PRIMARY_MODEL,
        BACKUP_FALLBACK_MODEL,
    ]
    assert [c.tier for c in candidates] == [
        ModelTier.PRIMARY,
        ModelTier.FALLBACK,
        ModelTier.BACKUP,
        ModelTier.BACKUP,
    ]


def test_simple_requests_favor_fallback(config: Config) -> None:
    candidates = build_candidates(config, is_complex=False)

    assert [c.id for c in candidates] == [
        FALLBACK_MODEL,
        PRIMARY_MODEL,
        BACKUP_FALLBACK_MODEL,
        BACKUP_PRIMARY_MODEL,
    ]


def test_default_is_simple(config: Config) -> None:
    assert build_candidates(config) == build_candidates(config, is_complex=False)


def test_override_yields_exactly_one_candidate(config: Config) -> None:
    candidates = build_candidates(config, is_complex=True, model="gpt-4o")

    assert len(candidates) == 1
    assert candidates[0].id == "gpt-4o"
    assert candidates[0].is_fine_tuned is False


def test_override_of_configured_model_keeps_its_tier(config: Config) -> None:
    (candidate,) = build_candidates(config, model=FALLBACK_MODEL)

    assert candidate.tier is ModelTier.FALLBACK
    assert candidate.is_fine_tuned is True


def test_blank_override_is_a_validation_error(config: Config) -> None:
    with pytest.raises(AIError) as exc:
        build_candidates(config, model="   ")
    assert exc.value.kind is ErrorKind.VALIDATION


def test_fine_tune_flag_is_derived_from_id(config: Config) -> None:
    candidates = build_candidates(config, is_complex=True)
    assert [c.is_fine_tuned for c in candidates] == [True, True, False, False]


@pytest.mark.parametrize(
    ("model_id", "expected"),
    [
        ("ft:gpt-4.1-mini-2025-04-14:org::abc", True),
        ("gpt-4.1-mini:ftjob-GEQ7rH6zO5uHGenTo81wAm2I", True),
        ("gpt-4o-mini", False),
        ("gpt-3.5-turbo", False),
        ("draft:ft:model", False),
    ],
)
def test_is_fine_tuned_model(model_id: str, expected: bool) -> None:
    assert is_fine_tuned_model(model_id) is expected


def test_candidate_lists_are_fresh_per_call(config: Config) -> None:
    first = build_candidates(config, is_complex=True)
    second = build_candidates(config, is_complex=True)
    assert first == second
    assert isinstance(first, tuple)
