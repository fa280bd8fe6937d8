"""Configuration settings behaviour tests."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from app.config import Settings


def test_defaults_match_recommendation_policy() -> None:
    settings = Settings(_env_file=None)

    assert settings.recommendation_seed_count == 5
    assert settings.recommendation_limit == 12


def test_blank_api_keys_are_treated_as_missing() -> None:
    settings = Settings(_env_file=None, TMDB_API_KEY="   ", OPENROUTER_API_KEY="")

    assert settings.tmdb_api_key is None
    assert settings.openrouter_api_key is None


def test_api_keys_are_stripped() -> None:
    settings = Settings(_env_file=None, TMDB_API_KEY="  abc123 ")

    assert settings.tmdb_api_key == "abc123"


def test_blank_model_falls_back_to_default() -> None:
    settings = Settings(_env_file=None, OPENROUTER_MODEL=" ")

    assert settings.openrouter_model == "google/gemini-2.5-flash-lite"


@pytest.mark.parametrize(
    "overrides",
    [
        {"RECOMMENDATION_SEED_COUNT": 0},
        {"RECOMMENDATION_LIMIT": 500},
        {"TMDB_RETRY_LIMIT": 9},
        {"SESSION_TTL": 10},
    ],
)
def test_out_of_range_values_are_rejected(overrides) -> None:
    with pytest.raises(ValidationError):
        Settings(_env_file=None, **overrides)
