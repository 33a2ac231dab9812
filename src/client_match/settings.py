from __future__ import annotations

import os
from dataclasses import dataclass, fields
from typing import Mapping

ENV_PREFIX = "CLIENT_MATCH_"


@dataclass(frozen=True)
class MatchSettings:
    """Tunable knobs for duplicate checks and live search.

    The score defaults are starting points and should be tuned against real
    intake data.
    """

    duplicate_threshold: float = 0.35
    dob_match_boost: float = 0.25
    dob_mismatch_penalty: float = 0.15
    search_debounce_ms: int = 500
    search_result_limit: int = 20
    backend_timeout_s: float = 5.0
    backend_retries: int = 1
    min_intake_name_length: int = 3

    def __post_init__(self) -> None:
        for name in ("duplicate_threshold", "dob_match_boost", "dob_mismatch_penalty"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be within [0, 1], got {value!r}")
        for name in ("search_debounce_ms", "backend_retries", "min_intake_name_length"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must not be negative")
        if self.search_result_limit <= 0:
            raise ValueError("search_result_limit must be positive")
        if self.backend_timeout_s <= 0:
            raise ValueError("backend_timeout_s must be positive")

    @property
    def search_debounce_s(self) -> float:
        return self.search_debounce_ms / 1000.0

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, object]) -> "MatchSettings":
        values: dict[str, object] = {}
        for spec in fields(cls):
            if spec.name not in mapping or mapping[spec.name] is None:
                continue
            caster = float if spec.type == "float" else int
            values[spec.name] = caster(mapping[spec.name])  # type: ignore[arg-type]
        return cls(**values)  # type: ignore[arg-type]

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "MatchSettings":
        environ = os.environ if environ is None else environ
        mapping = {
            spec.name: environ[f"{ENV_PREFIX}{spec.name.upper()}"]
            for spec in fields(cls)
            if f"{ENV_PREFIX}{spec.name.upper()}" in environ
        }
        return cls.from_mapping(mapping)
