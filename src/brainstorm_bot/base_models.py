# brainstorm_bot/base_models.py
"""Shared pydantic bases: dict-style access and frozen records."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel


class DictCompatModel(BaseModel):
    """Model that also answers ``obj["field"]`` and ``"field" in obj``.

    Statistics and status objects are often consumed by logging and CLI code
    that treats them as plain mappings.
    """

    def __getitem__(self, key: str) -> Any:
        if key not in type(self).model_fields:
            raise KeyError(key)
        return getattr(self, key)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and key in type(self).model_fields

    def get(self, key: str, default: Any = None) -> Any:
        return getattr(self, key, default) if key in self else default

    def __eq__(self, other: object) -> bool:
        if isinstance(other, dict):
            return self.model_dump() == other
        return super().__eq__(other)


class FrozenRecord(DictCompatModel):
    """Immutable record: created once, never mutated afterwards."""

    model_config = {"frozen": True}
