"""Base model shared by pylivequery value types."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class LiveQueryBaseModel(BaseModel):
    """Frozen, strict base for documents, options and envelopes.

    Equality is pydantic's field-wise comparison, which gives the
    deep value equality the notifier and the dedup layer rely on.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        validate_default=True,
    )
