"""
Screen Runtime Core - Canonical Behavior Intents

The closed tagged union produced by the normalizer. Every raw behavior
payload maps to exactly one of these five variants; LegacyIntent is the
total fallback so nothing is ever dropped.

Unknown extra keys on canonical payloads are kept (extra="allow") so a
pass-through never loses information.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter


class NavigationIntent(BaseModel):
    model_config = {"extra": "allow"}

    kind: Literal["navigation"] = "navigation"
    verb: str
    variant: str | None = None
    args: dict[str, Any] = Field(default_factory=dict)


class MutationIntent(BaseModel):
    model_config = {"extra": "allow", "populate_by_name": True}

    kind: Literal["mutation"] = "mutation"
    verb: str
    scope: str | None = None
    lifetime: str | None = None
    target: str | None = None
    value_from: str | None = Field(default=None, alias="valueFrom")
    value: Any = None
    args: dict[str, Any] = Field(default_factory=dict)


class ActionIntent(BaseModel):
    model_config = {"extra": "allow"}

    kind: Literal["action"] = "action"
    domain: str
    verb: str
    args: dict[str, Any] = Field(default_factory=dict)


class InteractionIntent(BaseModel):
    model_config = {"extra": "allow"}

    kind: Literal["interaction"] = "interaction"
    verb: str
    variant: str | None = None
    args: dict[str, Any] = Field(default_factory=dict)


class LegacyIntent(BaseModel):
    model_config = {"extra": "allow"}

    kind: Literal["legacy"] = "legacy"
    description: str = ""
    raw: Any = None


BehaviorIntent = Annotated[
    Union[NavigationIntent, MutationIntent, ActionIntent, InteractionIntent, LegacyIntent],
    Field(discriminator="kind"),
]

CANONICAL_KINDS: frozenset[str] = frozenset({"navigation", "mutation", "action", "interaction", "legacy"})

behavior_intent_adapter: TypeAdapter[BehaviorIntent] = TypeAdapter(BehaviorIntent)


@dataclass
class NormalizeResult:
    """
    Result of classifying one raw payload.
    The normalizer never throws; it always returns one of these.
    """

    intent: BehaviorIntent
    warnings: list[str] = field(default_factory=list)
    legacy: bool = False

    @property
    def kind(self) -> str:
        return self.intent.kind

    def to_dict(self) -> dict[str, Any]:
        return {
            "intent": self.intent.model_dump(by_alias=True, exclude_none=True),
            "warnings": list(self.warnings),
            "legacy": self.legacy,
        }
