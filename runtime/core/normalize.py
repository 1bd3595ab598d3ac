"""
Screen Runtime Core - Behavior Intent Normalizer

Classifies raw UI behavior payloads into the canonical BehaviorIntent union.
Pure and total: no IO, never raises. Every branch leaves a trail in
`warnings` and the `legacy` flag instead of throwing, so a malformed action
declaration can never take the host UI down.

Accepted legacy shapes:
  {"type": "Navigation",  "params": {"verb": ..., "variant": ..., ...}}
  {"type": "Interaction", "params": {"verb": ..., "variant": ..., ...}}
  {"type": "Action",      "params": {"name": "state:*" | <verb> | ..., ...}}

Canonical payloads ({"kind": "navigation" | "mutation" | ...}) pass through.
"""

from __future__ import annotations

from typing import Any, Callable

from pydantic import ValidationError

from runtime.core.intents import (
    CANONICAL_KINDS,
    ActionIntent,
    InteractionIntent,
    LegacyIntent,
    MutationIntent,
    NavigationIntent,
    NormalizeResult,
    behavior_intent_adapter,
)
from runtime.core.types import (
    ACTION_VERBS,
    DEFAULT_ACTION_DOMAIN,
    INTERACTION_VERBS,
    LEGACY_ACTION_MARKER,
    LEGACY_STATE_SUFFIXES,
    MUTATION_VERBS,
    NAVIGATION_VERBS,
)

STATE_ACTION_PREFIX = "state:"


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def normalize_behavior_payload(payload: Any) -> NormalizeResult:
    """
    Normalize a behavior payload of any legacy or canonical shape.
    Identical input always yields an identical result.
    """
    if isinstance(payload, dict) and _is_canonical_kind(payload.get("kind")):
        return _pass_through(payload)

    if not isinstance(payload, dict):
        return _legacy(payload, "Non-object behavior payload", "Behavior payload is not an object")

    type_ = _as_string(payload.get("type"))
    if type_ is None:
        return _legacy(payload, "Behavior payload has no type", "Behavior payload is missing a type")

    handler = _LEGACY_HANDLERS.get(type_)
    if handler is None:
        msg = f'Unknown behavior.type "{type_}"'
        return _legacy(payload, msg, msg)

    params = payload.get("params")
    return handler(payload, params if isinstance(params, dict) else {})


def normalize_navigate_detail(detail: Any) -> NormalizeResult:
    """
    Normalize the detail of a navigate event. Destination-only contract:
      {"to": ...} / {"target": ...}   preferred
      {"verb": "back", ...}           canonical verb, passed through
      {"screenId": ...}               legacy
    """
    if not isinstance(detail, dict):
        return _legacy(detail, "navigate detail not an object", "navigate.detail is not an object")

    to = _as_string(detail.get("to")) or _as_string(detail.get("target"))
    if to:
        return NormalizeResult(
            intent=NavigationIntent(verb="go", variant="screen", args={"to": to}),
            legacy=True,
        )

    verb = _as_string(detail.get("verb"))
    if verb and verb in NAVIGATION_VERBS:
        return NormalizeResult(
            intent=NavigationIntent(verb=verb, variant=_as_string(detail.get("variant")), args=dict(detail)),
            legacy=False,
        )

    screen_id = _as_string(detail.get("screenId"))
    if screen_id:
        return NormalizeResult(
            intent=NavigationIntent(verb="go", variant="screen", args={"screenId": screen_id}),
            legacy=True,
        )

    return _legacy(
        detail,
        "navigate detail missing destination",
        "navigate.detail missing destination (to/screenId)",
    )


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _as_string(value: Any) -> str | None:
    """Stripped non-empty string, or None."""
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _is_canonical_kind(kind: Any) -> bool:
    # Exact match only; " mutation " is not a canonical kind
    return isinstance(kind, str) and kind in CANONICAL_KINDS


def _legacy(raw: Any, description: str, warning: str) -> NormalizeResult:
    return NormalizeResult(
        intent=LegacyIntent(description=description, raw=raw),
        warnings=[warning],
        legacy=True,
    )


def _pass_through(payload: dict[str, Any]) -> NormalizeResult:
    kind = payload["kind"]
    try:
        # Extra fields are kept as attributes, so their keys must be strings
        fields = {k if isinstance(k, str) else str(k): v for k, v in payload.items()}
        intent = behavior_intent_adapter.validate_python(fields)
    except ValidationError as e:
        return _legacy(
            payload,
            f"Malformed canonical {kind} intent",
            f"Canonical {kind} intent failed validation ({e.error_count()} error(s))",
        )
    return NormalizeResult(intent=intent, legacy=False)


# ---------------------------------------------------------------------------
# Legacy shape handlers
# ---------------------------------------------------------------------------


def _normalize_navigation(payload: dict[str, Any], params: dict[str, Any]) -> NormalizeResult:
    verb = _as_string(params.get("verb")) or "go"
    warnings: list[str] = []
    if verb not in NAVIGATION_VERBS:
        warnings.append(f'Unknown navigation verb "{verb}" (defaulting to "go")')
        verb = "go"

    intent = NavigationIntent(verb=verb, variant=_as_string(params.get("variant")), args=dict(params))
    return NormalizeResult(intent=intent, warnings=warnings, legacy=True)


def _normalize_interaction(payload: dict[str, Any], params: dict[str, Any]) -> NormalizeResult:
    verb = _as_string(params.get("verb")) or "tap"
    warnings: list[str] = []
    if verb not in INTERACTION_VERBS:
        warnings.append(f'Unknown interaction verb "{verb}" (defaulting to "tap")')
        verb = "tap"

    intent = InteractionIntent(verb=verb, variant=_as_string(params.get("variant")), args=dict(params))
    return NormalizeResult(intent=intent, warnings=warnings, legacy=True)


def _normalize_action(payload: dict[str, Any], params: dict[str, Any]) -> NormalizeResult:
    name = _as_string(params.get("name"))
    if not name:
        return _legacy(payload, "Action payload missing params.name", "Action payload missing params.name")

    if name.startswith(STATE_ACTION_PREFIX):
        return _normalize_state_action(name, params)

    if name in ACTION_VERBS:
        intent = ActionIntent(
            domain=_as_string(params.get("domain")) or DEFAULT_ACTION_DOMAIN,
            verb=name,
            args=dict(params),
        )
        return NormalizeResult(intent=intent, legacy=True)

    msg = f'Non-contract action name "{name}"'
    return _legacy(payload, msg, msg)


def _normalize_state_action(name: str, params: dict[str, Any]) -> NormalizeResult:
    """Decompose a legacy `state:<suffix>` action into a mutation intent."""
    suffix = name[len(STATE_ACTION_PREFIX):]
    warnings: list[str] = []

    verb = suffix if suffix in MUTATION_VERBS else LEGACY_STATE_SUFFIXES.get(suffix)
    if verb is None:
        warnings.append(
            f'Legacy state action "{name}" has unmapped suffix "{suffix}" (defaulting to "update")'
        )
        verb = "update"

    target = (
        _as_string(params.get("target"))
        or _as_string(params.get("fieldKey"))
        or _as_string(params.get("key"))
    )
    intent = MutationIntent(
        verb=verb,
        target=target,
        value_from=_as_string(params.get("valueFrom")),
        value=params.get("value"),
        args={**params, LEGACY_ACTION_MARKER: name},
    )
    return NormalizeResult(intent=intent, warnings=warnings, legacy=True)


_LEGACY_HANDLERS: dict[str, Callable[[dict[str, Any], dict[str, Any]], NormalizeResult]] = {
    "Navigation": _normalize_navigation,
    "Interaction": _normalize_interaction,
    "Action": _normalize_action,
}
