"""
Screen Runtime Core - Dispatch Bridge

Single installation point between UI-originated events and their effects.
Pure event routing: no domain logic, no journal knowledge.

Every received event is normalized, then produces at most one effect
category:
  - mutation    → exactly one Runtime.dispatch
  - navigation  → the injected navigate(to) callback
  - delegated   → an externally owned executor (contract-verb runner, or
                  the runtime-verb interpreter resolved on first use)

Anomalies never raise into the UI. They are logged and recorded as
diagnostic stages.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import threading
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from runtime.core.channel import (
    EVENT_ACTION,
    EVENT_INPUT_CHANGE,
    EVENT_INTERACTION,
    EVENT_NAVIGATE,
    EVENT_STATE_MUTATE,
    EventChannel,
    UIEvent,
)
from runtime.core.intents import (
    ActionIntent,
    InteractionIntent,
    LegacyIntent,
    MutationIntent,
    NavigationIntent,
)
from runtime.core.normalize import (
    STATE_ACTION_PREFIX,
    normalize_behavior_payload,
    normalize_navigate_detail,
)
from runtime.core.runtime import Runtime
from runtime.core.types import (
    ACTION_VERBS,
    CONTRACT_VERBS,
    DEFAULT_ACTION_DOMAIN,
    INTENT_CURRENT_VIEW,
    INTENT_JOURNAL_ADD,
    INTENT_STATE_UPDATE,
    INTERACTION_VERBS,
    LEGACY_ACTION_MARKER,
    DerivedState,
)

logger = logging.getLogger(__name__)

VALUE_FROM_INPUT = "input"

# Params consumed by the legacy state:* mutation bridge itself
_MUTATION_CONTROL_KEYS = frozenset({"name", "valueFrom", "value", "fieldKey", LEGACY_ACTION_MARKER})


# ---------------------------------------------------------------------------
# Executor capability interfaces
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class NavigationContext:
    """
    Handlers a contract-verb runner may use to reach the host.

    Every handler funnels into navigate() with a destination string:
    screens as "|id", overlays as "<kind>:id", and closes as "<kind>:close".
    """

    navigate: Callable[[str], None]

    def set_screen(self, screen_id: str) -> None:
        self.navigate(f"|{screen_id}")

    def open_modal(self, modal_id: str) -> None:
        self.navigate(f"modal:{modal_id}")

    def set_flow(self, flow_id: str) -> None:
        self.navigate(f"flow:{flow_id}")

    def go_back(self, steps: int = 1) -> None:
        self.navigate(f"back:{steps}")

    def go_root(self) -> None:
        self.navigate("root")

    def open_panel(self, panel_id: str) -> None:
        self.navigate(f"panel:{panel_id}")

    def open_sheet(self, sheet_id: str) -> None:
        self.navigate(f"sheet:{sheet_id}")

    def close_panel(self) -> None:
        self.navigate("panel:close")

    def close_sheet(self) -> None:
        self.navigate("sheet:close")


class ContractVerbRunner:
    """
    Executes contract verb tokens (tap, go, crop, ...).
    Implemented outside the core; may return an awaitable.
    """

    def run(self, domain: str, action_name: str, context: NavigationContext, params: dict[str, Any]) -> Any:
        raise NotImplementedError


class RuntimeVerbInterpreter:
    """
    Interprets any other named action against the current derived state.
    Implemented outside the core; may return an awaitable.
    """

    def interpret(self, action: dict[str, Any], current_state: DerivedState) -> Any:
        raise NotImplementedError


# ---------------------------------------------------------------------------
# Bridge
# ---------------------------------------------------------------------------


class DispatchBridge:
    """
    Routes channel events into the runtime.

    install() is latched: a second install is counted but never registers
    a second set of listeners, so a remounting host cannot double effects.
    """

    def __init__(
        self,
        runtime: Runtime,
        navigate: Callable[[str], None],
        *,
        contract_runner: ContractVerbRunner | None = None,
        interpreter_factory: Callable[[], RuntimeVerbInterpreter] | None = None,
    ) -> None:
        self.runtime = runtime
        self.diagnostics = runtime.diagnostics
        self._navigate = navigate
        self._contract_runner = contract_runner
        self._interpreter_factory = interpreter_factory
        self._interpreter: RuntimeVerbInterpreter | None = None

        self.install_count = 0
        self._channel: EventChannel | None = None
        self._unsubscribers: list[Callable[[], None]] = []

        # Ephemeral input buffers. Not state: never logged, never persisted.
        self._last_input_value: Any = None
        self._input_by_field: dict[str, Any] = {}
        self._last_field_key: str | None = None

        self._lock = threading.RLock()
        self._in_flight: set[str] = set()
        self._pending: set[asyncio.Task] = set()

    # -- installation --

    @property
    def installed(self) -> bool:
        return self._channel is not None

    def install(self, channel: EventChannel) -> bool:
        """Register listeners on the channel. Returns False on repeat installs."""
        with self._lock:
            self.install_count += 1
            if self._channel is not None:
                logger.debug("bridge: already installed (install #%d ignored)", self.install_count)
                self.diagnostics.passed("bridge.install", installed=False, count=self.install_count)
                return False

            self._channel = channel
            listeners: dict[str, Callable[[Any], bool]] = {
                EVENT_NAVIGATE: self.handle_navigate,
                EVENT_ACTION: self.handle_action,
                EVENT_INPUT_CHANGE: self.handle_input_change,
                EVENT_STATE_MUTATE: self.handle_state_mutate,
                EVENT_INTERACTION: self.handle_interaction,
            }
            for name, handler in listeners.items():
                self._unsubscribers.append(channel.add_listener(name, _detail_listener(handler)))

            self.diagnostics.passed("bridge.install", installed=True, count=self.install_count)
            return True

    def uninstall(self) -> None:
        with self._lock:
            for unsubscribe in self._unsubscribers:
                unsubscribe()
            self._unsubscribers = []
            self._channel = None

    # -- navigate --

    def handle_navigate(self, detail: Any) -> bool:
        with self._lock:
            result = normalize_navigate_detail(detail)
            for warning in result.warnings:
                logger.warning("bridge: navigate normalize: %s (detail=%r)", warning, detail)

            intent = result.intent
            if not isinstance(intent, NavigationIntent):
                self.diagnostics.failed("navigate", reason="unhandled navigation payload", warnings=result.warnings)
                return False

            destination = _destination(intent.args)
            if destination is None:
                logger.warning("bridge: missing destination after normalization (detail=%r)", detail)
                self.diagnostics.failed("navigate", reason="missing destination", verb=intent.verb)
                return False
            return self._go(destination)

    # -- input capture --

    def handle_input_change(self, detail: Any) -> bool:
        """
        Capture typing. With a field key the value is also echoed into
        state.values through state.update (persistence exempt).
        """
        with self._lock:
            detail = detail if isinstance(detail, dict) else {}
            value = detail.get("value")
            field_key = detail.get("fieldKey")
            self._last_input_value = value

            if isinstance(field_key, str) and field_key:
                self._input_by_field[field_key] = value
                self._last_field_key = field_key
                if value is not None:
                    return self.runtime.dispatch(INTENT_STATE_UPDATE, {"key": field_key, "value": value})
                return False

            logger.warning("bridge: input-change missing fieldKey, buffering value only")
            return False

    def handle_state_mutate(self, detail: Any) -> bool:
        """{name, ...payload} → dispatch(name, payload)."""
        with self._lock:
            if not isinstance(detail, dict):
                return False
            name = detail.get("name")
            if not isinstance(name, str) or not name:
                return False
            payload = {k: v for k, v in detail.items() if k != "name"}
            return self._commit(name, payload)

    def handle_interaction(self, detail: Any) -> bool:
        # Reserved channel
        self.diagnostics.passed("interaction", reserved=True)
        return False

    # -- actions --

    def handle_action(self, behavior: Any) -> bool:
        with self._lock:
            result = normalize_behavior_payload(behavior)
            params = _params_of(behavior)
            intent = result.intent
            for warning in result.warnings:
                logger.warning("bridge: action normalize: %s (intent=%s)", warning, intent.kind)
            self.diagnostics.record(
                "action.normalize",
                "fail" if isinstance(intent, LegacyIntent) else "pass",
                kind=intent.kind,
                legacy=result.legacy,
                warnings=list(result.warnings),
            )

            if isinstance(intent, MutationIntent):
                return self._run_mutation(intent)
            if isinstance(intent, ActionIntent):
                return self._delegate_contract(intent.domain, intent.verb, intent.args)
            if isinstance(intent, InteractionIntent):
                return self._delegate_contract("interaction", intent.verb, intent.args)
            if isinstance(intent, NavigationIntent):
                destination = _destination(intent.args)
                if intent.verb == "go" and destination is not None:
                    return self._go(destination)
                return self._delegate_contract("navigation", intent.verb, intent.args)

            return self._run_named_action(params)

    def _run_named_action(self, params: dict[str, Any]) -> bool:
        name = params.get("name")
        if not isinstance(name, str) or not name:
            logger.warning("bridge: action missing name")
            self.diagnostics.failed("action", reason="missing action name")
            return False

        if name == "navigate":
            to = params.get("to")
            if not isinstance(to, str) or not to:
                logger.warning("bridge: navigate action missing 'to'")
                self.diagnostics.failed("navigate", reason="missing destination", action=name)
                return False
            return self._go(to)

        if name in CONTRACT_VERBS:
            return self._delegate_contract(_infer_domain(name, params), name, params)

        return self._delegate_runtime(name, params)

    # -- mutation path --

    def _run_mutation(self, intent: MutationIntent) -> bool:
        legacy_name = intent.args.get(LEGACY_ACTION_MARKER)
        if isinstance(legacy_name, str) and legacy_name.startswith(STATE_ACTION_PREFIX):
            return self._run_legacy_mutation(legacy_name[len(STATE_ACTION_PREFIX):], intent.args)
        return self._run_canonical_mutation(intent)

    def _run_legacy_mutation(self, mutation: str, params: dict[str, Any]) -> bool:
        rest = {k: v for k, v in params.items() if k not in _MUTATION_CONTROL_KEYS}
        field_key = params.get("fieldKey")
        field_key = field_key if isinstance(field_key, str) and field_key else None

        value = params.get("value")
        if params.get("valueFrom") == VALUE_FROM_INPUT:
            value = self._resolve_input(mutation, field_key)

        if mutation == "currentView" and value is not None:
            return self._commit(INTENT_CURRENT_VIEW, {"value": value})

        if mutation == "update":
            key = rest.get("key")
            if key is None:
                key = rest.get("target")
            if isinstance(key, str) and key:
                return self._commit(INTENT_STATE_UPDATE, {"key": key, "value": value})

        if mutation == "journal.add":
            key = rest.get("key")
            if isinstance(key, str):
                return self._commit(INTENT_JOURNAL_ADD, {"track": rest.get("track"), "key": key, "value": value})

        return self._commit(mutation, {"value": value, **rest})

    def _run_canonical_mutation(self, intent: MutationIntent) -> bool:
        value = intent.value
        if intent.value_from == VALUE_FROM_INPUT:
            label = "journal.add" if intent.verb == "append" else intent.verb
            value = self._resolve_input(label, intent.target)

        target = intent.target
        if intent.verb == "update" and target:
            return self._commit(INTENT_STATE_UPDATE, {"key": target, "value": value})
        if intent.verb == "replace" and target == "currentView" and value is not None:
            return self._commit(INTENT_CURRENT_VIEW, {"value": value})
        if intent.verb == "append" and target:
            track = intent.args.get("track") or intent.scope
            return self._commit(INTENT_JOURNAL_ADD, {"track": track, "key": target, "value": value})

        return self._commit(intent.verb, {"target": target, "value": value, **intent.args})

    def _resolve_input(self, mutation: str, field_key: str | None) -> Any:
        """
        Resolve valueFrom="input". Durable state.values wins over the
        ephemeral buffers; journal.add reads durable state only.
        """
        values = self.runtime.state.values
        source = None
        value = None

        if field_key is not None and field_key in values:
            value, source = values[field_key], "state"
        elif mutation != "journal.add":
            fk = field_key or self._last_field_key
            if fk is not None and fk in self._input_by_field:
                value, source = self._input_by_field[fk], "buffer"
            else:
                value, source = self._last_input_value, "last-input"

        if value is None:
            logger.error(
                "bridge: input pipeline broken: %s has valueFrom=input but nothing resolved (fieldKey=%s, lastFieldKey=%s)",
                mutation,
                field_key,
                self._last_field_key,
            )
            self.diagnostics.failed(
                "input.resolve",
                mutation=mutation,
                fieldKey=field_key,
                lastFieldKey=self._last_field_key,
            )
            return None

        self.diagnostics.passed("input.resolve", mutation=mutation, fieldKey=field_key, source=source)
        return value

    def _commit(self, intent: str, payload: dict[str, Any]) -> bool:
        ok = self.runtime.dispatch(intent, payload)
        self.diagnostics.record("action.mutation", "pass" if ok else "fail", intent=intent)
        return ok

    # -- navigation path --

    def _go(self, destination: str) -> bool:
        try:
            self._navigate(destination)
        except Exception:
            logger.exception("bridge: navigate callback failed for %s", destination)
            self.diagnostics.failed("navigate", to=destination, reason="callback raised")
            return False
        self.diagnostics.passed("navigate", to=destination)
        return True

    # -- delegated path --

    def _delegate_contract(self, domain: str, verb: str, params: dict[str, Any]) -> bool:
        runner = self._contract_runner
        if runner is None:
            logger.warning("bridge: no contract runner for %s/%s", domain, verb)
            self.diagnostics.failed("delegate.contract", action=verb, domain=domain, reason="no runner")
            return False

        context = NavigationContext(navigate=self._navigate)
        args = dict(params)
        return self._delegate("contract", verb, lambda: runner.run(domain, verb, context, args))

    def _delegate_runtime(self, name: str, params: dict[str, Any]) -> bool:
        interpreter = self._resolve_interpreter()
        if interpreter is None:
            logger.warning("bridge: unhandled action: %s", name)
            self.diagnostics.failed("delegate.runtime", action=name, reason="no interpreter")
            return False

        current_state = self.runtime.state
        descriptor = {**params, "name": name}
        return self._delegate("runtime", name, lambda: interpreter.interpret(descriptor, current_state))

    def _resolve_interpreter(self) -> RuntimeVerbInterpreter | None:
        if self._interpreter is None and self._interpreter_factory is not None:
            try:
                self._interpreter = self._interpreter_factory()
            except Exception:
                logger.exception("bridge: runtime interpreter could not be resolved")
                return None
            logger.debug("bridge: runtime interpreter resolved")
        return self._interpreter

    def _delegate(self, path: str, action: str, call: Callable[[], Any]) -> bool:
        stage = f"delegate.{path}"
        if path in self._in_flight:
            logger.warning("bridge: skipping re-entrant %s action: %s", path, action)
            self.diagnostics.failed(stage, action=action, reason="re-entrant")
            return False

        self._in_flight.add(path)
        try:
            result = call()
        except Exception:
            self._in_flight.discard(path)
            logger.exception("bridge: %s executor failed for %s", path, action)
            self.diagnostics.failed(stage, action=action, reason="executor raised")
            return False

        if inspect.isawaitable(result):
            return self._await_delegate(path, action, result)

        self._in_flight.discard(path)
        self.diagnostics.passed(stage, action=action)
        return True

    def _await_delegate(self, path: str, action: str, awaitable: Awaitable[Any]) -> bool:
        """
        Keep the latch held across the suspension. On a running loop the
        work is scheduled; without one it is run to completion here.
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        if loop is None:
            try:
                asyncio.run(_wrap(awaitable))
            except Exception:
                logger.exception("bridge: %s executor failed for %s", path, action)
                self.diagnostics.failed(f"delegate.{path}", action=action, reason="executor raised")
                return False
            finally:
                self._in_flight.discard(path)
            self.diagnostics.passed(f"delegate.{path}", action=action)
            return True

        task = loop.create_task(_wrap(awaitable))
        self._pending.add(task)
        task.add_done_callback(lambda t: self._finish_delegate(path, action, t))
        self.diagnostics.passed(f"delegate.{path}", action=action, scheduled=True)
        return True

    def _finish_delegate(self, path: str, action: str, task: asyncio.Task) -> None:
        with self._lock:
            self._pending.discard(task)
            self._in_flight.discard(path)
            stage = f"delegate.{path}"
            if task.cancelled():
                self.diagnostics.failed(stage, action=action, reason="cancelled")
                return
            exc = task.exception()
            if exc is not None:
                logger.error("bridge: %s executor failed for %s", path, action, exc_info=exc)
                self.diagnostics.failed(stage, action=action, reason="executor raised")
                return
            self.diagnostics.passed(stage, action=action, completed=True)

    def in_flight(self, path: str) -> bool:
        return path in self._in_flight

    async def wait_idle(self) -> None:
        """Wait for every scheduled delegated action to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _detail_listener(handler: Callable[[Any], bool]) -> Callable[[UIEvent], None]:
    def listener(event: UIEvent) -> None:
        handler(event.detail)

    return listener


def _params_of(behavior: Any) -> dict[str, Any]:
    if isinstance(behavior, dict) and isinstance(behavior.get("params"), dict):
        return behavior["params"]
    return {}


def _destination(args: dict[str, Any]) -> str | None:
    for key in ("to", "screenId", "target"):
        value = args.get(key)
        if isinstance(value, str) and value:
            return value
    return None


def _infer_domain(verb: str, params: dict[str, Any]) -> str:
    if verb in ACTION_VERBS:
        domain = params.get("domain")
        return domain if isinstance(domain, str) and domain else DEFAULT_ACTION_DOMAIN
    if verb in INTERACTION_VERBS:
        return "interaction"
    return "navigation"


async def _wrap(awaitable: Awaitable[Any]) -> Any:
    return await awaitable
