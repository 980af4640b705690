"""Application state tree and the reducer that mutates it.

The state is an immutable snapshot. Every change goes through
:func:`reducer`, a pure function of ``(state, action)``, invoked by
:meth:`TrainingStore.dispatch`. Network and storage I/O happen in callers,
before or after dispatch, never inside the reducer.
"""

from collections import deque
from collections.abc import Mapping
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Callable, Dict, List, NamedTuple, Optional, Tuple

from loguru import logger

from errors import TrainingError
from schemas import Exercise, Plan, Session


class View(str, Enum):
    DASHBOARD = "dashboard"
    EXERCISES = "exercises"
    PLANS = "plans"
    WORKOUT = "workout"
    HISTORY = "history"


class ActionType(str, Enum):
    SET_VIEW = "SET_VIEW"
    LOAD_DATA = "LOAD_DATA"
    ADD_EXERCISE = "ADD_EXERCISE"
    UPDATE_EXERCISE = "UPDATE_EXERCISE"
    DELETE_EXERCISE = "DELETE_EXERCISE"
    ADD_PLAN = "ADD_PLAN"
    UPDATE_PLAN = "UPDATE_PLAN"
    DELETE_PLAN = "DELETE_PLAN"
    START_SESSION = "START_SESSION"
    UPDATE_SESSION = "UPDATE_SESSION"
    END_SESSION = "END_SESSION"
    ADD_SESSION = "ADD_SESSION"


class Action(NamedTuple):
    type: str
    payload: Any = None


@dataclass(frozen=True)
class TrainingState:
    exercises: Tuple[Exercise, ...] = ()
    plans: Tuple[Plan, ...] = ()
    sessions: Tuple[Session, ...] = ()
    current_view: View = View.DASHBOARD
    active_session: Optional[Session] = None


def _replace_by_id(items: tuple, record) -> tuple:
    return tuple(record if item.id == record.id else item for item in items)


def _remove_by_id(items: tuple, record_id: str) -> tuple:
    return tuple(item for item in items if item.id != record_id)


def _set_view(state: TrainingState, payload) -> TrainingState:
    try:
        return replace(state, current_view=View(payload))
    except ValueError:
        return state


def _collection(items) -> tuple:
    if not isinstance(items, (list, tuple)):
        return ()
    return tuple(item for item in items if getattr(item, "id", None) is not None)


def _load_data(state: TrainingState, payload) -> TrainingState:
    if not isinstance(payload, Mapping):
        return state
    return replace(
        state,
        exercises=_collection(payload.get("exercises")),
        plans=_collection(payload.get("plans")),
        sessions=_collection(payload.get("sessions")),
    )


def _records(field_name: str, update: Callable[[tuple, Any], tuple]):
    """Build a handler that applies ``update`` to one collection.

    Payloads without an ``id`` leave the state untouched.
    """

    def handler(state: TrainingState, payload) -> TrainingState:
        if getattr(payload, "id", None) is None:
            return state
        return replace(state, **{field_name: update(getattr(state, field_name), payload)})

    return handler


def _remove(field_name: str):
    def handler(state: TrainingState, payload) -> TrainingState:
        if not isinstance(payload, str):
            return state
        return replace(
            state, **{field_name: _remove_by_id(getattr(state, field_name), payload)}
        )

    return handler


def _append(items: tuple, record) -> tuple:
    return items + (record,)


def _set_active(state: TrainingState, payload) -> TrainingState:
    if not isinstance(payload, Session):
        return state
    return replace(state, active_session=payload)


_HANDLERS: Dict[str, Callable[[TrainingState, Any], TrainingState]] = {
    ActionType.SET_VIEW: _set_view,
    ActionType.LOAD_DATA: _load_data,
    ActionType.ADD_EXERCISE: _records("exercises", _append),
    ActionType.UPDATE_EXERCISE: _records("exercises", _replace_by_id),
    ActionType.DELETE_EXERCISE: _remove("exercises"),
    ActionType.ADD_PLAN: _records("plans", _append),
    ActionType.UPDATE_PLAN: _records("plans", _replace_by_id),
    ActionType.DELETE_PLAN: _remove("plans"),
    ActionType.START_SESSION: _set_active,
    ActionType.UPDATE_SESSION: _set_active,
    ActionType.END_SESSION: lambda s, p: replace(s, active_session=None),
    ActionType.ADD_SESSION: _records("sessions", _append),
}


def reducer(state: TrainingState, action: Action) -> TrainingState:
    """Return the state that results from applying ``action`` to ``state``.

    Unknown action types and malformed payloads leave the state untouched.
    """
    action_type = getattr(action, "type", None)
    handler = _HANDLERS.get(action_type) if isinstance(action_type, str) else None
    if handler is None:
        return state
    return handler(state, getattr(action, "payload", None))


Listener = Callable[[TrainingState, Action], None]


class TrainingStore:
    """Owns the current state and applies dispatched actions in order."""

    def __init__(
        self,
        initial: Optional[TrainingState] = None,
        reduce: Callable[[TrainingState, Action], TrainingState] = reducer,
    ) -> None:
        self._state = initial or TrainingState()
        self._reduce = reduce
        self._listeners: List[Listener] = []
        self._queue: deque = deque()
        self._dispatching = False

    @property
    def state(self) -> TrainingState:
        return self._state

    def dispatch(self, action: Action) -> TrainingState:
        # Actions dispatched from a listener are queued behind the current one.
        self._queue.append(action)
        if self._dispatching:
            return self._state
        self._dispatching = True
        try:
            while self._queue:
                current = self._queue.popleft()
                self._state = self._reduce(self._state, current)
                for listener in list(self._listeners):
                    listener(self._state, current)
        finally:
            self._dispatching = False
            self._queue.clear()
        return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe


def find_exercise(state: TrainingState, exercise_id: str) -> Optional[Exercise]:
    return next((ex for ex in state.exercises if ex.id == exercise_id), None)


def find_plan(state: TrainingState, plan_id: str) -> Optional[Plan]:
    return next((p for p in state.plans if p.id == plan_id), None)


def plan_exercises(state: TrainingState, plan: Plan) -> List[Exercise]:
    """Resolve a plan's exercise ids in order, skipping ids with no exercise."""
    resolved = []
    for exercise_id in plan.exercise_ids:
        exercise = find_exercise(state, exercise_id)
        if exercise is not None:
            resolved.append(exercise)
    return resolved


def bootstrap(store: TrainingStore, gateway) -> TrainingState:
    """Provision the backend and load all collections into ``store``.

    Falls back to empty collections when the backend cannot be reached.
    """
    try:
        gateway.initialize_store()
        data = {
            "exercises": gateway.list_exercises(),
            "plans": gateway.list_plans(),
            "sessions": gateway.list_sessions(),
        }
    except TrainingError as e:
        logger.error("Failed to load data: {}", e.message)
        data = {"exercises": [], "plans": [], "sessions": []}
    return store.dispatch(Action(ActionType.LOAD_DATA, data))
