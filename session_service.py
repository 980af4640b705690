"""Staged logging of a workout session.

The service owns the in-progress workout and the sets recorded for it.
Nothing is persisted until :meth:`WorkoutSessionService.finish` sends the
whole session in one request.
"""

from __future__ import annotations

import datetime
import uuid
from enum import Enum
from typing import Iterable, List, Optional, Tuple

from loguru import logger

from client import TrainingClient
from errors import NotFoundError, SessionStateError, ValidationError
from schemas import Entry, Exercise, Session, SessionCreate, parse
from state import (
    Action,
    ActionType,
    TrainingStore,
    find_exercise,
    find_plan,
    plan_exercises,
)


class SessionStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMMITTING = "committing"
    COMPLETED = "completed"


class WorkoutSessionService:
    """Stages the sets of an in-progress workout and commits them at once.

    Sets are kept locally while the workout is performed. ``finish`` sends
    the whole session in one request; on failure the staged sets stay in
    place so the commit can be retried.
    """

    def __init__(self, store: TrainingStore, gateway: TrainingClient) -> None:
        self.store = store
        self.gateway = gateway
        self._reset()

    def _reset(self) -> None:
        self.status = SessionStatus.NOT_STARTED
        self.exercises: List[Exercise] = []
        self.current_index = 0
        self.current_set = 1
        self._entries: List[Entry] = []

    @property
    def entries(self) -> Tuple[Entry, ...]:
        return tuple(self._entries)

    @property
    def current_exercise(self) -> Optional[Exercise]:
        if 0 <= self.current_index < len(self.exercises):
            return self.exercises[self.current_index]
        return None

    def start(
        self,
        plan_id: Optional[str] = None,
        exercise_ids: Optional[Iterable[str]] = None,
        date: Optional[datetime.datetime] = None,
    ) -> Session:
        """Begin a workout from a plan or from an ad-hoc list of exercises."""
        # Only one workout at a time; discard or finish the current one first.
        if self.status in (SessionStatus.IN_PROGRESS, SessionStatus.COMMITTING):
            raise SessionStateError("A workout session is already in progress")
        state = self.store.state
        if plan_id:
            plan = find_plan(state, plan_id)
            if plan is None:
                raise NotFoundError("Plan not found")
            exercises = plan_exercises(state, plan)
        elif exercise_ids is not None:
            exercises = [
                ex
                for ex in (find_exercise(state, eid) for eid in exercise_ids)
                if ex is not None
            ]
        else:
            raise ValidationError("Choose a workout plan or a list of exercises")

        self._reset()
        self.exercises = exercises
        self.status = SessionStatus.IN_PROGRESS
        session = Session(
            id=f"local-{uuid.uuid4()}",
            date=date or datetime.datetime.now(datetime.timezone.utc),
            plan_id=plan_id or None,
            entries=(),
        )
        self.store.dispatch(Action(ActionType.START_SESSION, session))
        logger.info(
            "Workout started with {} exercises (plan={})", len(exercises), plan_id
        )
        return session

    def add_set(self, weight: float, reps: int, notes: Optional[str] = None) -> Entry:
        """Record one set for the current exercise."""
        if self.status != SessionStatus.IN_PROGRESS:
            raise SessionStateError("No workout session in progress")
        exercise = self.current_exercise
        if exercise is None:
            raise SessionStateError("No current exercise")
        entry = parse(
            Entry,
            {
                "exercise_id": exercise.id,
                "set_index": self.current_set,
                "weight": weight,
                "reps": reps,
                "notes": notes or None,
            },
        )
        self._entries.append(entry)
        self.current_set += 1
        active = self.store.state.active_session
        if active is not None:
            self.store.dispatch(
                Action(
                    ActionType.UPDATE_SESSION,
                    active.model_copy(update={"entries": self.entries}),
                )
            )
        return entry

    def advance_exercise(self, direction: int) -> bool:
        """Move the cursor one exercise forward (+1) or back (-1).

        Returns False without changing anything when the move would leave
        the exercise list.
        """
        if direction not in (1, -1):
            raise ValidationError("direction must be +1 or -1")
        if self.status != SessionStatus.IN_PROGRESS:
            return False
        target = self.current_index + direction
        if target < 0 or target > len(self.exercises) - 1:
            return False
        self.current_index = target
        self.current_set = 1
        return True

    def next_exercise(self) -> bool:
        return self.advance_exercise(1)

    def previous_exercise(self) -> bool:
        return self.advance_exercise(-1)

    def current_exercise_sets(self) -> List[Entry]:
        exercise = self.current_exercise
        if exercise is None:
            return []
        return [e for e in self._entries if e.exercise_id == exercise.id]

    def summary(self) -> List[Tuple[Exercise, List[Entry]]]:
        """Staged sets grouped per exercise in workout order."""
        return [
            (ex, [e for e in self._entries if e.exercise_id == ex.id])
            for ex in self.exercises
        ]

    def payload(self) -> SessionCreate:
        active = self.store.state.active_session
        if active is None:
            raise SessionStateError("No active session")
        return parse(
            SessionCreate,
            {"date": active.date, "plan_id": active.plan_id, "entries": self.entries},
        )

    def finish(self) -> Session:
        """Commit the active session and merge the stored copy into the store."""
        if self.store.state.active_session is None:
            raise SessionStateError("No active session")
        if self.status == SessionStatus.COMMITTING:
            raise SessionStateError("Session is already being saved")
        payload = self.payload()
        self.status = SessionStatus.COMMITTING
        try:
            saved = self.gateway.create_session(payload)
        except Exception:
            self.status = SessionStatus.IN_PROGRESS
            logger.error(
                "Failed to save session; {} staged sets kept", len(self._entries)
            )
            raise
        self.store.dispatch(Action(ActionType.ADD_SESSION, saved))
        self.store.dispatch(Action(ActionType.END_SESSION))
        self._reset()
        self.status = SessionStatus.COMPLETED
        logger.info("Session {} saved with {} sets", saved.id, len(saved.entries))
        return saved

    def discard(self) -> None:
        """Abandon the in-progress workout without saving it."""
        if self.status == SessionStatus.COMMITTING:
            raise SessionStateError("Session is already being saved")
        if self.store.state.active_session is not None:
            self.store.dispatch(Action(ActionType.END_SESSION))
        self._reset()
