import os
import sys
import uuid
import datetime
import unittest
import pytest
from fastapi.testclient import TestClient

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from client import TrainingClient
from errors import NotFoundError, SessionStateError, UnknownStoreError, ValidationError
from rest_api import TrainingAPI
from schemas import Exercise, Plan, Session
from session_service import SessionStatus, WorkoutSessionService
from state import Action, ActionType, TrainingState, TrainingStore, bootstrap


START = datetime.datetime(2024, 5, 1, 10, 0, tzinfo=datetime.timezone.utc)


class FakeGateway:
    def __init__(self, failures: int = 0) -> None:
        self.failures = failures
        self.payloads = []

    def create_session(self, payload):
        self.payloads.append(payload)
        if self.failures:
            self.failures -= 1
            raise UnknownStoreError("Failed to create session")
        return Session(
            id=str(uuid.uuid4()),
            date=payload.date,
            plan_id=payload.plan_id,
            entries=payload.entries,
        )


def exercise(name: str) -> Exercise:
    return Exercise(id=str(uuid.uuid4()), name=name, category="Strength", muscle_group="Chest")


@pytest.fixture
def library():
    a, b, c = exercise("Bench Press"), exercise("Overhead Press"), exercise("Dip")
    plan = Plan(id=str(uuid.uuid4()), name="Push Day", exercise_ids=(a.id, b.id))
    store = TrainingStore(TrainingState(exercises=(a, b, c), plans=(plan,)))
    return store, plan, a, b, c


def test_push_day_scenario(library):
    store, plan, a, b, _ = library
    gateway = FakeGateway()
    workout = WorkoutSessionService(store, gateway)
    workout.start(plan_id=plan.id, date=START)
    assert workout.status == SessionStatus.IN_PROGRESS
    assert store.state.active_session.plan_id == plan.id

    workout.add_set(weight=100, reps=8)
    assert [(e.exercise_id, e.set_index, e.weight, e.reps) for e in workout.entries] == [
        (a.id, 1, 100, 8)
    ]
    assert workout.advance_exercise(1)
    assert workout.current_exercise == b
    assert workout.current_set == 1
    workout.add_set(weight=50, reps=12)

    saved = workout.finish()
    assert [(e.exercise_id, e.set_index, e.weight, e.reps) for e in saved.entries] == [
        (a.id, 1, 100, 8),
        (b.id, 1, 50, 12),
    ]
    assert gateway.payloads[0].date == START
    assert store.state.sessions == (saved,)
    assert store.state.active_session is None
    assert workout.entries == ()
    assert workout.status == SessionStatus.COMPLETED


def test_set_index_increments_per_exercise(library):
    store, plan, a, _, _ = library
    workout = WorkoutSessionService(store, FakeGateway())
    workout.start(plan_id=plan.id)
    for reps in (10, 8, 6):
        workout.add_set(60, reps)
    assert [e.set_index for e in workout.entries] == [1, 2, 3]
    assert [e.reps for e in workout.entries] == [10, 8, 6]
    assert store.state.active_session.entries == workout.entries
    assert workout.current_exercise_sets() == list(workout.entries)


def test_advance_resets_counter_and_respects_bounds(library):
    store, plan, a, b, _ = library
    workout = WorkoutSessionService(store, FakeGateway())
    workout.start(plan_id=plan.id)
    assert not workout.advance_exercise(-1)
    workout.add_set(100, 5)
    workout.add_set(100, 5)
    assert workout.current_set == 3
    assert workout.next_exercise()
    assert workout.current_set == 1
    workout.add_set(40, 10)
    assert not workout.next_exercise()
    assert workout.current_set == 2
    assert workout.previous_exercise()
    assert workout.current_set == 1
    workout.add_set(90, 5)
    assert [(e.exercise_id, e.set_index) for e in workout.entries] == [
        (a.id, 1),
        (a.id, 2),
        (b.id, 1),
        (a.id, 1),
    ]
    with pytest.raises(ValidationError):
        workout.advance_exercise(2)


def test_invalid_sets_are_rejected(library):
    store, plan, _, _, _ = library
    workout = WorkoutSessionService(store, FakeGateway())
    with pytest.raises(SessionStateError):
        workout.add_set(100, 5)
    workout.start(plan_id=plan.id)
    with pytest.raises(ValidationError):
        workout.add_set(0, 5)
    with pytest.raises(ValidationError):
        workout.add_set(100, -1)
    with pytest.raises(ValidationError):
        workout.add_set(100, 2.5)
    with pytest.raises(ValidationError):
        workout.add_set(True, 5)
    with pytest.raises(ValidationError):
        workout.add_set(100, True)
    assert workout.entries == ()
    assert workout.current_set == 1


def test_finish_without_sets(library):
    store, plan, _, _, _ = library
    gateway = FakeGateway()
    workout = WorkoutSessionService(store, gateway)
    workout.start(plan_id=plan.id)
    saved = workout.finish()
    assert gateway.payloads[0].entries == ()
    assert saved.entries == ()
    assert len(store.state.sessions) == 1


def test_failed_commit_keeps_staged_sets(library):
    store, plan, _, _, _ = library
    gateway = FakeGateway(failures=1)
    workout = WorkoutSessionService(store, gateway)
    workout.start(plan_id=plan.id)
    workout.add_set(100, 5)
    workout.add_set(105, 3)
    staged = workout.entries

    with pytest.raises(UnknownStoreError):
        workout.finish()
    assert workout.status == SessionStatus.IN_PROGRESS
    assert workout.entries == staged
    assert store.state.active_session is not None
    assert store.state.sessions == ()

    workout.add_set(110, 1)
    saved = workout.finish()
    assert len(saved.entries) == 3
    assert gateway.payloads[1].entries[:2] == staged


def test_finish_requires_active_session(library):
    store, _, _, _, _ = library
    workout = WorkoutSessionService(store, FakeGateway())
    with pytest.raises(SessionStateError):
        workout.finish()


def test_start_rules(library):
    store, plan, _, _, _ = library
    workout = WorkoutSessionService(store, FakeGateway())
    with pytest.raises(NotFoundError):
        workout.start(plan_id=str(uuid.uuid4()))
    with pytest.raises(ValidationError):
        workout.start()
    workout.start(plan_id=plan.id)
    with pytest.raises(SessionStateError):
        workout.start(plan_id=plan.id)


def test_custom_workout(library):
    store, _, a, _, c = library
    gateway = FakeGateway()
    workout = WorkoutSessionService(store, gateway)
    workout.start(exercise_ids=[c.id, str(uuid.uuid4()), a.id])
    assert workout.exercises == [c, a]
    workout.add_set(20, 15)
    saved = workout.finish()
    assert saved.plan_id is None
    assert saved.entries[0].exercise_id == c.id


def test_plan_with_deleted_exercise(library):
    store, plan, a, b, _ = library
    store.dispatch(Action(ActionType.DELETE_EXERCISE, a.id))
    workout = WorkoutSessionService(store, FakeGateway())
    workout.start(plan_id=plan.id)
    assert workout.exercises == [b]
    assert [ex.id for ex, sets in workout.summary()] == [b.id]


def test_discard(library):
    store, plan, _, _, _ = library
    workout = WorkoutSessionService(store, FakeGateway())
    workout.start(plan_id=plan.id)
    workout.add_set(100, 5)
    workout.discard()
    assert store.state.active_session is None
    assert workout.entries == ()
    assert workout.status == SessionStatus.NOT_STARTED


class SessionWorkflowIntegrationTest(unittest.TestCase):
    def setUp(self) -> None:
        self.db_path = "test_session_flow.db"
        if os.path.exists(self.db_path):
            os.remove(self.db_path)
        api = TrainingAPI(db_path=self.db_path)
        self.client = TrainingClient("http://testserver", session=TestClient(api.app))
        self.store = TrainingStore()

    def tearDown(self) -> None:
        if os.path.exists(self.db_path):
            os.remove(self.db_path)

    def test_logged_workout_is_persisted(self) -> None:
        bootstrap(self.store, self.client)
        a = self.client.create_exercise("Bench Press", "Strength", "Chest")
        b = self.client.create_exercise("Overhead Press", "Strength", "Shoulders")
        plan = self.client.create_plan("Push Day", [a.id, b.id])
        self.store.dispatch(Action(ActionType.ADD_EXERCISE, a))
        self.store.dispatch(Action(ActionType.ADD_EXERCISE, b))
        self.store.dispatch(Action(ActionType.ADD_PLAN, plan))

        workout = WorkoutSessionService(self.store, self.client)
        workout.start(plan_id=plan.id, date=START)
        workout.add_set(100, 8)
        workout.next_exercise()
        workout.add_set(50, 12, notes="strict")
        saved = workout.finish()

        self.assertEqual(saved.date, START)
        self.assertEqual(saved.plan_id, plan.id)
        self.assertEqual(
            [(e.exercise_id, e.set_index) for e in saved.entries],
            [(a.id, 1), (b.id, 1)],
        )
        self.assertEqual(saved.entries[1].notes, "strict")

        reloaded = bootstrap(TrainingStore(), self.client)
        self.assertEqual([s.id for s in reloaded.sessions], [saved.id])
        self.assertEqual(len(reloaded.sessions[0].entries), 2)
