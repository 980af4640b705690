import os
import sys
import uuid
import datetime

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from schemas import Entry, Exercise, Plan, Session
from state import TrainingState
from stats_service import CUSTOM_WORKOUT, StatisticsService


NOW = datetime.datetime(2024, 5, 10, 12, 0, tzinfo=datetime.timezone.utc)


def make_state():
    bench = Exercise(id=str(uuid.uuid4()), name="Bench Press", category="Strength", muscle_group="Chest")
    dip = Exercise(id=str(uuid.uuid4()), name="Dip", category="Bodyweight", muscle_group="Triceps")
    plan = Plan(id=str(uuid.uuid4()), name="Push Day", exercise_ids=(bench.id, dip.id))
    old = Session(
        id=str(uuid.uuid4()),
        date=NOW - datetime.timedelta(days=20),
        plan_id=plan.id,
        entries=(Entry(exercise_id=bench.id, set_index=1, weight=90, reps=5),),
    )
    recent = Session(
        id=str(uuid.uuid4()),
        date=NOW - datetime.timedelta(days=2),
        plan_id=None,
        entries=(
            Entry(exercise_id=bench.id, set_index=1, weight=100, reps=5),
            Entry(exercise_id=bench.id, set_index=2, weight=100, reps=4),
            Entry(exercise_id=dip.id, set_index=1, weight=20, reps=10, notes="weighted"),
        ),
    )
    state = TrainingState(exercises=(bench, dip), plans=(plan,), sessions=(old, recent))
    return state, bench, dip, old, recent


def test_session_stats():
    _, _, _, _, recent = make_state()
    stats = StatisticsService.session_stats(recent)
    assert stats == {"unique_exercises": 2, "total_sets": 3, "total_volume": 1100.0}


def test_session_title_falls_back_to_custom():
    state, _, _, old, recent = make_state()
    assert StatisticsService.session_title(state, old) == "Push Day"
    assert StatisticsService.session_title(state, recent) == CUSTOM_WORKOUT


def test_exercise_history_newest_first():
    state, bench, dip, _, _ = make_state()
    history = StatisticsService.exercise_history(state.sessions, bench.id)
    assert [(h["weight"], h["set_index"]) for h in history] == [(100, 1), (100, 2), (90, 1)]
    assert StatisticsService.exercise_history(state.sessions, dip.id)[0]["notes"] == "weighted"


def test_filter_sessions():
    state, bench, dip, old, recent = make_state()
    service = StatisticsService()
    assert service.filter_sessions(state) == [recent, old]
    assert service.filter_sessions(state, sort_by="date-asc") == [old, recent]
    assert service.filter_sessions(state, search="push") == [old]
    assert service.filter_sessions(state, exercise_id=dip.id) == [recent]
    assert service.filter_sessions(state, search="legs") == []


def test_overview():
    state, _, _, old, recent = make_state()
    overview = StatisticsService().overview(state, now=NOW)
    assert overview["total_exercises"] == 2
    assert overview["total_plans"] == 1
    assert overview["total_sessions"] == 2
    assert overview["this_week_sessions"] == 1
    assert overview["recent_sessions"] == [recent, old]


def test_overview_of_empty_state():
    overview = StatisticsService().overview(TrainingState(), now=NOW)
    assert overview["total_sessions"] == 0
    assert overview["recent_sessions"] == []


def test_filter_exercises():
    state, bench, dip, _, _ = make_state()
    service = StatisticsService()
    assert service.filter_exercises(state) == [bench, dip]
    assert service.filter_exercises(state, search="BENCH") == [bench]
    assert service.filter_exercises(state, category="Bodyweight") == [dip]
    assert service.filter_exercises(state, muscle_group="Chest") == [bench]
    assert service.filter_exercises(state, search="press", muscle_group="Triceps") == []
    assert service.filter_exercises(state, category="Body") == []


def test_filter_plans():
    state, _, _, _, _ = make_state()
    service = StatisticsService()
    assert [p.name for p in service.filter_plans(state, "push")] == ["Push Day"]
    assert [p.name for p in service.filter_plans(state)] == ["Push Day"]
    assert service.filter_plans(state, "legs") == []
