import datetime
from typing import Dict, List, Optional

from schemas import Exercise, Plan, Session
from state import TrainingState, find_plan


CUSTOM_WORKOUT = "Custom Workout"


class StatisticsService:
    """Simple aggregations over the sessions held in the state tree."""

    @staticmethod
    def session_stats(session: Session) -> Dict[str, float]:
        return {
            "unique_exercises": len({e.exercise_id for e in session.entries}),
            "total_sets": len(session.entries),
            "total_volume": sum(e.weight * e.reps for e in session.entries),
        }

    @staticmethod
    def session_title(state: TrainingState, session: Session) -> str:
        plan = find_plan(state, session.plan_id) if session.plan_id else None
        return plan.name if plan else CUSTOM_WORKOUT

    @staticmethod
    def exercise_history(sessions, exercise_id: str) -> List[dict]:
        """All sets logged for ``exercise_id``, newest session first."""
        history = [
            {
                "session_date": session.date,
                "set_index": entry.set_index,
                "weight": entry.weight,
                "reps": entry.reps,
                "notes": entry.notes,
            }
            for session in sessions
            for entry in session.entries
            if entry.exercise_id == exercise_id
        ]
        history.sort(key=lambda item: item["session_date"], reverse=True)
        return history

    @staticmethod
    def filter_exercises(
        state: TrainingState,
        search: str = "",
        category: Optional[str] = None,
        muscle_group: Optional[str] = None,
    ) -> List[Exercise]:
        """Exercises whose name contains ``search``, optionally narrowed by
        exact category and muscle group."""
        term = search.lower()
        return [
            ex
            for ex in state.exercises
            if term in ex.name.lower()
            and (not category or ex.category == category)
            and (not muscle_group or ex.muscle_group == muscle_group)
        ]

    @staticmethod
    def filter_plans(state: TrainingState, search: str = "") -> List[Plan]:
        term = search.lower()
        return [plan for plan in state.plans if term in plan.name.lower()]

    def filter_sessions(
        self,
        state: TrainingState,
        search: str = "",
        exercise_id: Optional[str] = None,
        sort_by: str = "date-desc",
    ) -> List[Session]:
        term = search.lower()
        result = []
        for session in state.sessions:
            if term not in self.session_title(state, session).lower():
                continue
            if exercise_id and not any(
                e.exercise_id == exercise_id for e in session.entries
            ):
                continue
            result.append(session)
        if sort_by == "date-desc":
            result.sort(key=lambda s: s.date, reverse=True)
        elif sort_by == "date-asc":
            result.sort(key=lambda s: s.date)
        return result

    def overview(
        self, state: TrainingState, now: Optional[datetime.datetime] = None
    ) -> dict:
        now = now or datetime.datetime.now(datetime.timezone.utc)
        week_ago = now - datetime.timedelta(days=7)
        recent = sorted(state.sessions, key=lambda s: s.date, reverse=True)[:3]
        return {
            "total_exercises": len(state.exercises),
            "total_plans": len(state.plans),
            "total_sessions": len(state.sessions),
            "this_week_sessions": sum(1 for s in state.sessions if s.date >= week_ago),
            "recent_sessions": recent,
        }
