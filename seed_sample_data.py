import datetime

from client import TrainingClient
from config import load_settings
from state import TrainingStore, bootstrap
from session_service import WorkoutSessionService


def seed(base_url: str | None = None) -> None:
    """Log one sample workout through a running API."""
    client = TrainingClient(base_url or load_settings().api_url)
    store = TrainingStore()
    bootstrap(store, client)
    if store.state.sessions:
        print("Database already contains sessions")
        return

    squat = client.create_exercise("Back Squat", "Strength", "Legs")
    row = client.create_exercise("Barbell Row", "Strength", "Back")
    plan = client.create_plan("Sample Day", [squat.id, row.id])
    bootstrap(store, client)

    workout = WorkoutSessionService(store, client)
    workout.start(plan_id=plan.id, date=datetime.datetime.now(datetime.timezone.utc))
    workout.add_set(100.0, 5)
    workout.add_set(105.0, 5)
    workout.next_exercise()
    workout.add_set(60.0, 8)
    workout.finish()
    print("Seed data inserted")


if __name__ == "__main__":
    seed()
