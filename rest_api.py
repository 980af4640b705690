import os
from typing import Callable

from fastapi import APIRouter, Body, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger

from db import Database, ExerciseRepository, PlanRepository, SessionRepository
from errors import (
    StoreUninitializedError,
    TrainingError,
    ValidationError,
)
from schemas import (
    ExerciseCreate,
    ExerciseUpdate,
    PlanCreate,
    PlanUpdate,
    SessionCreate,
    dump,
    parse,
)


def _ok(data=None, message: str | None = None, status_code: int = 200) -> JSONResponse:
    body: dict = {"success": True}
    if data is not None:
        body["data"] = data
    if message is not None:
        body["message"] = message
    return JSONResponse(body, status_code=status_code)


def _fail(error: TrainingError, action: str) -> JSONResponse:
    body: dict = {"success": False, "message": error.message}
    if isinstance(error, ValidationError):
        if error.details:
            body["errors"] = error.details
    elif isinstance(error, StoreUninitializedError):
        logger.warning("{} failed: store not provisioned", action)
        body["message"] = f"Failed to {action}"
        body["error"] = error.code
    elif error.status_code >= 500:
        logger.error("{} failed: {}", action, error.message)
        body["message"] = f"Failed to {action}"
        body["error"] = error.message
    return JSONResponse(body, status_code=error.status_code)


class TrainingAPI:
    """Provides REST endpoints for exercises, plans and workout sessions."""

    def __init__(self, db_path: str = "training.db") -> None:
        self.db_path = db_path
        self.database = Database(db_path)
        self.exercises = ExerciseRepository(db_path)
        self.plans = PlanRepository(db_path)
        self.sessions = SessionRepository(db_path)
        self.app = FastAPI(
            title="Training API",
            description="REST API for exercises, workout plans and logged sessions",
        )
        self._setup_handlers()
        self._setup_routes()

    def _setup_handlers(self) -> None:
        @self.app.exception_handler(RequestValidationError)
        async def invalid_request(request: Request, exc: RequestValidationError):
            details = [
                {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
                for err in exc.errors()
            ]
            return JSONResponse(
                {"success": False, "message": "Invalid input", "errors": details},
                status_code=400,
            )

    @staticmethod
    def _handle(action: str, func: Callable[[], JSONResponse]) -> JSONResponse:
        try:
            return func()
        except TrainingError as e:
            return _fail(e, action)

    @staticmethod
    def _list(action: str, fetch: Callable[[], list]) -> JSONResponse:
        try:
            return _ok([dump(r) for r in fetch()])
        except StoreUninitializedError:
            return _ok([], message="Database not initialized")
        except TrainingError as e:
            return _fail(e, action)

    def _setup_routes(self) -> None:
        exercises_router = APIRouter(prefix="/exercises", tags=["Exercises"])
        plans_router = APIRouter(prefix="/plans", tags=["Plans"])
        sessions_router = APIRouter(prefix="/sessions", tags=["Sessions"])

        @self.app.get(
            "/health",
            summary="Health check",
            description="Verify API and database connectivity.",
        )
        def health():
            """Return API and database connection status."""
            try:
                self.database.ping()
                return {"status": "ok"}
            except TrainingError as e:
                return JSONResponse(
                    {"status": "error", "detail": e.message}, status_code=500
                )

        @self.app.post("/init", summary="Provision the database schema")
        def init():
            def run():
                self.database.init_schema()
                logger.info("Database initialized at {}", self.db_path)
                return _ok(message="Database initialized successfully")

            return self._handle("initialize database", run)

        @exercises_router.get("")
        def list_exercises():
            return self._list("fetch exercises", self.exercises.fetch_all_exercises)

        @exercises_router.post("")
        def create_exercise(body: dict = Body(...)):
            def run():
                data = parse(ExerciseCreate, body)
                exercise = self.exercises.add(data.name, data.category, data.muscle_group)
                return _ok(dump(exercise), status_code=201)

            return self._handle("create exercise", run)

        @exercises_router.get("/{exercise_id}")
        def get_exercise(exercise_id: str):
            return self._handle(
                "fetch exercise",
                lambda: _ok(dump(self.exercises.fetch_detail(exercise_id))),
            )

        @exercises_router.put("/{exercise_id}")
        def update_exercise(exercise_id: str, body: dict = Body(...)):
            def run():
                data = parse(ExerciseUpdate, body)
                exercise = self.exercises.update(
                    exercise_id, data.name, data.category, data.muscle_group
                )
                return _ok(dump(exercise))

            return self._handle("update exercise", run)

        @exercises_router.delete("/{exercise_id}")
        def delete_exercise(exercise_id: str):
            def run():
                self.exercises.delete(exercise_id)
                return _ok(message="Exercise deleted successfully")

            return self._handle("delete exercise", run)

        @plans_router.get("")
        def list_plans():
            return self._list("fetch plans", self.plans.fetch_all_plans)

        @plans_router.post("")
        def create_plan(body: dict = Body(...)):
            def run():
                data = parse(PlanCreate, body)
                plan = self.plans.add(data.name, data.exercise_ids)
                return _ok(dump(plan), status_code=201)

            return self._handle("create plan", run)

        @plans_router.get("/{plan_id}")
        def get_plan(plan_id: str):
            return self._handle(
                "fetch plan", lambda: _ok(dump(self.plans.fetch_detail(plan_id)))
            )

        @plans_router.put("/{plan_id}")
        def update_plan(plan_id: str, body: dict = Body(...)):
            def run():
                data = parse(PlanUpdate, body)
                plan = self.plans.update(plan_id, data.name, data.exercise_ids)
                return _ok(dump(plan))

            return self._handle("update plan", run)

        @plans_router.delete("/{plan_id}")
        def delete_plan(plan_id: str):
            def run():
                self.plans.delete(plan_id)
                return _ok(message="Plan deleted successfully")

            return self._handle("delete plan", run)

        @sessions_router.get("")
        def list_sessions():
            return self._list("fetch sessions", self.sessions.fetch_all_sessions)

        @sessions_router.post("")
        def create_session(body: dict = Body(...)):
            def run():
                data = parse(SessionCreate, body)
                session = self.sessions.create(data.date, data.plan_id, data.entries)
                logger.info(
                    "Session {} stored with {} entries", session.id, len(session.entries)
                )
                return _ok(dump(session), status_code=201)

            return self._handle("create session", run)

        self.app.include_router(exercises_router)
        self.app.include_router(plans_router)
        self.app.include_router(sessions_router)


api = TrainingAPI(db_path=os.environ.get("DB_PATH", "training.db"))
app = api.app

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app)
