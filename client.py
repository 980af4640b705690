from typing import Iterable, List, Optional

import requests
from loguru import logger

from errors import (
    STORE_UNINITIALIZED,
    NotFoundError,
    TrainingError,
    UnknownStoreError,
    ValidationError,
)
from schemas import (
    Exercise,
    ExerciseCreate,
    ExerciseUpdate,
    Plan,
    PlanCreate,
    PlanUpdate,
    Session,
    SessionCreate,
    dump,
    parse,
)


class TrainingClient:
    """Typed REST client for the training API.

    Every call returns the record confirmed by the server. A call that fails
    because the store has not been provisioned triggers one ``POST /init``
    followed by one retry of the original request.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        session: Optional[requests.Session] = None,
        timeout: float = 10.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout

    def _send(self, method: str, path: str, payload: Optional[dict]):
        url = f"{self.base_url}{path}"
        logger.debug("{} {}", method, url)
        try:
            return self.session.request(method, url, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            raise UnknownStoreError(f"Network error: {e}") from e

    @staticmethod
    def _body(resp) -> dict:
        try:
            body = resp.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {}

    @staticmethod
    def _error(resp, body: dict) -> TrainingError:
        message = body.get("message") or f"HTTP {resp.status_code}"
        if resp.status_code == 400:
            return ValidationError(message, body.get("errors"))
        if resp.status_code == 404:
            return NotFoundError(message)
        detail = body.get("error")
        if detail and detail != STORE_UNINITIALIZED:
            message = f"{message}: {detail}"
        return UnknownStoreError(message)

    @staticmethod
    def _uninitialized(resp, body: dict) -> bool:
        return resp.status_code == 500 and body.get("error") == STORE_UNINITIALIZED

    def request(self, method: str, path: str, payload: Optional[dict] = None) -> dict:
        """Send a request and return the decoded response envelope."""
        resp = self._send(method, path, payload)
        body = self._body(resp)
        if resp.status_code < 400:
            return body
        error = self._error(resp, body)
        if path != "/init" and self._uninitialized(resp, body):
            logger.warning("Store not provisioned, initializing and retrying {} {}", method, path)
            try:
                self.initialize_store()
                retry = self._send(method, path, payload)
            except TrainingError as init_error:
                logger.error("Store initialization failed: {}", init_error.message)
                raise error
            if retry.status_code < 400:
                return self._body(retry)
        logger.error("{} {} failed: {}", method, path, error.message)
        raise error

    def initialize_store(self) -> None:
        self.request("POST", "/init")

    def health(self) -> dict:
        return self.request("GET", "/health")

    # Exercises

    def list_exercises(self) -> List[Exercise]:
        body = self.request("GET", "/exercises")
        return [parse(Exercise, item) for item in body.get("data", [])]

    def get_exercise(self, exercise_id: str) -> Exercise:
        return parse(Exercise, self.request("GET", f"/exercises/{exercise_id}")["data"])

    def create_exercise(self, name: str, category: str, muscle_group: str) -> Exercise:
        payload = parse(
            ExerciseCreate,
            {"name": name, "category": category, "muscle_group": muscle_group},
        )
        body = self.request("POST", "/exercises", dump(payload))
        return parse(Exercise, body["data"])

    def update_exercise(
        self,
        exercise_id: str,
        name: Optional[str] = None,
        category: Optional[str] = None,
        muscle_group: Optional[str] = None,
    ) -> Exercise:
        payload = parse(
            ExerciseUpdate,
            {"name": name, "category": category, "muscle_group": muscle_group},
        )
        body = self.request(
            "PUT", f"/exercises/{exercise_id}", dump(payload, exclude_none=True)
        )
        return parse(Exercise, body["data"])

    def delete_exercise(self, exercise_id: str) -> None:
        self.request("DELETE", f"/exercises/{exercise_id}")

    # Plans

    def list_plans(self) -> List[Plan]:
        body = self.request("GET", "/plans")
        return [parse(Plan, item) for item in body.get("data", [])]

    def get_plan(self, plan_id: str) -> Plan:
        return parse(Plan, self.request("GET", f"/plans/{plan_id}")["data"])

    def create_plan(self, name: str, exercise_ids: Iterable[str]) -> Plan:
        payload = parse(PlanCreate, {"name": name, "exercise_ids": tuple(exercise_ids)})
        body = self.request("POST", "/plans", dump(payload))
        return parse(Plan, body["data"])

    def update_plan(
        self,
        plan_id: str,
        name: Optional[str] = None,
        exercise_ids: Optional[Iterable[str]] = None,
    ) -> Plan:
        payload = parse(
            PlanUpdate,
            {
                "name": name,
                "exercise_ids": tuple(exercise_ids) if exercise_ids is not None else None,
            },
        )
        body = self.request("PUT", f"/plans/{plan_id}", dump(payload, exclude_none=True))
        return parse(Plan, body["data"])

    def delete_plan(self, plan_id: str) -> None:
        self.request("DELETE", f"/plans/{plan_id}")

    # Sessions

    def list_sessions(self) -> List[Session]:
        body = self.request("GET", "/sessions")
        return [parse(Session, item) for item in body.get("data", [])]

    def create_session(self, session: SessionCreate) -> Session:
        body = self.request("POST", "/sessions", dump(session, exclude_none=True))
        return parse(Session, body["data"])
