import datetime
import uuid
from typing import Annotated, Optional, Tuple

from pydantic import (
    AfterValidator,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    ValidationError as PydanticValidationError,
    field_validator,
)

from errors import ValidationError


def _check_uuid(value: str) -> str:
    try:
        return str(uuid.UUID(value))
    except ValueError:
        raise ValueError("must be a valid UUID")


UUIDStr = Annotated[str, AfterValidator(_check_uuid)]


def _not_bool(value):
    if isinstance(value, bool):
        raise ValueError("must be a number, not a boolean")
    return value


Number = Annotated[float, BeforeValidator(_not_bool)]
Count = Annotated[int, BeforeValidator(_not_bool)]
Name = Annotated[str, Field(min_length=1, max_length=255)]
Label = Annotated[str, Field(min_length=1, max_length=100)]


def _utc(value: datetime.datetime) -> datetime.datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=datetime.timezone.utc)
    return value.astimezone(datetime.timezone.utc)


class _Payload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class _Record(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)


class ExerciseCreate(_Payload):
    name: Name
    category: Label
    muscle_group: Label = Field(alias="muscleGroup")


class ExerciseUpdate(_Payload):
    name: Optional[Name] = None
    category: Optional[Label] = None
    muscle_group: Optional[Label] = Field(default=None, alias="muscleGroup")


class Exercise(_Record):
    id: str
    name: str
    category: str
    muscle_group: str = Field(alias="muscleGroup")


class PlanCreate(_Payload):
    name: Name
    exercise_ids: Tuple[UUIDStr, ...] = Field(alias="exerciseIds")


class PlanUpdate(_Payload):
    name: Optional[Name] = None
    exercise_ids: Optional[Tuple[UUIDStr, ...]] = Field(default=None, alias="exerciseIds")


class Plan(_Record):
    id: str
    name: str
    exercise_ids: Tuple[str, ...] = Field(default=(), alias="exerciseIds")


class Entry(_Record):
    """One logged set."""

    exercise_id: UUIDStr = Field(alias="exerciseId")
    set_index: Count = Field(alias="setIndex", gt=0)
    weight: Number = Field(gt=0)
    reps: Count = Field(gt=0)
    notes: Optional[str] = None


class SessionCreate(_Payload):
    date: datetime.datetime
    plan_id: Optional[UUIDStr] = Field(default=None, alias="planId")
    entries: Tuple[Entry, ...] = ()

    @field_validator("date")
    @classmethod
    def _normalize_date(cls, value: datetime.datetime) -> datetime.datetime:
        return _utc(value)


class Session(_Record):
    id: str
    date: datetime.datetime
    plan_id: Optional[str] = Field(default=None, alias="planId")
    entries: Tuple[Entry, ...] = ()

    @field_validator("date")
    @classmethod
    def _normalize_date(cls, value: datetime.datetime) -> datetime.datetime:
        return _utc(value)


def parse(model: type, data) -> BaseModel:
    """Validate ``data`` against ``model`` raising :class:`ValidationError`."""
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        details = [
            {
                "field": ".".join(str(part) for part in err["loc"]),
                "message": err["msg"],
            }
            for err in e.errors()
        ]
        raise ValidationError("Invalid input", details)


def dump(model: BaseModel, exclude_none: bool = False) -> dict:
    """Serialize ``model`` to its JSON wire shape with camelCase keys."""
    return model.model_dump(mode="json", by_alias=True, exclude_none=exclude_none)
