from typing import Literal

from pydantic import BaseModel, ValidationError


class SettingsSchema(BaseModel):
    api_url: str = "http://localhost:8000"
    db_path: str = "training.db"
    log_level: Literal["TRACE", "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    weight_unit: Literal["kg", "lb"] = "kg"
    default_view: Literal["dashboard", "exercises", "plans", "workout", "history"] = "dashboard"


def validate_settings(data: dict) -> SettingsSchema:
    try:
        return SettingsSchema(**data)
    except ValidationError as e:
        raise ValueError(str(e))
