from typing import Literal

from pydantic import BaseModel, Field, ValidationError


class SettingsSchema(BaseModel):
    weight_unit: Literal["kg", "lb"] = "kg"
    streak_unit: Literal["day", "week"] = "day"
    streak_min_workouts: int = Field(1, ge=1)
    recent_workouts_limit: int = Field(5, ge=1)


DEFAULT_SETTINGS: dict[str, str] = {
    key: str(field.default) for key, field in SettingsSchema.model_fields.items()
}


def validate_settings(data: dict) -> None:
    try:
        SettingsSchema(**data)
    except ValidationError as e:
        raise ValueError(str(e))
