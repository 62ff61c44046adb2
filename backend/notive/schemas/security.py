from datetime import datetime

from pydantic import BaseModel, ConfigDict, TypeAdapter


class DeviceInfo(BaseModel):
    platform: str
    version: str
    brand: str
    timestamp: datetime


class LoginAttemptOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int | None = None
    email: str
    ip_address: str | None = None
    device_info: dict | None = None
    success: bool
    created_at: datetime


attempt_list_adapter = TypeAdapter(list[LoginAttemptOut])


def serialize_attempts(attempts: list[dict]) -> str:
    return attempt_list_adapter.dump_json(attempt_list_adapter.validate_python(attempts)).decode("utf-8")
