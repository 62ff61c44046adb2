from datetime import datetime

from pydantic import BaseModel, ConfigDict


class DirectoryUser(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    username: str | None = None
    email_confirmed: bool = False


class AuthSession(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_at: datetime
    user: DirectoryUser


class LoginChallenge(BaseModel):
    email: str
    expires_in_minutes: int
    flow_id: str
