"""Current user schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class UserOut(BaseModel):
    """The signed-in user's account, as shown in the app header."""

    id: UUID
    email: str
    full_name: str | None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
