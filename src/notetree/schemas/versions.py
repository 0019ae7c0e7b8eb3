"""Version History Schemas"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class VersionSummary(BaseModel):
    """History list entry (content omitted to keep the list light)."""

    id: int
    version_number: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class VersionRead(VersionSummary):
    title: str
    content: str
