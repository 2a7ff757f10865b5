"""Repository entity model (delivery target metadata)."""

from datetime import datetime
from enum import Enum

from sqlmodel import Field, SQLModel


class Provider(str, Enum):
    """Hosting platforms a repository can live on."""

    GITHUB = "github"
    GITLAB = "gitlab"


class Repository(SQLModel, table=True):
    """Repository database model.

    The id is the full project path ("owner/name" on GitHub,
    "group/subgroup/name" on GitLab). The scheduler only reads these rows.
    """

    __tablename__ = "repositories"

    id: str = Field(primary_key=True, max_length=255)
    provider: Provider = Field(default=Provider.GITHUB)
    is_active: bool = Field(default=True)
    installation_id: str | None = Field(default=None, max_length=64)
    access_token: str | None = Field(default=None, max_length=512)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def integration_ref(self) -> str | None:
        """Stored credential reference used to obtain a delivery token."""
        if self.provider == Provider.GITLAB:
            return self.access_token
        return self.installation_id
