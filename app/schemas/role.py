from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import List, Optional
from app.models.role import RoleKind

SLUG_PATTERN = r"^[a-z0-9_-]+$"


class RoleCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    slug: str = Field(..., min_length=1, max_length=50, pattern=SLUG_PATTERN)
    description: Optional[str] = None
    permissions: List[str] = Field(default_factory=list)

    @field_validator("permissions")
    @classmethod
    def dedupe_permissions(cls, v):
        return list(dict.fromkeys(v))


class RoleUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    slug: Optional[str] = Field(None, min_length=1, max_length=50, pattern=SLUG_PATTERN)
    description: Optional[str] = None
    permissions: Optional[List[str]] = None

    @field_validator("permissions")
    @classmethod
    def dedupe_permissions(cls, v):
        return list(dict.fromkeys(v)) if v is not None else v


class RoleSummary(BaseModel):
    id: int
    name: str
    slug: str

    model_config = ConfigDict(from_attributes=True)


class RoleResponse(RoleSummary):
    kind: RoleKind
    is_system: bool
    description: Optional[str] = None
    permissions: List[str]
    permissions_expanded: List[str] = Field(default_factory=list)


class PermissionItem(BaseModel):
    key: str
    label: str


class PermissionGroup(BaseModel):
    module: str
    permissions: List[PermissionItem]
