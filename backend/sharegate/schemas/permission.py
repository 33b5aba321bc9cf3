import uuid

from pydantic import BaseModel, Field


class PermissionSetRead(BaseModel):
    user_id: uuid.UUID
    role: str | None
    role_permissions: list[str]
    additional_permissions: list[str]
    all_permissions: list[str]
    uses_template: bool


class UserPermissionsRead(BaseModel):
    user_id: uuid.UUID
    email: str
    role: str
    permissions: PermissionSetRead


class UserPermissionsUpdate(BaseModel):
    permissions: list[str] = Field(default_factory=list, max_length=200)


class DownloadAccessUpdate(BaseModel):
    can_download_directly: bool


class DownloadAccessRead(BaseModel):
    user_id: uuid.UUID
    email: str
    role: str
    can_download_directly: bool
