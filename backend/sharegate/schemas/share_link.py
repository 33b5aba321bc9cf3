import uuid
from datetime import datetime

from pydantic import BaseModel, Field


class ShareLinkCreate(BaseModel):
    asset_id: uuid.UUID
    password: str | None = Field(default=None, max_length=72)
    expires_at: datetime | None = None
    max_downloads: int | None = Field(default=None, ge=1)
    allow_download: bool = True


class ShareLinkUpdate(BaseModel):
    password: str | None = Field(default=None, max_length=72)
    expires_at: datetime | None = None
    max_downloads: int | None = Field(default=None, ge=1)
    allow_download: bool | None = None


class ShareLinkRead(BaseModel):
    id: uuid.UUID
    token: str
    asset_id: uuid.UUID
    created_by_id: uuid.UUID
    has_password: bool
    expires_at: datetime | None
    max_downloads: int | None
    current_downloads: int
    allow_download: bool
    is_active: bool
    view_count: int
    download_count: int
    last_accessed_at: datetime | None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ShareLinkCreated(ShareLinkRead):
    url: str


class ShareLinkList(BaseModel):
    items: list[ShareLinkRead]
    total: int
    page: int
    page_size: int
    total_pages: int


class SharedAssetRead(BaseModel):
    id: uuid.UUID
    name: str
    title: str | None
    description: str | None
    type: str
    mime_type: str | None
    file_size: int | None
    original_name: str | None

    class Config:
        from_attributes = True


class SharedAssetResponse(BaseModel):
    asset: SharedAssetRead
    preview_url: str | None
    thumbnail_url: str | None
    requires_password: bool
    allow_download: bool
    expires_at: datetime | None


class PasswordCheck(BaseModel):
    password: str = Field(..., min_length=1, max_length=1024)


class DownloadRequest(BaseModel):
    password: str | None = Field(default=None, max_length=1024)


class PasswordCheckResult(BaseModel):
    valid: bool


class DownloadLocatorRead(BaseModel):
    url: str
    filename: str
    mime_type: str | None
    file_size: int | None
    expires_in: int


class CountryCount(BaseModel):
    country: str
    count: int


class ShareLinkStatsRead(BaseModel):
    link_id: uuid.UUID
    view_count: int
    download_count: int
    current_downloads: int
    max_downloads: int | None
    is_active: bool
    is_expired: bool
    accesses_by_type: dict[str, int]
    unique_visitors: int
    top_countries: list[CountryCount]


class AccessLogRead(BaseModel):
    id: uuid.UUID
    share_link_id: uuid.UUID
    access_type: str
    ip_address: str
    user_agent: str | None
    referrer: str | None
    country: str | None
    created_at: datetime

    class Config:
        from_attributes = True


class AccessLogList(BaseModel):
    items: list[AccessLogRead]
    total: int
    page: int
    limit: int
