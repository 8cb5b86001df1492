from datetime import datetime

from pydantic import BaseModel


class ArticleEngagement(BaseModel):
    slug: str
    title: str
    view_count: int
    like_count: int
    last_read_at: datetime | None

    model_config = {"from_attributes": True}


class ViewResponse(BaseModel):
    success: bool


class LikeResponse(BaseModel):
    liked: bool


class RoleAssignment(BaseModel):
    role: str
    region_code: str | None

    model_config = {"from_attributes": True}


class CurrentUserResponse(BaseModel):
    id: str
    roles: list[RoleAssignment]


class ErrorResponse(BaseModel):
    error: str
    code: str


class HealthResponse(BaseModel):
    status: str
    article_count: int
