"""Pydantic schemas for step comments and client files/links."""

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from clientdesk.schemas.validators import (
    validate_creator_role,
    validate_file_name,
    validate_required_text,
    validate_url,
)


class CommentCreate(BaseModel):
    """At least one of `text` / `attachment_url` must be present.

    The rule is enforced by the annotation service so the same check
    applies to API and CLI callers alike.
    """
    text: str = ""
    username: str = Field(..., max_length=255)
    attachment_url: str | None = None
    attachment_type: str | None = None

    @field_validator("username")
    @classmethod
    def username_required(cls, v: str) -> str:
        return validate_required_text(v)

    @field_validator("attachment_url")
    @classmethod
    def attachment_url_valid(cls, v: str | None) -> str | None:
        if v is None or not v.strip():
            return None
        return validate_url(v)


class ClientFileCreate(BaseModel):
    file_name: str = Field(..., max_length=255)
    file_url: str
    file_size: str | None = None
    file_type: str | None = None
    created_by: str = "admin"

    @field_validator("file_name")
    @classmethod
    def file_name_valid(cls, v: str) -> str:
        return validate_required_text(v)

    @field_validator("file_url")
    @classmethod
    def file_url_valid(cls, v: str) -> str:
        return validate_url(v)

    @field_validator("created_by")
    @classmethod
    def role_valid(cls, v: str) -> str:
        return validate_creator_role(v)


class ClientFileOut(BaseModel):
    id: str
    client_id: str
    file_name: str
    file_size: str | None
    file_url: str
    file_type: str | None
    created_by: str
    created_at: datetime

    model_config = {"from_attributes": True}


class ClientLinkCreate(BaseModel):
    title: str = Field(..., max_length=255)
    url: str
    created_by: str = "admin"

    @field_validator("title")
    @classmethod
    def title_required(cls, v: str) -> str:
        return validate_required_text(v)

    @field_validator("url")
    @classmethod
    def url_valid(cls, v: str) -> str:
        return validate_url(v)

    @field_validator("created_by")
    @classmethod
    def role_valid(cls, v: str) -> str:
        return validate_creator_role(v)


class ClientLinkOut(BaseModel):
    id: str
    client_id: str
    title: str
    url: str
    created_by: str
    created_at: datetime

    model_config = {"from_attributes": True}


class UploadTargetRequest(BaseModel):
    file_name: str
    content_type: str

    @field_validator("file_name")
    @classmethod
    def file_name_valid(cls, v: str) -> str:
        return validate_file_name(v)

    @field_validator("content_type")
    @classmethod
    def content_type_required(cls, v: str) -> str:
        return validate_required_text(v, max_length=100)


class UploadTarget(BaseModel):
    upload_url: str
    public_url: str
    key: str
    expires_in: int
