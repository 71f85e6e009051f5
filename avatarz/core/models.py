"""
models.py — Pydantic models for internal data flow.

Request models accept the camelCase keys the web client sends; responses are
serialised back with the same aliases.
"""
from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ── Validation ────────────────────────────────────────────────────────────────

class ValidationIssue(BaseModel):
    severity: str          # "error" | "warning"
    issue_code: str
    path: str
    message: str


class ValidationResult(BaseModel):
    passed: bool
    issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def first_error(self) -> Optional[ValidationIssue]:
        return next((i for i in self.issues if i.severity == "error"), None)


# ── Quotas ────────────────────────────────────────────────────────────────────

class UserQuota(BaseModel):
    limit: int
    used: int
    remaining: int
    is_admin: bool = False


class InviteQuota(BaseModel):
    can_create: bool
    tier: str = "standard"
    used: int = 0
    limit: int = 0
    remaining: int = 0
    reason: Optional[str] = None


# ── Styles ────────────────────────────────────────────────────────────────────

class InputField(BaseModel):
    id: str
    label: str
    required: bool = False
    placeholder: Optional[str] = None


class InputSchema(BaseModel):
    fields: list[InputField] = Field(default_factory=list)


class Style(BaseModel):
    id: str
    category_id: Optional[str] = None
    label: str
    description: Optional[str] = None
    emoji: Optional[str] = None
    prompt: str = ""
    input_schema: Optional[InputSchema] = None
    sort_order: int = 0

    @property
    def has_inputs(self) -> bool:
        return bool(self.input_schema and self.input_schema.fields)


class StyleCategory(BaseModel):
    id: str
    label: str
    description: Optional[str] = None
    emoji: Optional[str] = None
    sort_order: int = 0


# ── Generation requests ───────────────────────────────────────────────────────

class GenerateAvatarRequest(CamelModel):
    image_data: Optional[str] = None
    input_photo_id: Optional[str] = None
    style: str = ""
    category_id: Optional[str] = None
    input_values: dict[str, str] = Field(default_factory=dict)
    custom_style: Optional[str] = None
    crop_type: str = "portrait"
    name: Optional[str] = None
    name_placement: Optional[str] = None
    custom_placement: Optional[str] = None
    keep_background: Optional[bool] = None
    age_modification: Optional[str] = None
    customisation_text: Optional[str] = None
    is_public: bool = False
    edit_generation_id: Optional[str] = None
    edit_prompt: Optional[str] = None

    @property
    def is_edit(self) -> bool:
        return bool(self.edit_generation_id)

    @property
    def is_custom(self) -> bool:
        return self.style == "custom" or self.category_id == "custom"


class ExtendImageRequest(CamelModel):
    generation_id: str = ""
    aspect_ratio: str = ""
    prompt: str = ""


# ── Image API response wrapper ────────────────────────────────────────────────

class ImageResult(BaseModel):
    image_bytes: bytes
    mime_type: str
    model: str
    prompt_tokens: int
    completion_tokens: int
    total_tokens: int


class ImagePrompt(BaseModel):
    """Prompt assembled by prompt_builder, with the parts kept for previewing."""
    text: str
    parts: list[str] = Field(default_factory=list)
    meta: dict[str, Any] = Field(default_factory=dict)
