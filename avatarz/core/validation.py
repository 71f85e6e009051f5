"""
validation.py — JSON schema + business rule validation for inbound generation requests.
"""
from __future__ import annotations

import logging
import re
from typing import Any, Optional

from jsonschema import Draft202012Validator

from .config import (
    CUSTOM_PLACEMENT_MAX_CHARS,
    CUSTOM_STYLE_MAX_CHARS,
    CUSTOMISATION_TEXT_MAX_CHARS,
    EDIT_PROMPT_MAX_CHARS,
    EXTEND_PROMPT_MAX_CHARS,
    MAX_IMAGE_BYTES,
    NAME_MAX_CHARS,
)
from .exceptions import InvalidRequest
from .formats import SOCIAL_BANNERS, VALID_ASPECT_RATIOS
from .imaging import data_url_size
from .models import (
    ExtendImageRequest,
    GenerateAvatarRequest,
    InputSchema,
    ValidationIssue,
    ValidationResult,
)
from .prompt_builder import AGE_PROMPTS, CROP_PROMPTS, NAME_PLACEMENT_PROMPTS

logger = logging.getLogger(__name__)

UUID_PATTERN = r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$"
EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_UUID_RE = re.compile(UUID_PATTERN)

STYLE_INPUT_MAX_CHARS = 200

# ── Request schemas ───────────────────────────────────────────────────────────

GENERATE_REQUEST_SCHEMA: dict = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "properties": {
        "imageData": {"type": "string", "pattern": r"^data:image/"},
        "inputPhotoId": {"type": "string", "pattern": UUID_PATTERN},
        "style": {"type": "string", "maxLength": 100},
        "categoryId": {"type": "string", "maxLength": 100},
        "inputValues": {
            "type": "object",
            "additionalProperties": {"type": "string", "maxLength": STYLE_INPUT_MAX_CHARS},
        },
        "customStyle": {"type": "string", "maxLength": CUSTOM_STYLE_MAX_CHARS},
        "cropType": {"enum": sorted(CROP_PROMPTS)},
        "name": {"type": "string", "maxLength": NAME_MAX_CHARS, "pattern": r"^[a-zA-Z0-9\s]*$"},
        "namePlacement": {"enum": sorted(NAME_PLACEMENT_PROMPTS) + ["custom"]},
        "customPlacement": {
            "type": "string",
            "maxLength": CUSTOM_PLACEMENT_MAX_CHARS,
            "pattern": r"^[a-zA-Z0-9\s\-]*$",
        },
        "keepBackground": {"type": "boolean"},
        "ageModification": {"enum": sorted(AGE_PROMPTS)},
        "customisationText": {"type": "string", "maxLength": CUSTOMISATION_TEXT_MAX_CHARS},
        "isPublic": {"type": "boolean"},
        "editGenerationId": {"type": "string", "pattern": UUID_PATTERN},
        "editPrompt": {"type": "string", "maxLength": EDIT_PROMPT_MAX_CHARS},
    },
}

EXTEND_REQUEST_SCHEMA: dict = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "required": ["generationId", "aspectRatio", "prompt"],
    "properties": {
        "generationId": {"type": "string", "pattern": UUID_PATTERN},
        "aspectRatio": {"enum": list(VALID_ASPECT_RATIOS) + list(SOCIAL_BANNERS)},
        "prompt": {"type": "string", "minLength": 1, "maxLength": EXTEND_PROMPT_MAX_CHARS},
    },
}

_GENERATE_VALIDATOR = Draft202012Validator(GENERATE_REQUEST_SCHEMA)
_EXTEND_VALIDATOR = Draft202012Validator(EXTEND_REQUEST_SCHEMA)

# User-facing messages per field; jsonschema's own wording is kept in details.
_FIELD_MESSAGES = {
    "imageData": "Invalid image format",
    "inputPhotoId": "Invalid inputPhotoId format",
    "style": "Invalid style option",
    "categoryId": "Invalid category",
    "inputValues": f"Style inputs must be text under {STYLE_INPUT_MAX_CHARS} characters",
    "customStyle": f"Custom style must be under {CUSTOM_STYLE_MAX_CHARS} characters",
    "cropType": "Invalid crop type",
    "name": f"Name must be under {NAME_MAX_CHARS} characters and contain only letters, numbers and spaces",
    "namePlacement": "Invalid name placement",
    "customPlacement": (
        f"Custom placement must be under {CUSTOM_PLACEMENT_MAX_CHARS} characters "
        "and contain only letters, numbers, spaces and hyphens"
    ),
    "ageModification": "Invalid age modification",
    "customisationText": f"Customisation must be under {CUSTOMISATION_TEXT_MAX_CHARS} characters",
    "editGenerationId": "Invalid editGenerationId format",
    "editPrompt": f"Edit prompt must be under {EDIT_PROMPT_MAX_CHARS} characters",
    "generationId": "Invalid generationId format",
    "aspectRatio": (
        "Invalid aspectRatio. Must be one of: "
        f"{', '.join(VALID_ASPECT_RATIOS)}, {', '.join(SOCIAL_BANNERS)}"
    ),
    "prompt": f"prompt is required and must be under {EXTEND_PROMPT_MAX_CHARS} characters",
}


def _issue(severity: str, code: str, path: str, message: str) -> ValidationIssue:
    return ValidationIssue(severity=severity, issue_code=code, path=path, message=message)


def _err(code: str, path: str, message: str) -> ValidationIssue:
    return _issue("error", code, path, message)


def _schema_issues(validator: Draft202012Validator, data: dict) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    for error in sorted(validator.iter_errors(data), key=lambda e: list(e.absolute_path)):
        if error.validator == "required":
            field = error.message.split("'")[1] if "'" in error.message else "$"
            issues.append(_err("MISSING_FIELD", field, f"{field} is required"))
            continue
        path = ".".join(str(p) for p in error.absolute_path) or "$"
        top = str(error.absolute_path[0]) if error.absolute_path else "$"
        issues.append(_err("SCHEMA_VIOLATION", path, _FIELD_MESSAGES.get(top, error.message)))
    return issues


def _result(issues: list[ValidationIssue]) -> ValidationResult:
    passed = all(i.severity != "error" for i in issues)
    return ValidationResult(passed=passed, issues=issues)


# ── Public entry points ───────────────────────────────────────────────────────

def validate_generate_request(req: GenerateAvatarRequest) -> ValidationResult:
    """
    Validate a generate-avatar request.

    Steps:
        1. JSON Schema (types, enums, lengths, character sets)
        2. Business rules (image source, image size, mode-specific fields)
    """
    data = req.model_dump(by_alias=True, exclude_none=True)

    issues = _schema_issues(_GENERATE_VALIDATOR, data)
    if issues:
        return _result(issues)

    issues.extend(_generate_business_rules(req))
    return _result(issues)


def _generate_business_rules(req: GenerateAvatarRequest) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []

    if req.is_edit:
        if not (req.edit_prompt or "").strip():
            issues.append(_err("MISSING_FIELD", "editPrompt", "editPrompt is required for edits"))
        return issues

    if not req.image_data and not req.input_photo_id:
        issues.append(_err("MISSING_FIELD", "imageData", "Missing or invalid imageData"))
    elif req.image_data and data_url_size(req.image_data) > MAX_IMAGE_BYTES:
        issues.append(_err("IMAGE_TOO_LARGE", "imageData", "Image exceeds 10MB limit"))

    if req.is_custom:
        if not (req.custom_style or "").strip():
            issues.append(_err("MISSING_FIELD", "customStyle", "A custom prompt is required for the custom style"))
    elif not req.style:
        issues.append(_err("MISSING_FIELD", "style", "Missing or invalid style"))

    if req.name and not req.name_placement:
        issues.append(_err("MISSING_FIELD", "namePlacement", "Choose where to place the name"))
    if req.name and req.name_placement == "custom" and not (req.custom_placement or "").strip():
        issues.append(_err("MISSING_FIELD", "customPlacement", "Describe the custom name placement"))

    return issues


def validate_extend_request(req: ExtendImageRequest) -> ValidationResult:
    data = req.model_dump(by_alias=True)
    issues = _schema_issues(_EXTEND_VALIDATOR, data)
    if not issues and not req.prompt.strip():
        issues.append(_err("MISSING_FIELD", "prompt", "prompt is required"))
    return _result(issues)


def style_input_json_schema(schema: Optional[InputSchema]) -> dict:
    """Compile a style's input field list into a JSON Schema for its values."""
    properties: dict[str, Any] = {}
    required: list[str] = []
    for field in (schema.fields if schema else []):
        prop: dict[str, Any] = {"type": "string", "maxLength": STYLE_INPUT_MAX_CHARS}
        if field.required:
            prop["pattern"] = r"\S"
            required.append(field.id)
        properties[field.id] = prop
    return {
        "$schema": "https://json-schema.org/draft/2020-12/schema",
        "type": "object",
        "properties": properties,
        "required": required,
    }


def validate_style_inputs(schema: Optional[InputSchema], values: dict[str, str]) -> ValidationResult:
    """Required fields must be present and non-blank."""
    labels = {f.id: f.label for f in (schema.fields if schema else [])}
    validator = Draft202012Validator(style_input_json_schema(schema))
    issues: list[ValidationIssue] = []
    for error in validator.iter_errors(values):
        if error.validator == "required":
            field = error.message.split("'")[1]
        else:
            field = str(error.absolute_path[0]) if error.absolute_path else "$"
        label = labels.get(field, field)
        if error.validator in ("required", "pattern"):
            issues.append(_err("MISSING_STYLE_INPUT", f"inputValues.{field}", f"{label} is required"))
        else:
            issues.append(_err("INVALID_STYLE_INPUT", f"inputValues.{field}", f"{label}: {error.message}"))
    return _result(issues)


def is_valid_uuid(value: Optional[str]) -> bool:
    return bool(value) and bool(_UUID_RE.match(value))


def is_valid_email(email: Optional[str]) -> bool:
    return bool(email) and bool(EMAIL_RE.match(email))


def raise_for_result(result: ValidationResult) -> None:
    """Raise InvalidRequest carrying the first error message and all issues."""
    if result.passed:
        return
    first = result.first_error
    raise InvalidRequest(
        first.message if first else "Invalid request",
        details=[i.model_dump() for i in result.issues],
    )
