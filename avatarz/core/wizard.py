"""
wizard.py — Step sequencer for the avatar creation wizard.

Pure state: no I/O, no persistence. The web client drives one Wizard per
session; the same rules decide which steps a selection skips.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields, replace
from enum import IntEnum
from typing import Any, Optional

from .models import GenerateAvatarRequest, InputSchema


class Step(IntEnum):
    CAPTURE = 0
    CATEGORY = 1
    STYLE = 2
    OPTIONS = 3
    GENERATE = 4
    DOWNLOAD = 5


FIRST_STEP = Step.CAPTURE
LAST_STEP = Step.DOWNLOAD

CUSTOM_CATEGORY = "custom"


@dataclass
class WizardSelections:
    image_data: Optional[str] = None
    input_photo_id: Optional[str] = None
    category_id: Optional[str] = None
    style: str = "cartoon"
    style_input_schema: Optional[InputSchema] = None
    input_values: dict[str, str] = field(default_factory=dict)
    custom_style: str = ""
    crop_type: str = "portrait"
    age_modification: str = "normal"
    keep_background: bool = False
    customisation_enabled: bool = False
    customisation_text: str = ""
    show_name: bool = False
    name: str = ""
    name_placement: str = "graffiti"
    custom_placement: str = ""
    is_public: bool = False
    generated_image: Optional[str] = None
    generation_id: Optional[str] = None


_SELECTION_KEYS = frozenset(f.name for f in fields(WizardSelections))


class Wizard:
    def __init__(self, selections: Optional[WizardSelections] = None):
        self.step: Step = FIRST_STEP
        self.selections = selections or WizardSelections()

    # ── Skip rules ────────────────────────────────────────────────────────────

    @property
    def is_custom(self) -> bool:
        return self.selections.category_id == CUSTOM_CATEGORY

    @property
    def style_has_inputs(self) -> bool:
        schema = self.selections.style_input_schema
        return bool(schema and schema.fields)

    def _skipped(self, step: Step) -> bool:
        if step == Step.STYLE:
            return self.is_custom
        if step == Step.OPTIONS:
            return self.is_custom or not self.style_has_inputs
        return False

    # ── Navigation ────────────────────────────────────────────────────────────

    def next_step(self) -> Step:
        target = self.step
        while target < LAST_STEP:
            target = Step(target + 1)
            if not self._skipped(target):
                break
        self.step = target
        return self.step

    def prev_step(self) -> Step:
        target = self.step
        while target > FIRST_STEP:
            target = Step(target - 1)
            if not self._skipped(target):
                break
        self.step = target
        return self.step

    def go_to_step(self, step: int) -> Step:
        self.step = Step(step)      # ValueError for unknown steps
        return self.step

    # ── Selections ────────────────────────────────────────────────────────────

    def update(self, **changes: Any) -> WizardSelections:
        unknown = set(changes) - _SELECTION_KEYS
        if unknown:
            raise KeyError(f"Unknown wizard fields: {', '.join(sorted(unknown))}")

        new_category = changes.get("category_id", self.selections.category_id)
        if new_category != self.selections.category_id:
            # A different category invalidates the style picked in the old one
            changes.setdefault("style", "")
            changes.setdefault("style_input_schema", None)
            changes.setdefault("input_values", {})

        self.selections = replace(self.selections, **changes)
        return self.selections

    def set_input_value(self, field_id: str, value: str) -> None:
        self.selections.input_values = {**self.selections.input_values, field_id: value}

    def reset(self) -> None:
        self.step = FIRST_STEP
        self.selections = WizardSelections()

    def can_advance(self) -> bool:
        s = self.selections
        if self.step == Step.CAPTURE:
            return bool(s.image_data or s.input_photo_id)
        if self.step == Step.CATEGORY:
            return bool(s.category_id)
        if self.step == Step.STYLE:
            return bool(s.style)
        if self.step == Step.OPTIONS:
            schema = s.style_input_schema
            required = [f.id for f in schema.fields if f.required] if schema else []
            return all((s.input_values.get(fid) or "").strip() for fid in required)
        if self.step == Step.GENERATE:
            return bool(s.generated_image)
        return False

    def snapshot(self) -> dict[str, Any]:
        return {"step": int(self.step), "selections": asdict(self.selections)}

    # ── Request ───────────────────────────────────────────────────────────────

    def build_generate_request(self) -> GenerateAvatarRequest:
        s = self.selections
        body: dict[str, Any] = {
            "image_data": s.image_data,
            "input_photo_id": None if s.image_data else s.input_photo_id,
            "category_id": s.category_id,
            "crop_type": s.crop_type,
            "is_public": s.is_public,
        }
        if self.is_custom:
            body.update(style=CUSTOM_CATEGORY, custom_style=s.custom_style)
        else:
            body.update(
                style=s.style,
                input_values=dict(s.input_values),
                age_modification=s.age_modification,
                keep_background=s.keep_background,
            )
            if s.customisation_enabled and s.customisation_text.strip():
                body["customisation_text"] = s.customisation_text.strip()

        if s.show_name and s.name.strip():
            body.update(name=s.name.strip(), name_placement=s.name_placement)
            if s.name_placement == "custom":
                body["custom_placement"] = s.custom_placement
        return GenerateAvatarRequest(**body)
