from __future__ import annotations
from pydantic import BaseModel, Field, ConfigDict, model_validator, field_validator
from typing import Any, Literal
from uuid import UUID
from datetime import datetime

TaskType = Literal["TEXT", "IMAGE", "VIDEO", "QUIZ", "FORM", "PICK_ONE", "CHECKLIST"]
TASK_TYPES: tuple[str, ...] = ("TEXT", "IMAGE", "VIDEO", "QUIZ", "FORM", "PICK_ONE", "CHECKLIST")
FormFieldType = Literal["text", "textarea", "email", "number", "date", "select"]


def _id_from_value(data: Any) -> Any:
    # option entries may carry their identifier as "id" or "value"
    if isinstance(data, dict) and not data.get("id") and data.get("value") is not None:
        data = {**data, "id": str(data["value"])}
    return data


class Choice(BaseModel):
    model_config = ConfigDict(extra="allow")
    id: str = Field(min_length=1)
    label: str | None = None

    @model_validator(mode="before")
    @classmethod
    def fill_id(cls, data: Any) -> Any:
        return _id_from_value(data)


class QuizQuestion(BaseModel):
    model_config = ConfigDict(extra="allow")
    id: str = Field(min_length=1)
    question: str
    # closed answer set; None or [] means free-form answer
    options: list[str] | None = None

    @field_validator("options", mode="before")
    @classmethod
    def flatten_options(cls, v):
        if v is None:
            return v
        return [str(o.get("id") or o.get("value")) if isinstance(o, dict) else str(o) for o in v]


class FormField(BaseModel):
    model_config = ConfigDict(extra="allow")
    id: str = Field(min_length=1)
    label: str
    type: FormFieldType = "text"
    required: bool = False


class ChecklistItem(BaseModel):
    model_config = ConfigDict(extra="allow")
    id: str = Field(min_length=1)
    text: str
    required: bool = False

    @model_validator(mode="before")
    @classmethod
    def fill_id(cls, data: Any) -> Any:
        return _id_from_value(data)


class NoOptions(BaseModel):
    model_config = ConfigDict(extra="allow")


class QuizOptions(BaseModel):
    questions: list[QuizQuestion] = Field(min_length=1)


class FormOptions(BaseModel):
    fields: list[FormField] = Field(min_length=1)


class PickOneOptions(BaseModel):
    options: list[Choice] = Field(min_length=2)


class ChecklistOptions(BaseModel):
    items: list[ChecklistItem] = Field(min_length=1)


TaskOptions = NoOptions | QuizOptions | FormOptions | PickOneOptions | ChecklistOptions

OPTIONS_SCHEMA: dict[str, type[BaseModel]] = {
    "TEXT": NoOptions,
    "IMAGE": NoOptions,
    "VIDEO": NoOptions,
    "QUIZ": QuizOptions,
    "FORM": FormOptions,
    "PICK_ONE": PickOneOptions,
    "CHECKLIST": ChecklistOptions,
}


def parse_task_options(task_type: str, raw: dict | None) -> TaskOptions:
    """Validate a task's stored options against the schema for its type."""
    return OPTIONS_SCHEMA[task_type].model_validate(raw or {})


class TaskCreate(BaseModel):
    tab_name: str = Field(min_length=1, max_length=60)
    title: str = Field(min_length=3, max_length=200)
    description: str | None = None
    task_type: TaskType
    is_required: bool = True
    max_score: int = Field(ge=0, default=10)
    options: dict = Field(default_factory=dict)

    @model_validator(mode="after")
    def options_match_type(self):
        parse_task_options(self.task_type, self.options)
        return self


class TaskPublic(BaseModel):
    id: UUID
    challenge_id: UUID
    tab_name: str
    title: str
    description: str | None
    task_type: TaskType
    is_required: bool
    max_score: int
    options: dict
    created_at: datetime
