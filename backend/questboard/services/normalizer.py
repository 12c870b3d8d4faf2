"""
Turn a raw task submission into the canonical content stored on a Submission.

Every task type has one normalizer; each returns the first rule it finds
violated as a single ValidationError message, which callers show to the
submitter verbatim.

Canonical content shapes:
  TEXT       {"text": str}
  IMAGE      {"description": str, "imageCount": int}   (+ file URLs)
  VIDEO      {"videoUrl": str, "platform": str}
  QUIZ       {"answers": {question_id: answer}}
  FORM       {"responses": {field_id: value}}
  PICK_ONE   {"selectedOption": option_id}
  CHECKLIST  {"checkedItems": [item_id, ...]}
"""
from __future__ import annotations
import json
import math
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Sequence
from pydantic import EmailStr, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from questboard.config import settings
from questboard.errors import ValidationError, DependencyError
from questboard.models.challenge import Task
from questboard.schemas.task import (
    ChecklistOptions, FormOptions, PickOneOptions, QuizOptions, parse_task_options,
)
from questboard.services.media import UploadedFile, check_image
from questboard.services.storage import ObjectStorage, delete_quietly

TEXT_MIN_LENGTH = 10
TEXT_MAX_LENGTH = 5000

VIDEO_URL_PATTERN = re.compile(
    r"^(https?://)?(www\.)?(youtube\.com|youtu\.be|vimeo\.com|dailymotion\.com)/.+$", re.IGNORECASE
)
# substring -> platform label; first match wins
VIDEO_PLATFORMS = (
    ("youtube.com", "YouTube"),
    ("youtu.be", "YouTube"),
    ("vimeo.com", "Vimeo"),
    ("dailymotion.com", "Dailymotion"),
)

_email = TypeAdapter(EmailStr)
# plain decimal or exponent notation; no underscores, no nan/inf
NUMBER_PATTERN = re.compile(r"-?\d+(\.\d+)?([eE][-+]?\d+)?")


@dataclass
class NormalizedSubmission:
    content: dict
    file_urls: list[str] = field(default_factory=list)


def parse_payload(raw: Any) -> Any:
    """Decode a JSON-serialized payload; plain strings that are not JSON pass through."""
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8")
    if isinstance(raw, str):
        try:
            decoded = json.loads(raw)
        except ValueError:
            return raw
        # "12345678901" or "true" is still text, not a number/bool
        return decoded if isinstance(decoded, (dict, list, str)) else raw
    return raw


def _blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, (list, dict)):
        return len(value) == 0
    return False


def _unwrap(payload: Any, *keys: str) -> Any:
    if isinstance(payload, dict):
        for k in keys:
            if k in payload:
                return payload[k]
        return None
    return payload


def _is_number(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    if isinstance(value, float):
        return math.isfinite(value)
    if isinstance(value, str) and NUMBER_PATTERN.fullmatch(value):
        return math.isfinite(float(value))
    return False


def detect_video_platform(url: str) -> str:
    lowered = url.lower()
    for needle, platform in VIDEO_PLATFORMS:
        if needle in lowered:
            return platform
    return "Unknown"


# ---------- per-type normalizers ----------

def _normalize_text(task: Task, payload: Any, files, storage) -> NormalizedSubmission:
    text = _unwrap(payload, "text")
    if not isinstance(text, str) or not text.strip():
        raise ValidationError("Text content is required")
    text = text.strip()
    if len(text) < TEXT_MIN_LENGTH:
        raise ValidationError(f"Text must be at least {TEXT_MIN_LENGTH} characters long")
    if len(text) > TEXT_MAX_LENGTH:
        raise ValidationError(f"Text must not exceed {TEXT_MAX_LENGTH} characters")
    return NormalizedSubmission({"text": text})


def _normalize_image(task: Task, payload: Any, files: Sequence[UploadedFile], storage: ObjectStorage | None) -> NormalizedSubmission:
    if not files:
        raise ValidationError("At least one image file is required")
    if len(files) > settings.max_image_files:
        raise ValidationError(f"Too many files. Maximum is {settings.max_image_files} files")
    # validate every file before anything reaches storage
    for f in files:
        problem = check_image(f, settings.max_upload_bytes)
        if problem:
            raise ValidationError(problem)
    if storage is None:
        raise DependencyError("File storage is not configured")

    description = _unwrap(payload, "description")
    urls: list[str] = []
    for f in files:
        try:
            urls.append(storage.upload(f.data, f.content_type.lower()))
        except Exception as e:
            # no half-stored submissions: drop what already went up
            delete_quietly(storage, urls)
            raise DependencyError(f"File upload failed: {e}") from e
    return NormalizedSubmission(
        {"description": description.strip() if isinstance(description, str) else "", "imageCount": len(urls)},
        urls,
    )


def _normalize_video(task: Task, payload: Any, files, storage) -> NormalizedSubmission:
    url = _unwrap(payload, "videoUrl", "url")
    if not isinstance(url, str) or not url.strip():
        raise ValidationError("Video URL is required")
    url = url.strip()
    if not VIDEO_URL_PATTERN.match(url):
        raise ValidationError("Invalid video URL. Must be from YouTube, Vimeo, or Dailymotion")
    return NormalizedSubmission({"videoUrl": url, "platform": detect_video_platform(url)})


def _normalize_quiz(task: Task, payload: Any, files, storage) -> NormalizedSubmission:
    options: QuizOptions = parse_task_options("QUIZ", task.options)
    answers = _unwrap(payload, "answers") if isinstance(payload, dict) and "answers" in payload else payload
    if _blank(answers):
        raise ValidationError("Quiz answers are required")
    if isinstance(answers, list):
        # [{"questionId": .., "answer": ..}] form
        try:
            answers = {str(a["questionId"]): a.get("answer") for a in answers}
        except (TypeError, KeyError):
            raise ValidationError("Invalid quiz answers format")
    if not isinstance(answers, dict):
        raise ValidationError("Quiz answers must be an object keyed by question id")

    cleaned: dict[str, Any] = {}
    for q in options.questions:
        answer = answers.get(q.id)
        if _blank(answer):
            raise ValidationError(f'Answer for question "{q.question}" is required')
        if q.options and str(answer) not in q.options:
            raise ValidationError(f'Invalid answer for question "{q.question}"')
        cleaned[q.id] = answer.strip() if isinstance(answer, str) else answer
    return NormalizedSubmission({"answers": cleaned})


def _normalize_form(task: Task, payload: Any, files, storage) -> NormalizedSubmission:
    options: FormOptions = parse_task_options("FORM", task.options)
    responses = payload.get("responses") if isinstance(payload, dict) and "responses" in payload else payload
    if _blank(responses):
        raise ValidationError("Form responses are required")
    if not isinstance(responses, dict):
        raise ValidationError("Form responses must be an object")

    cleaned: dict[str, Any] = {}
    for fld in options.fields:
        value = responses.get(fld.id)
        if _blank(value):
            if fld.required:
                raise ValidationError(f'Field "{fld.label}" is required')
            continue
        if isinstance(value, str):
            value = value.strip()
        if fld.type == "email":
            try:
                value = str(_email.validate_python(value))
            except PydanticValidationError:
                raise ValidationError(f'Field "{fld.label}" must be a valid email address')
        elif fld.type == "number" and not _is_number(value):
            raise ValidationError(f'Field "{fld.label}" must be a number')
        cleaned[fld.id] = value
    return NormalizedSubmission({"responses": cleaned})


def _normalize_pick_one(task: Task, payload: Any, files, storage) -> NormalizedSubmission:
    options: PickOneOptions = parse_task_options("PICK_ONE", task.options)
    selected = _unwrap(payload, "selectedOption")
    if _blank(selected):
        raise ValidationError("Selection is required")
    selected = str(selected)
    if selected not in {o.id for o in options.options}:
        raise ValidationError("Invalid option selected")
    return NormalizedSubmission({"selectedOption": selected})


def _normalize_checklist(task: Task, payload: Any, files, storage) -> NormalizedSubmission:
    options: ChecklistOptions = parse_task_options("CHECKLIST", task.options)
    checked = _unwrap(payload, "checkedItems")
    if checked is None:
        raise ValidationError("Checklist items are required")
    if not isinstance(checked, list):
        raise ValidationError("Checklist must be an array")
    if not checked:
        raise ValidationError("Checklist items are required")

    known = {item.id for item in options.items}
    items = [str(c) for c in checked]
    for c in items:
        if c not in known:
            raise ValidationError(f'Unknown checklist item "{c}"')
    for item in options.items:
        if item.required and item.id not in items:
            raise ValidationError(f'Required item "{item.text}" must be checked')
    # keep first occurrence order, drop repeats
    return NormalizedSubmission({"checkedItems": list(dict.fromkeys(items))})


_NORMALIZERS: dict[str, Callable[..., NormalizedSubmission]] = {
    "TEXT": _normalize_text,
    "IMAGE": _normalize_image,
    "VIDEO": _normalize_video,
    "QUIZ": _normalize_quiz,
    "FORM": _normalize_form,
    "PICK_ONE": _normalize_pick_one,
    "CHECKLIST": _normalize_checklist,
}


def normalize_submission(
    task: Task,
    raw_payload: Any,
    files: Sequence[UploadedFile] = (),
    storage: ObjectStorage | None = None,
) -> NormalizedSubmission:
    normalizer = _NORMALIZERS.get(task.task_type)
    if normalizer is None:
        raise ValidationError("Invalid task type")
    try:
        payload = parse_payload(raw_payload)
    except UnicodeDecodeError:
        raise ValidationError("Invalid content format")
    try:
        return normalizer(task, payload, list(files), storage)
    except PydanticValidationError:
        # the task itself carries options that don't fit its type
        raise ValidationError("Task options are misconfigured for this task type")
