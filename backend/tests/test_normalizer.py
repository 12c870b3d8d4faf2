import io
import json
import pytest
from PIL import Image

from questboard.errors import DependencyError, ValidationError
from questboard.models.challenge import Task
from questboard.services.media import UploadedFile
from questboard.services.normalizer import detect_video_platform, normalize_submission, parse_payload

from conftest import FakeStorage

QUIZ = {"questions": [
    {"id": "q1", "question": "Pick a colour", "options": ["red", "blue"]},
    {"id": "q2", "question": "Why?"},
]}
FORM = {"fields": [
    {"id": "name", "label": "Name", "type": "text", "required": True},
    {"id": "email", "label": "Email", "type": "email", "required": True},
    {"id": "age", "label": "Age", "type": "number"},
]}
PICK = {"options": [{"id": "a", "label": "A"}, {"value": "b", "label": "B"}]}
CHECKLIST = {"items": [
    {"id": "c1", "text": "Read the brief", "required": True},
    {"id": "c2", "text": "Share it"},
]}


def _task(task_type: str, options: dict | None = None) -> Task:
    return Task(task_type=task_type, options=options or {}, title="t", tab_name="Main", max_score=10)


def _png(size=(4, 4)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", size, (200, 10, 10)).save(buf, format="PNG")
    return buf.getvalue()


def _rejects(task, payload, message, **kw):
    with pytest.raises(ValidationError) as exc:
        normalize_submission(task, payload, **kw)
    assert exc.value.message == message


def test_parse_payload_keeps_plain_text():
    assert parse_payload("hello there") == "hello there"
    assert parse_payload("12345678901") == "12345678901"
    assert parse_payload('{"text": "x"}') == {"text": "x"}
    assert parse_payload(b'["a"]') == ["a"]


def test_text_trims_and_enforces_bounds():
    t = _task("TEXT")
    assert normalize_submission(t, json.dumps({"text": "  long enough text  "})).content == {"text": "long enough text"}
    assert normalize_submission(t, "a plain string answer").content == {"text": "a plain string answer"}
    _rejects(t, {"text": "   "}, "Text content is required")
    _rejects(t, {"text": "short"}, "Text must be at least 10 characters long")
    _rejects(t, {"text": "x" * 5001}, "Text must not exceed 5000 characters")


def test_video_url_and_platform():
    t = _task("VIDEO")
    n = normalize_submission(t, {"videoUrl": "https://youtu.be/abc123"})
    assert n.content == {"videoUrl": "https://youtu.be/abc123", "platform": "YouTube"}
    assert detect_video_platform("https://vimeo.com/1") == "Vimeo"
    _rejects(t, {}, "Video URL is required")
    _rejects(t, {"videoUrl": "https://example.com/v"}, "Invalid video URL. Must be from YouTube, Vimeo, or Dailymotion")


def test_quiz_answer_forms():
    t = _task("QUIZ", QUIZ)
    expected = {"answers": {"q1": "red", "q2": "because"}}
    assert normalize_submission(t, {"answers": {"q1": "red", "q2": " because "}}).content == expected
    assert normalize_submission(t, {"q1": "red", "q2": "because"}).content == expected
    listed = [{"questionId": "q1", "answer": "red"}, {"questionId": "q2", "answer": "because"}]
    assert normalize_submission(t, listed).content == expected

    _rejects(t, {"answers": {}}, "Quiz answers are required")
    _rejects(t, {"answers": {"q1": "red"}}, 'Answer for question "Why?" is required')
    _rejects(t, {"answers": {"q1": "green", "q2": "x"}}, 'Invalid answer for question "Pick a colour"')


def test_quiz_empty_options_mean_free_form():
    t = _task("QUIZ", {"questions": [{"id": "q1", "question": "Anything?", "options": []}]})
    assert normalize_submission(t, {"answers": {"q1": "whatever"}}).content == {"answers": {"q1": "whatever"}}


def test_form_required_email_number():
    t = _task("FORM", FORM)
    n = normalize_submission(t, {"responses": {"name": " Ada ", "email": "ada@example.com", "age": "15"}})
    assert n.content == {"responses": {"name": "Ada", "email": "ada@example.com", "age": "15"}}

    _rejects(t, {"responses": {"email": "ada@example.com"}}, 'Field "Name" is required')
    _rejects(t, {"responses": {"name": "Ada", "email": "nope"}}, 'Field "Email" must be a valid email address')
    _rejects(t, {"responses": {"name": "Ada", "email": "ada@example.com", "age": "old"}}, 'Field "Age" must be a number')
    for bad in ("nan", "inf", "-Infinity", "1_000", "1e400", float("nan"), True):
        _rejects(t, {"responses": {"name": "Ada", "email": "ada@example.com", "age": bad}}, 'Field "Age" must be a number')
    for ok in ("-3.5", "2e3", 42, 0.5):
        assert normalize_submission(t, {"responses": {"name": "Ada", "email": "ada@example.com", "age": ok}}).content["responses"]["age"] == ok


def test_pick_one_accepts_id_or_value():
    t = _task("PICK_ONE", PICK)
    assert normalize_submission(t, {"selectedOption": "b"}).content == {"selectedOption": "b"}
    _rejects(t, {"selectedOption": ""}, "Selection is required")
    _rejects(t, {"selectedOption": "z"}, "Invalid option selected")


def test_checklist_required_items_and_dedupe():
    t = _task("CHECKLIST", CHECKLIST)
    assert normalize_submission(t, {"checkedItems": ["c1", "c2", "c1"]}).content == {"checkedItems": ["c1", "c2"]}
    _rejects(t, {"checkedItems": "c1"}, "Checklist must be an array")
    _rejects(t, {"checkedItems": ["c2"]}, 'Required item "Read the brief" must be checked')
    _rejects(t, {"checkedItems": ["c1", "zz"]}, 'Unknown checklist item "zz"')


def test_misconfigured_options_are_reported():
    _rejects(_task("PICK_ONE", {"options": [{"id": "only"}]}), {"selectedOption": "only"},
             "Task options are misconfigured for this task type")


def test_image_uploads_after_validation():
    t = _task("IMAGE")
    store = FakeStorage()
    files = [UploadedFile("a.png", "image/png", _png()), UploadedFile("b.png", "image/png", _png())]
    n = normalize_submission(t, {"description": " my pics "}, files, store)
    assert n.content == {"description": "my pics", "imageCount": 2}
    assert len(n.file_urls) == 2 and set(n.file_urls) == set(store.objects)


def test_image_rejections_store_nothing():
    t = _task("IMAGE")
    store = FakeStorage()
    _rejects(t, {}, "At least one image file is required", files=[], storage=store)

    too_many = [UploadedFile(f"{i}.png", "image/png", _png()) for i in range(6)]
    _rejects(t, {}, "Too many files. Maximum is 5 files", files=too_many, storage=store)

    bad = [UploadedFile("ok.png", "image/png", _png()), UploadedFile("doc.pdf", "application/pdf", b"%PDF-1.4")]
    _rejects(t, {}, "Invalid file type for image upload. Only JPEG, PNG, GIF, and WebP are allowed.", files=bad, storage=store)

    fake = [UploadedFile("fake.png", "image/png", b"not really an image")]
    _rejects(t, {}, "Invalid image file: fake.png", files=fake, storage=store)
    assert store.objects == {}


def test_image_storage_failure_is_dependency_error():
    class Broken(FakeStorage):
        def upload(self, data, mime_type):
            raise OSError("bucket gone")

    with pytest.raises(DependencyError):
        normalize_submission(_task("IMAGE"), {}, [UploadedFile("a.png", "image/png", _png())], Broken())


def test_failed_upload_removes_earlier_files():
    class FailsSecond(FakeStorage):
        def upload(self, data, mime_type):
            if self.objects:
                raise OSError("bucket gone")
            return super().upload(data, mime_type)

    store = FailsSecond()
    files = [UploadedFile("a.png", "image/png", _png()), UploadedFile("b.png", "image/png", _png())]
    with pytest.raises(DependencyError):
        normalize_submission(_task("IMAGE"), {}, files, store)
    assert store.objects == {}
    assert len(store.deleted) == 1
