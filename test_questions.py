"""Question authoring form: type switching, validation, image upload."""
import pytest

from examhall.questions import (
    ImageUploadError, QuestionDraft, QuestionType, QuestionValidationError,
    image_object_path, submit_question,
)


def mc_draft(options, correct):
    draft = QuestionDraft(question_text="Pick the vowel", grade="5")
    draft.select_type(QuestionType.MULTIPLE_CHOICE)
    for i, value in enumerate(options):
        draft.set_option(i, value)
    draft.correct_answer = correct
    return draft


def test_duplicate_options_are_rejected():
    draft = mc_draft(["A", "B", "A", "C"], "A")
    assert "Options must be different from each other" in draft.validate()


def test_blank_option_is_allowed():
    draft = mc_draft(["A", "B", "", "C"], "A")
    assert draft.validate() == []


def test_correct_answer_must_be_a_filled_option():
    draft = mc_draft(["A", "B", "", ""], "Z")
    assert "Please fill all options and select a correct answer" in draft.validate()
    draft.correct_answer = None
    assert "Please fill all options and select a correct answer" in draft.validate()


def test_switching_type_resets_answer_state():
    draft = mc_draft(["A", "B", "C", "D"], "B")
    draft.select_type(QuestionType.TRUE_FALSE)
    assert draft.options == ["", "", "", ""]
    assert draft.correct_answer is None


def test_choose_correct_only_accepts_valid_choices():
    draft = mc_draft(["A", "", "", ""], None)
    with pytest.raises(ValueError):
        draft.choose_correct("")
    draft.choose_correct("A")
    assert draft.correct_answer == "A"

    draft.select_type(QuestionType.TRUE_FALSE)
    with pytest.raises(ValueError):
        draft.choose_correct("Maybe")
    draft.choose_correct("False")
    assert draft.correct_answer == "False"

    draft.select_type(QuestionType.ESSAY)
    with pytest.raises(ValueError):
        draft.choose_correct("anything")


def test_true_false_requires_selection():
    draft = QuestionDraft(question_text="The sky is blue", grade="2")
    draft.select_type(QuestionType.TRUE_FALSE)
    assert draft.validate() == ["Please select True or False"]
    draft.choose_correct("True")
    assert draft.validate() == []


@pytest.mark.parametrize("question_type", [QuestionType.SHORT_ANSWER, QuestionType.ESSAY])
def test_open_questions_need_no_answer(question_type):
    draft = QuestionDraft(question_text="Explain recursion", grade="10")
    draft.select_type(question_type)
    assert draft.validate() == []
    question = draft.build("q1", "exam-1")
    assert question.options == []
    assert question.correct_answer is None


def test_form_level_errors():
    draft = QuestionDraft(question_text="  ", grade="ten")
    assert draft.validate() == [
        "Please select a question type",
        "Question cannot be empty",
        "Grade must be a number",
    ]
    draft.grade = ""
    assert "Grade cannot be empty" in draft.validate()


@pytest.mark.parametrize("grade", ["²", "-3", "2.5"])
def test_grade_must_be_a_plain_integer(grade, now):
    draft = QuestionDraft(question_text="Define entropy", grade=grade)
    draft.select_type(QuestionType.SHORT_ANSWER)
    assert draft.validate() == ["Grade must be a number"]
    with pytest.raises(QuestionValidationError):
        submit_question(draft, "exam-1", lambda *args: pytest.fail("no upload expected"), now)


def test_image_path_uses_epoch_millis_and_extension(now):
    assert image_object_path("diagram.final.PNG", now) == f"question_images/image_{int(now.timestamp() * 1000)}.PNG"


def test_submit_uploads_image_and_records_url(now):
    uploads = []

    def upload(path, data, content_type):
        uploads.append((path, data, content_type))
        return f"https://cdn.example.test/{path}"

    draft = mc_draft(["A", "B", "", "C"], "A")
    draft.attach_image("photo.jpg", b"\xff\xd8")

    question = submit_question(draft, "exam-1", upload, now)

    millis = int(now.timestamp() * 1000)
    assert uploads == [(f"question_images/image_{millis}.jpg", b"\xff\xd8", "image/jpeg")]
    assert question.image_url == f"https://cdn.example.test/question_images/image_{millis}.jpg"
    assert question.id == str(millis)
    assert question.exam_id == "exam-1"
    assert question.grade == 5
    assert question.options == ["A", "B", "", "C"]


def test_upload_failure_creates_no_question(now):
    def upload(path, data, content_type):
        raise ImageUploadError("Upload failed: bucket not found")

    draft = mc_draft(["A", "B", "", "C"], "A")
    draft.attach_image("photo.png", b"png")

    with pytest.raises(ImageUploadError):
        submit_question(draft, "exam-1", upload, now)


def test_invalid_draft_is_not_uploaded(now):
    calls = []
    draft = mc_draft(["A", "A", "", ""], "A")
    draft.attach_image("photo.png", b"png")

    with pytest.raises(QuestionValidationError) as excinfo:
        submit_question(draft, "exam-1", lambda *args: calls.append(args), now)

    assert calls == []
    assert "Options must be different from each other" in excinfo.value.errors


def test_question_without_image_skips_upload(now):
    draft = QuestionDraft(question_text="Define entropy", grade="4")
    draft.select_type(QuestionType.SHORT_ANSWER)
    question = submit_question(draft, "exam-1", lambda *args: pytest.fail("no upload expected"), now)
    assert question.image_url is None
