"""Ingest .jsonl questions for one exam; validate like the add-question dialog, bulk UPSERT into questions."""
import argparse
import json
import logging
from pathlib import Path
from uuid import uuid5, NAMESPACE_URL

from examhall.questions import Question, QuestionDraft, QuestionType

logger = logging.getLogger(__name__)


def draft_from_raw(raw: dict) -> QuestionDraft | None:
    """Fill a form draft from one decoded line. Returns None for an unknown type."""
    try:
        question_type = QuestionType(raw.get("question_type") or raw.get("type"))
    except ValueError:
        return None
    draft = QuestionDraft()
    draft.select_type(question_type)
    draft.question_text = raw.get("question_text") or raw.get("text") or ""
    grade = raw.get("grade", "")
    if isinstance(grade, float) and grade.is_integer():
        grade = int(grade)
    draft.grade = str(grade)
    if question_type is QuestionType.MULTIPLE_CHOICE:
        options = raw.get("options") or []
        for i, opt in enumerate(options[:len(draft.options)]):
            draft.set_option(i, str(opt or ""))
    correct = raw.get("correct_answer")
    if question_type.objective and correct is not None:
        # set directly: validate() reports a bad answer with the form's wording
        draft.correct_answer = str(correct)
    return draft


def parse_line(line: str, exam_id: str) -> Question | None:
    """Parse one JSONL line into a question. Returns None if invalid/skip."""
    line = line.strip()
    if not line:
        return None
    try:
        raw = json.loads(line)
    except json.JSONDecodeError:
        logger.warning("Skipping line that is not JSON: %s", line[:60])
        return None
    draft = draft_from_raw(raw)
    if draft is None:
        logger.warning("Skipping question with unknown type: %s", line[:60])
        return None
    errors = draft.validate()
    if errors:
        logger.warning("Skipping invalid question (%s): %s", "; ".join(errors), line[:60])
        return None
    return draft.build(question_id=question_uid(raw, draft, exam_id), exam_id=exam_id,
                       image_url=raw.get("image_url"))


def question_uid(raw: dict, draft: QuestionDraft, exam_id: str) -> str:
    """
    Stable id so re-importing the same file updates instead of duplicating.
    Uses the line's own `id` when present, else the full question content.
    """
    source_id = raw.get("id")
    if source_id:
        key = f"{exam_id}/id/{source_id}"
    else:
        content = json.dumps(
            [draft.question_type.value, draft.question_text.strip(), draft.options, draft.correct_answer],
            ensure_ascii=False,
        )
        key = f"{exam_id}/content/{content}"
    return str(uuid5(NAMESPACE_URL, key))


def dedupe_by_id(questions):
    """Keep the last question per id; one upsert chunk must not touch a row twice."""
    by_id = {}
    for question in questions:
        if question.id in by_id:
            logger.warning("Duplicate question %s in input; keeping the later line", question.id)
        by_id[question.id] = question
    return list(by_id.values())


def load_and_transform(path: Path, exam_id: str):
    """Read JSONL and yield validated questions."""
    with path.open("r", encoding="utf-8") as f:
        for line in f:
            question = parse_line(line, exam_id)
            if question:
                yield question


def run_import(exam_id: str, jsonl_path: Path, chunk_size: int = 200, dry_run: bool = False):
    if not jsonl_path.exists():
        raise FileNotFoundError(f"JSONL not found: {jsonl_path}")
    questions = dedupe_by_id(load_and_transform(jsonl_path, exam_id))
    if dry_run:
        print(f"Dry run: would upsert {len(questions)} questions into exam {exam_id}")
        if questions:
            print("Sample row:", questions[0].to_record())
        return len(questions)

    from db import get_database_uncached

    database = get_database_uncached()
    if database.get_exam(exam_id) is None:
        raise ValueError(f"Exam {exam_id} does not exist")
    total = database.upsert_questions_batch(questions, chunk_size=chunk_size)
    print(f"Upserted {total} questions into exam {exam_id} from {jsonl_path}")
    return total


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
    parser = argparse.ArgumentParser(description="Import questions for one exam from JSONL into Supabase.")
    parser.add_argument("exam_id", help="Exam id the questions belong to")
    parser.add_argument("jsonl", help="Path to .jsonl, one question object per line")
    parser.add_argument("--chunk-size", type=int, default=200, help="Upsert chunk size (default 200)")
    parser.add_argument("--dry-run", action="store_true", help="Parse and validate only, do not upsert")
    args = parser.parse_args()
    run_import(args.exam_id, Path(args.jsonl), chunk_size=args.chunk_size, dry_run=args.dry_run)
