"""
Database operations for ExamHall.
Handles Supabase CRUD for exams, questions, submissions and profiles, and
question image uploads to Supabase Storage.
"""
import logging
import os
from datetime import datetime
from typing import Dict, List, Optional

from dotenv import load_dotenv
from supabase import Client, create_client

from engine import DEFAULT_BUCKET
from examhall.auth import Profile
from examhall.models import Exam, Graded, Submission, encode_grade
from examhall.questions import ImageUploadError, Question

logger = logging.getLogger(__name__)

load_dotenv()


def env_client() -> Client:
    url = os.getenv("SUPABASE_URL")
    key = os.getenv("SUPABASE_KEY")
    if not url or not key:
        raise ValueError("SUPABASE_URL and SUPABASE_KEY must be set")
    return create_client(url, key)


class DatabaseClient:
    """Wrapper around the Supabase client with exam-specific operations."""

    def __init__(self, client: Optional[Client] = None, bucket: Optional[str] = None):
        self.client: Client = client if client is not None else env_client()
        self.bucket = bucket or os.getenv("SUPABASE_BUCKET", DEFAULT_BUCKET)

    # ============= Exams =============

    def get_active_exams(self, now: datetime) -> List[Exam]:
        """Exams whose end date is after `now` (server-side filter)."""
        response = (
            self.client.table("exams")
            .select("*")
            .gt("end_date", now.isoformat())
            .execute()
        )
        return [Exam.from_record(row) for row in response.data or []]

    def get_all_exams(self) -> List[Exam]:
        try:
            response = self.client.table("exams").select("*").order("start_date", desc=True).execute()
            return [Exam.from_record(row) for row in response.data or []]
        except Exception as e:
            logger.error(f"Error fetching exams: {e}")
            return []

    def get_exam(self, exam_id: str) -> Optional[Exam]:
        try:
            response = self.client.table("exams").select("*").eq("id", exam_id).limit(1).execute()
            rows = response.data or []
            return Exam.from_record(rows[0]) if rows else None
        except Exception as e:
            logger.error(f"Error fetching exam {exam_id}: {e}")
            return None

    def create_exam(self, exam: Exam) -> bool:
        try:
            self.client.table("exams").insert(exam.to_record()).execute()
            logger.info(f"Exam created: {exam.id} ({exam.exam_name})")
            return True
        except Exception as e:
            logger.error(f"Error creating exam: {e}")
            return False

    # ============= Questions =============

    def get_questions(self, exam_id: str) -> List[Question]:
        try:
            response = (
                self.client.table("questions")
                .select("*")
                .eq("exam_id", exam_id)
                .order("id")
                .execute()
            )
            return [Question.from_record(row) for row in response.data or []]
        except Exception as e:
            logger.error(f"Error fetching questions for exam {exam_id}: {e}")
            return []

    def add_question(self, question: Question) -> bool:
        try:
            self.client.table("questions").insert(question.to_record()).execute()
            logger.info(f"Question {question.id} added to exam {question.exam_id}")
            return True
        except Exception as e:
            logger.error(f"Error adding question: {e}")
            return False

    def upsert_questions_batch(self, questions: List[Question], chunk_size: int = 200) -> int:
        """
        Batch upsert questions with chunking.

        Returns:
            Total number of questions upserted
        """
        rows = [q.to_record() for q in questions]
        total = 0
        for i in range(0, len(rows), chunk_size):
            chunk = rows[i:i + chunk_size]
            try:
                self.client.table("questions").upsert(chunk, on_conflict="id").execute()
                total += len(chunk)
                logger.debug(f"Upserted chunk {i // chunk_size + 1}: {len(chunk)} questions")
            except Exception as e:
                logger.error(f"Error upserting chunk: {e}")

        logger.info(f"Total questions upserted: {total}")
        return total

    def upload_question_image(self, path: str, data: bytes, content_type: str) -> str:
        """Store an image under `path` in the bucket and return its public URL."""
        try:
            storage = self.client.storage.from_(self.bucket)
            storage.upload(path, data, {"content-type": content_type})
            return storage.get_public_url(path)
        except Exception as e:
            logger.error(f"Storage upload error for {path}: {e}")
            raise ImageUploadError(f"Upload failed: {e}") from e

    # ============= Submissions =============

    def get_submission(self, exam_id: str, student_id: str) -> Optional[Submission]:
        try:
            response = (
                self.client.table("student_submissions")
                .select("*")
                .match({"exam_id": exam_id, "student_id": student_id})
                .limit(1)
                .execute()
            )
            rows = response.data or []
            return Submission.from_record(rows[0]) if rows else None
        except Exception as e:
            logger.error(f"Error fetching submission {exam_id}/{student_id}: {e}")
            return None

    def get_student_submissions(self, student_id: str) -> Dict[str, Submission]:
        """All submissions of one student, keyed by exam id."""
        try:
            response = (
                self.client.table("student_submissions")
                .select("*")
                .eq("student_id", student_id)
                .execute()
            )
            submissions = [Submission.from_record(row) for row in response.data or []]
            return {s.exam_id: s for s in submissions}
        except Exception as e:
            logger.error(f"Error fetching submissions for {student_id}: {e}")
            return {}

    def get_exam_submissions(self, exam_id: str) -> List[Submission]:
        try:
            response = (
                self.client.table("student_submissions")
                .select("*")
                .eq("exam_id", exam_id)
                .order("submitted_at")
                .execute()
            )
            return [Submission.from_record(row) for row in response.data or []]
        except Exception as e:
            logger.error(f"Error fetching submissions for exam {exam_id}: {e}")
            return []

    def save_submission(self, submission: Submission) -> bool:
        try:
            (
                self.client.table("student_submissions")
                .upsert(submission.to_record(), on_conflict="exam_id,student_id")
                .execute()
            )
            logger.info(f"Submission saved: exam={submission.exam_id} student={submission.student_id}")
            return True
        except Exception as e:
            logger.error(f"Error saving submission: {e}")
            return False

    def publish_grade(self, exam_id: str, student_id: str, score: float, feedback: str) -> bool:
        try:
            (
                self.client.table("student_submissions")
                .update({"total_grade": encode_grade(Graded(score)), "feedback": feedback})
                .match({"exam_id": exam_id, "student_id": student_id})
                .execute()
            )
            logger.info(f"Grade published: exam={exam_id} student={student_id} score={score}")
            return True
        except Exception as e:
            logger.error(f"Error publishing grade: {e}")
            return False

    # ============= Profiles =============

    def get_profile(self, user_id: str) -> Optional[Profile]:
        try:
            response = self.client.table("profiles").select("*").eq("id", user_id).limit(1).execute()
            rows = response.data or []
            return Profile.from_record(rows[0]) if rows else None
        except Exception as e:
            logger.error(f"Error fetching profile {user_id}: {e}")
            return None

    def save_profile(self, profile: Profile) -> bool:
        try:
            self.client.table("profiles").upsert(profile.to_record(), on_conflict="id").execute()
            return True
        except Exception as e:
            logger.error(f"Error saving profile: {e}")
            return False
