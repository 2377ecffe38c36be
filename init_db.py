"""Initialize Supabase database schema and storage bucket for ExamHall."""
import os
from dotenv import load_dotenv

from engine import DEFAULT_BUCKET

load_dotenv()

SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_BUCKET = os.getenv("SUPABASE_BUCKET", DEFAULT_BUCKET)

# SQL schema
SCHEMA_SQL = f"""
-- User profiles (one per auth user)
CREATE TABLE IF NOT EXISTS profiles (
    id UUID PRIMARY KEY REFERENCES auth.users(id) ON DELETE CASCADE,
    name TEXT NOT NULL,
    email TEXT,
    role VARCHAR(20) NOT NULL DEFAULT 'student' CHECK (role IN ('student', 'admin')),
    created_at TIMESTAMPTZ DEFAULT NOW()
);

-- Exams with their open window [start_date, end_date)
CREATE TABLE IF NOT EXISTS exams (
    id TEXT PRIMARY KEY,
    exam_name TEXT NOT NULL,
    start_date TIMESTAMPTZ NOT NULL,
    end_date TIMESTAMPTZ NOT NULL,
    duration INT NOT NULL CHECK (duration > 0),
    total_grade NUMERIC NOT NULL CHECK (total_grade > 0),
    attempts INT NOT NULL DEFAULT 1,
    created_at TIMESTAMPTZ DEFAULT NOW(),
    CHECK (start_date < end_date)
);

-- Questions per exam
CREATE TABLE IF NOT EXISTS questions (
    id TEXT PRIMARY KEY,
    exam_id TEXT NOT NULL REFERENCES exams(id) ON DELETE CASCADE,
    question_type VARCHAR(20) NOT NULL
        CHECK (question_type IN ('Multiple Choice', 'True/False', 'Short Answer', 'Essay')),
    question_text TEXT NOT NULL,
    options JSONB NOT NULL DEFAULT '[]',
    correct_answer TEXT,
    grade INT NOT NULL DEFAULT 0,
    image_url TEXT,
    created_at TIMESTAMPTZ DEFAULT NOW()
);

-- One submission per (exam, student); NULL total_grade = not published yet
CREATE TABLE IF NOT EXISTS student_submissions (
    exam_id TEXT NOT NULL REFERENCES exams(id) ON DELETE CASCADE,
    student_id UUID NOT NULL,
    student_name TEXT,
    student_email TEXT,
    answers JSONB NOT NULL DEFAULT '{{}}',
    total_grade NUMERIC,
    feedback TEXT DEFAULT '',
    submitted_at TIMESTAMPTZ DEFAULT NOW(),
    PRIMARY KEY (exam_id, student_id)
);

-- Create indexes for performance
CREATE INDEX IF NOT EXISTS idx_exams_end_date ON exams(end_date);
CREATE INDEX IF NOT EXISTS idx_questions_exam_id ON questions(exam_id);
CREATE INDEX IF NOT EXISTS idx_submissions_student_id ON student_submissions(student_id);

-- Public bucket for question images
INSERT INTO storage.buckets (id, name, public)
VALUES ('{SUPABASE_BUCKET}', '{SUPABASE_BUCKET}', true)
ON CONFLICT (id) DO NOTHING;
"""


def schema_statements() -> list[str]:
    return [s.strip() for s in SCHEMA_SQL.split(";") if s.strip()]


if __name__ == "__main__":
    print("Initializing Supabase schema...")
    print(f"URL: {SUPABASE_URL}")
    print(f"Bucket: {SUPABASE_BUCKET}")

    statements = schema_statements()
    for i, stmt in enumerate(statements, 1):
        first = next(line for line in stmt.splitlines() if not line.startswith("--"))
        print(f"Statement {i}/{len(statements)}: {first[:60]}...")

    print("\nNote: Due to Supabase client limitations, run this SQL in Supabase SQL Editor:")
    print(SCHEMA_SQL)
