"""ExamHall: timed exams for students, exam authoring for administrators."""
import math
import sys
from pathlib import Path
from datetime import datetime, time, timedelta, timezone

# Ensure project root is in path
project_root = Path(__file__).resolve().parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

import streamlit as st

from db import get_auth_client, get_database
from engine import MAX_LIST_REFRESH_SECONDS, MC_OPTION_COUNT, ROUTES, TRUE_FALSE_CHOICES
from examhall import auth
from examhall.exam_session import ExamAttempt, objective_score
from examhall.exams import ExamDraft
from examhall.grading import grade_band, grade_rows
from examhall.listing import ExamListSession
from examhall.models import utc_now
from examhall.questions import (
    ImageUploadError, QuestionDraft, QuestionType, QuestionValidationError, submit_question,
)
from examhall.session_gate import CONFIRM_MESSAGE, CONFIRM_TITLE, evaluate

st.set_page_config(page_title="ExamHall", layout="wide")
st.sidebar.title("ExamHall")

database = get_database()


def go(page: str, **params):
    """Navigate to a named route with simple string parameters."""
    st.query_params.clear()
    st.query_params["page"] = page
    for key, value in params.items():
        st.query_params[key] = str(value)
    st.rerun()


def release_exam_list():
    """Drop the exam list's wake-ups; called whenever the list is not on screen."""
    exam_list_session = st.session_state.pop("exam_list", None)
    if exam_list_session is not None:
        exam_list_session.close()


def exam_list_pipeline() -> ExamListSession:
    """Feed + wake-ups for this browser session, created on first use."""
    if "exam_list" not in st.session_state:
        st.session_state["exam_list"] = ExamListSession(fetch=database.get_active_exams)
    return st.session_state["exam_list"]


def combine_utc(day, at: time) -> datetime:
    return datetime.combine(day, at).replace(tzinfo=timezone.utc)


# ----- Routing -----
user = st.session_state.get("user")
profile = st.session_state.get("profile")
page = st.query_params.get("page", "login")
if page not in ROUTES:
    page = "login"
public_pages = ("login", "signup", "forgot_password")
if user is None and page not in public_pages:
    page = "login"
elif user is not None and page in public_pages:
    go(auth.home_route(profile))
elif user is not None and profile is None and page != "complete_profile":
    go("complete_profile")
elif page in ("admin_dashboard", "create_exam", "add_question") and not (profile and profile.is_admin):
    page = "dashboard"

if page != "dashboard":
    release_exam_list()

if user is not None:
    st.sidebar.caption(f"Signed in as {profile.name if profile else user.email}")
    if st.sidebar.button("Sign out"):
        release_exam_list()
        auth.sign_out(get_auth_client())
        for key in list(st.session_state.keys()):
            del st.session_state[key]
        go("login")

# ----- Login -----
if page == "login":
    st.header("Login")
    with st.form("login_form"):
        email = st.text_input("Email")
        password = st.text_input("Password", type="password")
        submitted = st.form_submit_button("Login", type="primary")
    if submitted:
        try:
            signed_in = auth.sign_in(get_auth_client(), email, password)
            st.session_state["user"] = signed_in
            st.session_state["profile"] = database.get_profile(signed_in.id)
            go(auth.home_route(st.session_state["profile"]))
        except auth.AuthError as e:
            st.error(str(e))
    col1, col2 = st.columns(2)
    with col1:
        if st.button("Create an account"):
            go("signup")
    with col2:
        if st.button("Forgot password?"):
            go("forgot_password")

# ----- Sign up -----
elif page == "signup":
    st.header("Sign up")
    with st.form("signup_form"):
        email = st.text_input("Email")
        password = st.text_input("Password", type="password")
        confirm = st.text_input("Confirm password", type="password")
        submitted = st.form_submit_button("Sign up", type="primary")
    if submitted:
        try:
            st.session_state["user"] = auth.sign_up(get_auth_client(), email, password, confirm)
            st.session_state["profile"] = None
            go("complete_profile")
        except auth.AuthError as e:
            st.error(str(e))
    if st.button("Back to login"):
        go("login")

# ----- Forgot password -----
elif page == "forgot_password":
    st.header("Reset password")
    email = st.text_input("Email")
    if st.button("Send reset link", type="primary"):
        try:
            auth.send_password_reset(get_auth_client(), email)
            st.success("Check your inbox for a password reset link.")
        except auth.AuthError as e:
            st.error(str(e))
    if st.button("Back to login"):
        go("login")

# ----- Complete profile -----
elif page == "complete_profile":
    st.header("Complete your profile")
    name = st.text_input("Full name")
    if st.button("Save", type="primary"):
        try:
            new_profile = auth.complete_profile(user, name)
            if database.save_profile(new_profile):
                st.session_state["profile"] = new_profile
                go(auth.home_route(new_profile))
            else:
                st.error("Could not save your profile. Please try again.")
        except auth.AuthError as e:
            st.error(str(e))

# ----- Student dashboard -----
elif page == "dashboard":
    st.header(f"Welcome, {profile.name}")
    exams_tab, grades_tab = st.tabs(["Exams", "Grades"])

    exam_list_session = exam_list_pipeline()
    next_wakeup = exam_list_session.seconds_until_next(utc_now())
    refresh_every = MAX_LIST_REFRESH_SECONDS
    if next_wakeup is not None:
        refresh_every = max(1, min(MAX_LIST_REFRESH_SECONDS, math.ceil(next_wakeup)))

    @st.fragment(run_every=timedelta(seconds=refresh_every))
    def exam_list():
        now = utc_now()
        snapshot = exam_list_session.tick(now)
        next_due = exam_list_session.seconds_until_next(now)
        # a wake-up fired, or one is now due sooner than this fragment's interval:
        # rerun the page so the interval follows the schedule
        if exam_list_session.take_woken() or (next_due is not None and next_due < refresh_every - 1):
            st.rerun()

        if snapshot.error:
            st.info("No uncompleted exams found.")
            st.caption(f"Could not load exams: {snapshot.error}")
            return
        if snapshot.empty:
            st.info("There are no upcoming exams.")
            return

        for exam in snapshot.exams:
            state = evaluate(exam, now).state.value.replace("_", " ")
            with st.container(border=True):
                col1, col2 = st.columns([4, 1])
                with col1:
                    st.subheader(exam.exam_name)
                    st.caption(
                        f"Start: {exam.start_date:%Y-%m-%d %H:%M} · End: {exam.end_date:%Y-%m-%d %H:%M} UTC · "
                        f"{exam.duration} min · Attempts: {exam.attempts} · {state}"
                    )
                with col2:
                    if st.button("Open", key=f"open_{exam.id}", use_container_width=True):
                        st.session_state["tapped_exam"] = exam
                        st.rerun()

    with exams_tab:
        exam_list()

    tapped = st.session_state.pop("tapped_exam", None)
    if tapped is not None:
        decision = evaluate(tapped, utc_now())

        def gate_dialog():
            st.write(decision.message)
            if not decision.requires_confirmation:
                if st.button("OK"):
                    st.rerun()
                return
            confirm_key = f"confirm_{tapped.id}"
            if st.button("Start Exam", key=f"start_{tapped.id}"):
                st.session_state[confirm_key] = True
            if st.session_state.get(confirm_key):
                st.warning(f"**{CONFIRM_TITLE}** {CONFIRM_MESSAGE}")
                col1, col2 = st.columns(2)
                if col1.button("Cancel", key=f"cancel_{tapped.id}"):
                    st.session_state.pop(confirm_key, None)
                    st.rerun()
                if col2.button("Start Exam", type="primary", key=f"confirmed_{tapped.id}"):
                    st.session_state.pop(confirm_key, None)
                    go("take_exam", exam_id=tapped.id)

        st.dialog(decision.title)(gate_dialog)()

    with grades_tab:
        rows = grade_rows(database.get_all_exams(), database.get_student_submissions(user.id))
        if not rows:
            st.info("No grades available")
        for row in rows:
            with st.container(border=True):
                col1, col2 = st.columns([4, 1])
                with col1:
                    st.markdown(f"**Exam Title: {row.exam.exam_name}**")
                    st.caption(f"Start Date: {row.exam.start_date:%Y-%m-%d %H:%M} · End Date: {row.exam.end_date:%Y-%m-%d %H:%M}")
                with col2:
                    st.markdown(f":{row.band.color}[Grade  \n{row.label}]")
                with st.expander("Feedback"):
                    st.write(row.submission.feedback or "No feedback yet.")

# ----- Take exam -----
elif page == "take_exam":
    exam_id = st.query_params.get("exam_id", "")
    exam = database.get_exam(exam_id) if exam_id else None
    if exam is None:
        st.error("Exam not found.")
        if st.button("Back to dashboard"):
            go("dashboard")
        st.stop()

    attempt = st.session_state.get("attempt")
    if attempt is None or attempt.exam.id != exam.id:
        if database.get_submission(exam.id, user.id) is not None:
            st.info("You have already submitted this exam.")
            if st.button("Back to dashboard"):
                go("dashboard")
            st.stop()
        decision = evaluate(exam, utc_now())
        if not decision.startable:
            st.warning(decision.message)
            if st.button("Back to dashboard"):
                go("dashboard")
            st.stop()
        questions = database.get_questions(exam.id)
        attempt = ExamAttempt(exam, questions, started_at=utc_now())
        st.session_state["attempt"] = attempt

    student = {"student_name": profile.name, "student_email": user.email}

    def finish(submission):
        if database.save_submission(submission):
            st.session_state.pop("attempt", None)
            st.session_state.pop("pending_submission", None)
            go("dashboard")
        st.session_state["pending_submission"] = submission

    pending = st.session_state.get("pending_submission")
    if pending is not None:
        st.error("Your answers could not be saved.")
        if st.button("Retry saving", type="primary"):
            finish(pending)
        st.stop()

    st.header(exam.exam_name)

    @st.fragment(run_every=timedelta(seconds=1))
    def countdown():
        now = utc_now()
        submission = attempt.submit_if_timed_out(now, user.id, **student)
        if submission is not None:
            st.warning("Time is up. Your exam was submitted automatically.")
            finish(submission)
            st.rerun()
        m, s = divmod(attempt.remaining_seconds(now), 60)
        st.metric("Time left", f"{m}:{s:02d}")
        n = len(attempt.questions)
        st.progress(attempt.answered_count() / n if n else 0)
        st.caption(f"{attempt.answered_count()}/{n} answered")

    with st.sidebar:
        countdown()

    if not attempt.questions:
        st.info("This exam has no questions yet.")

    def record(question_id, key):
        attempt.answer(question_id, st.session_state.get(key))

    for i, q in enumerate(attempt.questions):
        with st.container(border=True):
            st.markdown(f"**Question {i + 1}** · {q.grade} pts · {q.question_type.value}")
            st.write(q.question_text)
            if q.image_url:
                st.image(q.image_url, width=300)
            key = f"answer_{q.id}"
            if q.question_type is QuestionType.MULTIPLE_CHOICE:
                choices = [opt for opt in q.options if opt.strip()]
                st.radio("Choose one:", choices, index=None, key=key, on_change=record, args=(q.id, key))
            elif q.question_type is QuestionType.TRUE_FALSE:
                st.radio("Choose one:", TRUE_FALSE_CHOICES, index=None, key=key, horizontal=True,
                         on_change=record, args=(q.id, key))
            elif q.question_type is QuestionType.SHORT_ANSWER:
                st.text_input("Your answer", key=key, on_change=record, args=(q.id, key))
            else:
                st.text_area("Your answer", key=key, on_change=record, args=(q.id, key))

    if st.button("Submit exam", type="primary"):
        finish(attempt.submit(utc_now(), user.id, **student))
        st.rerun()

# ----- Admin dashboard -----
elif page == "admin_dashboard":
    st.header("Admin dashboard")
    if st.button("Create exam", type="primary"):
        go("create_exam")

    exams = database.get_all_exams()
    if not exams:
        st.info("No exams yet.")
    for exam in exams:
        with st.container(border=True):
            col1, col2 = st.columns([4, 1])
            with col1:
                st.subheader(exam.exam_name)
                st.caption(
                    f"{exam.start_date:%Y-%m-%d %H:%M} → {exam.end_date:%Y-%m-%d %H:%M} UTC · "
                    f"{exam.duration} min · total {exam.total_grade:g}"
                )
            with col2:
                if st.button("Add questions", key=f"addq_{exam.id}", use_container_width=True):
                    go("add_question", exam_id=exam.id)

            with st.expander("Grade submissions"):
                submissions = database.get_exam_submissions(exam.id)
                if not submissions:
                    st.caption("No submissions yet.")
                    continue
                questions = database.get_questions(exam.id)
                for sub in submissions:
                    st.markdown(f"**{sub.student_name or sub.student_email or sub.student_id}**")
                    suggested = objective_score(questions, sub.answers)
                    for q in questions:
                        if not q.question_type.objective and sub.answers.get(q.id):
                            st.caption(f"{q.question_text}")
                            st.write(sub.answers[q.id])
                    current = sub.grade.score if sub.is_graded else suggested
                    score = st.number_input(
                        f"Total grade (objective questions: {suggested:g})",
                        min_value=0.0, max_value=float(exam.total_grade), value=float(min(current, exam.total_grade)),
                        key=f"grade_{exam.id}_{sub.student_id}",
                    )
                    st.markdown(f":{grade_band(score, exam.total_grade).color}[{score:g} / {exam.total_grade:g}]")
                    feedback = st.text_area("Feedback", value=sub.feedback, key=f"feedback_{exam.id}_{sub.student_id}")
                    if st.button("Publish grade", key=f"publish_{exam.id}_{sub.student_id}"):
                        if database.publish_grade(exam.id, sub.student_id, score, feedback):
                            st.success("Grade published.")
                        else:
                            st.error("Could not publish the grade. Please try again.")
                    st.divider()

# ----- Create exam -----
elif page == "create_exam":
    st.header("Create exam")
    today = utc_now().date()
    with st.form("exam_form"):
        exam_name = st.text_input("Exam name")
        col1, col2 = st.columns(2)
        with col1:
            start_day = st.date_input("Start date", value=today)
            start_time = st.time_input("Start time (UTC)", value=time(9, 0))
        with col2:
            end_day = st.date_input("End date", value=today)
            end_time = st.time_input("End time (UTC)", value=time(17, 0))
        duration = st.number_input("Duration (minutes)", min_value=0, value=60, step=5)
        total_grade = st.number_input("Total grade", min_value=0.0, value=100.0)
        attempts = st.number_input("Attempts allowed", min_value=0, value=1)
        submitted = st.form_submit_button("Create exam", type="primary")
    if submitted:
        draft = ExamDraft(
            exam_name=exam_name,
            start_date=combine_utc(start_day, start_time),
            end_date=combine_utc(end_day, end_time),
            duration=int(duration),
            total_grade=float(total_grade),
            attempts=int(attempts),
        )
        errors = draft.validate()
        if errors:
            for message in errors:
                st.error(message)
        else:
            exam = draft.build()
            if database.create_exam(exam):
                go("add_question", exam_id=exam.id)
            st.error("Could not create the exam. Please try again.")
    if st.button("Back"):
        go("admin_dashboard")

# ----- Add question -----
elif page == "add_question":
    exam_id = st.query_params.get("exam_id", "")
    exam = database.get_exam(exam_id) if exam_id else None
    if exam is None:
        st.error("Exam not found.")
        if st.button("Back"):
            go("admin_dashboard")
        st.stop()

    st.header(f"Questions · {exam.exam_name}")
    existing = database.get_questions(exam.id)
    st.caption(f"{len(existing)} questions · {sum(q.grade for q in existing)} of {exam.total_grade:g} points assigned")
    for q in existing:
        st.write(f"- [{q.question_type.value}] {q.question_text} ({q.grade} pts)")

    if "question_draft" not in st.session_state:
        st.session_state["question_draft"] = QuestionDraft()
    draft = st.session_state["question_draft"]
    # form_gen resets every widget after a save; type_gen resets the answer widgets on a type switch
    form_gen = st.session_state.setdefault("form_gen", 0)
    type_gen = st.session_state.setdefault("type_gen", 0)

    def on_type_change(key):
        if st.session_state.get(key):
            draft.select_type(QuestionType(st.session_state[key]))
            st.session_state["type_gen"] += 1

    if st.session_state.pop("question_added", False):
        st.success("Question added.")

    st.subheader("Add New Question")
    type_key = f"q_type_{form_gen}"
    st.selectbox(
        "Question Type", [t.value for t in QuestionType], index=None, key=type_key,
        placeholder="Please select a question type", on_change=on_type_change, args=(type_key,),
    )
    upload = st.file_uploader("Add Image (Optional)", type=["png", "jpg", "jpeg", "gif", "webp"], key=f"image_{form_gen}")
    if upload is None:
        draft.remove_image()
    else:
        if draft.image_name != upload.name:
            draft.attach_image(upload.name, upload.getvalue())
        st.image(upload, width=100)
    draft.question_text = st.text_input("Enter Question", key=f"text_{form_gen}")
    draft.grade = st.text_input("Question Grade", key=f"grade_{form_gen}")

    answer_gen = f"{form_gen}_{type_gen}"
    if draft.question_type is QuestionType.MULTIPLE_CHOICE:
        for i in range(MC_OPTION_COUNT):
            draft.set_option(i, st.text_input(f"Option {i + 1}", key=f"opt_{answer_gen}_{i}"))
        filled = [opt for opt in draft.options if opt.strip()]
        if filled:
            chosen = st.radio("Correct answer", filled, index=None, key=f"correct_{answer_gen}")
            if chosen is not None:
                draft.choose_correct(chosen)
    elif draft.question_type is QuestionType.TRUE_FALSE:
        chosen = st.radio("Correct answer", TRUE_FALSE_CHOICES, index=None, key=f"correct_{answer_gen}", horizontal=True)
        if chosen is not None:
            draft.choose_correct(chosen)

    col1, col2 = st.columns(2)
    with col1:
        if st.button("Add Question", type="primary"):
            try:
                question = submit_question(draft, exam.id, database.upload_question_image, utc_now())
            except QuestionValidationError as e:
                for message in e.errors:
                    st.error(message)
            except ImageUploadError as e:
                st.error(str(e))
            else:
                if database.add_question(question):
                    st.session_state.pop("question_draft", None)
                    st.session_state["form_gen"] = form_gen + 1
                    st.session_state["question_added"] = True
                    st.rerun()
                st.error("Could not save the question. Please try again.")
    with col2:
        if st.button("Done"):
            st.session_state.pop("question_draft", None)
            go("admin_dashboard")
