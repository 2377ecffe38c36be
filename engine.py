"""Pure exam constants: visibility window, grade bands, question form shape. No UI."""
# Grade band: >= 90 pass-high, 70..90 pass-mid, below 70 fail
# Listing: exams ending after now, started no more than one day ago

PASS_HIGH_THRESHOLD = 90.0
PASS_MID_THRESHOLD = 70.0
EXAM_VISIBILITY_GRACE_DAYS = 1
MC_OPTION_COUNT = 4
TRUE_FALSE_CHOICES = ("True", "False")
QUESTION_IMAGE_PREFIX = "question_images"
DEFAULT_BUCKET = "exam-assets"
MAX_LIST_REFRESH_SECONDS = 60
MIN_PASSWORD_LENGTH = 6

# Named routes (st.query_params["page"])
ROUTES = (
    "login",
    "signup",
    "forgot_password",
    "complete_profile",
    "dashboard",
    "admin_dashboard",
    "create_exam",
    "add_question",
    "take_exam",
)
