"""Static metadata describing MindPop."""

APP_NAME = "MindPop"
APP_VERSION = "0.1.0"
APP_LICENSE = "MIT License"
APP_ABOUT_TEXT = (
    "MindPop is a learning platform where administrators publish courses and quizzes "
    "and students enroll, attempt quizzes and review their scored results."
)
