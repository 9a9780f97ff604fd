"""Network configuration constants for the MindPop API server."""

import os

DEFAULT_HOST: str = os.getenv("MINDPOP_HOST", "0.0.0.0")
DEFAULT_PORT: int = int(os.getenv("MINDPOP_PORT", "8000"))
SESSION_COOKIE: str = "mindpop_session"
SESSION_COOKIE_MAX_AGE: int = 60 * 60 * 24 * 7
