"""Quiz-related constants shared across the core and server layers."""

DEFAULT_PASSING_SCORE: int = 70
DEFAULT_QUESTION_POINTS: int = 1
SECONDS_PER_MINUTE: int = 60
TIMER_TICK_SECONDS: float = 1.0
UNANSWERED: str = ""
# How long a submitted attempt stays addressable before it is evicted.
COMPLETED_WORKFLOW_RETENTION_SECONDS: int = 15 * 60
