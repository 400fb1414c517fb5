"""API route package — imports all routers for main.py."""

from quizbank.api.health import router as health_router  # noqa: F401
from quizbank.api.quizzes import router as quizzes_router  # noqa: F401
from quizbank.api.attempts import router as attempts_router  # noqa: F401
