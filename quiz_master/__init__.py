"""Quiz Master: author quizzes, take them, and review submission analytics."""

__version__ = "0.1.0"
