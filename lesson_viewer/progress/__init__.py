"""Lesson progress tracking module.

Provides:
- Lesson and per-user lesson progress models
- Derived course progress summary
- Persistence protocols with in-memory and Cassandra implementations
- The per-session progress tracker
"""

from .memory import InMemoryEnrollmentGateway, InMemoryLessonCatalog, InMemoryProgressStore
from .models import (
    PROGRESS_TABLES_CQL,
    CourseProgressSummary,
    EnrollmentStatus,
    Lesson,
    LessonProgress,
    summarize,
)
from .protocols import EnrollmentGateway, LessonCatalog, ProgressStore
from .service import CassandraEnrollmentGateway, CassandraLessonCatalog, CassandraProgressStore
from .tracker import CompletionOutcome, LessonProgressTracker


__all__ = [
    "PROGRESS_TABLES_CQL",
    "CassandraEnrollmentGateway",
    "CassandraLessonCatalog",
    "CassandraProgressStore",
    "CompletionOutcome",
    "CourseProgressSummary",
    "EnrollmentGateway",
    "EnrollmentStatus",
    "InMemoryEnrollmentGateway",
    "InMemoryLessonCatalog",
    "InMemoryProgressStore",
    "Lesson",
    "LessonCatalog",
    "LessonProgress",
    "LessonProgressTracker",
    "ProgressStore",
    "summarize",
]
