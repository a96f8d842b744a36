"""Aggregate imports to ensure string-based relationships see their targets."""

# Base metadata
from .base import Base  # noqa: F401

# Lookup tables
from .lookups import LkRole  # noqa: F401

# Core domain models
from .users import User  # noqa: F401
from .programs import Program  # noqa: F401
from .cohorts import Cohort  # noqa: F401
from .enrollments import Enrollment  # noqa: F401
from .courses import Course  # noqa: F401
from .modules import Module  # noqa: F401
from .lessons import Lesson  # noqa: F401
from .assignments import Assignment  # noqa: F401

# Grading and progress
from .submissions import Submission  # noqa: F401
from .feedback import Feedback  # noqa: F401
from .lesson_access import LessonAccess  # noqa: F401
from .progress import Progress  # noqa: F401
from .certificates import Certificate  # noqa: F401

# Operations
from .schedule_events import TraineeScheduledEvent  # noqa: F401
from .audit_logs import AuditLog  # noqa: F401
