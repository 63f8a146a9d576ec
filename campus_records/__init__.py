"""
Campus Records

Academic record engine: students, courses, enrollments, grading and GPA,
with institutional enrollment policy enforcement.
"""

from campus_records.config import RecordsSettings, load_settings
from campus_records.context import RecordsContext
from campus_records.log_config import configure_logging

__version__ = "1.0.0"

__all__ = ["RecordsContext", "RecordsSettings", "configure_logging", "load_settings"]
