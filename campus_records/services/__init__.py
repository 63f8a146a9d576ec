"""Student, course and enrollment services."""

from campus_records.services.course_service import CourseService
from campus_records.services.enrollment_service import EnrollmentService
from campus_records.services.student_service import StudentService

__all__ = ["CourseService", "EnrollmentService", "StudentService"]
