"""SQLAlchemy repositories. Each method works inside a caller-supplied session."""

from .student_records import StudentRecordRepository, student_records

__all__ = ["StudentRecordRepository", "student_records"]
