import enum

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from pelangi.db.base_class import Base


class SubmissionStatus(str, enum.Enum):
    NOT_SUBMITTED = "NOT_SUBMITTED"
    SUBMITTED = "SUBMITTED"
    LATE_SUBMITTED = "LATE_SUBMITTED"
    GRADED = "GRADED"


class SubmissionOrigin(str, enum.Enum):
    STUDENT_SUBMITTED = "STUDENT_SUBMITTED"
    # graded by a teacher without the student ever submitting
    TEACHER_BACKFILLED = "TEACHER_BACKFILLED"


class AssignmentSubmission(Base):
    __tablename__ = "assignment_submissions"

    id = Column(Integer, primary_key=True, index=True)

    assignment_id = Column(Integer, ForeignKey("assignments.id", ondelete="CASCADE"), nullable=False, index=True)
    student_id = Column(Integer, ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True)

    status = Column(Enum(SubmissionStatus, native_enum=False, length=20), nullable=False, default=SubmissionStatus.NOT_SUBMITTED)
    origin = Column(Enum(SubmissionOrigin, native_enum=False, length=20), nullable=True)

    content = Column(Text, nullable=True)
    attachments = Column(JSON, nullable=True)

    submitted_at = Column(DateTime(timezone=True), nullable=True)

    # Grading fields (nullable until graded)
    score = Column(Float, nullable=True)
    feedback = Column(Text, nullable=True)
    graded_at = Column(DateTime(timezone=True), nullable=True)
    graded_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    xp_awarded = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint("assignment_id", "student_id", name="uq_submission_assignment_student"),
    )

    assignment = relationship("Assignment", back_populates="submissions")
    student = relationship("Student")
