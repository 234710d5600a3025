import enum

from sqlalchemy import Column, DateTime, Enum, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import relationship

from pelangi.db.base_class import Base


class AssignmentStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    PUBLISHED = "PUBLISHED"
    CLOSED = "CLOSED"


class AssignmentType(str, enum.Enum):
    TUGAS_HARIAN = "TUGAS_HARIAN"
    PR = "PR"
    UJIAN = "UJIAN"
    PROYEK = "PROYEK"
    QUIZ = "QUIZ"


class Assignment(Base):
    __tablename__ = "assignments"

    id = Column(Integer, primary_key=True, index=True)
    # owner; every read/update/delete filters on it
    teacher_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    class_id = Column(Integer, ForeignKey("classes.id", ondelete="CASCADE"), nullable=False, index=True)

    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    instructions = Column(Text, nullable=True)
    points = Column(Integer, nullable=False, default=100)
    deadline = Column(DateTime(timezone=True), nullable=False)
    type = Column(Enum(AssignmentType, native_enum=False, length=20), nullable=False, default=AssignmentType.TUGAS_HARIAN)
    status = Column(Enum(AssignmentStatus, native_enum=False, length=20), nullable=False, default=AssignmentStatus.DRAFT)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    school_class = relationship("SchoolClass")
    teacher = relationship("User")

    submissions = relationship("AssignmentSubmission", back_populates="assignment", cascade="all, delete-orphan")
