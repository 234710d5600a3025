import enum
import datetime as dt

from sqlalchemy import Date, DateTime, Enum, Float, ForeignKey, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pelangi.db.base_class import Base


class GradeType(str, enum.Enum):
    TUGAS = "TUGAS"
    QUIZ = "QUIZ"
    UTS = "UTS"
    UAS = "UAS"
    PRAKTIK = "PRAKTIK"


class Grade(Base):
    """Manually entered grade, independent of assignments."""

    __tablename__ = "grades"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    student_id: Mapped[int] = mapped_column(ForeignKey("students.id", ondelete="CASCADE"), index=True)
    subject_id: Mapped[int] = mapped_column(ForeignKey("subjects.id", ondelete="CASCADE"), index=True)
    class_id: Mapped[int] = mapped_column(ForeignKey("classes.id", ondelete="CASCADE"), index=True)
    grade_type: Mapped[GradeType] = mapped_column(Enum(GradeType, native_enum=False, length=20))
    score: Mapped[float] = mapped_column(Float, nullable=False)
    max_score: Mapped[float] = mapped_column(Float, nullable=False, default=100)
    description: Mapped[str | None] = mapped_column(Text)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    created_by: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    student = relationship("Student")
    subject = relationship("Subject")
