import enum
from datetime import datetime

from sqlalchemy import DateTime, Enum, ForeignKey, String, func, select
from sqlalchemy.orm import Mapped, column_property, mapped_column, relationship

from pelangi.db.base_class import Base
from pelangi.models.classroom import SchoolClass


class StudentStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    GRADUATED = "GRADUATED"


class Student(Base):
    __tablename__ = "students"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    # NISN
    student_id: Mapped[str] = mapped_column(String(20), unique=True, index=True, nullable=False)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    class_id: Mapped[int | None] = mapped_column(
        ForeignKey("classes.id", ondelete="SET NULL"), index=True
    )
    user_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), unique=True, index=True
    )
    status: Mapped[StudentStatus] = mapped_column(
        Enum(StudentStatus, native_enum=False, length=20),
        nullable=False,
        default=StudentStatus.ACTIVE,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    school_class = relationship("SchoolClass", back_populates="students")
    user = relationship("User", back_populates="student_profile")
    xp = relationship(
        "StudentXp", back_populates="student", uselist=False, cascade="all, delete-orphan"
    )
    badges = relationship("StudentBadge", back_populates="student", cascade="all, delete-orphan")


# Derived, never stored: always equals the number of students pointing at the class.
SchoolClass.student_count = column_property(
    select(func.count(Student.id))
    .where(Student.class_id == SchoolClass.id)
    .correlate_except(Student)
    .scalar_subquery()
)
