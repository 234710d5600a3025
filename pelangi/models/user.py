import enum
from datetime import datetime

from sqlalchemy import DateTime, Enum, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pelangi.db.base_class import Base


class Role(str, enum.Enum):
    ADMIN = "ADMIN"
    GURU = "GURU"
    SISWA = "SISWA"


class UserStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    email: Mapped[str] = mapped_column(
        String(255), unique=True, index=True, nullable=False
    )
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)
    # fixed at creation
    role: Mapped[Role] = mapped_column(
        Enum(Role, native_enum=False, length=20), nullable=False, default=Role.GURU
    )
    nip: Mapped[str | None] = mapped_column(String(50))
    status: Mapped[UserStatus] = mapped_column(
        Enum(UserStatus, native_enum=False, length=20),
        nullable=False,
        default=UserStatus.ACTIVE,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    student_profile = relationship("Student", back_populates="user", uselist=False)
    teaching_assignments = relationship(
        "ClassTeacherSubject", back_populates="teacher", cascade="all, delete-orphan"
    )
