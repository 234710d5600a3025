from pelangi.db.base_class import Base  # noqa: F401

# import models so SQLAlchemy registers them on Base.metadata
from pelangi.models import (  # noqa: F401
    activity,
    assignment,
    attendance,
    challenge,
    classroom,
    gamification,
    grade,
    student,
    submission,
    user,
)
