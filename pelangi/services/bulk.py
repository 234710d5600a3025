import logging
from dataclasses import asdict, dataclass
from typing import Callable, Iterable, TypeVar

from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class BulkResult:
    successful: int = 0
    failed: int = 0
    total: int = 0

    def as_dict(self) -> dict:
        return asdict(self)


def run_each(db: Session, items: Iterable[T], unit: Callable[[T], object], *, label: str) -> BulkResult:
    """
    Run ``unit`` once per item, each in its own transaction.

    A failing item is rolled back and counted; it never aborts the rest of the
    batch. The tally is the contract, not atomicity.
    """
    items = list(items)
    result = BulkResult(total=len(items))

    for item in items:
        try:
            unit(item)
            db.commit()
        except Exception:
            db.rollback()
            result.failed += 1
            logger.warning("%s failed for %r", label, item, exc_info=True)
        else:
            result.successful += 1

    logger.info(
        "%s: %s ok, %s failed, %s total", label, result.successful, result.failed, result.total
    )
    return result
