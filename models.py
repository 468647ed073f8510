"""
ORM models

Three relations back the tracker:
- units: the 30 fixed portions of a Khatam and their current claim
- cycle_metadata: singleton row with the cycle counter and recorded period
- history: append-only archive of completed cycles
"""
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, DateTime, Index

from database import Base

TOTAL_UNITS = 30
METADATA_ROW_ID = 1


def utcnow():
    return datetime.now(timezone.utc)


class Unit(Base):
    __tablename__ = "units"

    unit_index = Column(Integer, primary_key=True, autoincrement=False)
    claimant_name = Column(String(128), nullable=True)
    claimed_at = Column(DateTime(timezone=True), nullable=True)

    @property
    def claimed(self) -> bool:
        return self.claimant_name is not None

    def __repr__(self):
        return f"<Unit {self.unit_index} claimant={self.claimant_name!r}>"


class CycleMetadata(Base):
    __tablename__ = "cycle_metadata"

    id = Column(Integer, primary_key=True, autoincrement=False, default=METADATA_ROW_ID)
    cycle_count = Column(Integer, nullable=False, default=0)
    recorded_period = Column(String(64), nullable=False)
    # bumped on every write; compare-and-swap target for rollover/reset
    version = Column(Integer, nullable=False, default=1)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    def __repr__(self):
        return (
            f"<CycleMetadata cycle={self.cycle_count} "
            f"period={self.recorded_period!r} v{self.version}>"
        )


class HistoryEntry(Base):
    __tablename__ = "history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    cycle_number = Column(Integer, nullable=False)
    unit_index = Column(Integer, nullable=False)
    claimant_name = Column(String(128), nullable=False)
    period_name = Column(String(64), nullable=False)
    archived_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        Index("ix_history_cycle_unit", "cycle_number", "unit_index"),
    )
