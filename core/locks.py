"""
Concurrency control tools

Every participant reconciles independently against the shared stores, with
no central coordinator. Two mechanisms keep the metadata row consistent:

- Optimistic: compare-and-swap on `cycle_metadata.version`. The rollover
  and period-reset paths use it so that exactly one racer performs the
  clear/archive, and the losers back off.
- Pessimistic: SELECT ... FOR UPDATE on the metadata row, for operator
  actions that must serialize with everything else.
"""
from sqlalchemy.orm import Session, Query

from models import CycleMetadata, METADATA_ROW_ID, utcnow


def with_metadata_lock(db: Session) -> Query:
    """
    Lock the singleton metadata row (row-level lock)

    Use cases:
    - administrative reset

    Example:
        meta = with_metadata_lock(db).first()
        if not meta:
            raise MetadataNotInitialized()
        meta.cycle_count = 0
        db.commit()

    Notes:
        - nowait=False: wait for the lock instead of failing
        - must run inside a transaction (commit or rollback releases it)
        - SQLite ignores FOR UPDATE; its database-level write lock serializes instead
    """
    return db.query(CycleMetadata).filter(
        CycleMetadata.id == METADATA_ROW_ID
    ).with_for_update(nowait=False)


def compare_and_swap_metadata(
    db: Session,
    expected_version: int,
    cycle_count: int,
    recorded_period: str
) -> bool:
    """
    Write the metadata row only if nobody else wrote it since we read it

    Args:
        db: SQLAlchemy Session
        expected_version: version observed when the decision was made
        cycle_count: new cycle counter
        recorded_period: new recorded period

    Returns:
        True if this caller won the swap, False if the row had moved on

    Notes:
        - does not commit; the caller's transaction decides
        - the winner holds the row's write lock until commit, so the rest
          of its transaction (clear units, append history) is not interleaved
          with another winner
    """
    updated = db.query(CycleMetadata).filter(
        CycleMetadata.id == METADATA_ROW_ID,
        CycleMetadata.version == expected_version
    ).update(
        {
            CycleMetadata.cycle_count: cycle_count,
            CycleMetadata.recorded_period: recorded_period,
            CycleMetadata.version: CycleMetadata.version + 1,
            CycleMetadata.updated_at: utcnow(),
        },
        synchronize_session=False
    )
    return updated == 1
