'''
Session helpers shared by the services.
'''
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from ..common.exceptions import ConflictError
from ..common.logger import log

async def flush_or_conflict(db: AsyncSession, what: str):
    """
    Flushes pending changes. A version mismatch means another session
    changed the same row since we read it; that is surfaced as a
    ConflictError instead of silently overwriting.
    """
    try:
        await db.flush()
    except StaleDataError as e:
        log.warning(f"Concurrent modification detected while saving {what}: {e}")
        raise ConflictError(f"{what} was modified by another session. Reload and try again.") from e

def check_expected_version(current_version: int, expected_version: Optional[int], what: str):
    """Optimistic check for callers that send the version they last saw."""
    if expected_version is not None and expected_version != current_version:
        log.warning(f"Stale write rejected for {what}: expected v{expected_version}, found v{current_version}.")
        raise ConflictError(
            f"{what} has changed since it was loaded (expected version {expected_version}, found {current_version})."
        )
