"""Best-effort replication of account rows into the hosted Supabase table.

The relational database stays authoritative. Every mutation is followed by
one upsert here; a failure is logged and raised as ``MirrorError`` and the
caller decides whether anyone hears about it. Nothing is retried or
reconciled, so the two stores can drift.
"""
import logging
from datetime import date, datetime
from typing import Any, Dict, Optional

from fastapi.concurrency import run_in_threadpool
from supabase import Client, create_client

from . import crud, models
from .config import Settings

logger = logging.getLogger(__name__)

# Fields copied to the mirror. Password hashes and token values stay local.
MIRRORED_FIELDS = (
    "id",
    "full_name",
    "email",
    "is_verified",
    "is_admin",
    "google_id",
    "created_at",
    "verification_token_expires",
    "reset_token_expires",
)


class MirrorError(Exception):
    pass


def _plain(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def to_mirror_record(account: models.Account, session_active: Optional[bool] = None) -> Dict[str, Any]:
    record = {name: _plain(getattr(account, name, None)) for name in MIRRORED_FIELDS}
    record["is_verified"] = bool(record["is_verified"])
    record["is_admin"] = bool(record["is_admin"])
    record["session_active"] = session_active
    return record


class SupabaseMirror:
    """Upserts account snapshots into ``settings.mirror_table``.

    The client is created on first use so a bad URL or key only breaks the
    mirror, never application startup.
    """

    def __init__(self, url: str, key: str, table: str = "users_login"):
        self.url = url
        self.key = key
        self.table = table
        self._client: Optional[Client] = None

    def _get_client(self) -> Client:
        if self._client is None:
            self._client = create_client(self.url, self.key)
        return self._client

    def push(self, record: Dict[str, Any]) -> Dict[str, Any]:
        """Upsert one snapshot. Blocks on the network; call it off the event loop."""
        try:
            self._get_client().table(self.table).upsert(record, on_conflict="id").execute()
        except Exception as e:
            logger.error("Mirror upsert failed for account %s: %s", record["id"], e)
            raise MirrorError(str(e)) from e
        logger.info("Mirrored account %s to %s", record["id"], self.table)
        return record

    def forget(self, account_id: int) -> None:
        try:
            self._get_client().table(self.table).delete().eq("id", account_id).execute()
        except Exception as e:
            logger.error("Mirror delete failed for account %s: %s", account_id, e)
            raise MirrorError(str(e)) from e
        logger.info("Removed account %s from %s", account_id, self.table)


class DisabledMirror:
    """Stand-in used when no Supabase URL/key is configured."""

    table = None

    def push(self, record: Dict[str, Any]) -> Dict[str, Any]:
        logger.debug("Mirror disabled; account %s not replicated", record["id"])
        return record

    def forget(self, account_id: int) -> None:
        logger.debug("Mirror disabled; account %s not removed", account_id)


def build_mirror(settings: Settings):
    if not settings.mirror_enabled:
        logger.warning("SUPABASE_URL/SUPABASE_KEY not set; account mirroring is disabled")
        return DisabledMirror()
    return SupabaseMirror(settings.supabase_url, settings.supabase_key, settings.mirror_table)


async def sync_account(mirror, db, caps, account: models.Account) -> Dict[str, Any]:
    """Snapshot ``account`` and push it from the threadpool. Raises ``MirrorError``."""
    # Only the network call leaves the event loop; the session stays here
    record = to_mirror_record(account, crud.get_session_active(db, caps, account))
    return await run_in_threadpool(mirror.push, record)


async def replicate(mirror, db, caps, account: models.Account) -> bool:
    """Mirror ``account`` after a committed change; a failure never reaches the caller."""
    try:
        await sync_account(mirror, db, caps, account)
    except MirrorError:
        logger.warning("Continuing without mirror update for account %s", account.id)
        return False
    return True


async def forget_account(mirror, account_id: int) -> bool:
    try:
        await run_in_threadpool(mirror.forget, account_id)
    except MirrorError:
        logger.warning("Account %s removed locally but still present in the mirror", account_id)
        return False
    return True
