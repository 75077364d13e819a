"""
Background maintenance on an APScheduler thread, independent of request traffic:
- sweep expired entries out of the revocation registry
- mark refresh sessions past their expiry as revoked
"""
from __future__ import annotations

import logging

from apscheduler.schedulers.background import BackgroundScheduler

from models import storage
from services.refresh_sessions import RefreshSessionStore
from services.revocation import RevocationRegistry

logger = logging.getLogger(__name__)


def sweep_blacklist(registry: RevocationRegistry) -> int:
    return registry.sweep_expired()


def revoke_expired_refresh_sessions(store: RefreshSessionStore) -> int:
    try:
        return store.revoke_expired()
    finally:
        # Jobs run outside any request; release this thread's scoped session
        storage.close()


def start_scheduler(registry: RevocationRegistry, store: RefreshSessionStore, *,
                    blacklist_interval: int, refresh_interval: int) -> BackgroundScheduler:
    scheduler = BackgroundScheduler(daemon=True)
    scheduler.add_job(
        sweep_blacklist,
        "interval",
        seconds=blacklist_interval,
        args=[registry],
        id="blacklist_sweep",
        replace_existing=True,
        coalesce=True,
        max_instances=1,
    )
    scheduler.add_job(
        revoke_expired_refresh_sessions,
        "interval",
        seconds=refresh_interval,
        args=[store],
        id="refresh_session_sweep",
        replace_existing=True,
        coalesce=True,
        max_instances=1,
    )
    scheduler.start()
    logger.info("Maintenance scheduler started (blacklist every %ss, refresh sessions every %ss)",
                blacklist_interval, refresh_interval)
    return scheduler
