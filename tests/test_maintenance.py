from datetime import timedelta

from models import storage
from models.base_model import utcnow
from services.maintenance import revoke_expired_refresh_sessions, start_scheduler, sweep_blacklist
from services.revocation import InMemoryRevocationRegistry
from utils.security import TokenCodec


def test_sweep_job_delegates_to_registry():
    registry = InMemoryRevocationRegistry(TokenCodec("s"))
    registry.blacklist(TokenCodec("s", expires_in=timedelta(minutes=5)).encode("u"))
    assert sweep_blacklist(registry) == 0
    assert len(registry) == 1


def test_refresh_job_revokes_expired_sessions(auth, user):
    store = auth["refresh_sessions"]
    rs = store.create(user.id)
    rs.expires_at = utcnow() - timedelta(minutes=1)
    storage.save()
    token = rs.token

    assert revoke_expired_refresh_sessions(store) == 1
    assert store.find_by_token(token).is_revoked


def test_scheduler_registers_both_jobs(auth):
    scheduler = start_scheduler(auth["registry"], auth["refresh_sessions"],
                                blacklist_interval=3600, refresh_interval=3600)
    try:
        assert {job.id for job in scheduler.get_jobs()} == {"blacklist_sweep", "refresh_session_sweep"}
    finally:
        scheduler.shutdown(wait=False)
