import pytest

from conftest import PASSWORD
from models import storage
from models.refresh_session import RefreshSession
from models.user import User
from services.errors import Conflict, Unauthorized
from utils.security import verify_password


def test_sign_up_hashes_password_and_normalizes_email(service):
    user = service.sign_up("  Mixed@X.com ", PASSWORD, "nick")
    assert user.email == "mixed@x.com"
    assert user.password_hash != PASSWORD
    assert verify_password(PASSWORD, user.password_hash)
    # no credentials are issued at sign-up
    assert storage.count(RefreshSession) == 0


def test_sign_up_duplicate_email_conflicts(service, user):
    with pytest.raises(Conflict):
        service.sign_up("A@x.com", "whatever-pass", "dup")


def test_login_issues_verifiable_access_token(service, codec, user):
    creds = service.login("a@x.com", PASSWORD, user_agent="pytest", ip_address="10.0.0.1")
    claims = codec.decode(creds.access_token)
    assert claims["sub"] == user.id
    assert claims["sid"] == creds.refresh_session.id
    assert creds.user.id == user.id
    assert creds.refresh_session.is_valid()
    assert creds.refresh_session.user_agent == "pytest"
    assert storage.count(RefreshSession) == 1


@pytest.mark.parametrize("email,password", [
    ("a@x.com", "wrong-password"),
    ("nobody@x.com", PASSWORD),
])
def test_login_failures_are_indistinguishable(service, user, email, password):
    with pytest.raises(Unauthorized) as exc:
        service.login(email, password)
    assert exc.value.message == "Invalid credentials"
    assert storage.count(RefreshSession) == 0


def test_refresh_rotates_and_rejects_replay(service, codec, user):
    first = service.login("a@x.com", PASSWORD)
    second = service.refresh(first.refresh_session.token)

    assert second.refresh_session.token != first.refresh_session.token
    assert second.access_token != first.access_token
    assert codec.decode(second.access_token)["sid"] == second.refresh_session.id

    with pytest.raises(Unauthorized):
        service.refresh(first.refresh_session.token)


def test_logout_blacklists_token_and_revokes_its_session(service, auth, user):
    creds = service.login("a@x.com", PASSWORD)
    service.logout(creds.access_token)

    assert auth["registry"].is_blacklisted(creds.access_token)
    assert auth["refresh_sessions"].find_by_token(creds.refresh_session.token).is_revoked
    with pytest.raises(Unauthorized):
        auth["authenticator"].authenticate(creds.access_token)
    with pytest.raises(Unauthorized):
        service.refresh(creds.refresh_session.token)


def test_logout_with_explicit_refresh_token(service, auth, user):
    creds = service.login("a@x.com", PASSWORD)
    other = service.login("a@x.com", PASSWORD)
    service.logout(creds.access_token, refresh_token=other.refresh_session.token)
    assert auth["refresh_sessions"].find_by_token(other.refresh_session.token).is_revoked


def test_logout_is_idempotent_and_fail_soft(service, auth, user):
    creds = service.login("a@x.com", PASSWORD)
    service.logout(creds.access_token)
    service.logout(creds.access_token)
    service.logout("garbage")
    service.logout("")
    assert len(auth["registry"]) == 1


def test_delete_account_requires_password(service, user):
    with pytest.raises(Unauthorized):
        service.delete_account(user.id, "wrong-password")
    assert storage.get(User, user.id) is not None


def test_delete_account_revokes_every_session(service, auth, user):
    a = service.login("a@x.com", PASSWORD)
    b = service.login("a@x.com", PASSWORD)

    assert service.delete_account(user.id, PASSWORD) is True

    assert service.get_user(user.id) is None
    for creds in (a, b):
        row = auth["refresh_sessions"].find_by_token(creds.refresh_session.token)
        # rows are kept for audit, detached from the deleted user
        assert row is not None and row.is_revoked
        with pytest.raises(Unauthorized):
            service.refresh(creds.refresh_session.token)
        with pytest.raises(Unauthorized):
            auth["authenticator"].authenticate(creds.access_token)


def test_change_password_ends_all_sessions(service, user):
    creds = service.login("a@x.com", PASSWORD)
    with pytest.raises(Unauthorized):
        service.change_password(user.id, "wrong-password", "new-password-1")

    service.change_password(user.id, PASSWORD, "new-password-1")

    with pytest.raises(Unauthorized):
        service.refresh(creds.refresh_session.token)
    with pytest.raises(Unauthorized):
        service.login("a@x.com", PASSWORD)
    assert service.login("a@x.com", "new-password-1").user.id == user.id


def test_active_sessions_lists_only_live_ones(service, user):
    a = service.login("a@x.com", PASSWORD)
    b = service.login("a@x.com", PASSWORD)
    service.logout(a.access_token)
    active = service.active_sessions(user.id)
    assert [rs.id for rs in active] == [b.refresh_session.id]
