from werkzeug.test import EnvironBuilder
from werkzeug.wrappers import Request

from utils.extractors import (
    extract_access_token,
    extract_refresh_token,
    token_from_authorization_header,
)


def make_request(headers=None, cookies=None):
    headers = dict(headers or {})
    if cookies:
        headers["Cookie"] = "; ".join(f"{k}={v}" for k, v in cookies.items())
    return Request(EnvironBuilder(headers=headers).get_environ())


def test_bearer_header_parsing():
    assert token_from_authorization_header("Bearer abc") == "abc"
    assert token_from_authorization_header("Bearer   abc  ") == "abc"
    assert token_from_authorization_header("Bearer ") is None
    assert token_from_authorization_header("bearer abc") is None
    assert token_from_authorization_header("Basic abc") is None
    assert token_from_authorization_header(None) is None


def test_access_token_header_first_then_cookie():
    both = make_request({"Authorization": "Bearer header-token"}, {"jwt": "cookie-token"})
    assert extract_access_token(both, "jwt") == "header-token"

    cookie_only = make_request(cookies={"jwt": "cookie-token"})
    assert extract_access_token(cookie_only, "jwt") == "cookie-token"

    assert extract_access_token(make_request(), "jwt") is None


def test_refresh_token_only_from_cookie():
    req = make_request({"Authorization": "Bearer header-token", "X-Refresh-Token": "x"})
    assert extract_refresh_token(req, "refresh_token") is None

    req = make_request(cookies={"refresh_token": "r0"})
    assert extract_refresh_token(req, "refresh_token") == "r0"
