# Path: gib_validator/tests/test_auth.py
"""Admin login, token expiry and failed-login lockout."""

import pytest

from gib_validator.engine.auth import AuthService
from gib_validator.exceptions import ConfigurationError, TooManyAttemptsError, UnauthorizedError

from gib_validator.tests.conftest import FixedClock


@pytest.fixture
def auth(clock):
    return AuthService('admin', 's3cret', token_expiry_hours=1, clock=clock)


def test_login_issues_token(auth):
    token = auth.login('admin', 's3cret')
    assert auth.check(token)
    auth.require(token)


def test_wrong_credentials(auth):
    with pytest.raises(UnauthorizedError):
        auth.login('admin', 'wrong')
    with pytest.raises(UnauthorizedError):
        auth.login('root', 's3cret')


@pytest.mark.parametrize('token', [None, '', 'not-a-token'])
def test_require_rejects_unknown_tokens(auth, token):
    assert not auth.check(token)
    with pytest.raises(UnauthorizedError):
        auth.require(token)


def test_token_expires(auth, clock):
    token = auth.login('admin', 's3cret')
    clock.advance(minutes=59)
    assert auth.check(token)
    clock.advance(minutes=2)
    assert not auth.check(token)


def test_logout(auth):
    token = auth.login('admin', 's3cret')
    assert auth.logout(token)
    assert not auth.check(token)
    assert not auth.logout(token)


def test_lockout_after_repeated_failures(auth, clock):
    for _ in range(5):
        with pytest.raises(UnauthorizedError):
            auth.login('admin', 'wrong')
    # even the right password is refused while locked out
    with pytest.raises(TooManyAttemptsError):
        auth.login('admin', 's3cret')

    clock.advance(minutes=16)
    assert auth.check(auth.login('admin', 's3cret'))


def test_success_resets_failures(auth):
    for _ in range(4):
        with pytest.raises(UnauthorizedError):
            auth.login('admin', 'wrong')
    auth.login('admin', 's3cret')
    for _ in range(4):
        with pytest.raises(UnauthorizedError):
            auth.login('admin', 'wrong')
    assert auth.login('admin', 's3cret')


def test_default_password_refused_in_production():
    with pytest.raises(ConfigurationError):
        AuthService('admin', 'changeme', environment='production', clock=FixedClock())


def test_default_password_allowed_outside_production():
    auth = AuthService('admin', 'changeme', environment='development')
    assert auth.check(auth.login('admin', 'changeme'))


def test_failure_records_dropped_after_success_or_expiry(auth, clock):
    with pytest.raises(UnauthorizedError):
        auth.login('admin', 'wrong')
    auth.login('admin', 's3cret')
    assert 'admin' not in auth._failures

    for name in ('guest-1', 'guest-2'):
        with pytest.raises(UnauthorizedError):
            auth.login(name, 'wrong')
    assert sorted(auth._failures) == ['guest-1', 'guest-2']
    clock.advance(minutes=16)
    auth.login('admin', 's3cret')
    assert auth._failures == {}
