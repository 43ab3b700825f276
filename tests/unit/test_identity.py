"""
Token lifecycle: login, resolve, logout, expiry.
"""

from uuid import uuid4

import pytest

from stockline_kernel.exceptions import UnauthorizedError
from stockline_kernel.models.user import UserRole
from stockline_services.identity import Actor, IdentityResolver, TokenRegistry


@pytest.fixture
def registry(deterministic_clock) -> TokenRegistry:
    return TokenRegistry(clock=deterministic_clock, ttl_seconds=3600)


@pytest.fixture
def actor() -> Actor:
    return Actor(user_id=uuid4(), role=UserRole.MANAGER)


class TestTokenRegistry:
    def test_is_an_identity_resolver(self, registry):
        assert isinstance(registry, IdentityResolver)

    def test_login_then_resolve(self, registry, actor):
        token = registry.login(actor)
        assert registry.resolve(token) == actor

    def test_tokens_are_unique(self, registry, actor):
        assert registry.login(actor) != registry.login(actor)
        assert len(registry) == 2

    def test_unknown_token(self, registry):
        with pytest.raises(UnauthorizedError) as exc_info:
            registry.resolve("not-a-token")
        assert exc_info.value.code == "UNAUTHORIZED"

    def test_logout_revokes(self, registry, actor):
        token = registry.login(actor)
        registry.logout(token)
        with pytest.raises(UnauthorizedError):
            registry.resolve(token)

    def test_logout_of_unknown_token_is_a_no_op(self, registry):
        registry.logout("never-issued")

    def test_expiry(self, registry, actor, deterministic_clock):
        token = registry.login(actor)
        deterministic_clock.advance(3599)
        assert registry.resolve(token) == actor
        deterministic_clock.advance(1)
        with pytest.raises(UnauthorizedError, match="expired"):
            registry.resolve(token)
        assert len(registry) == 0

    def test_purge_expired(self, registry, actor, deterministic_clock):
        registry.login(actor)
        deterministic_clock.advance(1800)
        fresh = registry.login(actor)
        deterministic_clock.advance(1800)
        assert registry.purge_expired() == 1
        assert registry.resolve(fresh) == actor

    def test_non_positive_ttl_rejected(self, deterministic_clock):
        with pytest.raises(ValueError):
            TokenRegistry(clock=deterministic_clock, ttl_seconds=0)
