"""Unit tests for AuthorizationStateStore."""

from __future__ import annotations

import asyncio

import pytest

from clibridge.adapters.db.memory import InMemoryCliAuthRepository
from clibridge.core.auth.state_store import AuthorizationStateStore
from clibridge.core.auth.tokens import session_token_lookup
from clibridge.core.auth.types import ProviderName
from clibridge.core.exceptions import InvalidState
from tests.fixtures.services import CLI_CALLBACK_URL, FixedClock


class TestCreate:
    """Tests for creating state records."""

    async def test_create_persists_record(
        self,
        state_store: AuthorizationStateStore,
        repo: InMemoryCliAuthRepository,
        clock: FixedClock,
    ) -> None:
        """Test that a record is stored with a ten minute lifetime."""
        record = await state_store.create(CLI_CALLBACK_URL, ProviderName.GITHUB)

        assert repo.states[record.state] == record
        assert record.callback_url == CLI_CALLBACK_URL
        assert record.provider_hint == ProviderName.GITHUB
        assert (record.expires_at - record.created_at).total_seconds() == 600
        assert record.created_at == clock.now

    async def test_create_mints_independent_tokens(
        self,
        state_store: AuthorizationStateStore,
    ) -> None:
        """Test that state and pending session token are distinct random values."""
        first = await state_store.create(CLI_CALLBACK_URL)
        second = await state_store.create(CLI_CALLBACK_URL)

        assert first.state != second.state
        assert first.pending_session_token != second.pending_session_token
        assert first.state != first.pending_session_token
        assert session_token_lookup(first.pending_session_token) is not None


class TestConsume:
    """Tests for one-time consumption."""

    async def test_consume_returns_and_removes(
        self,
        state_store: AuthorizationStateStore,
        repo: InMemoryCliAuthRepository,
    ) -> None:
        """Test that consuming hands the record back and deletes it."""
        record = await state_store.create(CLI_CALLBACK_URL)

        consumed = await state_store.consume(record.state)

        assert consumed == record
        assert record.state not in repo.states

    async def test_consume_twice_fails(self, state_store: AuthorizationStateStore) -> None:
        """Test that a state can only be used once."""
        record = await state_store.create(CLI_CALLBACK_URL)
        await state_store.consume(record.state)

        with pytest.raises(InvalidState):
            await state_store.consume(record.state)

    async def test_consume_unknown_fails(self, state_store: AuthorizationStateStore) -> None:
        """Test that an unknown state is rejected."""
        with pytest.raises(InvalidState):
            await state_store.consume("never-issued")

    async def test_concurrent_consume_has_one_winner(
        self,
        state_store: AuthorizationStateStore,
    ) -> None:
        """Test that only one of many concurrent consumers gets the record."""
        record = await state_store.create(CLI_CALLBACK_URL)

        results = await asyncio.gather(
            *(state_store.consume(record.state) for _ in range(10)),
            return_exceptions=True,
        )

        winners = [r for r in results if not isinstance(r, BaseException)]
        losers = [r for r in results if isinstance(r, InvalidState)]
        assert len(winners) == 1
        assert len(losers) == 9

    async def test_consume_expired_fails_and_cleans_up(
        self,
        state_store: AuthorizationStateStore,
        repo: InMemoryCliAuthRepository,
        clock: FixedClock,
    ) -> None:
        """Test that an expired state is rejected and removed."""
        record = await state_store.create(CLI_CALLBACK_URL)
        clock.advance(minutes=10)

        with pytest.raises(InvalidState, match="expired"):
            await state_store.consume(record.state)

        assert record.state not in repo.states

    async def test_consume_just_before_expiry(
        self,
        state_store: AuthorizationStateStore,
        clock: FixedClock,
    ) -> None:
        """Test that a state is still valid a moment before its expiry."""
        record = await state_store.create(CLI_CALLBACK_URL)
        clock.advance(minutes=9, seconds=59)

        consumed = await state_store.consume(record.state)

        assert consumed.state == record.state


class TestPeek:
    """Tests for reading without consuming."""

    async def test_peek_keeps_record(
        self,
        state_store: AuthorizationStateStore,
        repo: InMemoryCliAuthRepository,
    ) -> None:
        """Test that peeking leaves the record for consume."""
        record = await state_store.create(CLI_CALLBACK_URL)

        peeked = await state_store.peek(record.state)

        assert peeked == record
        assert record.state in repo.states

    async def test_peek_expired_fails(
        self,
        state_store: AuthorizationStateStore,
        clock: FixedClock,
    ) -> None:
        """Test that an expired state cannot be peeked."""
        record = await state_store.create(CLI_CALLBACK_URL)
        clock.advance(minutes=11)

        with pytest.raises(InvalidState):
            await state_store.peek(record.state)


class TestSweep:
    """Tests for expired state cleanup."""

    async def test_sweep_removes_only_expired(
        self,
        state_store: AuthorizationStateStore,
        repo: InMemoryCliAuthRepository,
        clock: FixedClock,
    ) -> None:
        """Test that sweeping keeps live records."""
        old = await state_store.create(CLI_CALLBACK_URL)
        clock.advance(minutes=6)
        fresh = await state_store.create(CLI_CALLBACK_URL)
        clock.advance(minutes=5)

        removed = await state_store.sweep_expired()

        assert removed == 1
        assert old.state not in repo.states
        assert fresh.state in repo.states
