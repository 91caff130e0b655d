"""Unit tests for username derivation and generation."""

import pytest

from idlink.domain.auth.model.account import Account
from idlink.domain.auth.service.username import UsernameSignals, derive_base_username
from idlink.domain.shared.error import CannotDeriveUsernameError


def claim(account_repo, username: str) -> None:
    account = Account.create(username=username, screen_name=username)
    account_repo.claims[account.username_key] = str(account.id)
    account_repo.accounts[str(account.id)] = account


class TestDeriveBaseUsername:
    def test_prefers_explicit_username(self):
        signals = UsernameSignals(username="octo-cat", email="jane.doe@example.com")
        assert derive_base_username(signals) == "octocat"

    def test_uses_email_local_part(self):
        signals = UsernameSignals(email="jane.doe@x.com")
        assert derive_base_username(signals) == "janedoe"

    def test_email_local_part_stops_at_first_at(self):
        signals = UsernameSignals(email="a.b@c@d.com")
        assert derive_base_username(signals) == "ab"

    def test_uses_first_and_last_name(self):
        signals = UsernameSignals(first_name="John", last_name="Doe")
        assert derive_base_username(signals) == "JohnDoe"

    def test_first_name_alone_is_not_enough(self):
        with pytest.raises(CannotDeriveUsernameError):
            derive_base_username(UsernameSignals(first_name="John"))

    def test_signal_empty_after_stripping_falls_through(self):
        signals = UsernameSignals(username="___", email="jane@example.com")
        assert derive_base_username(signals) == "jane"

    def test_strips_non_ascii(self):
        signals = UsernameSignals(first_name="José", last_name="Núñez")
        assert derive_base_username(signals) == "JosNez"

    def test_no_signals_fails(self):
        with pytest.raises(CannotDeriveUsernameError) as exc_info:
            derive_base_username(UsernameSignals())
        assert exc_info.value.message == "Could not generate username"


class TestUsernameGenerator:
    @pytest.mark.asyncio
    async def test_empty_store_yields_base(self, username_generator):
        result = await username_generator.generate(UsernameSignals(email="jane.doe@x.com"))
        assert result == "janedoe"

    @pytest.mark.asyncio
    async def test_collisions_append_increasing_suffix(self, username_generator, account_repo):
        signals = UsernameSignals(email="jane.doe@x.com")

        claim(account_repo, "janedoe")
        assert await username_generator.generate(signals) == "janedoe1"

        claim(account_repo, "janedoe1")
        assert await username_generator.generate(signals) == "janedoe2"

    @pytest.mark.asyncio
    async def test_collision_check_is_case_insensitive(self, username_generator, account_repo):
        claim(account_repo, "JaneDoe")
        result = await username_generator.generate(UsernameSignals(email="janedoe@x.com"))
        assert result == "janedoe1"

    @pytest.mark.asyncio
    async def test_reserved_names_are_skipped(self, username_generator):
        assert await username_generator.generate(UsernameSignals(username="Admin")) == "Admin1"
        assert await username_generator.generate(UsernameSignals(username="support")) == "support1"

    @pytest.mark.asyncio
    async def test_empty_signals_fail(self, username_generator):
        with pytest.raises(CannotDeriveUsernameError):
            await username_generator.generate(UsernameSignals())

    @pytest.mark.asyncio
    async def test_generated_username_is_never_taken(self, username_generator, account_repo):
        for name in ["jane", "jane1", "jane2", "jane3"]:
            claim(account_repo, name)

        result = await username_generator.generate(UsernameSignals(username="jane"))

        assert result == "jane4"
        assert not await account_repo.username_exists(result)
