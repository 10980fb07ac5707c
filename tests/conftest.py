"""Shared fixtures."""

import pytest

from ledger_core.codec import AmountCodec, CachedKeyDerivation
from ledger_core.config import get_settings
from ledger_core.config.settings import LEGACY_PASSPHRASE, LEGACY_SALT


@pytest.fixture(scope="session")
def key_derivation():
    """Historical key, derived once for the whole test run."""
    return CachedKeyDerivation(passphrase=LEGACY_PASSPHRASE, salt=LEGACY_SALT)


@pytest.fixture(scope="session")
def codec(key_derivation):
    return AmountCodec(key_derivation)


@pytest.fixture(autouse=True)
def fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()

