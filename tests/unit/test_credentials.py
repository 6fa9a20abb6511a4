"""Tests for password hashing and verification."""

from __future__ import annotations

import pytest

from dropshare.errors import ShareValidationError
from dropshare.sharing.credentials import CredentialGuard, normalize_password


@pytest.fixture
def guard():
    return CredentialGuard(rounds=4)


class TestNormalizePassword:
    @pytest.mark.parametrize('value', [None, ''])
    def test_absent_means_public(self, value):
        assert normalize_password(value) is None

    def test_whitespace_is_a_real_password(self):
        assert normalize_password(' ') == ' '


class TestCredentialGuard:
    def test_hash_is_not_plaintext(self, guard):
        hashed = guard.hash('hunter2')
        assert 'hunter2' not in hashed
        assert hashed.startswith('$2')

    def test_same_password_gets_fresh_salt(self, guard):
        assert guard.hash('hunter2') != guard.hash('hunter2')

    def test_verify_round_trip(self, guard):
        hashed = guard.hash('correct horse')
        assert guard.verify('correct horse', hashed) is True
        assert guard.verify('wrong horse', hashed) is False

    def test_unicode_password(self, guard):
        hashed = guard.hash('pässwörd-日本')
        assert guard.verify('pässwörd-日本', hashed)

    def test_empty_password_cannot_be_hashed(self, guard):
        with pytest.raises(ShareValidationError):
            guard.hash('')

    def test_over_72_bytes_rejected(self, guard):
        with pytest.raises(ShareValidationError, match='72'):
            guard.hash('x' * 73)

    def test_72_bytes_accepted(self, guard):
        hashed = guard.hash('x' * 72)
        assert guard.verify('x' * 72, hashed)

    def test_long_candidate_never_matches(self, guard):
        hashed = guard.hash('x' * 72)
        assert guard.verify('x' * 73, hashed) is False

    def test_malformed_hash_returns_false(self, guard):
        assert guard.verify('anything', 'not-a-bcrypt-hash') is False

    @pytest.mark.parametrize('rounds', [3, 32])
    def test_rounds_out_of_range(self, rounds):
        with pytest.raises(ValueError):
            CredentialGuard(rounds=rounds)
