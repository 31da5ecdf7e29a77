from __future__ import annotations

import pytest

from momantza.services.auth.credentials import CredentialVerifier


@pytest.fixture
def verifier() -> CredentialVerifier:
    return CredentialVerifier(rounds=4)


def test_hash_then_verify(verifier: CredentialVerifier) -> None:
    hashed = verifier.hash("s3cret")
    assert hashed.startswith("$2")
    assert verifier.verify("s3cret", hashed)
    assert not verifier.verify("wrong", hashed)


def test_hashes_are_salted(verifier: CredentialVerifier) -> None:
    assert verifier.hash("same") != verifier.hash("same")


@pytest.mark.parametrize("secret", ["plaintext-not-a-hash", "anything", ""])
def test_non_hash_values_never_verify(verifier: CredentialVerifier, secret: str) -> None:
    assert not verifier.verify(secret, "plaintext-not-a-hash")


def test_empty_stored_value_never_verifies(verifier: CredentialVerifier) -> None:
    assert not verifier.verify("anything", "")
    assert not verifier.verify("anything", None)


def test_malformed_hash_is_rejected_not_raised(verifier: CredentialVerifier) -> None:
    assert not verifier.verify("anything", "$2b$garbage")


def test_legacy_detection() -> None:
    assert CredentialVerifier.is_legacy("hunter2")
    assert not CredentialVerifier.is_legacy("")
    assert not CredentialVerifier.is_legacy("$2b$12$abcdefghijklmnopqrstuv")
    assert CredentialVerifier.matches_legacy("hunter2", "hunter2")
    assert not CredentialVerifier.matches_legacy("hunter3", "hunter2")
    assert not CredentialVerifier.matches_legacy("", "")
