"""Tests for the origin trust verifier."""

import pytest

from pow_shield.core.errors import ConfigurationError, ProofRejected
from pow_shield.core.settings import ShieldSettings
from pow_shield.schemas.decision import Pass, Proceed, Reject
from pow_shield.services.trust import TrustVerifier, sign_trust, trust_payload
from pow_shield.utils.hash import Hasher
from tests.conftest import TEST_ENDPOINT, TEST_SECRET

PROOF = {"X-Timestamp": "1700000000", "X-Nonce": "abc", "X-Context": "ctx"}


def signed(secret: str = TEST_SECRET, **overrides: str) -> dict[str, str]:
    headers = dict(PROOF)
    headers["X-HMAC"] = sign_trust(Hasher(), secret, "1700000000", "abc", "ctx")
    headers.update(overrides)
    return headers


def test_trust_payload_layout():
    assert trust_payload("1", "n", "c") == "1:n:c"


def test_signature_is_deterministic():
    assert sign_trust(Hasher(), "s", "1", "n", "c") == sign_trust(Hasher(), "s", "1", "n", "c")
    assert sign_trust(Hasher(), "s", "1", "n", "c") == Hasher().mac("1:n:c", "s")


def test_valid_signature_proceeds(verifier):
    assert verifier.decide(TEST_ENDPOINT, signed()) == Proceed()


def test_unprotected_path_passes(verifier):
    assert verifier.decide("/public", {}) == Pass()


def test_missing_signature_strict(verifier):
    decision = verifier.decide(TEST_ENDPOINT, PROOF)
    assert decision == Reject(status_code=403, detail="Missing HMAC signature")


def test_missing_signature_non_strict(settings):
    settings.strict_mode = False
    verifier = TrustVerifier(settings)
    assert verifier.decide(TEST_ENDPOINT, PROOF) == Proceed()
    assert verifier.verify(PROOF) is False


def test_wrong_signature_is_forbidden(verifier):
    decision = verifier.decide(TEST_ENDPOINT, signed(secret="other"))
    assert decision == Reject(status_code=403, detail="Invalid HMAC signature")


@pytest.mark.parametrize("field", ["X-Timestamp", "X-Nonce", "X-Context"])
def test_tampered_field_is_forbidden(verifier, field):
    decision = verifier.decide(TEST_ENDPOINT, signed(**{field: "tampered"}))
    assert decision.status_code == 403


@pytest.mark.parametrize("field", ["X-Timestamp", "X-Nonce", "X-Context"])
def test_signature_without_proof_fields_is_malformed(verifier, field):
    headers = signed()
    del headers[field]
    decision = verifier.decide(TEST_ENDPOINT, headers)
    assert decision == Reject(status_code=400, detail="Missing required headers")


def test_stamp_is_not_required_at_origin(verifier):
    headers = signed()
    assert "X-Stamp" not in headers
    assert verifier.verify(headers) is True


def test_verify_raises(verifier):
    with pytest.raises(ProofRejected):
        verifier.verify(signed(secret="other"))


def test_sha512_signatures(settings):
    settings.hmac_algorithm = "sha512"
    verifier = TrustVerifier(settings)
    hasher = Hasher(mac_algorithm="sha512")
    headers = dict(PROOF, **{"x-hmac": sign_trust(hasher, TEST_SECRET, "1700000000", "abc", "ctx")})
    assert verifier.decide(TEST_ENDPOINT, headers) == Proceed()


def test_origin_requires_secret():
    with pytest.raises(ConfigurationError):
        TrustVerifier(ShieldSettings(endpoints=["/api/*"]))
