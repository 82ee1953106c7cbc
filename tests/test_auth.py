import base64
import json

import pytest

from talentbridge.scripts.auth import (
    LEGACY_DEFAULT_ROLE,
    TokenError,
    TokenVerifier,
    VerificationFailure,
    bearer_token,
    decode_token,
    encode_token,
    peek_scheme,
)
from talentbridge.scripts.models import Role, Scheme

NATIVE = "native-secret"
LEGACY = "legacy-secret"
NOW = 1_700_000_000


@pytest.fixture
def verifier():
    return TokenVerifier(NATIVE, LEGACY, clock=lambda: NOW)


def _b64(obj) -> str:
    return base64.urlsafe_b64encode(json.dumps(obj).encode()).rstrip(b"=").decode()


class TestNativeScheme:
    def test_native_token(self, verifier):
        tok = encode_token({"user_id": "u1", "user_email": "x@y.z", "user_role": "CANDIDATE"}, NATIVE, ttl=60, now=NOW)
        claim = verifier.verify(tok)
        assert claim
        assert claim.subject_id == "u1"
        assert claim.subject_email == "x@y.z"
        assert claim.subject_role == "CANDIDATE"
        assert claim.scheme == Scheme.NATIVE

    def test_native_fields_copied_verbatim(self, verifier):
        payload = {"user_id": " u1 ", "user_email": " X@Y.z", "user_role": "Candidate "}
        claim = verifier.verify(encode_token(payload, NATIVE, ttl=60, now=NOW))
        assert claim.subject_id == " u1 "
        assert claim.subject_email == " X@Y.z"
        assert claim.subject_role == "Candidate "

    def test_native_numeric_subject_becomes_text(self, verifier):
        tok = encode_token({"user_id": 5, "user_email": "a@b.c", "user_role": "ADMIN"}, NATIVE, ttl=60, now=NOW)
        assert verifier.verify(tok).subject_id == "5"

    def test_native_without_role_is_not_native(self, verifier):
        # Signed with the native secret but lacking user_role: no scheme accepts it.
        tok = encode_token({"user_id": "u1"}, NATIVE, ttl=60, now=NOW)
        result = verifier.verify(tok)
        assert not result
        assert isinstance(result, VerificationFailure)

    def test_shared_secret_prefers_native(self):
        v = TokenVerifier("same", "same", clock=lambda: NOW)
        tok = encode_token({"user_id": "u1", "user_email": "a@b.c", "user_role": "ADMIN"}, "same", ttl=60, now=NOW)
        assert v.verify(tok).scheme == Scheme.NATIVE


class TestLegacyScheme:
    def test_nested_user(self, verifier):
        payload = {"data": {"user": {"id": 42, "user_email": "a@b.com", "roles": ["employer"]}}}
        claim = verifier.verify(encode_token(payload, LEGACY, ttl=60, now=NOW))
        assert claim.subject_id == "42"
        assert claim.subject_email == "a@b.com"
        assert claim.subject_role == "employer"
        assert claim.scheme == Scheme.LEGACY
        assert Role.from_claim(claim.subject_role) == Role.POSTER

    def test_nested_user_email_fallback_and_default_role(self, verifier):
        payload = {"data": {"user": {"id": "7", "email": "t@b.com"}}}
        claim = verifier.verify(encode_token(payload, LEGACY, ttl=60, now=NOW))
        assert claim.subject_email == "t@b.com"
        assert claim.subject_role == LEGACY_DEFAULT_ROLE

    def test_flat_payload(self, verifier):
        payload = {"userId": 9, "email": "f@b.com", "role": "administrator"}
        claim = verifier.verify(encode_token(payload, LEGACY, ttl=60, now=NOW))
        assert claim.subject_id == "9"
        assert claim.scheme == Scheme.LEGACY
        assert Role.from_claim(claim.subject_role) == Role.ADMIN

    def test_flat_payload_without_subject_fails(self, verifier):
        assert not verifier.verify(encode_token({"email": "f@b.com"}, LEGACY, ttl=60, now=NOW))


class TestRejections:
    def test_expired(self, verifier):
        tok = encode_token({"user_id": "u1", "user_role": "ADMIN"}, NATIVE, ttl=60, now=NOW - 120)
        assert verifier.verify(tok) == VerificationFailure("expired")

    def test_not_yet_valid(self, verifier):
        tok = encode_token({"user_id": "u1", "user_role": "ADMIN", "nbf": NOW + 300}, NATIVE)
        assert verifier.verify(tok) == VerificationFailure("not_yet_valid")

    def test_wrong_secret(self, verifier):
        tok = encode_token({"user_id": "u1", "user_role": "ADMIN"}, "someone-else", ttl=60, now=NOW)
        assert verifier.verify(tok) == VerificationFailure("bad_signature")

    def test_alg_none(self, verifier):
        tok = f"{_b64({'alg': 'none', 'typ': 'JWT'})}.{_b64({'user_id': 'u1', 'user_role': 'ADMIN'})}."
        assert verifier.verify(tok) == VerificationFailure("unsupported_alg")

    def test_other_hmac_alg_rejected(self, verifier):
        tok = f"{_b64({'alg': 'HS512'})}.{_b64({'user_id': 'u1', 'user_role': 'ADMIN'})}.AAAA"
        assert verifier.verify(tok) == VerificationFailure("unsupported_alg")

    @pytest.mark.parametrize("tok", [None, "", "garbage", "a.b", "a.b.c.d", "!!.??.##"])
    def test_garbage(self, verifier, tok):
        result = verifier.verify(tok)
        assert not result
        assert isinstance(result, VerificationFailure)


def test_decode_token_raises_token_error():
    with pytest.raises(TokenError) as exc:
        decode_token("x.y.z", NATIVE, NOW)
    assert exc.value.reason in {"malformed", "unsupported_alg"}


def test_encode_without_ttl_keeps_payload_exp():
    tok = encode_token({"user_id": "u1", "user_role": "ADMIN", "exp": NOW + 5}, NATIVE)
    assert decode_token(tok, NATIVE, NOW)["exp"] == NOW + 5


class TestPeekScheme:
    def test_legacy_nested(self):
        assert peek_scheme(encode_token({"data": {"user": {"id": 1}}}, "k")) == "legacy"

    def test_native(self):
        assert peek_scheme(encode_token({"user_id": "u", "user_email": "e", "user_role": "r"}, "k")) == "native"

    def test_unknown(self):
        assert peek_scheme("nonsense") == "unknown"
        assert peek_scheme(encode_token({"sub": "x"}, "k")) == "unknown"


def test_bearer_token():
    assert bearer_token("Bearer abc") == "abc"
    assert bearer_token("bearer  abc ") == "abc"
    assert bearer_token("Basic abc") is None
    assert bearer_token(None) is None
