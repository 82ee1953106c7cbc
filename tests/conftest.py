import copy
import re

import pytest
from fastapi.testclient import TestClient

from talentbridge.scripts.api import app
from talentbridge.scripts.auth import encode_token
from talentbridge.scripts.deps import get_database
from talentbridge.scripts.matcher import CandidateMatcher
from talentbridge.scripts.resolver import IdentifierResolver

NATIVE_SECRET = "native-test-secret"
LEGACY_SECRET = "legacy-test-secret"

SYDNEY = {"geometry": {"location": {"lat": -33.8688, "lng": 151.2093}}, "formatted_address": "Sydney NSW, Australia"}
MELBOURNE = {"latitude": "-37.8136", "longitude": "144.9631", "city": "Melbourne", "state": "VIC"}
PARRAMATTA = {"lat": -33.8150, "lng": 151.0011, "city": "Parramatta"}


def _matches(doc, query):
    for key, cond in query.items():
        value = doc.get(key)
        if isinstance(cond, dict) and any(k.startswith("$") for k in cond):
            for op, arg in cond.items():
                if op == "$in" and value not in arg:
                    return False
                if op == "$ne" and value == arg:
                    return False
                if op == "$regex":
                    flags = re.IGNORECASE if "i" in cond.get("$options", "") else 0
                    if not isinstance(value, str) or not re.search(arg, value, flags):
                        return False
        elif cond is None:
            if value is not None:
                return False
        elif value != cond:
            return False
    return True


class FakeCollection:
    """Just enough of a pymongo collection for the read paths under test."""

    def __init__(self, docs=None):
        self.docs = list(docs or [])

    def find_one(self, query=None):
        for d in self.docs:
            if _matches(d, query or {}):
                return copy.deepcopy(d)
        return None

    def find(self, query=None):
        return iter([copy.deepcopy(d) for d in self.docs if _matches(d, query or {})])

    def insert_one(self, doc):
        self.docs.append(doc)

    def create_index(self, *args, **kwargs):
        return "idx"


class FakeDB:
    def __init__(self, data=None):
        self.collections = {name: FakeCollection(docs) for name, docs in (data or {}).items()}

    def __getitem__(self, name):
        return self.collections.setdefault(name, FakeCollection())

    def command(self, name):
        return {"ok": 1.0}


def seed():
    return {
        "skills": [
            {"_id": "sk_audio", "legacy_id": 2, "name": "Audio Equipment", "category": "Audio", "parent_id": None},
            # Created by the legacy CMS: only the legacy parent link is set.
            {"_id": "sk_mic", "legacy_id": 7, "name": "Microphones", "category": "Audio", "parent_legacy_id": 2},
            {"_id": "sk_mix", "legacy_id": 8, "name": "Mixing Boards", "category": "Audio",
             "parent_id": "sk_audio", "parent_legacy_id": 2},
            {"_id": "sk_video", "legacy_id": 3, "name": "Video Equipment", "category": "Video", "parent_id": None},
            {"_id": "sk_vedit", "name": "Video Editing", "category": "Video", "parent_id": "sk_video"},
            {"_id": "sk_retired", "legacy_id": 10, "name": "Tape Splicing", "category": "Audio",
             "parent_id": "sk_audio", "parent_legacy_id": 2, "active": False},
        ],
        "equipment": [
            {"_id": "eq_audio", "legacy_id": 20, "name": "Audio", "category": "Audio", "parent_id": None},
            {"_id": "eq_shure", "legacy_id": 21, "name": "Shure", "category": "Audio", "parent_id": "eq_audio"},
            {"_id": "eq_yamaha", "legacy_id": 22, "name": "Yamaha", "category": "audio", "parent_legacy_id": 20},
            {"_id": "eq_sony", "legacy_id": 23, "name": "Sony", "category": "Video", "parent_id": "eq_audio",
             "active": False},
        ],
        "skill_equipment_mappings": [
            {"skill_legacy_id": 2, "equipment_category": "Audio", "active": True},
        ],
        "accounts": [
            {"_id": "acc_poster", "legacy_id": 100, "role": "EMPLOYER", "status": "ACTIVE",
             "email": "poster@example.com", "location": SYDNEY},
            {"_id": "acc_admin", "legacy_id": 1, "role": "ADMIN", "status": "ACTIVE", "email": "admin@example.com"},
            {"_id": "acc_a", "legacy_id": 42, "role": "TALENT", "status": "ACTIVE", "email": "a@example.com",
             "first_name": "Alex", "last_name": "Audio"},
            {"_id": "acc_b", "legacy_id": 43, "role": "talent", "status": "active", "email": "b@example.com",
             "location": SYDNEY},
            {"_id": "acc_c", "legacy_id": 44, "role": "CANDIDATE", "status": "ACTIVE", "email": "c@example.com",
             "location": MELBOURNE},
            {"_id": "acc_d", "legacy_id": 45, "role": "CANDIDATE", "status": "ACTIVE", "email": "d@example.com",
             "location": PARRAMATTA},
            {"_id": "acc_e", "legacy_id": 46, "role": "CANDIDATE", "status": "ACTIVE", "location": SYDNEY},
            {"_id": "acc_f", "legacy_id": 47, "role": "CANDIDATE", "status": "INACTIVE", "location": SYDNEY},
        ],
        "account_skills": [
            {"account_id": "acc_a", "skill_id": "sk_mic"},
            {"account_id": "acc_a", "skill_id": "sk_mix"},
            {"account_id": "acc_a", "skill_id": "sk_mic"},
            {"account_id": "acc_b", "skill_id": "sk_vedit"},
            {"account_id": "acc_c", "skill_id": "sk_mic"},
            {"account_id": "acc_d", "skill_id": "sk_mic"},
            {"account_id": "acc_d", "skill_id": "sk_gone"},
            {"account_id": "acc_f", "skill_id": "sk_mic"},
        ],
        "openings": [
            {"_id": "op_mic", "legacy_id": 500, "title": "Live sound tech", "poster_id": "acc_poster",
             "required_skills": ["sk_mic"], "location": SYDNEY, "status": "open"},
            {"_id": "op_audio", "legacy_id": 501, "title": "Audio crew", "poster_id": "acc_poster",
             "required_skills": ["skill_2"], "location": SYDNEY},
            {"_id": "op_any", "legacy_id": 502, "title": "Runner", "poster_id": "acc_admin", "required_skills": []},
            {"_id": "op_ghost", "legacy_id": 503, "title": "Ghost", "poster_id": "acc_poster",
             "required_skills": ["sk_nope", 9999]},
        ],
        "applications": [
            {"opening_id": "op_mic", "account_id": "acc_d", "status": "ACCEPTED"},
            {"opening_id": "op_mic", "account_id": "acc_c", "status": "PENDING"},
        ],
    }


@pytest.fixture
def fake_db():
    return FakeDB(seed())


@pytest.fixture
def resolver(fake_db):
    return IdentifierResolver(fake_db)


@pytest.fixture
def matcher(resolver):
    return CandidateMatcher(resolver)


@pytest.fixture
def auth_env(monkeypatch):
    monkeypatch.setenv("NATIVE_JWT_SECRET", NATIVE_SECRET)
    monkeypatch.setenv("LEGACY_JWT_SECRET", LEGACY_SECRET)
    monkeypatch.delenv("JWT_AUTH_SECRET_KEY", raising=False)
    monkeypatch.delenv("MAX_DISTANCE_KM", raising=False)
    monkeypatch.delenv("STRICT_RADIUS", raising=False)


@pytest.fixture
def client(fake_db, auth_env):
    app.dependency_overrides[get_database] = lambda: fake_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def native_token(user_id="acc_poster", role="EMPLOYER", email="poster@example.com", **extra):
    payload = {"user_id": user_id, "user_email": email, "user_role": role}
    payload.update(extra)
    return encode_token(payload, NATIVE_SECRET, ttl=3600)


def legacy_token(user_id=100, roles=("employer",), email="poster@example.com"):
    payload = {"iss": "https://cms.example.com", "data": {"user": {"id": user_id, "user_email": email, "roles": list(roles)}}}
    return encode_token(payload, LEGACY_SECRET, ttl=3600)


def bearer(token):
    return {"Authorization": f"Bearer {token}"}
