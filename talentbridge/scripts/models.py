from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from .geo import GeoPoint, location_label, parse_location


class Role(str, Enum):
    CANDIDATE = "CANDIDATE"
    POSTER = "POSTER"
    ADMIN = "ADMIN"

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            return _ROLE_ALIASES.get(value.strip().lower())
        return None

    @classmethod
    def from_claim(cls, role: Optional[str]) -> "Role":
        """Map a claim role from either scheme onto the account role; unknown -> CANDIDATE."""
        try:
            return cls(role)
        except ValueError:
            return cls.CANDIDATE


_ROLE_ALIASES = {
    "candidate": Role.CANDIDATE,
    "talent": Role.CANDIDATE,
    "subscriber": Role.CANDIDATE,
    "poster": Role.POSTER,
    "employer": Role.POSTER,
    "admin": Role.ADMIN,
    "administrator": Role.ADMIN,
}

# Stored role values that place an account in the candidate pool, matched the
# way Role reads them (any case, surrounding whitespace ignored).
CANDIDATE_ROLE_PATTERN = r"^\s*(%s)\s*$" % "|".join(
    sorted(alias for alias, role in _ROLE_ALIASES.items() if role == Role.CANDIDATE)
)


class AccountStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    SUSPENDED = "SUSPENDED"

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            for member in cls:
                if member.value == value.strip().upper():
                    return member
        return None


def _role(value: Any) -> Role:
    return Role.from_claim(value)


def _status(value: Any) -> AccountStatus:
    if value is None or value == "":
        return AccountStatus.ACTIVE
    try:
        return AccountStatus(value)
    except ValueError:
        # Unknown stored statuses never count as active.
        return AccountStatus.INACTIVE


class Scheme(str, Enum):
    LEGACY = "legacy"
    NATIVE = "native"


class Account(BaseModel):
    id: str
    legacy_id: Optional[int] = None
    role: Role = Role.CANDIDATE
    status: AccountStatus = AccountStatus.ACTIVE
    email: Optional[str] = None
    first_name: str = ""
    last_name: str = ""
    phone: str = ""
    location: Optional[GeoPoint] = None
    location_label: str = ""

    @classmethod
    def from_doc(cls, doc: Dict[str, Any]) -> "Account":
        blob = doc.get("location")
        return cls(
            id=str(doc["_id"]),
            legacy_id=doc.get("legacy_id"),
            role=_role(doc.get("role")),
            status=_status(doc.get("status")),
            email=doc.get("email"),
            first_name=doc.get("first_name") or "",
            last_name=doc.get("last_name") or "",
            phone=doc.get("phone") or "",
            location=parse_location(blob),
            location_label=location_label(blob),
        )


class TaxonomyNode(BaseModel):
    """Skill or equipment node. Categories have no parent; leaves have exactly one."""

    family: str
    id: str
    legacy_id: Optional[int] = None
    name: str
    category: str = ""
    parent_id: Optional[str] = None
    parent_legacy_id: Optional[int] = None
    active: bool = True

    @property
    def is_category(self) -> bool:
        return self.parent_id is None

    @classmethod
    def from_doc(cls, family: str, doc: Dict[str, Any]) -> "TaxonomyNode":
        return cls(
            family=family,
            id=str(doc["_id"]),
            legacy_id=doc.get("legacy_id"),
            name=doc.get("name") or "",
            category=doc.get("category") or "",
            parent_id=str(doc["parent_id"]) if doc.get("parent_id") is not None else None,
            parent_legacy_id=doc.get("parent_legacy_id"),
            active=doc.get("active", True) is not False,
        )


class Opening(BaseModel):
    id: str
    legacy_id: Optional[int] = None
    title: str = ""
    poster_id: Optional[str] = None
    required_skills: List[Any] = Field(default_factory=list)
    location: Optional[GeoPoint] = None
    location_label: str = ""
    status: str = ""

    @classmethod
    def from_doc(cls, doc: Dict[str, Any]) -> "Opening":
        blob = doc.get("location")
        return cls(
            id=str(doc["_id"]),
            legacy_id=doc.get("legacy_id"),
            title=doc.get("title") or "",
            poster_id=str(doc["poster_id"]) if doc.get("poster_id") is not None else None,
            required_skills=list(doc.get("required_skills") or []),
            location=parse_location(blob),
            location_label=location_label(blob),
            status=doc.get("status") or "",
        )


class NormalizedClaim(BaseModel):
    subject_id: str
    subject_email: Optional[str] = None
    subject_role: str
    scheme: Scheme


class MatchedSkill(BaseModel):
    id: str
    legacy_id: Optional[int] = None
    name: str


class CandidateMatch(BaseModel):
    candidate_id: str
    candidate_legacy_id: Optional[int] = None
    # None means unknown: the candidate or the opening has no usable location.
    distance_km: Optional[float] = None
    within_radius: Optional[bool] = None
    skill_overlap: bool
    matched_skills: List[MatchedSkill] = Field(default_factory=list)
    skills: List[MatchedSkill] = Field(default_factory=list)
    role: Role
    status: AccountStatus
    application_status: str = "potential"
    email: Optional[str] = None
    first_name: str = ""
    last_name: str = ""
    phone: str = ""
    location_label: str = ""

    @property
    def matched_skill_names(self) -> List[str]:
        return [s.name for s in self.matched_skills]


class MatchReport(BaseModel):
    opening: Opening
    max_distance_km: float
    strict_radius: bool
    candidates: List[CandidateMatch] = Field(default_factory=list)
    pool_size: int = 0
    within_distance_count: int = 0
    no_location_count: int = 0
    skill_match_count: int = 0
