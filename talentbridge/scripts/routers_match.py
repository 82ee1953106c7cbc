from typing import Optional, Union

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from . import compat
from .auth import require_claim
from .deps import get_matcher, get_resolver
from .matcher import CandidateMatcher
from .models import NormalizedClaim, Opening, Role
from .resolver import IdentifierResolver
from .routers_auth import claim_account

router = APIRouter(tags=["match"])


class FilterTalentsReq(BaseModel):
    job_id: Union[int, str]
    max_distance_km: Optional[float] = Field(default=None, ge=0, allow_inf_nan=False)


def _authorized_opening(
    ref, claim: NormalizedClaim, matcher: CandidateMatcher, resolver: IdentifierResolver
) -> Opening:
    """Resolve the opening and check the caller may match against it.

    Admins may match any opening; posters only their own. Anything else reads
    as a missing opening so callers cannot probe for ids they do not own.
    """
    opening = matcher.resolve_opening(ref)
    if not opening:
        raise HTTPException(status_code=404, detail=opening.detail)
    if Role.from_claim(claim.subject_role) == Role.ADMIN:
        return opening
    account = claim_account(resolver, claim)
    if account and opening.poster_id == account.id:
        return opening
    raise HTTPException(status_code=404, detail="opening_not_found")


@router.get("/match/opening/{ref}")
def match_opening(
    ref: str,
    max_distance_km: Optional[float] = Query(default=None, ge=0, allow_inf_nan=False),
    claim: NormalizedClaim = Depends(require_claim),
    matcher: CandidateMatcher = Depends(get_matcher),
    resolver: IdentifierResolver = Depends(get_resolver),
):
    opening = _authorized_opening(ref, claim, matcher, resolver)
    report = matcher.filter_report(opening, max_distance_km)
    return {
        "opening": {"id": opening.id, "legacy_id": opening.legacy_id, "title": opening.title},
        "max_distance_km": report.max_distance_km,
        "strict_radius": report.strict_radius,
        "counts": {
            "pool": report.pool_size,
            "returned": len(report.candidates),
            "within_distance": report.within_distance_count,
            "no_location": report.no_location_count,
            "skill_match": report.skill_match_count,
        },
        "candidates": [m.model_dump(mode="json") for m in report.candidates],
    }


@router.post("/filter/talents")
def filter_talents(
    req: FilterTalentsReq,
    claim: NormalizedClaim = Depends(require_claim),
    matcher: CandidateMatcher = Depends(get_matcher),
    resolver: IdentifierResolver = Depends(get_resolver),
):
    """Legacy-compatible talent filter for an opening (``job_id`` in either id form)."""
    opening = _authorized_opening(req.job_id, claim, matcher, resolver)
    report = matcher.filter_report(opening, req.max_distance_km)
    return compat.filter_talents_response(report, req.job_id)
