from typing import Optional

from fastapi import APIRouter, Depends

from .auth import require_claim
from .deps import get_resolver
from .models import NormalizedClaim, Role, Scheme
from .resolver import ACCOUNT, IdentifierResolver

router = APIRouter(prefix="/auth", tags=["auth"])


def claim_account(resolver: IdentifierResolver, claim: NormalizedClaim):
    """Account named by a claim: legacy tokens carry the legacy id, native tokens the native id."""
    if claim.scheme == Scheme.LEGACY:
        return resolver.by_legacy_id(ACCOUNT, claim.subject_id)
    return resolver.by_native_id(ACCOUNT, claim.subject_id)


@router.get("/me")
def me(claim: NormalizedClaim = Depends(require_claim), resolver: IdentifierResolver = Depends(get_resolver)):
    """Return the normalized claim for the presented token plus the account it names.

    Accepts either Authorization: Bearer <token> header or token query param.
    """
    account: Optional[dict] = None
    found = claim_account(resolver, claim)
    if found:
        account = {
            "id": found.id,
            "legacy_id": found.legacy_id,
            "email": found.email,
            "role": found.role.value,
            "status": found.status.value,
        }
    return {
        "claim": claim.model_dump(mode="json"),
        "role": Role.from_claim(claim.subject_role).value,
        "account": account,
    }
