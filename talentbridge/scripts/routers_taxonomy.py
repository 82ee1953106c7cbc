from fastapi import APIRouter, Depends, HTTPException

from . import compat
from .deps import get_resolver
from .resolver import EQUIPMENT, SKILL, IdentifierResolver

router = APIRouter(tags=["taxonomy"])


def _or_404(found):
    if not found:
        raise HTTPException(status_code=404, detail=found.detail)
    return found


def _node_payload(resolver: IdentifierResolver, node) -> dict:
    parent = resolver.parent_of(node)
    children = resolver.children_of(node)
    return {
        "node": compat.term(node, parent),
        "parent": compat.term(parent) if parent else None,
        "subcat": [compat.term(c, node) for c in children],
    }


@router.get("/skills")
def list_skill_categories(resolver: IdentifierResolver = Depends(get_resolver)):
    cats = resolver.categories(SKILL)
    rows = [compat.category_entry(c, resolver.children_of(c)) for c in cats]
    return {"code": 200, "message": "Skills retrieved successfully", "skill": rows, "total_skills": len(rows)}


@router.get("/skills/{ref}")
def get_skill(ref: str, resolver: IdentifierResolver = Depends(get_resolver)):
    """Skill node by native id or legacy id (``12`` or ``skill_12``), with children and mapped brands."""
    node = _or_404(resolver.skill(ref))
    payload = _node_payload(resolver, node)
    payload["brand"] = [compat.term(e) for e in resolver.equipment_for_skill(node)]
    return payload


@router.get("/equipment")
def list_equipment_categories(resolver: IdentifierResolver = Depends(get_resolver)):
    cats = resolver.categories(EQUIPMENT)
    rows = [compat.category_entry(c, resolver.children_of(c)) for c in cats]
    return {"code": 200, "message": "Equipment retrieved successfully", "brand": rows, "total_brands": len(rows)}


@router.get("/equipment/{ref}")
def get_equipment(ref: str, resolver: IdentifierResolver = Depends(get_resolver)):
    return _node_payload(resolver, _or_404(resolver.equipment(ref)))


@router.get("/accounts/{ref}")
def get_account(ref: str, resolver: IdentifierResolver = Depends(get_resolver)):
    """Account by native or legacy id, with its assigned skills as child records."""
    account = _or_404(resolver.account(ref))
    skills = resolver.assigned_skills([account.id]).get(account.id, [])
    return {
        "account": {
            "id": account.id,
            "legacy_id": account.legacy_id,
            "role": account.role.value,
            "status": account.status.value,
            "email": account.email,
            "first_name": account.first_name,
            "last_name": account.last_name,
            "location": account.location_label,
            "has_coordinates": account.location is not None,
        },
        "children": [compat.term(s) for s in skills],
    }
