"""Response shapes the legacy mobile app expects.

The legacy CMS exposed taxonomy terms and talent lists in its own JSON
layout; older app builds parse exactly these keys. Every entity carries both
id forms so the same payload serves native clients too.
"""
import re
from typing import Any, Dict, List, Optional

from .models import CandidateMatch, MatchReport, TaxonomyNode

_TAXONOMY_NAMES = {"skill": "skills", "equipment": "brands"}


def slugify(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", (name or "").lower()).strip("-")


def term_id(node: TaxonomyNode) -> str:
    return str(node.legacy_id) if node.legacy_id else node.id


def term(node: TaxonomyNode, parent: Optional[TaxonomyNode] = None) -> Dict[str, Any]:
    parent_term = "0"
    if parent is not None:
        parent_term = term_id(parent)
    elif node.parent_legacy_id:
        parent_term = str(node.parent_legacy_id)
    return {
        "term_id": term_id(node),
        "id": node.id,
        "legacy_id": node.legacy_id,
        "name": node.name,
        "slug": slugify(node.name),
        "term_group": 0,
        "term_taxonomy_id": term_id(node),
        "taxonomy": _TAXONOMY_NAMES.get(node.family, node.family),
        "description": node.category,
        "parent": parent_term,
        "count": 0,
        "filter": "raw",
    }


def category_entry(node: TaxonomyNode, children: List[TaxonomyNode]) -> Dict[str, Any]:
    """One row of the legacy skills list (``term_id`` like ``skill_12``)."""
    tid = f"{node.family}_{node.legacy_id}" if node.legacy_id else node.id
    return {
        "terms": {
            "term_id": tid,
            "id": node.id,
            "legacy_id": node.legacy_id,
            "name": node.name,
            "parent": 0,
            "slug": slugify(node.name),
            "description": node.category,
        },
        "image": None,
        "subcat_count": len(children),
        "has_children": bool(children),
    }


def _skill_row(s) -> Dict[str, Any]:
    return {"skill_id": s.id, "skill_name": s.name, "wordpress_id": s.legacy_id}


def talent_record(m: CandidateMatch) -> Dict[str, Any]:
    return {
        "talent_id": str(m.candidate_legacy_id) if m.candidate_legacy_id else m.candidate_id,
        "talent_userid": m.candidate_id,
        "talent_legacy_id": m.candidate_legacy_id,
        "first_name": m.first_name,
        "last_name": m.last_name,
        "email": m.email or "",
        "phone": m.phone,
        "status": m.application_status,
        "awarded": m.application_status == "awarded",
        "distance_km": None if m.distance_km is None else round(m.distance_km, 1),
        "distance": "unknown" if m.distance_km is None else f"{m.distance_km:.1f} km",
        "within_radius": m.within_radius,
        "skill_overlap": m.skill_overlap,
        "matched_skills": [s.name for s in m.matched_skills],
        "skills": [_skill_row(s) for s in m.skills],
        "profile": {"location": m.location_label},
    }


def filter_talents_response(report: MatchReport, job_ref: Any) -> Dict[str, Any]:
    data = [talent_record(m) for m in report.candidates]
    opening = report.opening
    if opening.location is not None:
        location = {
            "job_location": opening.location_label,
            "max_distance_km": report.max_distance_km,
            "strict_radius": report.strict_radius,
            "coordinates": {"lat": opening.location.lat, "lng": opening.location.lng},
            "filtering_enabled": True,
            "within_distance_count": report.within_distance_count,
            "no_location_count": report.no_location_count,
        }
    else:
        location = {"filtering_enabled": False}
    return {
        "code": 200,
        "message": "Talents filtered successfully",
        "data": data,
        "talent_count": len(data),
        "job_id": job_ref,
        "job": {"id": opening.id, "legacy_id": opening.legacy_id},
        "filters_applied": {"role": "talent", "status": "active", "location": location},
    }
