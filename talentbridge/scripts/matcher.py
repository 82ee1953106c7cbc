"""Candidate matching for an opening: skill overlap plus geographic proximity.

Policy, per candidate in the active pool:
- no assigned skills            -> excluded
- skill check                   -> opening declares no requirements, or at least one
                                   assigned skill is in the required set
- location check                -> unknown location on either side passes (distance None);
                                   known distance passes unless ``strict_radius`` is on and
                                   it exceeds the radius
Both checks must pass. Results are ordered by distance, unknown last, then by id.
"""
from __future__ import annotations

import logging
import time
from typing import Any, Dict, List, Optional, Set, Union

from . import db as store
from .config import MatchSettings
from .errors import InvalidReference, NotFound
from .geo import distance_between
from .models import (
    CANDIDATE_ROLE_PATTERN,
    Account,
    AccountStatus,
    CandidateMatch,
    MatchedSkill,
    MatchReport,
    Opening,
    Role,
    TaxonomyNode,
)
from .resolver import IdentifierResolver, parse_ref

OPENING = "opening"

_APPLICATION_STATUS = {
    "ACCEPTED": "awarded",
    "REJECTED": "rejected",
}


def _matched(node: TaxonomyNode) -> MatchedSkill:
    return MatchedSkill(id=node.id, legacy_id=node.legacy_id, name=node.name)


class CandidateMatcher:
    def __init__(self, resolver: IdentifierResolver, settings: Optional[MatchSettings] = None):
        self.resolver = resolver
        self.db = resolver.db
        self.settings = settings or MatchSettings()

    # -- opening side ----------------------------------------------------------

    def resolve_opening(self, ref: Any) -> Union[Opening, NotFound]:
        key = parse_ref(ref)
        if isinstance(key, int):
            if key <= 0:
                return NotFound(OPENING, ref)
            doc = store.find_one(self.db, store.OPENINGS, {"legacy_id": key})
        else:
            doc = store.find_one(self.db, store.OPENINGS, {"_id": key})
        if not doc:
            return NotFound(OPENING, ref)
        return Opening.from_doc(doc)

    def required_skill_ids(self, opening: Opening) -> Set[str]:
        """Native ids satisfying the opening's requirements.

        A category requirement is satisfied by the category itself or any of
        its children. References that do not resolve are dropped with a warning.
        """
        required: Set[str] = set()
        for ref in opening.required_skills:
            try:
                node = self.resolver.skill(ref)
            except InvalidReference:
                node = NotFound("skill", ref)
            if not node:
                logging.warning(f"MATCH unresolved_requirement opening={opening.id} ref={ref!r}")
                continue
            required.add(node.id)
            if node.is_category:
                required.update(c.id for c in self.resolver.children_of(node))
        return required

    # -- candidate side --------------------------------------------------------

    def candidate_pool(self) -> List[Account]:
        """Active candidates. Status is judged by Account, so a missing status reads as active."""
        docs = store.find_all(
            self.db,
            store.ACCOUNTS,
            {"role": {"$regex": CANDIDATE_ROLE_PATTERN, "$options": "i"}},
        )
        pool = [Account.from_doc(d) for d in docs]
        return [a for a in pool if a.role == Role.CANDIDATE and a.status == AccountStatus.ACTIVE]

    def application_statuses(self, opening: Opening, account_ids: List[str]) -> Dict[str, str]:
        if not account_ids:
            return {}
        rows = store.find_all(
            self.db,
            store.APPLICATIONS,
            {"opening_id": opening.id, "account_id": {"$in": account_ids}},
        )
        out: Dict[str, str] = {}
        for r in rows:
            status = str(r.get("status") or "").upper()
            out[str(r.get("account_id"))] = _APPLICATION_STATUS.get(status, "invited")
        return out

    # -- matching --------------------------------------------------------------

    def filter_report(self, opening_ref: Any, max_distance_km: Optional[float] = None) -> Union[MatchReport, NotFound]:
        _t0 = time.time()
        opening = opening_ref if isinstance(opening_ref, Opening) else self.resolve_opening(opening_ref)
        if not opening:
            logging.info(f"MATCH opening_not_found ref={opening_ref!r}")
            return opening
        radius = float(max_distance_km) if max_distance_km is not None else self.settings.default_radius_km
        strict = self.settings.strict_radius
        restricted = bool(opening.required_skills)
        required = self.required_skill_ids(opening) if restricted else set()

        pool = self.candidate_pool()
        skills_by_account = self.resolver.assigned_skills([a.id for a in pool])
        report = MatchReport(opening=opening, max_distance_km=radius, strict_radius=strict, pool_size=len(pool))

        kept: List[tuple] = []
        for cand in pool:
            skills = skills_by_account.get(cand.id) or []
            if not skills:
                continue
            matched = [s for s in skills if s.id in required]
            skill_ok = (not restricted) or bool(matched)
            if skill_ok:
                report.skill_match_count += 1

            dist = distance_between(opening.location, cand.location)
            if cand.location is None:
                report.no_location_count += 1
            within = None if dist is None else dist <= radius
            if within:
                report.within_distance_count += 1
            location_ok = dist is None or within or not strict

            if skill_ok and location_ok:
                kept.append((cand, skills, matched, dist, within))

        statuses = self.application_statuses(opening, [c.id for c, *_ in kept])
        for cand, skills, matched, dist, within in kept:
            report.candidates.append(
                CandidateMatch(
                    candidate_id=cand.id,
                    candidate_legacy_id=cand.legacy_id,
                    distance_km=None if dist is None else round(dist, 3),
                    within_radius=within,
                    skill_overlap=bool(matched),
                    matched_skills=[_matched(s) for s in matched],
                    skills=[_matched(s) for s in skills],
                    role=cand.role,
                    status=cand.status,
                    application_status=statuses.get(cand.id, "potential"),
                    email=cand.email,
                    first_name=cand.first_name,
                    last_name=cand.last_name,
                    phone=cand.phone,
                    location_label=cand.location_label,
                )
            )
        report.candidates.sort(
            key=lambda m: (m.distance_km is None, m.distance_km if m.distance_km is not None else 0.0, m.candidate_id)
        )
        logging.info(
            f"MATCH opening={opening.id} pool={report.pool_size} kept={len(report.candidates)} "
            f"radius_km={radius} strict={strict} within={report.within_distance_count} "
            f"no_location={report.no_location_count} took_ms={int((time.time()-_t0)*1000)}"
        )
        return report

    def match_candidates(self, opening_ref: Any, max_distance_km: Optional[float] = None) -> Union[List[CandidateMatch], NotFound]:
        report = self.filter_report(opening_ref, max_distance_km)
        if not report:
            return report
        return report.candidates
