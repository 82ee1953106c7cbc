"""Identifier resolution across the legacy (numeric) and native (string) id spaces.

One canonical graph keyed by native id; ``legacy_id`` is a secondary index.
A legacy reference is translated to its native node first and every
traversal after that runs in native-id space, so children of a category are
the same set whichever id located it.
"""
from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Optional, Union

from . import db as store
from .errors import InconsistentTaxonomy, InvalidReference, NotFound
from .models import Account, TaxonomyNode

ACCOUNT = "account"
SKILL = "skill"
EQUIPMENT = "equipment"

_COLLECTIONS = {
    ACCOUNT: store.ACCOUNTS,
    SKILL: store.SKILLS,
    EQUIPMENT: store.EQUIPMENT,
}
TAXONOMIES = (SKILL, EQUIPMENT)

# Legacy term ids as the mobile app sends them: "skill_12", "equipment_7", "12".
_LEGACY_REF_RE = re.compile(r"^(?:(skill|equipment|brand|term|user)_)?(\d+)$", re.IGNORECASE)

Entity = Union[Account, TaxonomyNode]


def parse_ref(ref: Any) -> Union[int, str]:
    """Split a reference into a legacy id (int) or a native id (str).

    Raises InvalidReference for empty refs and prefixed refs without digits
    (``skill_abc``); a prefixed ref whose number is not positive stays an int
    and simply misses.
    """
    if isinstance(ref, bool):
        raise InvalidReference(f"invalid reference: {ref!r}")
    if isinstance(ref, int):
        return ref
    s = str(ref).strip() if ref is not None else ""
    if not s:
        raise InvalidReference("empty reference")
    m = _LEGACY_REF_RE.match(s)
    if m:
        return int(m.group(2))
    if re.match(r"^(skill|equipment|brand|term|user)_", s, re.IGNORECASE):
        raise InvalidReference(f"invalid legacy reference: {s}")
    return s


class IdentifierResolver:
    def __init__(self, db):
        self.db = db

    # -- single-entity lookups -------------------------------------------------

    def _build(self, family: str, doc: Dict[str, Any]) -> Entity:
        if family == ACCOUNT:
            return Account.from_doc(doc)
        node = TaxonomyNode.from_doc(family, doc)
        return self._check_parent_links(node)

    def by_native_id(self, family: str, native_id: str) -> Union[Entity, NotFound]:
        coll = _COLLECTIONS[family]
        doc = store.find_one(self.db, coll, {"_id": str(native_id)})
        if not doc:
            return NotFound(family, native_id)
        return self._build(family, doc)

    def by_legacy_id(self, family: str, legacy_id: int) -> Union[Entity, NotFound]:
        """Legacy lookups translate to the native id, then load through the native path."""
        try:
            legacy_id = int(legacy_id)
        except (TypeError, ValueError):
            return NotFound(family, legacy_id)
        if legacy_id <= 0:
            return NotFound(family, legacy_id)
        native_id = self.native_id_for(family, legacy_id)
        if native_id is None:
            logging.info(f"RESOLVE miss family={family} legacy_id={legacy_id}")
            return NotFound(family, legacy_id)
        return self.by_native_id(family, native_id)

    def native_id_for(self, family: str, legacy_id: int) -> Optional[str]:
        doc = store.find_one(self.db, _COLLECTIONS[family], {"legacy_id": int(legacy_id)})
        return str(doc["_id"]) if doc else None

    def resolve(self, family: str, ref: Any) -> Union[Entity, NotFound]:
        """Look up by whichever id form ``ref`` is in."""
        key = parse_ref(ref)
        if isinstance(key, int):
            return self.by_legacy_id(family, key)
        return self.by_native_id(family, key)

    # -- family shorthands -----------------------------------------------------

    def account(self, ref: Any) -> Union[Account, NotFound]:
        return self.resolve(ACCOUNT, ref)

    def skill(self, ref: Any) -> Union[TaxonomyNode, NotFound]:
        return self.resolve(SKILL, ref)

    def equipment(self, ref: Any) -> Union[TaxonomyNode, NotFound]:
        return self.resolve(EQUIPMENT, ref)

    # -- hierarchy -------------------------------------------------------------

    def _check_parent_links(self, node: TaxonomyNode) -> TaxonomyNode:
        """Fail loudly when the native and legacy parent links name different parents."""
        if node.parent_legacy_id in (None, 0):
            return node
        parent_native = self.native_id_for(node.family, node.parent_legacy_id)
        if node.parent_id is None:
            if parent_native is None:
                self._inconsistent(node, f"legacy parent {node.parent_legacy_id} does not resolve")
            # Legacy-only link: express it in native space.
            return node.model_copy(update={"parent_id": parent_native})
        if parent_native != node.parent_id:
            self._inconsistent(
                node,
                f"parent_id={node.parent_id} but parent_legacy_id={node.parent_legacy_id} -> {parent_native}",
            )
        return node

    def _inconsistent(self, node: TaxonomyNode, reason: str):
        logging.error(f"RESOLVE inconsistent_taxonomy family={node.family} node={node.id} {reason}")
        raise InconsistentTaxonomy(node.family, node.id, reason)

    def children_of(self, node: TaxonomyNode) -> List[TaxonomyNode]:
        """Direct children, identical whether ``node`` came from a legacy or native lookup."""
        coll = _COLLECTIONS[node.family]
        docs: Dict[str, Dict[str, Any]] = {}
        for d in store.find_all(self.db, coll, {"parent_id": node.id}):
            docs[str(d["_id"])] = d
        if node.legacy_id:
            for d in store.find_all(self.db, coll, {"parent_legacy_id": node.legacy_id}):
                docs.setdefault(str(d["_id"]), d)
        children = []
        for d in docs.values():
            child = self._build(node.family, d)
            if child.parent_id != node.id:
                self._inconsistent(child, f"listed under {node.id} but parent_id={child.parent_id}")
            children.append(child)
        if children and not node.is_category:
            self._inconsistent(node, "leaf node has children (taxonomy deeper than two levels)")
        return sorted((c for c in children if c.active), key=lambda c: (c.name.lower(), c.id))

    def parent_of(self, node: TaxonomyNode) -> Optional[TaxonomyNode]:
        if node.parent_id is None:
            return None
        found = self.by_native_id(node.family, node.parent_id)
        if not found:
            self._inconsistent(node, f"parent {node.parent_id} missing")
        return found

    def categories(self, family: str) -> List[TaxonomyNode]:
        """Top-level nodes of a taxonomy, by name."""
        docs = store.find_all(self.db, _COLLECTIONS[family], {"parent_id": None})
        nodes = [TaxonomyNode.from_doc(family, d) for d in docs]
        # Legacy-only parent links look top-level to the query above.
        tops = [n for n in nodes if n.active and not n.parent_legacy_id]
        return sorted(tops, key=lambda n: (n.name.lower(), n.id))

    def equipment_for_skill(self, skill: TaxonomyNode) -> List[TaxonomyNode]:
        """Equipment leaves in the category mapped to this skill category."""
        if not skill.legacy_id:
            return []
        mapping = store.find_one(self.db, store.SKILL_EQUIPMENT_MAPPINGS, {"skill_legacy_id": skill.legacy_id})
        if not mapping or mapping.get("active", True) is False:
            return []
        wanted = str(mapping.get("equipment_category") or "").strip().lower()
        if not wanted:
            return []
        out = []
        for d in store.find_all(self.db, store.EQUIPMENT, {"active": {"$ne": False}}):
            node = TaxonomyNode.from_doc(EQUIPMENT, d)
            if node.category.strip().lower() == wanted and (node.parent_id or node.parent_legacy_id):
                out.append(node)
        return sorted(out, key=lambda n: (n.name.lower(), n.id))

    # -- accounts --------------------------------------------------------------

    def assigned_skills(self, account_ids: List[str]) -> Dict[str, List[TaxonomyNode]]:
        """Resolved skill nodes per account id; (account, skill) duplicates collapse."""
        if not account_ids:
            return {}
        rows = store.find_all(self.db, store.ACCOUNT_SKILLS, {"account_id": {"$in": list(account_ids)}})
        pairs = {(str(r.get("account_id")), str(r.get("skill_id"))) for r in rows if r.get("skill_id") is not None}
        skill_ids = sorted({sid for _, sid in pairs})
        nodes: Dict[str, TaxonomyNode] = {}
        if skill_ids:
            for d in store.find_all(self.db, store.SKILLS, {"_id": {"$in": skill_ids}}):
                nodes[str(d["_id"])] = TaxonomyNode.from_doc(SKILL, d)
        out: Dict[str, List[TaxonomyNode]] = {aid: [] for aid in account_ids}
        for aid, sid in sorted(pairs):
            node = nodes.get(sid)
            if node is None:
                logging.warning(f"RESOLVE dangling_assignment account={aid} skill={sid}")
                continue
            out.setdefault(aid, []).append(node)
        return out
