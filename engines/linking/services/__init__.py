"""
RBO Cross-Link Resolver — Application Service
===============================================
Best-effort filling of missing owner foreign keys.

For a record with no owner key set:
1. An untyped candidate id (e.g. entityId) that exactly matches an
   owner id links to that owner.
2. Otherwise the record's name is matched exactly (case-sensitive)
   against Customer, then Supplier, then Employee names; the first
   match wins. Several owners sharing one name is a known ambiguity:
   collection order decides.
3. No match leaves the record unlinked and reports it. Nothing is
   guessed; there is no fuzzy matching.

Resolution is monotonic: a record that has an owner key is never
touched again by this component.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Tuple

from core.ledger import Issue, ResolutionAmbiguity
from core.primitives.source import record_id
from core.store import KeyValueStore, StoreUnavailableError, read_collection
from engines.linking.policies import (
    LINK_SPECS,
    OWNER_TYPE_FIELD,
    LinkSpec,
    OwnerType,
    get_link_spec,
)

logger = logging.getLogger("rbo.linking")


# ══════════════════════════════════════════════════════════════
# RESULTS
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class OwnerLink:
    owner_type: OwnerType
    owner_id: str
    matched_by: str  # id | name


@dataclass(frozen=True)
class LinkResult:
    kind: str
    linked: int = 0
    unresolved: int = 0
    issues: Tuple[Issue, ...] = ()
    fatal_error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.fatal_error is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "linked": self.linked,
            "unresolved": self.unresolved,
            "issues": [i.to_dict() for i in self.issues],
            "fatal_error": self.fatal_error,
        }


# ══════════════════════════════════════════════════════════════
# OWNER DIRECTORY
# ══════════════════════════════════════════════════════════════

class OwnerDirectory:
    """Id set and first-wins name index per owner collection."""

    def __init__(self, owners: Mapping[OwnerType, List[Dict[str, Any]]]) -> None:
        self._ids: Dict[OwnerType, set] = {}
        self._names: Dict[OwnerType, Dict[str, str]] = {}
        for owner_type, rows in owners.items():
            ids = set()
            names: Dict[str, str] = {}
            for row in rows:
                oid = record_id(row)
                if oid is None:
                    continue
                ids.add(oid)
                name = row.get("name")
                if isinstance(name, str) and name:
                    if name in names:
                        logger.info(
                            f"Several {owner_type.value}s are named '{name}'; "
                            f"links go to {names[name]}"
                        )
                        continue
                    names[name] = oid
            self._ids[owner_type] = ids
            self._names[owner_type] = names

    @classmethod
    def load(cls, store: KeyValueStore, owner_types) -> OwnerDirectory:
        return cls({o: read_collection(store, o.store_key) for o in owner_types})

    def has_id(self, owner_type: OwnerType, owner_id: str) -> bool:
        return owner_id in self._ids.get(owner_type, set())

    def id_for_name(self, owner_type: OwnerType, name: str) -> Optional[str]:
        return self._names.get(owner_type, {}).get(name)


# ══════════════════════════════════════════════════════════════
# RESOLVER
# ══════════════════════════════════════════════════════════════

def match_owner(record: Mapping[str, Any], spec: LinkSpec, directory: OwnerDirectory) -> Optional[OwnerLink]:
    """Pure matching step. Does not look at or change existing links."""
    for field in spec.candidate_id_fields:
        value = record.get(field)
        if value in (None, ""):
            continue
        for owner_type in spec.owner_types:
            if directory.has_id(owner_type, str(value)):
                return OwnerLink(owner_type, str(value), "id")

    name = spec.name_of(record)
    if name is None:
        return None
    for owner_type in spec.owner_types:
        owner_id = directory.id_for_name(owner_type, name)
        if owner_id is not None:
            return OwnerLink(owner_type, owner_id, "name")
    return None


class CrossLinkResolver:
    def __init__(self, store: KeyValueStore) -> None:
        self._store = store

    def resolve_links(self, kind) -> LinkResult:
        """Link every record of kind that has no owner key yet."""
        spec = get_link_spec(kind)
        try:
            records = read_collection(self._store, spec.store_key)
            directory = OwnerDirectory.load(self._store, spec.owner_types)
            linked, issues = self._link_records(records, spec, directory)
            if linked:
                self._store.set(spec.store_key, records)
        except StoreUnavailableError as exc:
            logger.error(f"resolve_links({spec.kind}) aborted: {exc}")
            return LinkResult(kind=spec.kind, fatal_error=str(exc))

        result = LinkResult(
            kind=spec.kind, linked=linked, unresolved=len(issues), issues=tuple(issues),
        )
        logger.info(f"resolve_links({spec.kind}): {linked} linked, {len(issues)} unresolved")
        return result

    def resolve_all(self) -> Dict[str, LinkResult]:
        return {kind: self.resolve_links(kind) for kind in LINK_SPECS}

    def resolve_record(self, record: Mapping[str, Any], kind) -> Optional[OwnerLink]:
        """Where record would link, or None when it is already linked or unmatched."""
        spec = get_link_spec(kind)
        if spec.current_link(record) is not None:
            return None
        directory = OwnerDirectory.load(self._store, spec.owner_types)
        return match_owner(record, spec, directory)

    @staticmethod
    def _link_records(
        records: List[Dict[str, Any]], spec: LinkSpec, directory: OwnerDirectory,
    ) -> Tuple[int, List[Issue]]:
        linked = 0
        issues: List[Issue] = []
        for record in records:
            if spec.current_link(record) is not None:
                continue
            link = match_owner(record, spec, directory)
            if link is None:
                error = ResolutionAmbiguity(spec.kind, record_id(record), spec.name_of(record))
                issues.append(Issue.from_error(error))
                continue
            record[spec.fk_field(link.owner_type)] = link.owner_id
            if len(spec.owner_fields) > 1 and not record.get(OWNER_TYPE_FIELD):
                record[OWNER_TYPE_FIELD] = link.owner_type.value
            linked += 1
            logger.debug(
                f"Linked {spec.kind} {record_id(record)} -> "
                f"{link.owner_type.value} {link.owner_id} by {link.matched_by}"
            )
        return linked, issues
