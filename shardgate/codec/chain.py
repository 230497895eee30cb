"""
shardgate • codec • Chain reconstruction

Order an unordered set of discovered ShardRecords into the single chain that
reproduces the original payload.

Within one group the records must form exactly one singly-linked list:

    head (prev_ref=None) <- r1 (prev_ref=head.ref) <- r2 (prev_ref=r1.ref) ...

Algorithm
---------
1. Keep the records whose group_id matches; none -> [].
2. Index them by prev_ref. Two records with the same prev_ref is a fork.
3. The head is the one record with prev_ref=None; zero or several is an error.
4. Walk forward: next = by_prev[current.self_ref], until there is no successor.
5. If the walk did not visit every record, some are unreachable (broken link,
   detached fragment, cycle) and the set is rejected.

Every failure raises DataIntegrity: guessing an order for an ambiguous or
partial chain would silently produce corrupted bytes. The result depends only
on the prev_ref relation, never on mapping iteration order.
"""

from __future__ import annotations

from typing import Dict, List, Mapping, Optional

from ..errors import DataIntegrity
from .records import ShardRecord


class ChainLinker:
    """
    Index one group's records and walk them in chain order.

    Construction validates ref consistency and forks; `walk()` validates the
    head and reachability.
    """

    def __init__(self, items: Mapping[str, ShardRecord], group_id: str) -> None:
        self.group_id = group_id
        self.members: Dict[str, ShardRecord] = {}
        for ref, rec in items.items():
            if rec.group_id != group_id:
                continue
            if rec.self_ref is not None and rec.self_ref != ref:
                raise DataIntegrity(
                    "record is keyed under a ref that is not its own",
                    data={"group_id": group_id, "key": ref, "self_ref": rec.self_ref},
                )
            self.members[ref] = rec

        self.by_prev: Dict[Optional[str], str] = {}
        forks: Dict[Optional[str], List[str]] = {}
        for ref in sorted(self.members):
            prev = self.members[ref].prev_ref
            if prev in self.by_prev:
                forks.setdefault(prev, [self.by_prev[prev]]).append(ref)
                continue
            self.by_prev[prev] = ref
        if forks:
            raise DataIntegrity(
                "chain forks: several records share a predecessor",
                data={
                    "group_id": group_id,
                    "forks": {str(k): v for k, v in forks.items()},
                },
            )

    def __len__(self) -> int:
        return len(self.members)

    def heads(self) -> List[str]:
        return sorted(ref for ref, rec in self.members.items() if rec.prev_ref is None)

    def unreachable(self, visited: List[str]) -> List[str]:
        seen = set(visited)
        return sorted(ref for ref in self.members if ref not in seen)

    def walk(self) -> List[ShardRecord]:
        if not self.members:
            return []

        heads = self.heads()
        if len(heads) != 1:
            reason = "missing head" if not heads else "ambiguous head"
            raise DataIntegrity(
                f"{reason}: expected exactly one record without a predecessor",
                data={"group_id": self.group_id, "heads": heads},
            )

        order: List[str] = []
        current: Optional[str] = heads[0]
        while current is not None:
            order.append(current)
            if len(order) > len(self.members):
                # Unreachable given unique keys and unique prev refs; kept as a hard stop.
                raise DataIntegrity("chain walk did not terminate", data={"group_id": self.group_id})
            current = self.by_prev.get(current)

        if len(order) != len(self.members):
            raise DataIntegrity(
                "broken chain: some records are not reachable from the head",
                data={
                    "group_id": self.group_id,
                    "reached": len(order),
                    "total": len(self.members),
                    "unreachable": self.unreachable(order),
                },
            )

        return [self._resolved(ref) for ref in order]

    def _resolved(self, ref: str) -> ShardRecord:
        rec = self.members[ref]
        return rec if rec.self_ref == ref else rec.with_ref(ref)


def reconstruct_chain(items: Mapping[str, ShardRecord], group_id: str) -> List[ShardRecord]:
    """
    Return the records of `group_id` in original split order.

    An absent group yields []; anything other than exactly one linear chain
    raises DataIntegrity.
    """
    return ChainLinker(items, group_id).walk()


__all__ = ["ChainLinker", "reconstruct_chain"]
