"""Value types passed between the collectors and the dataset store."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Tuple

# A read-only, schema-less field mapping plus provenance keys.
Record = Mapping[str, Any]


@dataclass(frozen=True)
class PageBatch:
    """Records collected from one list page, in list order.

    An empty batch means the list page had no entities: the end of the data.
    ``aborted`` marks a batch cut short by an error in the item loop; it may
    hold the records gathered before the failure, and is never end of data.
    """

    page_number: int
    records: Tuple[Record, ...] = field(default_factory=tuple)
    aborted: bool = False

    def __len__(self) -> int:
        return len(self.records)

    def __bool__(self) -> bool:
        return bool(self.records)

    def to_json(self) -> List[Dict[str, Any]]:
        return [dict(record) for record in self.records]


__all__ = ["Record", "PageBatch"]
