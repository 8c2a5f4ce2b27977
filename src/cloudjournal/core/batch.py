"""
Records and batches - the units the shipping loop moves around.

A LogRecord is one structured journal entry: an ordered mapping of field
names to values with no fixed schema. A LogBatch is a non-empty, ordered
run of records plus the journal cursor that points just past the last of
them. Batches live for exactly one trip through the sink and the cursor
store.
"""
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Tuple

LogRecord = Mapping[str, Any]


@dataclass(frozen=True)
class LogBatch:
    """
    An ordered, non-empty group of records read in one cycle.

    Records are copied into read-only mappings so nothing downstream can
    change them while the batch is in flight.

    Example:
        ```python
        batch = LogBatch.of([{"MESSAGE": "hello"}], cursor="s=abc;i=1")
        len(batch)  # 1
        ```
    """

    records: Tuple[LogRecord, ...]
    cursor: str

    def __post_init__(self):
        if not self.records:
            raise ValueError("A batch must contain at least one record")
        if not self.cursor:
            raise ValueError("A batch cursor must not be empty")

    @classmethod
    def of(cls, records: Iterable[Mapping[str, Any]], cursor: str) -> "LogBatch":
        """Build a batch from plain mappings."""
        return cls(
            records=tuple(MappingProxyType(dict(record)) for record in records),
            cursor=cursor,
        )

    def __len__(self) -> int:
        return len(self.records)
