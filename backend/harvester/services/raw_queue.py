from typing import Iterable, Iterator, List

from harvester.schemas import RawRecord


class RawRecordQueue:
    """Hand-off between the fetch phase and the normalization phase.

    The fetch phase may only append; once :meth:`seal` is called the queue becomes
    read-only and only then can it be iterated. Appends happen from coroutines on a
    single event loop, so list appends need no further locking.
    """

    def __init__(self) -> None:
        self._records: List[RawRecord] = []
        self._sealed = False

    @property
    def sealed(self) -> bool:
        return self._sealed

    def append(self, record: RawRecord) -> None:
        if self._sealed:
            raise RuntimeError("RawRecordQueue is sealed; the fetch phase is over")
        self._records.append(record)

    def extend(self, records: Iterable[RawRecord]) -> None:
        for record in records:
            self.append(record)

    def seal(self) -> None:
        self._sealed = True

    def snapshot(self) -> List[RawRecord]:
        return list(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[RawRecord]:
        if not self._sealed:
            raise RuntimeError("RawRecordQueue must be sealed before it is drained")
        return iter(list(self._records))
