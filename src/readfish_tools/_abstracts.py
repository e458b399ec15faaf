from abc import ABC, abstractmethod
from typing import AbstractSet, Iterator, Union

from ._records import Record


class Filter(ABC):
    name: str
    threshold: Union[int, float]
    passed: int
    total: int

    @abstractmethod
    def __init__(self): ...

    @abstractmethod
    def passes_filter(self, record: Record) -> bool: ...

    def __call__(self, record: Record) -> bool:
        self.total += 1
        if self.passes_filter(record):
            self.passed += 1
            return True
        return False


class RecordSource(ABC):
    has_sequence: bool
    has_qualities: bool
    encodings: AbstractSet

    @abstractmethod
    def __iter__(self) -> Iterator[Record]: ...
