# Copyright (c) 2021 Leiden University Medical Center
#
# Permission is hereby granted, free of charge, to any person obtaining a copy
# of this software and associated documentation files (the "Software"), to deal
# in the Software without restriction, including without limitation the rights
# to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
# copies of the Software, and to permit persons to whom the Software is
# furnished to do so, subject to the following conditions:
#
# The above copyright notice and this permission notice shall be included in
# all copies or substantial portions of the Software.
#
# THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
# IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
# FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
# AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
# LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
# OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
# SOFTWARE.
"""Decide for each record whether it is sequenced, unblocked or dropped."""
import enum
from collections import Counter
from typing import AbstractSet, Iterable

from ._abstracts import Filter
from ._records import Record


class SplitType(enum.Enum):
    """Which of the two buckets are written."""
    ALL = "all"
    UNBLOCKED_ONLY = "unblocked-only"
    SEQUENCED_ONLY = "sequenced-only"

    def __str__(self):
        return self.value


class Decision(enum.Enum):
    SEQUENCED = "sequenced"
    UNBLOCKED = "unblocked"
    DROPPED = "dropped"


class Router:
    """
    Route records into the sequenced or unblocked bucket.

    Filters are evaluated before membership so that thresholds apply the same
    way to both buckets. The split type is applied last, as a mask on the
    bucket chosen by membership.

    :param unblocked_ids: Identifiers of reads that were unblocked.
    :param split_type: Which buckets are written, the other is dropped.
    :param filters: Filters that must all pass for a record to be kept. They
    are evaluated in the given order and stop at the first failure.
    """

    def __init__(self, unblocked_ids: AbstractSet[str],
                 split_type: SplitType = SplitType.SEQUENCED_ONLY,
                 filters: Iterable[Filter] = ()):
        self.unblocked_ids = unblocked_ids
        self.split_type = split_type
        self.filters = list(filters)
        self.counts: Counter = Counter()

    def is_unblocked(self, record: Record) -> bool:
        return any(key in self.unblocked_ids for key in record.membership_keys)

    def requested(self, decision: Decision) -> bool:
        """Whether records can be routed to the bucket of ``decision``."""
        if decision is Decision.SEQUENCED:
            return self.split_type is not SplitType.UNBLOCKED_ONLY
        if decision is Decision.UNBLOCKED:
            return self.split_type is not SplitType.SEQUENCED_ONLY
        return False

    def decide(self, record: Record) -> Decision:
        if all(filter_func(record) for filter_func in self.filters):
            if self.is_unblocked(record):
                decision = Decision.UNBLOCKED
            else:
                decision = Decision.SEQUENCED
            if not self.requested(decision):
                decision = Decision.DROPPED
        else:
            decision = Decision.DROPPED
        self.counts[decision] += 1
        return decision

    @property
    def total(self) -> int:
        return sum(self.counts.values())
