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
import array

import pytest

from readfish_tools import Decision, MeanQualityFilter, MinimumLengthFilter, \
    Record, Router, SplitType, ThresholdConfig

UNBLOCKED = frozenset(["read2", "read4"])


def record(name, length=10, quality=30):
    return Record(name, "A" * length, array.array("B", [quality] * length))


@pytest.mark.parametrize(["split_type", "name", "decision"], (
    (SplitType.ALL, "read1", Decision.SEQUENCED),
    (SplitType.ALL, "read2", Decision.UNBLOCKED),
    (SplitType.SEQUENCED_ONLY, "read1", Decision.SEQUENCED),
    (SplitType.SEQUENCED_ONLY, "read2", Decision.DROPPED),
    (SplitType.UNBLOCKED_ONLY, "read1", Decision.DROPPED),
    (SplitType.UNBLOCKED_ONLY, "read2", Decision.UNBLOCKED),
))
def test_split_type_mask(split_type, name, decision):
    router = Router(UNBLOCKED, split_type)
    assert router.decide(record(name)) is decision


def test_default_split_type():
    router = Router(UNBLOCKED)
    assert router.split_type is SplitType.SEQUENCED_ONLY


@pytest.mark.parametrize("split_type", list(SplitType))
def test_filters_drop_before_membership(split_type):
    router = Router(UNBLOCKED, split_type, [MinimumLengthFilter(10)])
    assert router.decide(record("read1", length=9)) is Decision.DROPPED
    assert router.decide(record("read2", length=9)) is Decision.DROPPED


@pytest.mark.parametrize(["length", "quality", "decision"], (
    (10, 20, Decision.SEQUENCED),
    (9, 20, Decision.DROPPED),
    (10, 19, Decision.DROPPED),
    (11, 21, Decision.SEQUENCED),
))
def test_thresholds_are_inclusive(length, quality, decision):
    router = Router(UNBLOCKED, SplitType.ALL,
                    ThresholdConfig(10, 20).filters())
    assert router.decide(record("read1", length, quality)) is decision


def test_first_failing_filter_stops():
    length_filter = MinimumLengthFilter(10)
    quality_filter = MeanQualityFilter(20)
    router = Router(UNBLOCKED, SplitType.ALL, [length_filter, quality_filter])
    router.decide(record("read1", length=5))
    assert length_filter.total == 1
    assert quality_filter.total == 0


def test_quality_scenario():
    # Average qualities 25, 15 and 30 with a threshold of 20.
    records = [record("read1", quality=25), record("read2", quality=15),
               record("read3", quality=30)]
    for split_type in SplitType:
        router = Router(frozenset(["read1", "read2", "read3"]), split_type,
                        ThresholdConfig(min_avg_quality=20).filters())
        decisions = [router.decide(r) for r in records]
        assert decisions[1] is Decision.DROPPED
        if split_type is not SplitType.SEQUENCED_ONLY:
            assert decisions[0] is decisions[2] is Decision.UNBLOCKED


def test_membership_independent_of_filters():
    router = Router(UNBLOCKED, SplitType.ALL)
    for name in ("read1", "read2", "read3", "read4"):
        decision = router.decide(record(name))
        assert (decision is Decision.UNBLOCKED) == (name in UNBLOCKED)


def test_duplex_membership():
    router = Router(frozenset(["parent2"]), SplitType.ALL)
    duplex = Record("parent1;parent2", "ACGT", duplex=True)
    simplex = Record("parent1;parent2", "ACGT")
    assert router.decide(duplex) is Decision.UNBLOCKED
    assert router.decide(simplex) is Decision.SEQUENCED


def test_counts():
    router = Router(UNBLOCKED, SplitType.SEQUENCED_ONLY)
    for name in ("read1", "read2", "read3"):
        router.decide(record(name))
    assert router.counts[Decision.SEQUENCED] == 2
    assert router.counts[Decision.DROPPED] == 1
    assert router.counts[Decision.UNBLOCKED] == 0
    assert router.total == 3


@pytest.mark.parametrize(["split_type", "sequenced", "unblocked"], (
    (SplitType.ALL, True, True),
    (SplitType.SEQUENCED_ONLY, True, False),
    (SplitType.UNBLOCKED_ONLY, False, True),
))
def test_requested(split_type, sequenced, unblocked):
    router = Router(UNBLOCKED, split_type)
    assert router.requested(Decision.SEQUENCED) is sequenced
    assert router.requested(Decision.UNBLOCKED) is unblocked
    assert router.requested(Decision.DROPPED) is False
