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
import math
import statistics
from typing import List

import pytest

from readfish_tools import DEFAULT_PHRED_SCORE_OFFSET, ConfigurationError, \
    MalformedRecordError, MeanQualityFilter, MinimumLengthFilter, Record, \
    ThresholdConfig, qualmean


def quallist_to_string(quallist: List[int]):
    return array.array(
        "B", [qual + DEFAULT_PHRED_SCORE_OFFSET for qual in quallist]
    ).tobytes().decode("ascii")


def fastq_record(qualities: str) -> Record:
    return Record("name", len(qualities) * "A", qualities,
                  DEFAULT_PHRED_SCORE_OFFSET)


QUAL_STRINGS = [
    "I?>DC:>@?IDC9??G?>EH9E@66=9<?@E?DC:@<@BBFG>=FIC@F9>7CG?IC?I;CD9>>>A@C7>>"
    "8>>D9GCB<;?DD>C;9?>5G>?H?=6@>:G6B<?==A7?@???8IF<75C=@A:BEA@A;C89D:=1?=<A"
    ">D=>B66C",
    "C:@?;8@=DC???>E>E;98BBB?9D=?@B;D?I:??FD8CH?A7?<H>ABD@C@C?>;;B<><;9@8BAFD"
    "?;:>I3DB<?<B=?A??CI>2E>><BD?A??FCBCE?DAI><B:8D>?C>@BA=F<>7=E=?DC=@9GG=>?"
    "C@><CA;>",
]


@pytest.mark.parametrize("qualstring", QUAL_STRINGS)
def test_qualmean(qualstring):
    offset = DEFAULT_PHRED_SCORE_OFFSET
    qualities = [qual - offset for qual in
                 array.array("b", qualstring.encode('ascii'))]
    probabilities = [10 ** (qual / -10) for qual in qualities]
    average_prob = statistics.mean(probabilities)
    phred = - 10 * math.log10(average_prob)
    assert phred == pytest.approx(qualmean(qualstring))


@pytest.mark.parametrize("qualstring", QUAL_STRINGS)
def test_qualmean_decoded_scores(qualstring):
    decoded = array.array(
        "B", [qual - DEFAULT_PHRED_SCORE_OFFSET
              for qual in qualstring.encode("ascii")])
    assert qualmean(decoded, 0) == pytest.approx(qualmean(qualstring))


@pytest.mark.parametrize(["scores", "result"], (
    ([30], 30.0),
    ([20, 20, 20], 20.0),
    ([30, 20, 25, 35], 24.41),
))
def test_qualmean_values(scores, result):
    assert qualmean(bytes(scores), 0) == pytest.approx(result, abs=0.01)


TOO_LOW_PHREDS = [chr(x) for x in range(33)]
TOO_HIGH_PHREDS = [chr(127)]
OUTSIDE_RANGE_PHREDS = TOO_LOW_PHREDS + TOO_HIGH_PHREDS
NON_ASCII_PHREDS = [chr(x) for x in range(128, 256)]


@pytest.mark.parametrize("quals", OUTSIDE_RANGE_PHREDS)
def test_outside_range_phreds(quals):
    with pytest.raises(ValueError) as error:
        qualmean(quals)
    assert error.match("outside of valid phred range")


@pytest.mark.parametrize("quals", NON_ASCII_PHREDS)
def test_non_ascii_phreds(quals):
    with pytest.raises(ValueError) as error:
        qualmean(quals)
    assert error.match("phred_scores must be ASCII encoded.")


def test_empty_quals_returns_nan():
    assert math.isnan(qualmean(""))
    assert math.isnan(qualmean(b"", 0))


def test_mean_quality_filter_new():
    filter = MeanQualityFilter(20)
    assert filter.threshold == 20
    assert filter.total == 0
    assert filter.passed == 0


def test_minimum_length_filter_new():
    filter = MinimumLengthFilter(20)
    assert filter.threshold == 20
    assert filter.total == 0
    assert filter.passed == 0


@pytest.mark.parametrize(
    ["threshold", "qualities", "result"], (
        (30, chr(63), True),
        (30, chr(64), True),
        (30, chr(62), False),
        (20, quallist_to_string([20, 20, 20]), True),
        (20, quallist_to_string([19, 19, 19]), False),
        (10, quallist_to_string([9, 9, 9]), False),
        (8, quallist_to_string([9, 9, 9]), True),
        (20, "", False),
    ))
def test_mean_quality_filter(threshold, qualities, result):
    filter = MeanQualityFilter(threshold)
    assert filter(fastq_record(qualities)) is result
    assert filter.total == 1
    if result:
        assert filter.passed == 1
    else:
        assert filter.passed == 0


def test_mean_quality_filter_decoded_scores():
    filter = MeanQualityFilter(20)
    passing = Record("a", "AAA", array.array("B", [25, 25, 25]))
    failing = Record("b", "AAA", array.array("B", [15, 15, 15]))
    assert filter(passing)
    assert not filter(failing)
    assert filter.total == 2
    assert filter.passed == 1


def test_mean_quality_filter_no_qualities():
    filter = MeanQualityFilter(0)
    assert not filter(Record("name", "ACGT"))


def test_mean_quality_filter_decoded_scores_too_high():
    filter = MeanQualityFilter(20)
    record = Record("read7", "AA", array.array("B", [30, 94]))
    with pytest.raises(MalformedRecordError) as error:
        filter(record)
    error.match("read7")
    error.match("outside of valid phred range")


@pytest.mark.parametrize(["threshold", "length", "result"], (
    (5, 5, True),
    (5, 4, False),
    (5, 6, True),
    (1, 0, False),
))
def test_minimum_length_filter(threshold, length, result):
    filter = MinimumLengthFilter(threshold)
    assert filter(Record("name", "A" * length)) is result


@pytest.mark.parametrize("quals", OUTSIDE_RANGE_PHREDS)
def test_outside_range(quals):
    filter = MeanQualityFilter(1)
    with pytest.raises(ValueError) as error:
        filter(fastq_record(quals))
    error.match("outside of valid phred range")


@pytest.mark.parametrize(["config", "names"], (
    (ThresholdConfig(), []),
    (ThresholdConfig(min_length=0), []),
    (ThresholdConfig(min_length=10), ["minimum length"]),
    (ThresholdConfig(min_avg_quality=0), ["mean quality"]),
    (ThresholdConfig(20, 7.5), ["minimum length", "mean quality"]),
))
def test_threshold_config_filters(config, names):
    assert [f.name for f in config.filters()] == names


@pytest.mark.parametrize(["min_length", "min_avg_quality"],
                         ((-1, None), (None, -0.5), (-1, -0.5)))
def test_threshold_config_negative(min_length, min_avg_quality):
    with pytest.raises(ConfigurationError):
        ThresholdConfig(min_length, min_avg_quality)
