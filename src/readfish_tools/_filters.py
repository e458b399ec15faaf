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
"""Per-record filters on read length and average read quality."""
import dataclasses
import math
from typing import List, Optional, Union

from ._abstracts import Filter
from ._errors import ConfigurationError, MalformedRecordError
from ._records import Qualities, Record

DEFAULT_PHRED_SCORE_OFFSET = 33
# Highest score that can be encoded as a printable ASCII character.
MAXIMUM_PHRED_SCORE = 126 - DEFAULT_PHRED_SCORE_OFFSET


def qualmean(phred_scores: Qualities,
             phred_offset: int = DEFAULT_PHRED_SCORE_OFFSET) -> float:
    """
    Average quality of a read, averaged as error probabilities.

    Each score is converted to its error probability, the probabilities are
    averaged and the average is converted back to a phred score.

    :param phred_scores: ASCII encoded quality string or a sequence of
    integer scores.
    :param phred_offset: Value that is subtracted from each score. Use 0 for
    scores that are already decoded.
    """
    if isinstance(phred_scores, str):
        if not phred_scores.isascii():
            raise ValueError("phred_scores must be ASCII encoded.")
        phred_scores = phred_scores.encode("ascii")
    if len(phred_scores) == 0:
        return math.nan
    lowest = min(phred_scores)
    highest = max(phred_scores)
    if lowest < phred_offset or highest > phred_offset + MAXIMUM_PHRED_SCORE:
        raise ValueError(
            f"Value outside of valid phred range: "
            f"{lowest if lowest < phred_offset else highest}. Valid range "
            f"for offset {phred_offset}: {phred_offset}-"
            f"{phred_offset + MAXIMUM_PHRED_SCORE}.")
    sum_probabilities = math.fsum(10 ** ((score - phred_offset) / -10)
                                  for score in phred_scores)
    average = sum_probabilities / len(phred_scores)
    return -10 * math.log10(average)


class _LengthFilter(Filter):
    def __init__(self, threshold: int):
        self.threshold = threshold
        self.passed = 0
        self.total = 0


class _QualityFilter(Filter):
    def __init__(self, threshold: float):
        self.threshold = threshold
        self.passed = 0
        self.total = 0


class MinimumLengthFilter(_LengthFilter):
    name = "minimum length"

    def passes_filter(self, record: Record) -> bool:
        return len(record) >= self.threshold


class MeanQualityFilter(_QualityFilter):
    name = "mean quality"

    def passes_filter(self, record: Record) -> bool:
        # Reads without qualities can not prove their quality.
        if not record.qualities:
            return False
        try:
            quality = qualmean(record.qualities, record.phred_offset)
        except ValueError as error:
            raise MalformedRecordError(
                f"Read {record.identifier}: {error}") from error
        # The mean of reads scoring exactly the threshold can be off by a
        # rounding error.
        return (quality >= self.threshold or
                math.isclose(quality, self.threshold))


@dataclasses.dataclass(frozen=True)
class ThresholdConfig:
    """Minimum length and minimum average quality. None disables a filter."""
    min_length: Optional[int] = None
    min_avg_quality: Optional[Union[int, float]] = None

    def __post_init__(self):
        if self.min_length is not None and self.min_length < 0:
            raise ConfigurationError(
                f"Minimum length can not be negative, got {self.min_length}.")
        if self.min_avg_quality is not None and self.min_avg_quality < 0:
            raise ConfigurationError(
                f"Minimum average quality can not be negative, got "
                f"{self.min_avg_quality}.")

    def filters(self) -> List[Filter]:
        """Filters ordered from low cost to high cost."""
        filters: List[Filter] = []
        if self.min_length:
            filters.append(MinimumLengthFilter(self.min_length))
        if self.min_avg_quality is not None:
            filters.append(MeanQualityFilter(self.min_avg_quality))
        return filters
