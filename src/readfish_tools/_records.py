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
"""Records and the unblocked read ID set shared by all input modalities."""
from typing import Any, FrozenSet, Optional, Sequence, Tuple, Union

import xopen  # type: ignore

# Quality scores as found in the input: either the encoded FASTQ string or an
# array of already decoded scores.
Qualities = Union[str, bytes, Sequence[int]]

DUPLEX_SEPARATOR = ";"


def read_unblocked_read_ids(filepath: str) -> FrozenSet[str]:
    """
    Read a newline delimited file of read identifiers into a set.

    The whole file is held in memory. Blank lines are ignored. Compressed
    files are handled automatically.
    """
    with xopen.xopen(filepath, mode="rt", threads=0) as id_h:
        return frozenset(stripped for stripped in (line.strip() for line in id_h)
                         if stripped)


class Record:
    """
    A single read as produced by one of the record sources.

    :param identifier: Read identifier used for the membership lookup.
    :param sequence: Nucleotide sequence, None when the input has none.
    :param qualities: Per-base qualities, None when the input has none.
    :param phred_offset: Offset to subtract from ``qualities`` to get phred
    scores. 33 for FASTQ strings, 0 for decoded BAM scores.
    :param native: The object decoded by the source. It is written back
    unchanged when the output format equals the input format.
    :param duplex: The identifier joins the ids of the parent reads of a
    duplex read, separated by a semicolon.
    """
    __slots__ = ("identifier", "sequence", "qualities", "phred_offset",
                 "native", "duplex")

    def __init__(self, identifier: str,
                 sequence: Optional[str] = None,
                 qualities: Optional[Qualities] = None,
                 phred_offset: int = 0,
                 native: Any = None,
                 duplex: bool = False):
        self.identifier = identifier
        self.sequence = sequence
        self.qualities = qualities
        self.phred_offset = phred_offset
        self.native = native
        self.duplex = duplex

    def __len__(self) -> int:
        return len(self.sequence) if self.sequence else 0

    def __repr__(self) -> str:
        return (f"{self.__class__.__name__}(identifier={self.identifier!r}, "
                f"sequence={self.sequence!r})")

    @property
    def membership_keys(self) -> Tuple[str, ...]:
        if self.duplex:
            return tuple(self.identifier.split(DUPLEX_SEPARATOR))
        return (self.identifier,)

    def phred_scores(self) -> Optional[bytes]:
        """Decoded per-base quality scores, or None if there are none."""
        if self.qualities is None:
            return None
        if isinstance(self.qualities, str):
            encoded = self.qualities.encode("ascii")
        else:
            encoded = bytes(self.qualities)
        if self.phred_offset:
            return bytes(score - self.phred_offset for score in encoded)
        return encoded
