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
"""Record sources for FASTQ files, sequencing summaries and BAM files."""
import functools
import logging
from typing import Iterator, List

import dnaio

import pysam

import xopen  # type: ignore

from ._abstracts import RecordSource
from ._errors import MalformedRecordError
from ._filters import DEFAULT_PHRED_SCORE_OFFSET
from ._output import Encoding
from ._records import Record

log = logging.getLogger("readfish-tools")

SUMMARY_KEY_COLUMN = b"read_id"
SAM_VERSION = "1.6"


class FastqSource(RecordSource):
    """
    One or more FASTQ files, read one after the other.

    Compression is detected automatically. The read identifier is the part
    of the header before the first whitespace.
    """
    has_sequence = True
    has_qualities = True
    encodings = frozenset((Encoding.FASTQ, Encoding.FASTA))

    def __init__(self, input_files: List[str]):
        self.input_files = list(input_files)

    def __iter__(self) -> Iterator[Record]:
        for filepath in self.input_files:
            yield from self._file_to_records(filepath)

    @staticmethod
    def _file_to_records(filepath: str) -> Iterator[Record]:
        opener = functools.partial(xopen.xopen, threads=0)
        try:
            with dnaio.open(filepath, fileformat="fastq",
                            opener=opener) as record_h:  # type: ignore
                for record in record_h:
                    yield Record(record.id, record.sequence,
                                 record.qualities, DEFAULT_PHRED_SCORE_OFFSET,
                                 native=record)
        except dnaio.FileFormatError as error:
            raise MalformedRecordError(
                f"Invalid FASTQ record in {filepath}: {error}") from error


class SummarySource(RecordSource):
    """
    A tab separated sequencing summary.

    The header is read when the source is created so that outputs can be
    framed before the first row is read. Rows are passed on as raw lines.
    """
    has_sequence = False
    has_qualities = False
    encodings = frozenset((Encoding.SUMMARY,))

    def __init__(self, filepath: str, key_column: bytes = SUMMARY_KEY_COLUMN):
        self.filepath = filepath
        with xopen.xopen(filepath, mode="rb", threads=0) as summary_h:
            header = summary_h.readline()
        if not header.strip():
            raise MalformedRecordError(f"{filepath} has no header line.")
        columns = header.rstrip(b"\r\n").split(b"\t")
        try:
            self.key_index = columns.index(key_column)
        except ValueError:
            raise MalformedRecordError(
                f"{filepath} has no {key_column.decode()} column. Columns: "
                f"{', '.join(c.decode() for c in columns)}.") from None
        self.column_count = len(columns)
        self.header = header if header.endswith(b"\n") else header + b"\n"

    def __iter__(self) -> Iterator[Record]:
        with xopen.xopen(self.filepath, mode="rb", threads=0) as summary_h:
            summary_h.readline()
            for line_number, line in enumerate(summary_h, start=2):
                if not line.strip():
                    continue
                fields = line.rstrip(b"\r\n").split(b"\t")
                if len(fields) != self.column_count:
                    raise MalformedRecordError(
                        f"{self.filepath}, line {line_number}: expected "
                        f"{self.column_count} columns, found {len(fields)}.")
                if not line.endswith(b"\n"):
                    line += b"\n"
                yield Record(fields[self.key_index].decode(), native=line)


class BamSource(RecordSource):
    """
    A BAM file, aligned or unaligned.

    Secondary and supplementary alignments are skipped so that every read is
    routed once. Reads with a ``dx`` tag are duplex reads whose identifier
    may join the identifiers of both parent reads.
    """
    has_sequence = True
    has_qualities = True
    encodings = frozenset((Encoding.BAM, Encoding.FASTQ, Encoding.FASTA))

    def __init__(self, filepath: str):
        self.filepath = filepath
        with pysam.AlignmentFile(filepath, "rb", check_sq=False) as bam:
            # Writing needs a non-empty header.
            self.header = bam.header.to_dict() or {"HD": {"VN": SAM_VERSION}}
        self.skipped = 0

    def __iter__(self) -> Iterator[Record]:
        self.skipped = 0
        with pysam.AlignmentFile(self.filepath, "rb", check_sq=False) as bam:
            for segment in bam:
                if segment.is_secondary or segment.is_supplementary:
                    self.skipped += 1
                    continue
                yield Record(segment.query_name, segment.query_sequence,
                             segment.query_qualities, native=segment,
                             duplex=segment.has_tag("dx"))
        if self.skipped:
            log.info(f"Skipped {self.skipped} secondary and supplementary "
                     f"alignments in {self.filepath}.")
