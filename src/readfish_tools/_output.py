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
"""Serialise accepted records into the requested format and compression."""
import dataclasses
import enum
from typing import Any, Optional, Sequence, Tuple

import dnaio

import pysam

import xopen  # type: ignore

from ._abstracts import RecordSource
from ._errors import ConfigurationError, MalformedRecordError
from ._filters import DEFAULT_PHRED_SCORE_OFFSET
from ._records import Record

DEFAULT_COMPRESSION_LEVEL = 2


class Encoding(enum.Enum):
    BAM = "bam"
    FASTQ = "fastq"
    FASTA = "fasta"
    # Rows of a sequencing summary, written verbatim.
    SUMMARY = "summary"

    def __str__(self):
        return self.value


class Compression(enum.Enum):
    NONE = "uncompressed"
    GZIP = "gzipped"
    BGZIP = "bgzipped"

    def __str__(self):
        return self.value


EXTENSIONS = {
    Encoding.BAM: ".bam",
    Encoding.FASTQ: ".fastq",
    Encoding.FASTA: ".fasta",
    Encoding.SUMMARY: ".txt",
}

# Encodings whose files start with a header, even when no records follow.
FRAMED_ENCODINGS = frozenset((Encoding.BAM, Encoding.SUMMARY))


@dataclasses.dataclass(frozen=True)
class OutputTarget:
    """The encoding and compression of one output file."""
    encoding: Encoding
    compression: Compression = Compression.NONE

    def __post_init__(self):
        if (self.encoding is Encoding.BAM and
                self.compression is not Compression.BGZIP):
            raise ConfigurationError(
                f"BAM output must be {Compression.BGZIP}, got "
                f"{self.compression}.")

    @classmethod
    def default_for(cls, encoding: Encoding,
                    compression: Optional[Compression] = None
                    ) -> "OutputTarget":
        """Target for ``encoding``, defaulting to its usual compression."""
        if compression is None:
            if encoding is Encoding.BAM:
                compression = Compression.BGZIP
            else:
                compression = Compression.NONE
        return cls(encoding, compression)

    @property
    def framed(self) -> bool:
        return self.encoding in FRAMED_ENCODINGS

    @property
    def extension(self) -> str:
        extension = EXTENSIONS[self.encoding]
        if (self.encoding is not Encoding.BAM and
                self.compression is not Compression.NONE):
            extension += ".gz"
        return extension

    def check_source(self, source: RecordSource):
        """Raise a ConfigurationError if ``source`` can not be written here."""
        if self.encoding not in source.encodings:
            raise ConfigurationError(
                f"{type(source).__name__} can not be written as "
                f"{self.encoding}. Supported: "
                f"{', '.join(sorted(str(e) for e in source.encodings))}.")
        if self.encoding is Encoding.FASTQ and not source.has_qualities:
            raise ConfigurationError(
                f"{type(source).__name__} has no qualities, it can not be "
                f"written as {self.encoding}.")


def output_paths(prefix: str, target: OutputTarget) -> Tuple[str, str]:
    """Sequenced and unblocked output paths for ``prefix``."""
    if prefix:
        prefix += "."
    return (f"{prefix}sequenced{target.extension}",
            f"{prefix}unblocked{target.extension}")


def _qualitystring(phred_scores: Sequence[int],
                   phred_offset: int = DEFAULT_PHRED_SCORE_OFFSET) -> str:
    return bytes(score + phred_offset for score in phred_scores
                 ).decode("ascii")


def _forward_fields(record: Record) -> Tuple[str, Optional[str]]:
    """Sequence and quality string in the orientation of the original read."""
    native = record.native
    if isinstance(native, pysam.AlignedSegment):
        sequence = native.get_forward_sequence() or ""
        scores = native.get_forward_qualities()
    else:
        sequence = record.sequence or ""
        scores = record.phred_scores()
    qualities = None if scores is None else _qualitystring(scores)
    return sequence, qualities


def fastq_bytes(record: Record) -> bytes:
    if isinstance(record.native, dnaio.SequenceRecord):
        # Keep the complete header line of FASTQ input.
        return record.native.fastq_bytes()
    sequence, qualities = _forward_fields(record)
    if qualities is None:
        raise MalformedRecordError(
            f"Read {record.identifier} has no qualities, it can not be "
            f"written as {Encoding.FASTQ}.")
    return dnaio.SequenceRecord(
        record.identifier, sequence, qualities).fastq_bytes()


def fasta_bytes(record: Record) -> bytes:
    sequence, _ = _forward_fields(record)
    return f">{record.identifier}\n{sequence}\n".encode("ascii")


class SinkState(enum.Enum):
    UNOPENED = "unopened"
    OPEN = "open"
    CLOSED = "closed"


class OutputSink:
    """
    A single output file.

    The file is created on the first write, so a bucket that never receives a
    record leaves no file behind. Framed encodings (BAM and sequencing
    summaries) are the exception: call :meth:`open` to write their header
    before any records arrive.

    :param filepath: Path of the output file.
    :param target: Encoding and compression of the file.
    :param header: The BAM header as a dict for BAM output or the header line
    (bytes) for summary output.
    :param compression_level: Compression level for gzipped output.
    """

    def __init__(self, filepath: str, target: OutputTarget,
                 header: Any = None,
                 compression_level: int = DEFAULT_COMPRESSION_LEVEL):
        if target.framed and header is None:
            raise ConfigurationError(
                f"{target.encoding} output requires a header.")
        self.filepath = filepath
        self.target = target
        self.header = header
        self.compression_level = compression_level
        self.state = SinkState.UNOPENED
        self.written = 0
        self._handle: Any = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def __repr__(self):
        return (f"{self.__class__.__name__}({self.filepath!r}, "
                f"{self.target.encoding}, {self.target.compression}, "
                f"{self.state.value})")

    def _open_handle(self):
        if self.target.encoding is Encoding.BAM:
            return pysam.AlignmentFile(self.filepath, "wb",
                                       header=self.header)
        if self.target.compression is Compression.BGZIP:
            return pysam.BGZFile(self.filepath, "wb")
        if self.target.compression is Compression.GZIP:
            return xopen.xopen(self.filepath, mode="wb", threads=0,
                               compresslevel=self.compression_level,
                               format="gz")
        return xopen.xopen(self.filepath, mode="wb", threads=0)

    def open(self):
        if self.state is SinkState.CLOSED:
            raise ValueError(f"{self.filepath} is already closed.")
        if self.state is SinkState.OPEN:
            return
        self._handle = self._open_handle()
        self.state = SinkState.OPEN
        if self.target.encoding is Encoding.SUMMARY:
            self._handle.write(self.header)

    def write(self, record: Record):
        encoding = self.target.encoding
        if encoding is Encoding.BAM or encoding is Encoding.SUMMARY:
            data = record.native
        elif encoding is Encoding.FASTQ:
            data = fastq_bytes(record)
        else:
            data = fasta_bytes(record)
        if self.state is not SinkState.OPEN:
            self.open()
        self._handle.write(data)
        self.written += 1

    def close(self):
        if self.state is SinkState.OPEN:
            self._handle.close()
            self._handle = None
        self.state = SinkState.CLOSED
