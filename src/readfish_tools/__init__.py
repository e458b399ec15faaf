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
import argparse
import contextlib
import itertools
import logging
import os
import sys
from typing import AbstractSet, Iterable, Iterator, List, Optional, Union

from ._errors import ConfigurationError, MalformedRecordError
from ._filters import (
    DEFAULT_PHRED_SCORE_OFFSET,
    MeanQualityFilter,
    MinimumLengthFilter,
    ThresholdConfig,
    qualmean,
)
from ._output import (
    DEFAULT_COMPRESSION_LEVEL,
    Compression,
    Encoding,
    OutputSink,
    OutputTarget,
    output_paths,
)
from ._records import Record, read_unblocked_read_ids
from ._router import Decision, Router, SplitType
from ._sources import BamSource, FastqSource, SummarySource

__version__ = "0.1.0"

__all__ = [
    "split_records",
    "split_fastq",
    "split_summary",
    "split_bam",
    "read_unblocked_read_ids",
    "output_paths",
    "BamSource",
    "Compression",
    "ConfigurationError",
    "Decision",
    "Encoding",
    "FastqSource",
    "MalformedRecordError",
    "MeanQualityFilter",
    "MinimumLengthFilter",
    "OutputSink",
    "OutputTarget",
    "Record",
    "Router",
    "SplitType",
    "SummarySource",
    "ThresholdConfig",
    "qualmean",
    "DEFAULT_COMPRESSION_LEVEL",
    "DEFAULT_PHRED_SCORE_OFFSET",
]

UnblockedIds = Union[str, os.PathLike, AbstractSet[str]]


def _load_ids(unblocked_read_ids: UnblockedIds) -> AbstractSet[str]:
    if isinstance(unblocked_read_ids, (str, os.PathLike)):
        return read_unblocked_read_ids(unblocked_read_ids)
    return unblocked_read_ids


def split_records(source: Iterable[Record], router: Router,
                  sequenced: Optional[OutputSink],
                  unblocked: Optional[OutputSink]):
    """
    Stream all records of source into the sequenced and unblocked sinks.

    Every record that is not dropped by the router is written to exactly one
    of the sinks. Both sinks are closed afterwards, also when an error
    occurs. Output written before an error is left in place.

    :param source: Iterable of Record objects.
    :param router: Router that decides on the bucket for each record.
    :param sequenced: Sink for sequenced records. May be None if the router
    never routes records to it.
    :param unblocked: Sink for unblocked records. May be None if the router
    never routes records to it.
    """
    with contextlib.ExitStack() as output_stack:
        sinks = {}
        for decision, sink in ((Decision.SEQUENCED, sequenced),
                               (Decision.UNBLOCKED, unblocked)):
            if sink is not None:
                sinks[decision] = output_stack.enter_context(sink)
            elif router.requested(decision):
                raise ConfigurationError(
                    f"No output given for {decision.value} reads.")
        for record in source:
            decision = router.decide(record)
            if decision is not Decision.DROPPED:
                sinks[decision].write(record)


def _open_sinks(router: Router, target: OutputTarget,
                sequenced_path: Optional[str],
                unblocked_path: Optional[str],
                header=None,
                compression_level: int = DEFAULT_COMPRESSION_LEVEL,
                eager: bool = False):
    if sequenced_path is not None and sequenced_path == unblocked_path:
        raise ConfigurationError(
            f"Sequenced and unblocked output can not both be written to "
            f"{sequenced_path}.")
    sinks: List[Optional[OutputSink]] = []
    for decision, path in ((Decision.SEQUENCED, sequenced_path),
                           (Decision.UNBLOCKED, unblocked_path)):
        if path is None or not router.requested(decision):
            sinks.append(None)
            continue
        sinks.append(OutputSink(path, target, header=header,
                                compression_level=compression_level))
    if eager or target.framed:
        # Opened outputs exist even when no record is routed to them. Framed
        # outputs also get their header now.
        with contextlib.ExitStack() as opened:
            for sink in sinks:
                if sink is not None:
                    sink.open()
                    opened.callback(sink.close)
            opened.pop_all()
    return sinks


def split_fastq(unblocked_read_ids: UnblockedIds,
                input_files: List[str],
                sequenced_path: str,
                unblocked_path: Optional[str] = None,
                compression: Compression = Compression.NONE,
                compression_level: int = DEFAULT_COMPRESSION_LEVEL) -> Router:
    """
    Split FASTQ files into sequenced and unblocked reads.

    :param unblocked_read_ids: Path to the unblocked read ids file, or a set
    of ids.
    :param input_files: FASTQ input filenames. Compressed files are handled
    automatically. Records of all files end up in the same outputs.
    :param sequenced_path: Output for reads that were sequenced.
    :param unblocked_path: Output for unblocked reads. Unblocked reads are
    discarded when not given.
    """
    split_type = (SplitType.ALL if unblocked_path is not None
                  else SplitType.SEQUENCED_ONLY)
    source = FastqSource(input_files)
    target = OutputTarget.default_for(Encoding.FASTQ, compression)
    target.check_source(source)
    router = Router(_load_ids(unblocked_read_ids), split_type)
    sequenced, unblocked = _open_sinks(router, target, sequenced_path,
                                       unblocked_path,
                                       compression_level=compression_level)
    split_records(source, router, sequenced, unblocked)
    return router


def split_summary(unblocked_read_ids: UnblockedIds,
                  summary: str,
                  sequenced_path: str,
                  unblocked_path: Optional[str] = None) -> Router:
    """
    Split a sequencing summary into sequenced and unblocked rows.

    The header is written to each output, even if no rows follow.
    """
    split_type = (SplitType.ALL if unblocked_path is not None
                  else SplitType.SEQUENCED_ONLY)
    source = SummarySource(summary)
    target = OutputTarget(Encoding.SUMMARY)
    target.check_source(source)
    router = Router(_load_ids(unblocked_read_ids), split_type)
    sequenced, unblocked = _open_sinks(router, target, sequenced_path,
                                       unblocked_path, header=source.header)
    split_records(source, router, sequenced, unblocked)
    return router


def _check_first_qualities(source: Iterable[Record]) -> Iterator[Record]:
    """
    Fail before any output exists when the first read has no qualities.

    Returns an iterator over all records, the first one included.
    """
    records = iter(source)
    first = next(records, None)
    if first is None:
        return records
    if first.qualities is None:
        raise ConfigurationError(
            f"Read {first.identifier} has no qualities, the input can not be "
            f"written as {Encoding.FASTQ}.")
    return itertools.chain([first], records)


def split_bam(unblocked_read_ids: UnblockedIds,
              bam_file: str,
              sequenced_path: Optional[str],
              unblocked_path: Optional[str],
              split_type: SplitType = SplitType.SEQUENCED_ONLY,
              thresholds: ThresholdConfig = ThresholdConfig(),
              target: OutputTarget = OutputTarget.default_for(Encoding.BAM),
              compression_level: int = DEFAULT_COMPRESSION_LEVEL) -> Router:
    """
    Split a BAM file into sequenced and unblocked reads.

    Reads can be filtered on length and average quality and written as BAM,
    FASTQ or FASTA.

    :param unblocked_read_ids: Path to the unblocked read ids file, or a set
    of ids.
    :param bam_file: Input BAM file.
    :param sequenced_path: Output for sequenced reads. Only used when the
    split type includes sequenced reads.
    :param unblocked_path: Output for unblocked reads. Only used when the
    split type includes unblocked reads.
    :param split_type: Which of the buckets are written.
    :param thresholds: Minimum length and average quality.
    :param target: Encoding and compression of both outputs.

    Outputs for the buckets named by the split type are created before the
    first read, so they exist even when no read is routed to them.
    """
    source = BamSource(bam_file)
    target.check_source(source)
    records: Iterable[Record] = source
    if target.encoding is Encoding.FASTQ:
        records = _check_first_qualities(source)
    router = Router(_load_ids(unblocked_read_ids), split_type,
                    thresholds.filters())
    header = source.header if target.encoding is Encoding.BAM else None
    sequenced, unblocked = _open_sinks(router, target, sequenced_path,
                                       unblocked_path, header=header,
                                       compression_level=compression_level,
                                       eager=True)
    split_records(records, router, sequenced, unblocked)
    return router


def initiate_logger(verbose: int = 0, quiet: int = 0):
    log_level = logging.INFO - 10 * (verbose - quiet)
    logger = logging.getLogger("readfish-tools")
    logger.setLevel(log_level)
    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    formatter = logging.Formatter(
        "{asctime}:{levelname}:{name}: {message}",
        datefmt="%m/%d/%Y %I:%M:%S",
        style="{")
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)


def argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser()
    parser.description = ("Split the output of a readfish run into "
                          "sequenced and unblocked reads.")
    parser.add_argument("--verbose", action="count", default=0,
                        help="Report stats on individual filters.")
    parser.add_argument("--quiet", action="count", default=0,
                        help="Turn of logging output.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    split_fq = subparsers.add_parser(
        "split-fq", help="Split FASTQ into sequenced and unblocked.")
    split_fq.add_argument("-p", "--prefix", default="",
                          help="Output file prefix.")
    split_fq.add_argument("-a", "--write-unblocked", action="store_true",
                          help="Write unblocked reads as well.")
    split_fq.add_argument("unblocked_read_ids",
                          help="Unblocked read ids from readfish.")
    split_fq.add_argument("input_fastq", nargs="+",
                          help="Input FASTQ files. Compression format "
                               "automatically detected.")

    split_ss = subparsers.add_parser(
        "split-ss",
        help="Split a sequencing summary into sequenced and unblocked.")
    split_ss.add_argument("-p", "--prefix", default="",
                          help="Output file prefix.")
    split_ss.add_argument("-a", "--write-unblocked", action="store_true",
                          help="Write unblocked rows as well.")
    split_ss.add_argument("-u", "--unblocked-read-ids", required=True,
                          help="Unblocked read ids from readfish.")
    split_ss.add_argument("-s", "--sequencing-summary", required=True,
                          help="sequencing_summary.txt file from MinKNOW.")

    split_bam_parser = subparsers.add_parser(
        "split-bam", help="Split a BAM file into sequenced and unblocked.")
    split_bam_parser.add_argument("-p", "--prefix", default="",
                                  help="Output file prefix.")
    split_bam_parser.add_argument("-u", "--unblocked-read-ids", required=True,
                                  help="Unblocked read ids from readfish.")
    split_bam_parser.add_argument("-b", "--bam-file", required=True,
                                  help="BAM file containing the reads to "
                                       "split.")
    split_bam_parser.add_argument(
        "-s", "--split-type", type=SplitType, choices=list(SplitType),
        default=SplitType.SEQUENCED_ONLY,
        help=f"Write only sequenced reads, unblocked reads, or both. "
             f"Default: {SplitType.SEQUENCED_ONLY}.")
    split_bam_parser.add_argument(
        "-q", "--qual-thresh", type=float,
        help="Minimum average read quality. Reads below it are dropped.")
    split_bam_parser.add_argument(
        "-l", "--length-thresh", type=int, default=0,
        help="Minimum read length. Shorter reads are dropped. Default: 0.")
    split_bam_parser.add_argument(
        "--emit-type", type=Encoding,
        choices=[Encoding.BAM, Encoding.FASTQ, Encoding.FASTA],
        default=Encoding.BAM,
        help=f"Output format. Default: {Encoding.BAM}.")
    split_bam_parser.add_argument(
        "-c", "--compression", type=Compression, choices=list(Compression),
        help=f"Output compression. Default: {Compression.BGZIP} for BAM, "
             f"{Compression.NONE} otherwise.")
    split_bam_parser.add_argument(
        "--compression-level", type=int, default=DEFAULT_COMPRESSION_LEVEL,
        help=f"Compression level for gzipped output. "
             f"Default: {DEFAULT_COMPRESSION_LEVEL}")
    return parser


def _report(router: Router, sequenced: Optional[str],
            unblocked: Optional[str]):
    log = logging.getLogger("readfish-tools")
    total = router.total
    log.info(f"processed {total} reads.")
    for decision, path in ((Decision.SEQUENCED, sequenced),
                           (Decision.UNBLOCKED, unblocked),
                           (Decision.DROPPED, None)):
        count = router.counts[decision]
        percentage = count * 100 / total if total else 0.0
        where = f" -> {path}" if path and count else ""
        log.info(f"{decision.value}: {count} ({percentage:.2f}%){where}")
    for filter_func in router.filters:
        log.debug(f"{filter_func.name}: "
                  f"{filter_func.total} processed, {filter_func.passed} "
                  f"passed")


def _run(args: argparse.Namespace):
    log = logging.getLogger("readfish-tools")
    if args.command == "split-fq":
        sequenced, unblocked = output_paths(
            args.prefix, OutputTarget(Encoding.FASTQ))
        unblocked = unblocked if args.write_unblocked else None
        log.info(f"input files: {', '.join(args.input_fastq)}")
        router = split_fastq(args.unblocked_read_ids, args.input_fastq,
                             sequenced, unblocked)
    elif args.command == "split-ss":
        sequenced, unblocked = output_paths(
            args.prefix, OutputTarget(Encoding.SUMMARY))
        unblocked = unblocked if args.write_unblocked else None
        log.info(f"input file: {args.sequencing_summary}")
        router = split_summary(args.unblocked_read_ids,
                               args.sequencing_summary, sequenced, unblocked)
    else:
        target = OutputTarget.default_for(args.emit_type, args.compression)
        thresholds = ThresholdConfig(args.length_thresh, args.qual_thresh)
        sequenced, unblocked = output_paths(args.prefix, target)
        log.info(f"input file: {args.bam_file}")
        log.info(f"split type: {args.split_type}, output: "
                 f"{target.encoding} ({target.compression})")
        filters = thresholds.filters()
        for filter_func in filters:
            log.info(f"{filter_func.name}: {filter_func.threshold}")
        if not filters:
            log.info("No filters were applied.")
        router = split_bam(args.unblocked_read_ids, args.bam_file,
                           sequenced, unblocked, args.split_type,
                           thresholds, target, args.compression_level)
    _report(router, sequenced, unblocked)


def main(argv: Optional[List[str]] = None):
    args = argument_parser().parse_args(argv)
    initiate_logger(args.verbose, args.quiet)
    try:
        _run(args)
    except (ConfigurationError, MalformedRecordError, OSError) as error:
        logging.getLogger("readfish-tools").error(error)
        sys.exit(1)


if __name__ == "__main__":  # pragma: no cover
    main()
