from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, Optional, Sequence, Tuple

import pysam
from tqdm import tqdm

from .link import Link
from .models import Variant
from .validate import ValidateOptions, validate_read
from .validation import LinkDataError, check_bam_index, check_reference_contig, resolve_contig

logger = logging.getLogger(__name__)

VERDICT_LABELS = {True: "support", False: "refute", None: "not_applicable"}


def merge_region(
    references: Sequence[str],
    first: Variant,
    second: Variant,
    *,
    allow_remap: bool = True,
) -> Tuple[str, int, int]:
    """0-based half-open region spanning both variants."""
    if first.contig != second.contig:
        raise LinkDataError(f"Inconsistent contig: {first.contig} and {second.contig}.")
    contig = resolve_contig(first.contig, references, allow_remap=allow_remap)
    start0 = min(first.start, second.start) - 1
    end0 = max(first.end, second.end)
    return contig, max(start0, 0), end0


def _verdict_counts() -> Dict[str, int]:
    return {"support": 0, "refute": 0, "not_applicable": 0}


@dataclass
class LinkRun:
    """Result of linking two variants over a set of reads."""

    first: Variant
    second: Variant
    options: ValidateOptions
    link: Link = field(default_factory=Link)
    counts: Dict[str, int] = field(
        default_factory=lambda: {
            "reads_total": 0,
            "reads_unmapped": 0,
            "reads_skipped_secondary": 0,
            "reads_skipped_supplementary": 0,
            "reads_skipped_duplicates": 0,
            "reads_not_applicable": 0,
            "reads_linked": 0,
        }
    )
    verdicts: Dict[str, Dict[str, int]] = field(
        default_factory=lambda: {"first": _verdict_counts(), "second": _verdict_counts()}
    )
    region: Optional[Tuple[str, int, int]] = None
    bam_path: Optional[str] = None
    runtime_seconds: float = 0.0

    def summary(self) -> Dict[str, Any]:
        return {
            "bam_path": self.bam_path,
            "region": list(self.region) if self.region is not None else None,
            "merge": bool(self.options.merge),
            "first": self.first.to_dict(),
            "second": self.second.to_dict(),
            "counts": dict(self.counts),
            "verdicts": {k: dict(v) for k, v in self.verdicts.items()},
            "link": self.link.to_dict(),
            "runtime_seconds": float(self.runtime_seconds),
        }


def _skip_reason(
    read: pysam.AlignedSegment,
    *,
    keep_duplicates: bool,
    include_secondary: bool,
    include_supplementary: bool,
) -> Optional[str]:
    if read.is_unmapped:
        return "reads_unmapped"
    if read.is_secondary and not include_secondary:
        return "reads_skipped_secondary"
    if read.is_supplementary and not include_supplementary:
        return "reads_skipped_supplementary"
    if read.is_duplicate and not keep_duplicates:
        return "reads_skipped_duplicates"
    return None


def link_reads(
    reads: Iterable[pysam.AlignedSegment],
    first: Variant,
    second: Variant,
    options: Optional[ValidateOptions] = None,
    *,
    reference: Optional[pysam.FastaFile] = None,
    keep_duplicates: bool = False,
    include_secondary: bool = False,
    include_supplementary: bool = False,
) -> LinkRun:
    """Tally linkage evidence over ``reads``.

    A read is counted only when it is informative for both variants.
    """
    options = options or ValidateOptions()
    run = LinkRun(first=first, second=second, options=options)

    for read in reads:
        run.counts["reads_total"] += 1
        reason = _skip_reason(
            read,
            keep_duplicates=keep_duplicates,
            include_secondary=include_secondary,
            include_supplementary=include_supplementary,
        )
        if reason is not None:
            run.counts[reason] += 1
            continue

        f1 = validate_read(read, first, options, reference=reference)
        f2 = validate_read(read, second, options, reference=reference)
        run.verdicts["first"][VERDICT_LABELS[f1]] += 1
        run.verdicts["second"][VERDICT_LABELS[f2]] += 1

        if f1 is None or f2 is None:
            run.counts["reads_not_applicable"] += 1
            continue

        run.link.add(f1, f2)
        run.counts["reads_linked"] += 1

    return run


def link_bam(
    *,
    bam_path: str,
    first: Variant,
    second: Variant,
    options: Optional[ValidateOptions] = None,
    reference_path: Optional[str] = None,
    keep_duplicates: bool = False,
    include_secondary: bool = False,
    include_supplementary: bool = False,
    allow_remap: bool = True,
    progress: bool = True,
) -> LinkRun:
    """Fetch reads spanning both variants from an indexed BAM and link them."""
    t0 = time.time()
    check_bam_index(bam_path)

    reference = pysam.FastaFile(reference_path) if reference_path is not None else None
    try:
        with pysam.AlignmentFile(bam_path, "rb") as bam:
            region = merge_region(bam.references, first, second, allow_remap=allow_remap)
            if reference is not None:
                check_reference_contig(region[0], reference.references, reference_path)
            logger.info("Fetching reads in %s:%d-%d", *region)

            it: Iterable[pysam.AlignedSegment] = bam.fetch(region[0], region[1], region[2])
            if progress:
                it = tqdm(it, unit="read", desc="Linking reads")

            run = link_reads(
                it,
                first,
                second,
                options,
                reference=reference,
                keep_duplicates=keep_duplicates,
                include_secondary=include_secondary,
                include_supplementary=include_supplementary,
            )
    finally:
        if reference is not None:
            reference.close()

    run.region = region
    run.bam_path = str(bam_path)
    run.runtime_seconds = time.time() - t0
    logger.info(
        "Linked %d of %d reads: %s",
        run.counts["reads_linked"],
        run.counts["reads_total"],
        run.link.conclusion(),
    )
    return run


def iter_read_verdicts(
    *,
    bam_path: str | Path,
    variant: Variant,
    options: Optional[ValidateOptions] = None,
    reference_path: Optional[str] = None,
    allow_remap: bool = True,
) -> Iterator[Tuple[pysam.AlignedSegment, Optional[bool]]]:
    """Yield ``(read, verdict)`` for every read overlapping ``variant``."""
    check_bam_index(bam_path)

    reference = pysam.FastaFile(reference_path) if reference_path is not None else None
    try:
        with pysam.AlignmentFile(str(bam_path), "rb") as bam:
            contig, start0, end0 = merge_region(bam.references, variant, variant, allow_remap=allow_remap)
            if reference is not None:
                check_reference_contig(contig, reference.references, reference_path)
            for read in bam.fetch(contig, start0, end0):
                yield read, validate_read(read, variant, options, reference=reference)
    finally:
        if reference is not None:
            reference.close()
