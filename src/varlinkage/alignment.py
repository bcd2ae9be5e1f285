from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterator, Optional

import pysam

logger = logging.getLogger(__name__)


class EntryKind(Enum):
    MATCH = "match"
    MISMATCH = "mismatch"
    INSERTION = "insertion"
    DELETION = "deletion"


@dataclass(frozen=True)
class AlignmentEntry:
    """One step of read-to-reference correspondence.

    ``ref_pos`` is 0-based and ``None`` for insertions; ``read_pos`` is
    ``None`` for deletions. Bases are uppercase, ``None`` when unknown.
    """

    kind: EntryKind
    ref_pos: Optional[int]
    read_pos: Optional[int]
    ref_nt: Optional[str]
    read_nt: Optional[str]

    @property
    def is_insertion(self) -> bool:
        return self.kind is EntryKind.INSERTION

    @property
    def is_deletion(self) -> bool:
        return self.kind is EntryKind.DELETION

    @property
    def is_seq_match(self) -> bool:
        return self.kind is EntryKind.MATCH


def _reference_bases(
    read: pysam.AlignedSegment,
    reference: Optional[pysam.FastaFile],
) -> Optional[Dict[int, str]]:
    """Map 0-based reference positions covered by ``read`` to reference bases.

    Uses the MD tag when present, otherwise fetches from ``reference``.
    Returns None when neither source is available.
    """
    if read.has_tag("MD"):
        try:
            pairs = read.get_aligned_pairs(matches_only=False, with_seq=True)
        except ValueError as e:
            logger.debug("Unusable MD tag on %s: %s", read.query_name, e)
            return None
        # with_seq reports mismatched reference bases in lowercase
        return {r: b.upper() for _, r, b in pairs if r is not None and b is not None}

    if reference is not None and read.reference_name is not None:
        start0 = read.reference_start
        try:
            seq = reference.fetch(read.reference_name, start0, read.reference_end).upper()
        except (KeyError, ValueError) as e:
            logger.debug("No reference bases for %s: %s", read.query_name, e)
            return None
        return {start0 + i: b for i, b in enumerate(seq)}

    logger.debug("Read %s has no MD tag and no reference was given", read.query_name)
    return None


def iter_alignment_entries(
    read: pysam.AlignedSegment,
    *,
    reference: Optional[pysam.FastaFile] = None,
) -> Iterator[AlignmentEntry]:
    """Yield the alignment entries of ``read`` in reference order.

    Walks the CIGAR once. Soft/hard clips and padding produce no entries;
    reference skips (``N``) are reported as deletions without a reference
    base. Yields nothing when the read carries no usable alignment.
    """
    if read.is_unmapped or read.cigartuples is None:
        return
    seq = read.query_sequence
    if seq is None:
        return
    ref_bases = _reference_bases(read, reference)
    if ref_bases is None:
        return
    seq = seq.upper()

    ref_pos = read.reference_start
    query_pos = 0

    for op, length in read.cigartuples:
        if op in (0, 7, 8):  # M, =, X
            for i in range(length):
                rb = ref_bases.get(ref_pos + i)
                qb = seq[query_pos + i]
                kind = EntryKind.MATCH if rb == qb else EntryKind.MISMATCH
                yield AlignmentEntry(kind, ref_pos + i, query_pos + i, rb, qb)
            ref_pos += length
            query_pos += length
        elif op == 1:  # I
            for i in range(length):
                yield AlignmentEntry(EntryKind.INSERTION, None, query_pos + i, None, seq[query_pos + i])
            query_pos += length
        elif op == 2:  # D
            for i in range(length):
                yield AlignmentEntry(EntryKind.DELETION, ref_pos + i, None, ref_bases.get(ref_pos + i), None)
            ref_pos += length
        elif op == 3:  # N
            for i in range(length):
                yield AlignmentEntry(EntryKind.DELETION, ref_pos + i, None, None, None)
            ref_pos += length
        elif op == 4:  # S
            query_pos += length
        else:
            # H, P: consume neither
            continue
