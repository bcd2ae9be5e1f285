from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass
from typing import Iterable, Optional, Tuple

import pysam

from .alignment import AlignmentEntry, iter_alignment_entries
from .models import Edit, Variant

logger = logging.getLogger(__name__)


@dataclass
class ValidateOptions:
    """Options for read-level variant validation.

    merge:
        When True, a read carrying another edit right next to the target
        (a *merge* variant) is not counted as support.
    """

    merge: bool = False


def edits_conflict(observed: Edit, target: Edit, merge: bool) -> bool:
    """Whether an edit observed next to the target invalidates the target call."""
    if observed.is_identity() or target.is_identity():
        return False
    if observed.is_delins() and target.is_sub():
        return merge
    if observed.is_delins() or target.is_delins():
        return True
    if (
        (observed.is_del() != target.is_del())
        or (observed.is_ins() != target.is_ins())
        or observed.is_sub()
        or target.is_sub()
    ):
        return merge
    return True


def observed_edit(entry: AlignmentEntry) -> Edit:
    if entry.is_insertion:
        return Edit.INS
    if entry.is_deletion:
        return Edit.DEL
    if not entry.is_seq_match:
        return Edit.SUB
    return Edit.IDENTITY


def anchor_span(variant: Variant) -> Tuple[int, int]:
    """1-based reference span a read must cover to be informative.

    Includes the anchor base preceding the variant; an insertion is
    anchored on ``start`` itself.
    """
    first = variant.start if variant.edit.is_ins() else variant.start - 1
    return max(first, 1), variant.end


def validate_entries(
    entries: Iterable[AlignmentEntry],
    variant: Variant,
    options: Optional[ValidateOptions] = None,
) -> Optional[bool]:
    """Decide whether a read's alignment entries support ``variant``.

    ``entries`` is consumed once, in order. Returns None when no entry
    reaches the variant, otherwise True (support) or False (refute).
    """
    options = options or ValidateOptions()
    edit = variant.edit

    # Keep from the anchor base on: the base before the variant, or the
    # base an insertion follows. Entry positions are 0-based.
    first_pos0 = variant.start - 1 if edit.is_ins() else variant.start - 2
    it = itertools.dropwhile(lambda e: e.ref_pos is None or e.ref_pos < first_pos0, entries)

    anchor = next(it, None)
    if anchor is None:
        return None
    if edits_conflict(observed_edit(anchor), edit, options.merge):
        return False

    # Without reference bases a deletion or delins matches any base over
    # its span.
    ref_wildcard = variant.refseq is None and (edit.is_del() or edit.is_delins())
    if variant.refseq is not None:
        refseq = variant.refseq
    elif edit.is_del():
        refseq = "N" * variant.affected_length
    elif edit.is_delins():
        refseq = "N" * (variant.end - variant.start + 1)
    else:
        refseq = ""
    altseq = variant.altseq or ""

    ref_iter = iter(refseq)
    alt_iter = iter(altseq)
    ref_nt = next(ref_iter, None)
    alt_nt = next(alt_iter, None)

    if ref_nt is None and alt_nt is None and not edit.is_del():
        return True

    for entry in it:
        if ref_nt is None and alt_nt is None:
            # Variant fully observed; the following base decides.
            return not edits_conflict(observed_edit(entry), edit, options.merge)

        if entry.is_insertion:
            if entry.read_nt != alt_nt:
                return False
            alt_nt = next(alt_iter, None)
        elif entry.is_deletion:
            if entry.ref_nt is None:
                return False
            ref_nt = next(ref_iter, None)
        elif entry.read_nt == alt_nt and (
            entry.ref_nt == ref_nt or (ref_wildcard and ref_nt is not None)
        ):
            ref_nt = next(ref_iter, None)
            alt_nt = next(alt_iter, None)
        else:
            return False

    return ref_nt is None and alt_nt is None


def validate_read(
    read: pysam.AlignedSegment,
    variant: Variant,
    options: Optional[ValidateOptions] = None,
    *,
    reference: Optional[pysam.FastaFile] = None,
) -> Optional[bool]:
    """Validate read support for ``variant``.

    Returns None for unmapped reads and for reads whose aligned span does
    not cover the variant together with its anchor base. pysam positions
    are 0-based while variants are 1-based.
    """
    if read.is_unmapped or read.reference_start is None or read.reference_end is None:
        return None

    span_start, span_end = anchor_span(variant)
    if read.reference_start + 1 > span_start or read.reference_end < span_end:
        return None

    return validate_entries(iter_alignment_entries(read, reference=reference), variant, options)
