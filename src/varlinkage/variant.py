"""Parsers for variant notations.

Two notations are understood:

HGVS-like
    ``contig:[g.]pos[_pos2][REF]EDIT[ALT]`` where ``EDIT`` is one of ``>``,
    ``ins``, ``delins`` or ``del``, e.g. ``1:12345A>G``,
    ``1:g.144852532_144852533insCCC`` or ``chr2:100_102del``.

VCF-like shorthand
    ``contig:posREF>ALT`` with both allele runs given, e.g.
    ``1:144852532G>GCCC``. The edit kind is recovered by comparing the two
    alleles textually.

Both return a :class:`~varlinkage.models.Variant`; malformed input raises
:class:`VariantParseError`.
"""

from __future__ import annotations

import logging
import re
from typing import Optional, Tuple

from .models import Edit, Variant, VariantFormat

logger = logging.getLogger(__name__)

_CONTIG_RE = re.compile(r"[^:]*")
_TYPE_MARKER_RE = re.compile(r"[a-z]\.")
_POSITION_RE = re.compile(r"(\d+)(?:_(\d+))?")
_SEQUENCE_RE = re.compile(r"[ACGTN]+")

# Tried in this order; ``delins`` must come before ``del``.
_EDIT_TAGS: Tuple[Tuple[str, Edit], ...] = (
    (">", Edit.SUB),
    ("ins", Edit.INS),
    ("delins", Edit.DELINS),
    ("del", Edit.DEL),
)


class VariantParseError(ValueError):
    """Raised when a variant string does not follow the expected notation."""

    def __init__(self, text: str, position: int, reason: str) -> None:
        self.text = text
        self.position = position
        self.reason = reason
        super().__init__(f"Cannot parse variant '{text}' at column {position}: {reason}")


class _Scanner:
    """Left-to-right cursor over a variant string."""

    def __init__(self, text: str) -> None:
        self.text = text
        self.pos = 0

    def match(self, pattern: re.Pattern) -> Optional[re.Match]:
        m = pattern.match(self.text, self.pos)
        if m is not None:
            self.pos = m.end()
        return m

    def literal(self, token: str) -> bool:
        if self.text.startswith(token, self.pos):
            self.pos += len(token)
            return True
        return False

    def error(self, reason: str) -> VariantParseError:
        return VariantParseError(self.text, self.pos, reason)

    def contig(self) -> str:
        start = self.pos
        self.match(_CONTIG_RE)
        name = self.text[start : self.pos]
        if not self.literal(":"):
            raise self.error("expected ':' after contig name")
        return name

    def position(self) -> Tuple[int, int]:
        m = self.match(_POSITION_RE)
        if m is None:
            raise self.error("expected a genomic position")
        start = int(m.group(1))
        end = int(m.group(2)) if m.group(2) is not None else start
        if end < start:
            raise VariantParseError(self.text, m.start(), f"end {end} is before start {start}")
        return start, end

    def sequence(self) -> Optional[str]:
        m = self.match(_SEQUENCE_RE)
        return m.group(0) if m is not None else None

    def edit(self) -> Edit:
        for tag, edit in _EDIT_TAGS:
            if self.literal(tag):
                return edit
        raise self.error("expected one of '>', 'ins', 'delins', 'del'")

    def finish(self) -> None:
        if self.pos != len(self.text):
            raise self.error(f"unexpected trailing text '{self.text[self.pos:]}'")


def parse_hgvs(text: str) -> Variant:
    """Parse an HGVS-like variant string.

    Examples
    --------
    >>> v = parse_hgvs("1:12345A>G")
    >>> (v.contig, v.start, v.end, v.edit, v.refseq, v.altseq)
    ('1', 12345, 12345, <Edit.SUB: 'sub'>, 'A', 'G')
    """
    sc = _Scanner(text)
    contig = sc.contig()
    sc.match(_TYPE_MARKER_RE)
    start, end = sc.position()
    refseq = sc.sequence()
    edit = sc.edit()
    altseq = sc.sequence()

    if edit is not Edit.DEL and refseq is None and altseq is None:
        raise sc.error(f"'{edit.value}' requires a reference or alternate sequence")
    sc.finish()

    return Variant(
        contig=contig,
        start=start,
        end=end,
        edit=edit,
        refseq=refseq,
        altseq=altseq,
    )


def normalize_alleles(start: int, refseq: str, altseq: str) -> Tuple[int, int, Edit, Optional[str], Optional[str]]:
    """Classify a REF/ALT pair and trim the shared leading bases.

    Returns ``(start, end, edit, refseq, altseq)``. Only plain prefix
    trimming is done; alleles are not left-aligned against a reference.
    """
    if refseq == altseq:
        return start, start + len(refseq) - 1, Edit.IDENTITY, refseq, altseq
    if len(refseq) == 1 and len(altseq) == 1:
        return start, start, Edit.SUB, refseq, altseq
    if refseq.startswith(altseq):
        start += len(altseq)
        rest = refseq[len(altseq):]
        return start, start + len(rest) - 1, Edit.DEL, rest, None
    if altseq.startswith(refseq):
        return start, start + 1, Edit.INS, None, altseq[len(refseq):]
    return start, start + len(refseq) - 1, Edit.DELINS, refseq, altseq


def parse_vcf(text: str) -> Variant:
    """Parse a VCF-like ``contig:posREF>ALT`` string.

    Examples
    --------
    >>> v = parse_vcf("chr1:12345AGC>T")
    >>> (v.edit, v.start, v.end, v.refseq, v.altseq)
    (<Edit.DELINS: 'delins'>, 12345, 12347, 'AGC', 'T')
    """
    sc = _Scanner(text)
    contig = sc.contig()
    m = sc.match(_POSITION_RE)
    if m is None or m.group(2) is not None:
        raise sc.error("expected a single genomic position")
    pos = int(m.group(1))

    refseq = sc.sequence()
    if refseq is None:
        raise sc.error("expected reference allele")
    if not sc.literal(">"):
        raise sc.error("expected '>' between alleles")
    altseq = sc.sequence()
    if altseq is None:
        raise sc.error("expected alternate allele")
    sc.finish()

    start, end, edit, refseq_n, altseq_n = normalize_alleles(pos, refseq, altseq)
    logger.debug("Normalized %s to %s %d-%d", text, edit.value, start, end)
    return Variant(
        contig=contig,
        start=start,
        end=end,
        edit=edit,
        refseq=refseq_n,
        altseq=altseq_n,
    )


def parse_variant(text: str, fmt: VariantFormat | str = VariantFormat.HGVS) -> Variant:
    """Parse ``text`` in the notation named by ``fmt`` ("hgvs" or "vcf")."""
    fmt = VariantFormat(fmt)
    if fmt is VariantFormat.HGVS:
        return parse_hgvs(text)
    return parse_vcf(text)
