from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


class Edit(Enum):
    """Kind of genomic change described by a variant."""

    SUB = "sub"  # substitution
    DEL = "del"  # deletion
    INS = "ins"  # insertion
    DELINS = "delins"  # deletion-insertion
    IDENTITY = "identity"

    def is_sub(self) -> bool:
        return self is Edit.SUB

    def is_del(self) -> bool:
        return self is Edit.DEL

    def is_ins(self) -> bool:
        return self is Edit.INS

    def is_delins(self) -> bool:
        return self is Edit.DELINS

    def is_identity(self) -> bool:
        return self is Edit.IDENTITY


class VariantFormat(Enum):
    """Textual notation a variant string is written in."""

    HGVS = "hgvs"
    VCF = "vcf"


@dataclass(frozen=True)
class Variant:
    """A genomic edit in canonical form.

    Coordinates are 1-based and inclusive. A pure insertion sits between
    ``start`` and ``end == start + 1``.

    Attributes
    ----------
    contig:
        Reference sequence name, compared by equality only.
    start, end:
        First and last affected reference positions (1-based).
    edit:
        Kind of change.
    refseq:
        Reference bases, if known. A deletion may omit them.
    altseq:
        Alternate bases, if any.
    """

    contig: str
    start: int
    end: int
    edit: Edit
    refseq: Optional[str] = None
    altseq: Optional[str] = None

    @property
    def affected_length(self) -> int:
        if self.edit is Edit.DEL:
            return self.end - self.start + 1
        if self.edit is Edit.INS:
            return len(self.altseq) if self.altseq is not None else 0
        if self.edit is Edit.SUB:
            return 1
        if self.edit is Edit.DELINS:
            return max(len(self.refseq or ""), len(self.altseq or ""))
        return 0

    @classmethod
    def from_hgvs(cls, text: str) -> "Variant":
        from .variant import parse_hgvs

        return parse_hgvs(text)

    @classmethod
    def from_vcf(cls, text: str) -> "Variant":
        from .variant import parse_vcf

        return parse_vcf(text)

    @classmethod
    def parse(cls, text: str, fmt: VariantFormat | str = VariantFormat.HGVS) -> "Variant":
        from .variant import parse_variant

        return parse_variant(text, fmt)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "contig": self.contig,
            "start": self.start,
            "end": self.end,
            "edit": self.edit.value,
            "refseq": self.refseq,
            "altseq": self.altseq,
            "affected_length": self.affected_length,
        }
