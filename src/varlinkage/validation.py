"""Input checks done before any read is processed."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Sequence

logger = logging.getLogger(__name__)


_UCSC_PREFIX = "chr"
# mitochondrial names differ beyond the prefix
_MITO = {"ucsc": "chrM", "ensembl": "MT"}


class LinkDataError(ValueError):
    """Inputs that cannot be linked: contig problems or a missing index."""


def check_bam_index(bam_path: str | Path) -> None:
    """Ensure a BAM has a .bai/.csi index; raise LinkDataError with fix instructions."""
    bam = Path(bam_path)
    candidates = [
        bam.with_suffix(bam.suffix + ".bai"),
        bam.with_suffix(".bai"),
        bam.with_suffix(bam.suffix + ".csi"),
    ]
    if any(p.exists() for p in candidates):
        return
    raise LinkDataError(
        "BAM is not indexed; region queries need an index. Run: samtools index " + str(bam)
    )


def detect_contig_style(contigs: Iterable[str]) -> str:
    """Infer contig style: 'ucsc' if most contigs start with 'chr', else 'ensembl'."""
    names = [c for c in contigs if c]
    if not names:
        return "unknown"
    n_chr = sum(1 for c in names if c.startswith(_UCSC_PREFIX))
    return "ucsc" if n_chr >= max(1, int(0.5 * len(names))) else "ensembl"


def remap_contig(contig: str, style: str) -> str:
    """Rename ``contig`` to the given style, e.g. ``1`` -> ``chr1`` for 'ucsc'."""
    if contig in _MITO.values():
        return _MITO.get(style, contig)
    if style == "ucsc" and not contig.startswith(_UCSC_PREFIX):
        return _UCSC_PREFIX + contig
    if style == "ensembl" and contig.startswith(_UCSC_PREFIX):
        return contig[len(_UCSC_PREFIX) :]
    return contig


def check_reference_contig(contig: str, reference_contigs: Sequence[str], fasta_path: str | Path) -> None:
    """Ensure the reference FASTA holds the BAM contig reads are fetched from."""
    if contig in set(reference_contigs):
        return
    raise LinkDataError(
        f"Contig {contig} not found in reference FASTA {fasta_path}; "
        "use a FASTA with the same contig names as the BAM."
    )


def resolve_contig(contig: str, references: Sequence[str], *, allow_remap: bool = True) -> str:
    """Return the BAM reference name matching ``contig``.

    Tries the name as given, then (if ``allow_remap``) its counterpart in
    the BAM's naming style.
    """
    refs = set(references)
    if contig in refs:
        return contig
    if allow_remap:
        style = detect_contig_style(references)
        remapped = remap_contig(contig, style)
        if remapped in refs:
            logger.warning("Contig %s not in BAM header; using %s (%s style).", contig, remapped, style)
            return remapped
    raise LinkDataError(f"No such id found for contig: {contig}.")
