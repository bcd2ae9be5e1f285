from __future__ import annotations

import random
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

import pysam

from .utils import ensure_outdir, write_json

CigarTuples = List[Tuple[int, int]]


def _write_fasta(path: Path, contig: str, seq: str) -> None:
    lines = [f">{contig}"]
    for i in range(0, len(seq), 60):
        lines.append(seq[i : i + 60])
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")


def _mutate_base(base: str) -> str:
    for alt in ["A", "C", "G", "T"]:
        if alt != base:
            return alt
    return "A"


def md_tag(ref_seq: str, start0: int, query: str, cigartuples: Sequence[Tuple[int, int]]) -> str:
    """Build the SAM MD tag for a read aligned to ``ref_seq`` at ``start0``."""
    parts: List[str] = []
    run = 0
    ref_pos = start0
    query_pos = 0
    for op, length in cigartuples:
        if op in (0, 7, 8):  # M, =, X
            for i in range(length):
                rb = ref_seq[ref_pos + i]
                if query[query_pos + i].upper() == rb.upper():
                    run += 1
                else:
                    parts.append(f"{run}{rb.upper()}")
                    run = 0
            ref_pos += length
            query_pos += length
        elif op in (1, 4):  # I, S
            query_pos += length
        elif op == 2:  # D
            parts.append(f"{run}^{ref_seq[ref_pos : ref_pos + length].upper()}")
            run = 0
            ref_pos += length
        elif op == 3:  # N
            ref_pos += length
    parts.append(str(run))
    return "".join(parts)


def make_aligned_read(
    name: str,
    start0: int,
    query: str,
    cigartuples: CigarTuples,
    ref_seq: str,
    *,
    reference_id: int = 0,
    header: Optional[pysam.AlignmentHeader] = None,
    flag: int = 0,
    mapq: int = 60,
    with_md: bool = True,
) -> pysam.AlignedSegment:
    """Build a mapped read against ``ref_seq`` (MD tag computed from it)."""
    a = pysam.AlignedSegment(header)
    a.query_name = name
    a.query_sequence = query
    a.flag = flag
    a.reference_id = reference_id
    a.reference_start = start0
    a.mapping_quality = mapq
    a.cigartuples = cigartuples
    a.query_qualities = pysam.qualitystring_to_array("I" * len(query))
    if with_md:
        a.set_tag("MD", md_tag(ref_seq, start0, query, cigartuples), value_type="Z")
    return a


def apply_edits(
    ref_seq: str,
    start0: int,
    length: int,
    *,
    snvs: Optional[Dict[int, str]] = None,
    insertions: Optional[Dict[int, str]] = None,
) -> Tuple[str, CigarTuples]:
    """Read sequence and CIGAR covering ``length`` reference bases from ``start0``.

    ``snvs`` maps 0-based positions to replacement bases; ``insertions`` maps
    a 0-based position to the bases inserted right after it.
    """
    snvs = snvs or {}
    insertions = insertions or {}
    seq: List[str] = []
    cigar: CigarTuples = []
    matched = 0
    for p in range(start0, start0 + length):
        seq.append(snvs.get(p, ref_seq[p]))
        matched += 1
        if p in insertions:
            cigar.append((0, matched))
            cigar.append((1, len(insertions[p])))
            seq.append(insertions[p])
            matched = 0
    if matched:
        cigar.append((0, matched))
    return "".join(seq), cigar


def make_toy_data(*, outdir: str | Path) -> Dict[str, object]:
    """Create a tiny reference and BAM with known variant linkage.

    The outputs include:
    - toy_ref.fa (+ .fai)
    - reads.bam (+ .bai)

    Eight reads carry the first two SNVs and an insertion together; six
    other reads carry only a third SNV. The returned summary lists a pair
    in cis and a pair in trans (HGVS-like strings).
    """
    outdir_p = ensure_outdir(outdir)

    contig = "chr1"
    rng = random.Random(7)
    ref_seq = "".join(rng.choice("ACGT") for _ in range(300))
    ref_fa = outdir_p / "toy_ref.fa"
    _write_fasta(ref_fa, contig, ref_seq)
    pysam.faidx(str(ref_fa))

    snv_pos0 = [100, 110, 120]
    snvs = [(p, ref_seq[p], _mutate_base(ref_seq[p])) for p in snv_pos0]
    ins_after0 = 130
    ins_seq = "CCC"

    header = {
        "HD": {"VN": "1.6", "SO": "coordinate"},
        "SQ": [{"SN": contig, "LN": len(ref_seq)}],
    }

    reads: List[pysam.AlignedSegment] = []
    for i in range(14):
        start0 = 70 + i
        if i < 8:
            edits = {snvs[0][0]: snvs[0][2], snvs[1][0]: snvs[1][2]}
            seq, cigar = apply_edits(ref_seq, start0, 70, snvs=edits, insertions={ins_after0: ins_seq})
        else:
            seq, cigar = apply_edits(ref_seq, start0, 70, snvs={snvs[2][0]: snvs[2][2]})
        reads.append(make_aligned_read(f"r{i}", start0, seq, cigar, ref_seq))

    reads.sort(key=lambda r: r.reference_start)

    bam_path = outdir_p / "reads.bam"
    with pysam.AlignmentFile(str(bam_path), "wb", header=header) as bam:
        for r in reads:
            bam.write(r)
    pysam.index(str(bam_path))

    def hgvs(pos0: int, ref: str, alt: str) -> str:
        return f"{contig}:{pos0 + 1}{ref}>{alt}"

    summary: Dict[str, object] = {
        "ref_fa": str(ref_fa),
        "bam": str(bam_path),
        "outdir": str(outdir_p),
        "cis_pair": [hgvs(*snvs[0]), hgvs(*snvs[1])],
        "trans_pair": [hgvs(*snvs[0]), hgvs(*snvs[2])],
        "insertion": f"{contig}:{ins_after0 + 1}_{ins_after0 + 2}ins{ins_seq}",
    }

    write_json(outdir_p / "toy_summary.json", summary)
    return summary
