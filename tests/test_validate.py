import itertools

import pysam
import pytest

from varlinkage.alignment import AlignmentEntry, EntryKind
from varlinkage.models import Edit, Variant
from varlinkage.toy_data import apply_edits, make_aligned_read
from varlinkage.validate import ValidateOptions, edits_conflict, validate_entries, validate_read
from varlinkage.variant import parse_hgvs, parse_vcf

REF = "ACGTACGGTC" "AATGCCTAGG" "ATCCATTGAC" "GTTAGCAGTC" "CGATAGCTTA" "CGGATCAGTC"
MERGE = ValidateOptions(merge=True)


def _other(base: str, skip: str = "") -> str:
    return next(b for b in "ACGT" if b != base and b not in skip)


# -----------------
# Conflict policy
# -----------------

@pytest.mark.parametrize(
    "observed,target,merge,expected",
    [
        (Edit.DELINS, Edit.SUB, False, False),
        (Edit.DELINS, Edit.SUB, True, True),
        (Edit.SUB, Edit.DELINS, False, True),
        (Edit.DELINS, Edit.DELINS, False, True),
        (Edit.DELINS, Edit.INS, False, True),
        (Edit.INS, Edit.INS, False, True),
        (Edit.DEL, Edit.DEL, False, True),
        (Edit.INS, Edit.DEL, False, False),
        (Edit.INS, Edit.DEL, True, True),
        (Edit.DEL, Edit.INS, True, True),
        (Edit.SUB, Edit.SUB, False, False),
        (Edit.SUB, Edit.SUB, True, True),
        (Edit.SUB, Edit.INS, False, False),
        (Edit.INS, Edit.SUB, True, True),
        (Edit.DEL, Edit.SUB, False, False),
    ],
)
def test_edits_conflict(observed, target, merge, expected):
    assert edits_conflict(observed, target, merge) is expected


def test_identity_never_conflicts():
    for edit, merge in itertools.product(Edit, (False, True)):
        assert edits_conflict(Edit.IDENTITY, edit, merge) is False
        assert edits_conflict(edit, Edit.IDENTITY, merge) is False


def test_conflict_is_total():
    for observed, target, merge in itertools.product(Edit, Edit, (False, True)):
        assert isinstance(edits_conflict(observed, target, merge), bool)


# -----------------
# Entry-level walks
# -----------------

def _m(pos0, ref, read):
    kind = EntryKind.MATCH if ref == read else EntryKind.MISMATCH
    return AlignmentEntry(kind, pos0, 0, ref, read)


def _ins(read):
    return AlignmentEntry(EntryKind.INSERTION, None, 0, None, read)


def _del(pos0, ref="A"):
    return AlignmentEntry(EntryKind.DELETION, pos0, None, ref, None)


def test_insertion_supported():
    var = parse_hgvs("1:100_101insCCC")
    entries = [_m(97, "A", "A"), _m(98, "C", "C"), _m(99, "G", "G"), _ins("C"), _ins("C"), _ins("C")]
    assert validate_entries(entries, var) is True
    assert validate_entries(entries + [_m(100, "T", "T")], var, MERGE) is True


def test_insertion_with_wrong_bases_refuted():
    var = parse_hgvs("1:100_101insCCG")
    entries = [_m(98, "C", "C"), _m(99, "G", "G"), _ins("C"), _ins("C"), _ins("C")]
    assert validate_entries(entries, var) is False


def test_longer_insertion_refuted():
    var = parse_hgvs("1:100_101insCC")
    entries = [_m(99, "G", "G"), _ins("C"), _ins("C"), _ins("C"), _m(100, "T", "T")]
    assert validate_entries(entries, var) is False


def test_snv_support_and_refute():
    var = parse_hgvs("1:100A>G")
    assert validate_entries([_m(98, "C", "C"), _m(99, "A", "G"), _m(100, "T", "T")], var) is True
    assert validate_entries([_m(98, "C", "C"), _m(99, "A", "A"), _m(100, "T", "T")], var) is False


def test_merge_rejects_neighbouring_edit():
    var = parse_hgvs("1:100A>G")
    after = [_m(98, "C", "C"), _m(99, "A", "G"), _m(100, "T", "C")]
    assert validate_entries(after, var) is True
    assert validate_entries(after, var, MERGE) is False

    before = [_m(98, "C", "T"), _m(99, "A", "G"), _m(100, "T", "T")]
    assert validate_entries(before, var) is True
    assert validate_entries(before, var, MERGE) is False


def test_deletion_walk():
    var = parse_hgvs("1:100_101del")
    head = [_m(97, "A", "A"), _m(98, "C", "C")]
    assert validate_entries(head + [_del(99), _del(100), _m(101, "T", "T")], var) is True
    # only one base deleted
    assert validate_entries(head + [_del(99), _m(100, "G", "G")], var) is False
    # a third deleted base continues the deletion
    assert validate_entries(head + [_del(99), _del(100), _del(101)], var) is False


def test_reference_skip_is_not_a_deletion():
    var = parse_hgvs("1:100_101del")
    entries = [_m(98, "C", "C"), _del(99, None), _del(100, None), _m(101, "T", "T")]
    assert validate_entries(entries, var) is False


def test_delins_with_reference_bases():
    var = parse_hgvs("1:100_101CGdelinsTTA")
    entries = [_m(98, "C", "C"), _m(99, "C", "T"), _m(100, "G", "T"), _ins("A"), _m(101, "A", "A")]
    assert validate_entries(entries, var) is True


def test_no_entry_reaches_variant():
    var = parse_hgvs("1:100A>G")
    assert validate_entries([], var) is None
    assert validate_entries([_m(50, "A", "A"), _m(51, "C", "C")], var) is None
    assert validate_entries([_ins("A"), _ins("C")], var) is None


def test_entries_ending_before_variant_is_observed():
    var = parse_hgvs("1:100A>G")
    assert validate_entries([_m(98, "C", "C")], var) is False


def test_identity_variant():
    var = parse_vcf("1:100A>A")
    assert validate_entries([_m(98, "C", "C"), _m(99, "A", "A"), _m(100, "T", "T")], var) is True


def test_empty_insertion_is_vacuously_supported():
    var = Variant("1", 100, 101, Edit.INS)
    assert validate_entries([_m(99, "G", "G")], var) is True


def test_entries_are_consumed_lazily():
    var = parse_hgvs("1:100A>G")

    def entries():
        yield _m(98, "C", "C")
        yield _m(99, "A", "A")
        raise AssertionError("read past the verdict")

    assert validate_entries(entries(), var) is False


# -----------------
# pysam reads
# -----------------

def _snv_read(pos0, alt, *, start0=5, length=40, **kw):
    query, cigar = apply_edits(REF, start0, length, snvs={pos0: alt})
    return make_aligned_read("r1", start0, query, cigar, REF, **kw)


def test_read_supports_snv():
    alt = _other(REF[20])
    read = _snv_read(20, alt)
    assert validate_read(read, parse_hgvs(f"chr1:21{REF[20]}>{alt}")) is True
    assert validate_read(read, parse_hgvs(f"chr1:21{REF[20]}>{_other(REF[20], alt)}")) is False


def test_read_without_snv_refutes():
    query, cigar = apply_edits(REF, 5, 40)
    read = make_aligned_read("r1", 5, query, cigar, REF)
    alt = _other(REF[20])
    assert validate_read(read, parse_hgvs(f"chr1:21{REF[20]}>{alt}")) is False


def test_unmapped_read_not_applicable():
    alt = _other(REF[20])
    read = _snv_read(20, alt)
    read.flag = 4
    assert validate_read(read, parse_hgvs(f"chr1:21{REF[20]}>{alt}")) is None


def test_read_must_cover_anchor_and_variant():
    alt = _other(REF[50])
    read = _snv_read(20, _other(REF[20]))
    # read covers 0-based 5..44
    assert validate_read(read, parse_hgvs(f"chr1:51{REF[50]}>{alt}")) is None

    # starts on the variant itself: anchor base missing
    read = _snv_read(20, _other(REF[20]), start0=20, length=20)
    assert validate_read(read, parse_hgvs(f"chr1:21{REF[20]}>{_other(REF[20])}")) is None


def test_read_supports_insertion():
    query, cigar = apply_edits(REF, 5, 40, insertions={25: "CCC"})
    read = make_aligned_read("r1", 5, query, cigar, REF)
    assert validate_read(read, parse_hgvs("chr1:26_27insCCC")) is True
    assert validate_read(read, parse_hgvs("chr1:26_27insCCG")) is False
    assert validate_read(read, parse_vcf(f"chr1:26{REF[25]}>{REF[25]}CCC")) is True


def test_read_supports_deletion():
    cigar = [(0, 20), (2, 2), (0, 18)]
    query = REF[5:25] + REF[27:45]
    read = make_aligned_read("r1", 5, query, cigar, REF)
    assert validate_read(read, parse_hgvs("chr1:26_27del")) is True
    assert validate_read(read, parse_hgvs(f"chr1:26_27{REF[25:27]}del")) is True
    assert validate_read(read, parse_hgvs("chr1:26_28del")) is False


def test_adjacent_snvs_need_merge_off():
    alt20, alt21 = _other(REF[20]), _other(REF[21])
    query, cigar = apply_edits(REF, 5, 40, snvs={20: alt20, 21: alt21})
    read = make_aligned_read("r1", 5, query, cigar, REF)
    v1 = parse_hgvs(f"chr1:21{REF[20]}>{alt20}")
    v2 = parse_hgvs(f"chr1:22{REF[21]}>{alt21}")
    assert validate_read(read, v1) is True
    assert validate_read(read, v2) is True
    assert validate_read(read, v1, MERGE) is False
    assert validate_read(read, v2, MERGE) is False


def test_read_without_md_needs_reference(tmp_path):
    alt = _other(REF[20])
    header = pysam.AlignmentHeader.from_dict({"SQ": [{"SN": "chr1", "LN": len(REF)}]})
    read = _snv_read(20, alt, header=header, with_md=False)
    var = parse_hgvs(f"chr1:21{REF[20]}>{alt}")
    assert validate_read(read, var) is None

    fa = tmp_path / "ref.fa"
    fa.write_text(f">chr1\n{REF}\n", encoding="utf-8")
    pysam.faidx(str(fa))
    with pysam.FastaFile(str(fa)) as ref:
        assert validate_read(read, var, reference=ref) is True


def test_delins_without_reference_bases():
    var = parse_hgvs("1:100_101delinsTG")
    head = [_m(97, "A", "A"), _m(98, "C", "C")]
    assert validate_entries(head + [_m(99, "A", "T"), _m(100, "C", "G"), _m(101, "T", "T")], var) is True
    assert validate_entries(head + [_m(99, "A", "T"), _m(100, "C", "C"), _m(101, "T", "T")], var) is False
    # a third changed base extends the delins
    assert validate_entries(head + [_m(99, "A", "T"), _m(100, "C", "G"), _m(101, "T", "A")], var) is False


def test_read_supports_delins_and_nearby_snv():
    a, b, c = _other(REF[20]), _other(REF[21]), _other(REF[25])
    query, cigar = apply_edits(REF, 5, 40, snvs={20: a, 21: b, 25: c})
    read = make_aligned_read("r1", 5, query, cigar, REF)
    delins = parse_hgvs(f"chr1:21_22delins{a}{b}")
    snv = parse_hgvs(f"chr1:26{REF[25]}>{c}")
    assert validate_read(read, delins) is True
    assert validate_read(read, parse_hgvs(f"chr1:21_22{REF[20:22]}delins{a}{b}")) is True
    assert validate_read(read, snv) is True
    assert validate_read(read, parse_hgvs(f"chr1:21_22delins{a}{REF[21]}")) is False
