from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Optional

from . import __version__
from .linker import VERDICT_LABELS, iter_read_verdicts, link_bam
from .models import VariantFormat
from .plotting import plot_link_counts, plot_verdicts
from .report import render_report
from .toy_data import make_toy_data
from .utils import ensure_outdir, open_textmaybe_gzip, write_json
from .validate import ValidateOptions
from .variant import parse_variant


def _setup_logging(verbosity: int, *, logfile: Optional[Path] = None) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG

    log_fmt = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    logging.basicConfig(level=level, format=log_fmt, stream=sys.stderr)

    if logfile is not None:
        logfile.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(logfile)
        fh.setLevel(level)
        fh.setFormatter(logging.Formatter(log_fmt))
        logging.getLogger().addHandler(fh)


def _path_exists(p: str) -> str:
    if not Path(p).exists():
        raise argparse.ArgumentTypeError(f"Path does not exist: {p}")
    return p


def _log_path(outdir: Path, name: str) -> Path:
    return outdir / "logs" / name


def _handle_error(err: Exception, *, log_path: Optional[Path] = None) -> int:
    sys.stderr.write(f"{err.__class__.__name__}: {err}\n")
    if log_path is not None and log_path.exists():
        sys.stderr.write(f"See log: {log_path}\n")
    return 2


def _add_variant_options(p: argparse.ArgumentParser) -> None:
    p.add_argument(
        "--format",
        choices=[f.value for f in VariantFormat],
        default=VariantFormat.HGVS.value,
        help="Variant notation: hgvs (1:12345A>G, 1:100_101insCC) or vcf (1:100G>GCC).",
    )


def _add_read_options(p: argparse.ArgumentParser) -> None:
    p.add_argument(
        "--merge",
        action="store_true",
        help="When a *merge* variant of the target exists, do not count the read as support.",
    )
    p.add_argument(
        "--reference",
        default=None,
        type=_path_exists,
        help="Reference FASTA, used for reads without an MD tag.",
    )
    p.add_argument(
        "--no-contig-remap",
        action="store_true",
        help="Require variant contig names to match the BAM header exactly (no chr1 <-> 1).",
    )


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="varlinkage",
        description=(
            "varlinkage: infer the linkage (cis/trans/sub/super/cross) of two nearby variants "
            "from the reads of an indexed BAM."
        ),
    )
    p.add_argument("--version", action="version", version=f"varlinkage {__version__}")

    sub = p.add_subparsers(dest="cmd", required=True)

    # -----------------
    # quickstart
    # -----------------
    sub.add_parser(
        "quickstart",
        help="Print ready-to-run recipes for common scenarios.",
    )

    # -----------------
    # make-toy-data
    # -----------------
    t = sub.add_parser(
        "make-toy-data",
        help="Generate a tiny reference and BAM with known variant linkage.",
    )
    t.add_argument("--outdir", required=True, help="Output directory for toy data.")
    t.add_argument("--dry-run", action="store_true", help="Validate paths without writing files.")

    # -----------------
    # parse
    # -----------------
    ps = sub.add_parser("parse", help="Parse a variant string and print its canonical fields.")
    ps.add_argument("variant", help="Variant string.")
    _add_variant_options(ps)

    # -----------------
    # link
    # -----------------
    a = sub.add_parser(
        "link",
        help="Count reads supporting two variants and infer their linkage.",
    )
    a.add_argument("-1", "--first", required=True, help="First variant.")
    a.add_argument("-2", "--second", required=True, help="Second variant.")
    a.add_argument("-b", "--bam", required=True, type=_path_exists, help="Input BAM (sorted, indexed).")
    _add_variant_options(a)
    _add_read_options(a)

    # Read filters
    a.add_argument("--keep-duplicates", action="store_true", help="Do not skip duplicate reads.")
    a.add_argument("--include-secondary", action="store_true", help="Include secondary alignments.")
    a.add_argument(
        "--include-supplementary", action="store_true", help="Include supplementary alignments."
    )

    # Outputs
    a.add_argument(
        "--outdir",
        default=None,
        help="Also write summary.json, plots and report.html into this directory.",
    )
    a.add_argument("--no-progress", action="store_true", help="Disable the progress bar.")
    a.add_argument("-v", "--verbose", action="count", default=0, help="Increase verbosity (-v/-vv).")

    # -----------------
    # evidence
    # -----------------
    e = sub.add_parser(
        "evidence",
        help="Print the verdict (support/refute/not_applicable) of every read for one variant.",
    )
    e.add_argument("--variant", required=True, help="Variant string.")
    e.add_argument("-b", "--bam", required=True, type=_path_exists, help="Input BAM (sorted, indexed).")
    _add_variant_options(e)
    _add_read_options(e)
    e.add_argument(
        "--output",
        default=None,
        help="Write the table to this TSV (.gz allowed) instead of stdout.",
    )
    e.add_argument("-v", "--verbose", action="count", default=0, help="Increase verbosity (-v/-vv).")

    return p


# -----------------
# Command handlers
# -----------------

def cmd_quickstart() -> int:
    lines = [
        "varlinkage quickstart (copy/paste):",
        "",
        "1) Linkage of two variants (HGVS-like notation):",
        "   varlinkage link \\",
        "     -1 1:144852545C>T \\",
        "     -2 1:144852532_144852533insCCC \\",
        "     --bam sample.bam",
        "   Prints both/first/second/neither counts and the conclusion as JSON.",
        "",
        "2) Same, VCF-like notation, strict about neighbouring edits, with a report:",
        "   varlinkage link --format vcf --merge \\",
        "     -1 1:144852545C>T \\",
        "     -2 1:144852532G>GCCC \\",
        "     --bam sample.bam --outdir results/",
        "   Outputs: results/report.html, results/summary.json",
        "",
        "3) Per-read verdicts for one variant:",
        "   varlinkage evidence --variant 1:144852545C>T --bam sample.bam",
        "",
        "Tip: varlinkage make-toy-data --outdir toy/ builds a small BAM to try these on.",
    ]
    print("\n".join(lines))
    return 0


def cmd_make_toy_data(args: argparse.Namespace) -> int:
    outdir = Path(args.outdir).expanduser().resolve()
    if args.dry_run:
        print(f"Would write toy data into: {outdir}")
        return 0

    summary = make_toy_data(outdir=outdir)
    print(json.dumps(summary, indent=2))
    return 0


def cmd_parse(args: argparse.Namespace) -> int:
    try:
        variant = parse_variant(args.variant, args.format)
    except Exception as e:
        return _handle_error(e)
    print(json.dumps(variant.to_dict(), indent=2))
    return 0


def cmd_link(args: argparse.Namespace) -> int:
    outdir = Path(args.outdir).expanduser().resolve() if args.outdir else None
    log_path = _log_path(outdir, "link.log") if outdir is not None else None
    _setup_logging(args.verbose, logfile=log_path)

    logger = logging.getLogger("varlinkage")
    logger.info("varlinkage %s", __version__)

    try:
        first = parse_variant(args.first, args.format)
        second = parse_variant(args.second, args.format)

        run = link_bam(
            bam_path=args.bam,
            first=first,
            second=second,
            options=ValidateOptions(merge=bool(args.merge)),
            reference_path=args.reference,
            keep_duplicates=bool(args.keep_duplicates),
            include_secondary=bool(args.include_secondary),
            include_supplementary=bool(args.include_supplementary),
            allow_remap=not bool(args.no_contig_remap),
            progress=not bool(args.no_progress),
        )

        if outdir is not None:
            outdir = ensure_outdir(outdir)
            summary = run.summary()
            write_json(outdir / "summary.json", summary)

            plots_dir = outdir / "plots"
            link_png = plots_dir / "link_counts.png"
            verdicts_png = plots_dir / "verdicts.png"
            plot_link_counts(link=summary["link"], out_png=link_png)
            plot_verdicts(verdicts=summary["verdicts"], out_png=verdicts_png)

            report_path = render_report(
                outdir=outdir,
                version=__version__,
                run=summary,
                inputs={"first": args.first, "second": args.second},
                plots={
                    "link_counts": str(Path("plots") / link_png.name),
                    "verdicts": str(Path("plots") / verdicts_png.name),
                },
            )
            logger.info("Report written: %s", report_path)

        print(run.link.render())
        return 0
    except Exception as e:
        return _handle_error(e, log_path=log_path)


def cmd_evidence(args: argparse.Namespace) -> int:
    _setup_logging(args.verbose, logfile=None)

    try:
        variant = parse_variant(args.variant, args.format)
        out = open_textmaybe_gzip(args.output, "wt") if args.output else sys.stdout
        try:
            out.write("qname\tflag\tstart0\tend0\tverdict\n")
            for read, verdict in iter_read_verdicts(
                bam_path=args.bam,
                variant=variant,
                options=ValidateOptions(merge=bool(args.merge)),
                reference_path=args.reference,
                allow_remap=not bool(args.no_contig_remap),
            ):
                out.write(
                    f"{read.query_name}\t{read.flag}\t{read.reference_start}\t"
                    f"{read.reference_end}\t{VERDICT_LABELS[verdict]}\n"
                )
        finally:
            if out is not sys.stdout:
                out.close()
        return 0
    except Exception as e:
        return _handle_error(e)


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.cmd == "quickstart":
        return cmd_quickstart()
    if args.cmd == "make-toy-data":
        return cmd_make_toy_data(args)
    if args.cmd == "parse":
        return cmd_parse(args)
    if args.cmd == "link":
        return cmd_link(args)
    if args.cmd == "evidence":
        return cmd_evidence(args)

    parser.error(f"Unknown command: {args.cmd}")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
