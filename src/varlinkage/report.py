from __future__ import annotations

import datetime as _dt
import logging
from pathlib import Path
from typing import Any, Dict

from jinja2 import Template

logger = logging.getLogger(__name__)


_REPORT_TEMPLATE = Template(
    """<!doctype html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <title>varlinkage report</title>
  <style>
    body { font-family: Arial, Helvetica, sans-serif; margin: 24px; }
    code, pre { background: #f6f8fa; padding: 2px 4px; border-radius: 4px; }
    h1, h2, h3 { margin-top: 1.2em; }
    table { border-collapse: collapse; margin-top: 0.6em; }
    th, td { border: 1px solid #ddd; padding: 8px; }
    th { background: #f2f2f2; text-align: left; }
    .grid { display: grid; grid-template-columns: 1fr 1fr; gap: 16px; }
    .card { border: 1px solid #ddd; border-radius: 8px; padding: 12px; }
    .small { color: #666; font-size: 0.9em; }
    .conclusion { font-size: 1.4em; font-weight: bold; }
    img { max-width: 100%; height: auto; border: 1px solid #eee; border-radius: 6px; }
  </style>
</head>
<body>

<h1>varlinkage report</h1>
<p class="small">Generated: {{ generated_at }}</p>

<h2>Conclusion</h2>
<p class="conclusion">{{ link.conclusion }}</p>

<h2>Inputs</h2>
<div class="grid">
  <div class="card">
    <h3>Alignments</h3>
    <table>
      <tr><th>BAM</th><td><code>{{ bam_path }}</code></td></tr>
      <tr><th>Region</th><td><code>{{ region }}</code></td></tr>
      <tr><th>Merge</th><td>{{ merge }}</td></tr>
    </table>
  </div>
  <div class="card">
    <h3>Variants</h3>
    <table>
      <tr><th></th><th>Input</th><th>Edit</th><th>Start</th><th>End</th><th>Ref</th><th>Alt</th></tr>
      {% for label, v in variants %}
      <tr>
        <th>{{ label }}</th>
        <td><code>{{ v.input }}</code></td>
        <td>{{ v.edit }}</td>
        <td>{{ v.start }}</td>
        <td>{{ v.end }}</td>
        <td>{{ v.refseq or "" }}</td>
        <td>{{ v.altseq or "" }}</td>
      </tr>
      {% endfor %}
    </table>
  </div>
</div>

<h2>Tally</h2>
<table>
  <tr><th>Both</th><td>{{ link.both }}</td></tr>
  <tr><th>First only</th><td>{{ link.first }}</td></tr>
  <tr><th>Second only</th><td>{{ link.second }}</td></tr>
  <tr><th>Neither</th><td>{{ link.neither }}</td></tr>
</table>

<h2>Reads</h2>
<table>
  <tr><th>Total reads fetched</th><td>{{ counts.reads_total }}</td></tr>
  <tr><th>Unmapped skipped</th><td>{{ counts.reads_unmapped }}</td></tr>
  <tr><th>Duplicates skipped</th><td>{{ counts.reads_skipped_duplicates }}</td></tr>
  <tr><th>Secondary skipped</th><td>{{ counts.reads_skipped_secondary }}</td></tr>
  <tr><th>Supplementary skipped</th><td>{{ counts.reads_skipped_supplementary }}</td></tr>
  <tr><th>Not informative for both</th><td>{{ counts.reads_not_applicable }}</td></tr>
  <tr><th>Linked</th><td>{{ counts.reads_linked }}</td></tr>
</table>

<h2>Plots</h2>
<div class="grid">
  <div class="card">
    <h3>Linkage tally</h3>
    <img src="{{ plots.link_counts }}" alt="link counts">
  </div>
  <div class="card">
    <h3>Verdicts per variant</h3>
    <img src="{{ plots.verdicts }}" alt="verdicts">
  </div>
</div>

<h2>Interpretation notes</h2>
<ul>
  <li>Only reads spanning both variants (and the base before each) are tallied.</li>
  <li>Linkage rules need at least 3 reads in a category; with fewer the call is "undefined".</li>
  <li>With <code>--merge</code>, reads carrying another edit right next to a variant do not count as support.</li>
</ul>

<hr>
<p class="small">varlinkage {{ version }}</p>
</body>
</html>"""
)


def render_report(
    *,
    outdir: str | Path,
    version: str,
    run: Dict[str, Any],
    inputs: Dict[str, str],
    plots: Dict[str, str],
) -> Path:
    """Write ``report.html`` for a link run summary into ``outdir``.

    ``inputs`` maps "first"/"second" to the variant strings as given on the
    command line.
    """
    outdir = Path(outdir)
    outdir.mkdir(parents=True, exist_ok=True)

    variants = []
    for label in ("first", "second"):
        v = dict(run.get(label, {}))
        v["input"] = inputs.get(label, "")
        variants.append((label, v))

    region = run.get("region")
    html = _REPORT_TEMPLATE.render(
        generated_at=_dt.datetime.now().isoformat(timespec="seconds"),
        version=version,
        bam_path=run.get("bam_path"),
        region=f"{region[0]}:{region[1] + 1}-{region[2]}" if region else "",
        merge=run.get("merge"),
        variants=variants,
        link=run.get("link", {}),
        counts=run.get("counts", {}),
        plots=plots,
    )

    out_path = outdir / "report.html"
    out_path.write_text(html, encoding="utf-8")
    logger.debug("Report written to %s", out_path)
    return out_path
