from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict

import matplotlib.pyplot as plt
import numpy as np

logger = logging.getLogger(__name__)


def plot_link_counts(
    *,
    link: Dict[str, object],
    out_png: str | Path,
    title: str = "Linkage tally",
) -> None:
    """Bar chart of the both/first/second/neither read counts."""
    out_png = Path(out_png)
    out_png.parent.mkdir(parents=True, exist_ok=True)

    labels = ["both", "first only", "second only", "neither"]
    values = [int(link.get(k, 0)) for k in ("both", "first", "second", "neither")]

    plt.figure()
    plt.bar(labels, values, color=["#4c72b0", "#55a868", "#c44e52", "#8c8c8c"])
    plt.ylabel("Read count")
    plt.title(f"{title} ({link.get('conclusion', 'undefined')})")
    plt.tight_layout()
    plt.savefig(out_png, dpi=160)
    plt.close()


def plot_verdicts(
    *,
    verdicts: Dict[str, Dict[str, int]],
    out_png: str | Path,
    title: str = "Per-variant read verdicts",
) -> None:
    """Grouped bars of support/refute/not-applicable reads for each variant."""
    out_png = Path(out_png)
    out_png.parent.mkdir(parents=True, exist_ok=True)

    categories = ["support", "refute", "not_applicable"]
    names = list(verdicts.keys())
    x = np.arange(len(categories))
    width = 0.8 / max(1, len(names))

    plt.figure()
    for i, name in enumerate(names):
        ys = [int(verdicts[name].get(c, 0)) for c in categories]
        plt.bar(x + i * width, ys, width=width, label=name)
    plt.xticks(x + width * (len(names) - 1) / 2.0, ["support", "refute", "n/a"])
    plt.ylabel("Read count")
    plt.title(title)
    plt.legend()
    plt.tight_layout()
    plt.savefig(out_png, dpi=160)
    plt.close()
