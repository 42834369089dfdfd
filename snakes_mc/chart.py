"""Plot the distribution of moves-to-finish from a histogram."""

from __future__ import annotations

from collections.abc import Mapping

import matplotlib
matplotlib.use("Agg")  # non-interactive backend

import matplotlib.pyplot as plt


def make_histogram_chart(
    histogram: Mapping[int, int],
    output_path: str = "moves_histogram.png",
    title: str = "Moves to finish",
) -> str:
    """Create a bar chart of move counts with the mean marked.

    Returns the path to the saved PNG.
    """
    if not histogram:
        raise ValueError("Cannot chart an empty histogram")

    moves = sorted(histogram)
    counts = [histogram[m] for m in moves]
    total = sum(counts)
    mean = sum(m * c for m, c in zip(moves, counts)) / total

    fig, ax = plt.subplots(figsize=(10, 5))
    ax.bar(moves, [c / total for c in counts], width=1.0,
           color="#4A90D9", edgecolor="white")
    ax.axvline(mean, color="#D9534F", linestyle="--", linewidth=1.5)
    ax.text(
        mean, ax.get_ylim()[1] * 0.95, f" mean {mean:.2f}",
        color="#D9534F", fontsize=11, fontweight="bold", va="top",
    )

    ax.set_xlabel("Moves")
    ax.set_ylabel("Share of trials")
    ax.set_title(f"{title} ({total:,} trials)", fontsize=14, fontweight="bold")

    plt.tight_layout()
    fig.savefig(output_path, dpi=150)
    plt.close(fig)
    return output_path
