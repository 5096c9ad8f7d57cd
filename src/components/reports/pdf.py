import logging
import textwrap
from pathlib import Path
from typing import Iterable

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt  # noqa: E402
import pandas as pd  # noqa: E402
from matplotlib.backends.backend_pdf import PdfPages  # noqa: E402

from components.reports.base import ReportConfig, ReportSection  # noqa: E402

PAGE_SIZE = (11, 8.5)
ROWS_PER_PAGE = 25
MAX_TABLE_COLUMNS = 8
MAX_CELL_CHARS = 20


def _format_cell(value) -> str:
    if isinstance(value, float):
        return f"{value:.3g}"
    value = str(value)
    return value if len(value) <= MAX_CELL_CHARS else value[: MAX_CELL_CHARS - 1] + "…"


def _text_page(pdf: PdfPages, title: str, text: str = "", subtitle: str = "") -> None:
    fig = plt.figure(figsize=PAGE_SIZE)
    fig.text(0.5, 0.7, title, ha="center", va="center", fontsize=22, weight="bold")
    if subtitle:
        fig.text(0.5, 0.62, subtitle, ha="center", va="center", fontsize=12)
    if text:
        fig.text(
            0.1, 0.5, textwrap.fill(text, 110), ha="left", va="top", fontsize=11
        )
    plt.axis("off")
    pdf.savefig(fig, bbox_inches="tight")
    plt.close(fig)


def _figure_page(pdf: PdfPages, figure_path: Path) -> None:
    fig, ax = plt.subplots(figsize=PAGE_SIZE)
    ax.imshow(plt.imread(str(figure_path)))
    ax.set_title(figure_path.stem, fontsize=10)
    ax.axis("off")
    pdf.savefig(fig, bbox_inches="tight")
    plt.close(fig)


def _table_pages(pdf: PdfPages, caption: str, df: pd.DataFrame) -> None:
    df = df.reset_index().iloc[:, :MAX_TABLE_COLUMNS]
    n_pages = max(1, -(-len(df) // ROWS_PER_PAGE))
    for page in range(n_pages):
        chunk = df.iloc[page * ROWS_PER_PAGE : (page + 1) * ROWS_PER_PAGE]
        fig, ax = plt.subplots(figsize=PAGE_SIZE)
        ax.axis("off")
        ax.set_title(f"{caption} ({page + 1}/{n_pages})", fontsize=11)
        if len(chunk) > 0:
            table = ax.table(
                cellText=chunk.apply(lambda col: col.map(_format_cell)).values,
                colLabels=[_format_cell(c) for c in chunk.columns],
                loc="upper center",
                cellLoc="right",
            )
            table.auto_set_font_size(False)
            table.set_fontsize(7)
            table.scale(1, 1.2)
        else:
            ax.text(0.5, 0.5, "No rows.", ha="center", va="center")
        pdf.savefig(fig, bbox_inches="tight")
        plt.close(fig)


def render_pdf_report(
    sections: Iterable[ReportSection], save_path: Path, config: ReportConfig
) -> Path:
    """
    Write a PDF report: a title page, then for each section a heading page, one
    page per PNG figure and its tables split over as many pages as needed.

    Tables show their first `config.top_n` rows and at most
    `MAX_TABLE_COLUMNS` columns (index included).

    Args:
        sections: Report sections, in order. Empty sections are left out.
        save_path: Path of the PDF file.
        config: Report options.

    Returns:
        The path of the written report.
    """
    save_path.parent.mkdir(exist_ok=True, parents=True)
    with PdfPages(save_path) as pdf:
        _text_page(
            pdf,
            config.title,
            subtitle=" · ".join(filter(None, (config.author, config.date))),
        )

        for section in sections:
            if section.is_empty:
                logging.warning(
                    f"Report section '{section.title}' is empty, skipping."
                )
                continue

            _text_page(pdf, section.title, text=section.text)
            for figure in section.existing_figures:
                if figure.suffix.lower() != ".png":
                    logging.warning(f"Only PNG figures can be embedded, skipping {figure}.")
                    continue
                _figure_page(pdf, figure)
            for caption, df in section.tables.items():
                _table_pages(pdf, caption, df.head(config.top_n))

        info = pdf.infodict()
        info["Title"] = config.title
        info["Author"] = config.author

    logging.info(f"PDF report written to {save_path}")

    return save_path
