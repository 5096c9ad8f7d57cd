import base64
import logging
from pathlib import Path
from typing import Iterable

from jinja2 import Environment, FileSystemLoader, select_autoescape

from components.reports.base import ReportConfig, ReportSection

TEMPLATES_DIR = Path(__file__).parent.joinpath("templates")


def encode_image(image_path: Path) -> str:
    """PNG image as a base64 data URI."""
    with Path(image_path).open("rb") as fp:
        return "data:image/png;base64," + base64.b64encode(fp.read()).decode("ascii")


def render_html_report(
    sections: Iterable[ReportSection],
    save_path: Path,
    config: ReportConfig,
    template_name: str = "report.html",
) -> Path:
    """
    Write a self-contained HTML report.

    PNG figures are embedded as base64 data URIs, so the file can be shared on
    its own. Figures in other formats are listed by name only. Tables show
    their first `config.top_n` rows.

    Args:
        sections: Report sections, in order. Empty sections are left out.
        save_path: Path of the HTML file.
        config: Report options.
        template_name: Template file inside the templates directory.

    Returns:
        The path of the written report.
    """
    env = Environment(
        loader=FileSystemLoader(str(TEMPLATES_DIR)),
        autoescape=select_autoescape(["html"]),
    )
    template = env.get_template(template_name)

    rendered_sections = []
    for section in sections:
        if section.is_empty:
            logging.warning(f"Report section '{section.title}' is empty, skipping.")
            continue

        figures, other_figures = [], []
        for figure in section.existing_figures:
            if figure.suffix.lower() == ".png":
                figures.append({"name": figure.stem, "src": encode_image(figure)})
            else:
                other_figures.append(figure.name)

        rendered_sections.append(
            {
                "title": section.title,
                "text": section.text,
                "figures": figures,
                "other_figures": other_figures,
                "tables": [
                    {
                        "caption": caption,
                        "n_rows": len(df),
                        "html": df.head(config.top_n).to_html(
                            classes="table", float_format=lambda x: f"{x:.4g}"
                        ),
                    }
                    for caption, df in section.tables.items()
                ],
            }
        )

    save_path.parent.mkdir(exist_ok=True, parents=True)
    save_path.write_text(
        template.render(config=config, sections=rendered_sections), encoding="utf-8"
    )
    logging.info(f"HTML report written to {save_path}")

    return save_path
