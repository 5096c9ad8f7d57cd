from datetime import datetime as dt
from pathlib import Path
from typing import Dict, List, Tuple

import pandas as pd
from pydantic import ConfigDict, Field
from pydantic.dataclasses import dataclass

FIGURE_FORMATS = ("png", "pdf")
REPORT_FORMATS = ("html", "pdf")


@dataclass
class ReportConfig:
    """
    Rendering options of the workflow reports.

    Args:
        title: Title shown on top of the reports. Workflows prepend their own
            title when left empty.
        author: Author shown under the title.
        top_n: Maximum number of rows shown per table.
        figure_format: Extension of the plots produced by the workflow. Only
            PNG figures can be embedded in the reports.
        report_formats: Which reports to write ("html", "pdf").
        date: Date shown under the title.
    """

    title: str = ""
    author: str = ""
    top_n: int = 100
    figure_format: str = "png"
    report_formats: Tuple[str, ...] = REPORT_FORMATS
    date: str = Field(default_factory=lambda: dt.now().strftime("%Y-%m-%d"))

    def __post_init__(self) -> None:
        if self.top_n < 1:
            raise ValueError(f"top_n must be positive, got {self.top_n}.")
        if self.figure_format not in FIGURE_FORMATS:
            raise ValueError(
                f"figure_format must be one of {FIGURE_FORMATS},"
                f" got {self.figure_format}."
            )
        unknown = set(self.report_formats).difference(REPORT_FORMATS)
        if unknown:
            raise ValueError(
                f"Unknown report formats {sorted(unknown)}, valid ones are"
                f" {REPORT_FORMATS}."
            )


@dataclass(config=ConfigDict(arbitrary_types_allowed=True))
class ReportSection:
    """
    One section of a report.

    Args:
        title: Section heading.
        text: Paragraph shown under the heading.
        figures: Plots of the section, shown in order. Missing files are
            skipped.
        tables: Tables of the section, keyed by caption.
    """

    title: str
    text: str = ""
    figures: List[Path] = Field(default_factory=list)
    tables: Dict[str, pd.DataFrame] = Field(default_factory=dict)

    @property
    def existing_figures(self) -> List[Path]:
        return [f for f in self.figures if Path(f).is_file()]

    @property
    def is_empty(self) -> bool:
        return not (self.text or self.existing_figures or self.tables)
