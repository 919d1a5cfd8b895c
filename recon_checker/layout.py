# recon_checker/layout.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List

from .normalize import norm_str

ROW_EPS = 2.0


@dataclass(frozen=True)
class PositionedText:
    text: str
    x: float
    y_top: float


@dataclass
class Line:
    items: List[PositionedText] = field(default_factory=list)
    y_top: float = 0.0

    @property
    def text(self) -> str:
        return " ".join(it.text for it in self.items)


def to_top_y(page_height: float, y_bottom: float) -> float:
    """Bottom-origin PDF y (text matrix) -> distance from the page top."""
    return float(page_height) - float(y_bottom)


def clean_items(items: Iterable[PositionedText]) -> list[PositionedText]:
    out = []
    for it in items:
        text = norm_str(it.text)
        if not text:
            continue
        out.append(PositionedText(text, float(it.x), float(it.y_top)))
    return out


def group_into_lines(items: Iterable[PositionedText], row_eps: float = ROW_EPS) -> list[Line]:
    """
    Bucket text runs into lines, top to bottom.
      - runs sorted by (y_top, x)
      - a run joins the first line whose seed y is within row_eps, else starts a new one
      - members sorted by x, line y = mean member y
    """
    lines: list[Line] = []
    for it in sorted(items, key=lambda t: (t.y_top, t.x)):
        for line in lines:
            if abs(line.y_top - it.y_top) <= row_eps:
                line.items.append(it)
                break
        else:
            lines.append(Line(items=[it], y_top=it.y_top))

    for line in lines:
        line.items.sort(key=lambda t: t.x)
        line.y_top = sum(t.y_top for t in line.items) / len(line.items)
    lines.sort(key=lambda l: l.y_top)
    return lines
