import re
from typing import List, Tuple

from planparser.models.results import FormattedElement, ListBlock

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b-\x1f\x7f]")
_INLINE_WHITESPACE = re.compile(r"[ \t\u00a0\u2000-\u200b]+")
_PARAGRAPH_BREAK = re.compile(r"\n\s*\n")
_BULLET = re.compile(r"^(?:[•\-\*–·]|\d+[.)])\s+")
_ORDERED = re.compile(r"^\d+[.)]\s+")
_MULTI_SPACE = re.compile(r"\s{2,}")

HEADER_MAX_LENGTH = 50


class TextPreprocessor:
    def __init__(self, normalize_yo: bool = True, annotate_headers: bool = False):
        self.normalize_yo = normalize_yo
        self.annotate_headers = annotate_headers

    def normalize(self, text: str) -> str:
        text = text.replace("\r\n", "\n").replace("\r", "\n")
        text = _CONTROL_CHARS.sub("", text)
        if self.normalize_yo:
            text = text.replace("ё", "е").replace("Ё", "Е")

        lines = [_INLINE_WHITESPACE.sub(" ", line).strip() for line in text.split("\n")]
        if self.annotate_headers:
            lines = [f"[HEADER] {line} [HEADER]" if is_header(line) else line for line in lines]

        text = "\n".join(lines)
        text = _PARAGRAPH_BREAK.sub("\n\n", text)
        return text.strip()

    def render_structure(self, elements: List[FormattedElement]) -> str:
        """Markdown-ish rendering that keeps headings and list items recognizable."""
        rendered = []
        for element in elements:
            if element.type == "heading":
                rendered.append(f"{'#' * (element.heading_level or 1)} {element.text}")
            elif element.type == "list_item":
                rendered.append(f"• {element.text}")
            else:
                rendered.append(element.text)
        return "\n".join(rendered)


def is_header(line: str) -> bool:
    """Short lines that are mostly uppercase (Latin or Cyrillic)."""
    if not line or len(line) >= HEADER_MAX_LENGTH:
        return False
    upper = sum(1 for ch in line if ch.isupper())
    return upper > len(line) / 2


def analyze_lines(text: str) -> Tuple[List[FormattedElement], List[ListBlock]]:
    """Classify normalized lines into headings, list items and paragraphs."""
    elements: List[FormattedElement] = []
    lists: List[ListBlock] = []
    current = None

    for line in text.split("\n"):
        line = line.strip()
        if not line:
            current = None
            continue
        if _BULLET.match(line):
            item = _BULLET.sub("", line, count=1)
            ordered = bool(_ORDERED.match(line))
            if current is None or current.ordered != ordered:
                current = ListBlock(ordered=ordered)
                lists.append(current)
            current.items.append(item)
            elements.append(FormattedElement(text=item, type="list_item"))
            continue
        current = None
        if is_header(line):
            elements.append(FormattedElement(text=line, type="heading", heading_level=1))
        else:
            elements.append(FormattedElement(text=line, type="paragraph"))
    return elements, lists


def extract_tables(raw_text: str) -> List[List[List[str]]]:
    """
    Pick up pipe- or tab-separated blocks of at least two consecutive rows.
    Markdown separator rows are skipped.
    """
    tables = []
    rows: List[List[str]] = []

    def flush() -> None:
        if len(rows) >= 2:
            tables.append(list(rows))
        rows.clear()

    for line in raw_text.replace("\r\n", "\n").split("\n"):
        stripped = line.strip()
        if "|" in stripped:
            cells = [cell.strip() for cell in stripped.strip("|").split("|")]
        elif "\t" in stripped:
            cells = [cell.strip() for cell in stripped.split("\t")]
        else:
            flush()
            continue
        if all(set(cell) <= set("-: ") for cell in cells):
            continue
        rows.append(cells)
    flush()
    return tables


def looks_tabular(raw_text: str) -> bool:
    separated = 0
    columnar = 0
    for line in raw_text.split("\n"):
        if "|" in line or "\t" in line:
            separated += 1
        elif len(_MULTI_SPACE.split(line.strip())) > 3:
            columnar += 1
    return separated > 2 or columnar > 2
