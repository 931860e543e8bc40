"""Flattens HTML tables into aligned, monospaced text."""

import re
import unicodedata

from bs4 import BeautifulSoup, Comment, NavigableString, Tag

WHITESPACE = re.compile(r"\s+")
CELL_SEPARATOR = " | "
RULE_SEPARATOR = "-|-"


def display_width(text: str) -> int:
    """Number of monospaced columns a string occupies; wide and full-width characters take two."""
    width = 0
    for char in text:
        if unicodedata.combining(char):
            continue
        width += 2 if unicodedata.east_asian_width(char) in ("W", "F") else 1
    return width


def _pad(text: str, width: int) -> str:
    return text + " " * (width - display_width(text))


def cell_text(cell: Tag) -> str:
    """Plain text of a table cell; images become ``[alt](url)`` links."""
    parts: list[str] = []
    for node in cell.descendants:
        if isinstance(node, Tag) and node.name == "img":
            parts.append(f"[{node.get('alt') or 'Image'}]({node.get('src', '')})")
        elif isinstance(node, NavigableString) and not isinstance(node, Comment):
            parts.append(str(node))
    return WHITESPACE.sub(" ", "".join(parts)).strip()


def format_rows(rows: list[list[str]], has_header: bool) -> str:
    """Lay out rows with padded columns and a rule under the header row."""
    column_count = max(len(row) for row in rows)
    padded = [row + [""] * (column_count - len(row)) for row in rows]
    widths = [max(1, max(display_width(row[column]) for row in padded)) for column in range(column_count)]

    lines = []
    for index, row in enumerate(padded):
        lines.append(CELL_SEPARATOR.join(_pad(cell, width) for cell, width in zip(row, widths)).rstrip())
        if index == 0 and has_header:
            lines.append(RULE_SEPARATOR.join("-" * width for width in widths))
    return "\n".join(lines)


def flatten_tables(soup: BeautifulSoup) -> int:
    """Replace every table in the tree with a ``<pre>`` block; returns how many were replaced."""
    tables = soup.find_all("table")
    # Innermost first so nested tables are flattened into their parent's cells.
    for table in reversed(tables):
        rows: list[list[str]] = []
        has_header = False
        for row_index, row in enumerate(table.find_all("tr")):
            cells = row.find_all(["th", "td"], recursive=False)
            if row_index == 0 and cells and all(cell.name == "th" for cell in cells):
                has_header = True
            rows.append([cell_text(cell) for cell in cells])

        rows = [row for row in rows if row]
        if not rows:
            table.decompose()
            continue

        pre = soup.new_tag("pre")
        pre.string = format_rows(rows, has_header)
        table.replace_with(pre)
    return len(tables)
