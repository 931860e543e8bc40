"""Markdown conversion and the rich text dialect pass.

GitHub-flavored markdown is converted to HTML with markdown-it, parsed into a
BeautifulSoup tree and rewritten node by node into the small HTML subset the
task service accepts in rich task notes.
"""

from bs4 import BeautifulSoup, Comment, NavigableString, Tag
from markdown_it import MarkdownIt
from mdit_py_plugins.tasklists import tasklists_plugin

from github_asana_relay.utils.constants import ALLOWED_RICH_TEXT_ATTRIBUTES, ALLOWED_RICH_TEXT_TAGS

HEADING_LEVELS = {"h1": "h1", "h2": "h1", "h3": "h1", "h4": "h2", "h5": "h2", "h6": "h2"}
TAG_ALIASES = {"del": "s", "strike": "s", "b": "strong", "i": "em", "ins": "u"}
BLOCK_TAGS = frozenset({"h1", "h2", "h3", "h4", "h5", "h6", "ul", "ol", "li", "pre", "blockquote", "hr", "p", "table"})
DROPPED_TAGS = frozenset({"script", "style", "head", "title", "meta", "link"})

_markdown = MarkdownIt("commonmark", {"html": True, "breaks": True, "linkify": False}).enable(["table", "strikethrough"]).use(tasklists_plugin)


def markdown_to_html(text: str) -> str:
    """Convert GitHub-flavored markdown to HTML."""
    return _markdown.render(text)


def parse_html(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, "html.parser")


def normalize_href(href: str) -> str:
    """Rewrite relative and protocol-less links to absolute https links."""
    href = href.strip()
    lowered = href.lower()
    if lowered.startswith(("http://", "https://", "mailto:")):
        return href
    if href.startswith("//"):
        return f"https:{href}"
    return f"https://{href.lstrip('/')}"


def _strip_leading_whitespace(node: Tag | NavigableString | None) -> None:
    """Strip whitespace at the start of the text node following a converted tag."""
    if isinstance(node, NavigableString) and not isinstance(node, Comment):
        stripped = node.lstrip()
        if stripped:
            node.replace_with(NavigableString(stripped))
        else:
            node.extract()


def _drop_layout_whitespace(soup: BeautifulSoup) -> None:
    """Remove whitespace-only text between block elements and inside lists."""
    for node in list(soup.find_all(string=True)):
        if isinstance(node, Comment) or node.strip():
            continue
        parent = node.parent
        if parent is not None and parent.name in ("ul", "ol", "table", "thead", "tbody", "tr"):
            node.extract()
            continue
        previous_sibling = node.previous_sibling
        next_sibling = node.next_sibling
        if isinstance(previous_sibling, Tag) and previous_sibling.name in BLOCK_TAGS:
            node.extract()
        elif previous_sibling is None and isinstance(next_sibling, Tag) and next_sibling.name in BLOCK_TAGS:
            node.extract()


def _replace_checkboxes(soup: BeautifulSoup) -> None:
    for checkbox in soup.find_all("input"):
        if checkbox.get("type") == "checkbox":
            checkbox.replace_with(NavigableString("[x]" if checkbox.has_attr("checked") else "[ ]"))
        else:
            checkbox.decompose()


def _collapse_code_blocks(soup: BeautifulSoup) -> None:
    for pre in soup.find_all("pre"):
        for code in pre.find_all("code"):
            code.unwrap()


def _convert_line_breaks(soup: BeautifulSoup) -> None:
    for paragraph in soup.find_all("p"):
        _strip_leading_whitespace(paragraph.next_sibling)
        paragraph.insert_after(NavigableString("\n\n"))
        paragraph.unwrap()
    for line_break in soup.find_all("br"):
        _strip_leading_whitespace(line_break.next_sibling)
        line_break.replace_with(NavigableString("\n"))
    # Paragraph breaks at the end of a list item or quote only add blank lines.
    for container in soup.find_all(["li", "blockquote"]):
        last = container.contents[-1] if container.contents else None
        if isinstance(last, NavigableString) and not isinstance(last, Comment):
            last.replace_with(NavigableString(last.rstrip()))


def _rewrite_tags(soup: BeautifulSoup) -> None:
    """Rename, unwrap or drop tags so only the accepted subset remains."""
    for node in soup.find_all(string=lambda text: isinstance(text, Comment)):
        node.extract()
    for tag in soup.find_all(True):
        if tag.decomposed:
            continue
        if tag.name in DROPPED_TAGS:
            tag.decompose()
            continue
        if tag.name in HEADING_LEVELS:
            tag.name = HEADING_LEVELS[tag.name]
        elif tag.name in TAG_ALIASES:
            tag.name = TAG_ALIASES[tag.name]

        if tag.name not in ALLOWED_RICH_TEXT_TAGS:
            tag.unwrap()
            continue
        if tag.name == "a":
            href = tag.get("href")
            if not href:
                tag.unwrap()
                continue
            tag["href"] = normalize_href(href)

        allowed = ALLOWED_RICH_TEXT_ATTRIBUTES.get(tag.name, frozenset())
        tag.attrs = {name: value for name, value in tag.attrs.items() if name in allowed}


def images_to_links(soup: BeautifulSoup) -> None:
    """Turn every image that is not an attachment reference into a text link."""
    for image in soup.find_all("img"):
        if image.has_attr("data-asana-gid"):
            continue
        degrade_image(soup, image)


def degrade_image(soup: BeautifulSoup, image: Tag) -> None:
    """Replace an image with a link to its source, or with its label alone inside a link."""
    alt = image.get("alt")
    if image.find_parent("a") is not None:
        image.replace_with(NavigableString(f"[{alt or 'Image'}]"))
        return
    image.replace_with(image_link(soup, image.get("src", ""), alt))


def image_link(soup: BeautifulSoup, src: str, alt: str | None) -> Tag:
    """The degraded form of an image: a link labelled ``[alt]``."""
    link = soup.new_tag("a", href=src)
    link.string = f"[{alt or 'Image'}]"
    return link


def apply_rich_text_dialect(soup: BeautifulSoup) -> BeautifulSoup:
    """Rewrite a parsed HTML tree in place into the task service's rich text dialect.

    Tables must already be flattened and images resolved to attachment
    references; any image left over degrades to a link.
    """
    _drop_layout_whitespace(soup)
    _replace_checkboxes(soup)
    _collapse_code_blocks(soup)
    images_to_links(soup)
    _convert_line_breaks(soup)
    _rewrite_tags(soup)
    return soup


def serialize_rich_text(soup: BeautifulSoup) -> str:
    """Serialize a rewritten tree wrapped in a single ``<body>`` root."""
    inner = soup.decode(formatter="minimal").strip()
    return f"<body>{inner}</body>"
