"""
Splitting of Markdown documents with a YAML frontmatter block, Jekyll style:

---
kind: Strand
title: Intro
---
Body text

The document must begin with a line that is exactly `---`, and the block ends
at the next line that is exactly `---`. Everything after the closing
delimiter line is the body, unchanged. Lines ending in `\\r\\n` are accepted.
"""

from dataclasses import dataclass
from typing import Optional, Tuple

FM_DELIMITER = "---"


@dataclass(frozen=True)
class Frontmatter:
    frontmatter_text: str
    body_text: str


def _is_delimiter(line: str) -> bool:
    return line.rstrip("\r\n") == FM_DELIMITER


def _find_block(text: str) -> Optional[Tuple[int, int, int]]:
    """
    Locate the frontmatter block. Returns offsets `(fm_start, fm_end, body_start)`
    or None if the document has no leading delimiter pair.
    """
    first_end = text.find("\n")
    if first_end < 0 or not _is_delimiter(text[: first_end + 1]):
        return None

    fm_start = first_end + 1
    pos = fm_start
    while pos <= len(text):
        line_end = text.find("\n", pos)
        next_pos = len(text) if line_end < 0 else line_end + 1
        line = text[pos:next_pos]
        if _is_delimiter(line):
            return fm_start, pos, next_pos
        if line_end < 0:
            break
        pos = next_pos

    return None


def has_frontmatter(text: str) -> bool:
    return _find_block(text) is not None


def split_frontmatter(text: str) -> Optional[Frontmatter]:
    """
    Split a document into its frontmatter text and body. Returns None when the
    document has no frontmatter.
    """
    block = _find_block(text)
    if not block:
        return None
    fm_start, fm_end, body_start = block
    return Frontmatter(frontmatter_text=text[fm_start:fm_end], body_text=text[body_start:])


def join_frontmatter(frontmatter_text: str, body: str) -> str:
    """
    Compose a Markdown document from a frontmatter block and a body, with a blank
    line between them.
    """
    if frontmatter_text and not frontmatter_text.endswith("\n"):
        frontmatter_text += "\n"
    return f"{FM_DELIMITER}\n{frontmatter_text}{FM_DELIMITER}\n\n{body}"


## Tests


def test_split_frontmatter():
    fm = split_frontmatter("---\nkind: Strand\ntitle: Intro\n---\nBody text")
    assert fm == Frontmatter(frontmatter_text="kind: Strand\ntitle: Intro\n", body_text="Body text")

    # Body is kept byte for byte, leading blank lines included.
    fm = split_frontmatter("---\ntitle: A\n---\n\n\n# Heading\n  indented\n")
    assert fm and fm.body_text == "\n\n# Heading\n  indented\n"

    fm = split_frontmatter("---\r\ntitle: A\r\n---\r\nBody\r\n")
    assert fm and fm.frontmatter_text == "title: A\r\n"
    assert fm.body_text == "Body\r\n"

    fm = split_frontmatter("---\ntitle: A\n---")
    assert fm and fm.body_text == ""

    fm = split_frontmatter("---\n---\nBody")
    assert fm and fm.frontmatter_text == "" and fm.body_text == "Body"


def test_no_frontmatter():
    assert split_frontmatter("Just a body") is None
    assert split_frontmatter("") is None
    assert split_frontmatter("\n---\ntitle: A\n---\n") is None
    assert split_frontmatter("---\ntitle: A\nno closing line\n") is None
    assert split_frontmatter("----\ntitle: A\n----\n") is None
    assert not has_frontmatter("# Title\n---\n")
    assert has_frontmatter("---\ntitle: A\n---\n")


def test_join_frontmatter():
    doc = join_frontmatter("title: A\n", "Body")
    assert doc == "---\ntitle: A\n---\n\nBody"
    fm = split_frontmatter(doc)
    assert fm and fm.frontmatter_text == "title: A\n" and fm.body_text == "\nBody"
