"""
Settings that define the visual appearance of text outputs.
"""

import re

from rich.highlighter import RegexHighlighter


## Colors

COLOR_EMPH = "bright_green"

COLOR_PATH = "cyan"

COLOR_HINT = "dim"

COLOR_SUCCESS = "bold green"

COLOR_WARN = "bold yellow"

COLOR_ERROR = "bold red"

COLOR_KIND = "bold magenta"


## Emoji

EMOJI_SUCCESS = "✔︎"

EMOJI_WARN = "∆"

EMOJI_ERROR = "‼︎"

EMOJI_SAVED = "⩣"

EMOJI_PUBLISHED = "⇪"


RICH_STYLES = {
    "openstrand.path": COLOR_PATH,
    "openstrand.kind": COLOR_KIND,
    "openstrand.state": COLOR_EMPH,
    "openstrand.checksum": COLOR_HINT,
}


class OpenStrandHighlighter(RegexHighlighter):
    """
    Highlight kinds, save states and checksums in log and console output.
    """

    base_style = "openstrand."
    highlights = [
        re.compile(r"(?P<kind>\b(Loom|Weave|Strand)\b)"),
        re.compile(r"(?P<state>\b(draft|saved|pending|published|conflict)\b)"),
        re.compile(r"(?P<checksum>\bsha1:[0-9a-f]{8,40}\b)"),
    ]
