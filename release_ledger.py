import os
import logging
from dataclasses import dataclass
from typing import List, Optional

logger = logging.getLogger(__name__)

BULLET = "*"


@dataclass(frozen=True)
class ReleaseEntry:
    """
    A single published release: the tag it was built from and the link to its release page.
    """
    tag: str
    uri: str

    def __post_init__(self):
        if not self.tag:
            raise ValueError("release tag must not be empty")
        if "\n" in self.tag or "\r" in self.tag:
            raise ValueError(f"release tag must be a single line: {self.tag!r}")

    def render(self) -> str:
        return f"{BULLET} [{self.tag}]({self.uri})"


def _is_entry_line(line: str) -> bool:
    return line.startswith(BULLET)


def _is_bare_bullet(line: str) -> bool:
    return line.strip() == BULLET


def _split_lines(text: str) -> List[str]:
    # Only "\n" ends a line; other separators (form feed, U+2028, "\r") stay inside it
    if not text:
        return []
    lines = text.split("\n")
    if text.endswith("\n"):
        lines.pop()
    return lines


def update_ledger(text: str, entry: ReleaseEntry) -> str:
    """
    Insert the release entry at the head of the ledger's bullet list.

    Lines mentioning the tag anywhere are dropped first, so re-deploying a release
    replaces its entry instead of duplicating it. Lines that are not bullets keep
    their position. Empty bullets are removed from the result.

    Args:
        text (str): Current ledger contents, possibly empty.
        entry (ReleaseEntry): The release being published.

    Returns:
        str: The new ledger contents, newline terminated.
    """
    lines: List[str] = [line for line in _split_lines(text) if entry.tag not in line]

    # Anchor so the head insertion below always has a bullet to land before
    lines.append(BULLET)

    for index, line in enumerate(lines):
        if _is_entry_line(line):
            lines.insert(index, entry.render())
            break
    else:
        lines.append(entry.render())

    lines = [line for line in lines if not _is_bare_bullet(line)]
    return "\n".join(lines) + "\n"


def read_ledger(path: str, header: Optional[str] = None) -> str:
    """
    Read the ledger file. A missing file is an empty ledger, seeded with the header when one is given.
    """
    if not os.path.exists(path):
        logger.info(f"No release ledger at {path}; starting a new one")
        return f"{header}\n" if header else ""
    with open(path, "r", encoding="utf-8") as f:
        return f.read()


def write_ledger(path: str, text: str) -> None:
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        f.write(text)


def update_ledger_file(path: str, entry: ReleaseEntry, header: Optional[str] = None) -> str:
    """
    Read, update and write back the ledger file at path.

    :param path: Path to the Markdown ledger inside the output tree
    :param entry: Release to record
    :param header: Preamble written as the first line of a newly created ledger
    :return: The text written to the file
    """
    current = read_ledger(path, header)
    updated = update_ledger(current, entry)
    write_ledger(path, updated)
    logger.info(f"Recorded release {entry.tag} in {path}")
    return updated
