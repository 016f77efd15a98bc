"""
Readers for the key/value files that describe backup jobs.

Two shapes are handled:
- Job files: one ``key=value`` per logical line, ``#`` or ``!`` comments,
  and a trailing backslash joining the next physical line.
- Property strings: the comma-delimited ``name=value,name=value`` values
  stored under ``instruction_N``, ``file_retriever`` and ``archive_schedule``.
"""

from pathlib import Path
from typing import Dict, List, Tuple


PROPERTIES_ENCODING = 'latin-1'


def _logical_lines(text: str) -> List[str]:
    """Join continued lines and drop blanks and comments."""
    lines = []
    buffer = ''

    for raw in text.splitlines():
        line = raw.strip() if not buffer else raw.lstrip()

        if not buffer and (not line or line[0] in '#!'):
            continue

        # An odd number of trailing backslashes continues the line
        trailing = len(line) - len(line.rstrip('\\'))
        if trailing % 2 == 1:
            buffer += line[:-1]
            continue

        lines.append(buffer + line)
        buffer = ''

    if buffer:
        lines.append(buffer)

    return lines


def parse_properties(text: str) -> Dict[str, str]:
    """
    Parse job file text into a dict.

    The key ends at the first ``=`` or ``:``; a line with neither is a key
    with an empty value. Later keys replace earlier ones.

    Args:
        text: Job file contents

    Returns:
        Dict of property names to values
    """
    props = {}

    for line in _logical_lines(text):
        separators = [i for i in (line.find('='), line.find(':')) if i != -1]
        if separators:
            index = min(separators)
            key, value = line[:index], line[index + 1:]
        else:
            key, value = line, ''
        props[key.strip()] = value.strip()

    return props


def load_properties(path) -> Dict[str, str]:
    """
    Read and parse a job file.

    Job files are ISO-8859-1, so any byte sequence decodes.

    Raises:
        OSError: If the file cannot be read
    """
    return parse_properties(Path(path).read_text(encoding=PROPERTIES_ENCODING))


def split_property_string(props: str) -> List[Tuple[str, str]]:
    """
    Split a ``name=value,name=value`` string into ordered pairs.

    Each token is split on its first ``=`` so values may contain ``=``.
    Repeated names are kept in order. Empty tokens are skipped.

    Args:
        props: Comma-delimited property string

    Returns:
        List of (name, value) tuples
    """
    pairs = []
    if not props:
        return pairs

    for token in props.split(','):
        token = token.strip()
        if not token:
            continue
        name, _, value = token.partition('=')
        pairs.append((name.strip(), value.strip()))

    return pairs


def read_backup_list(path) -> List[str]:
    """
    Read a list of job file paths, one per line.

    Blank lines and ``#`` comments are skipped.

    Raises:
        OSError: If the file cannot be read
        UnicodeDecodeError: If the file is not UTF-8
    """
    paths = []
    for line in Path(path).read_text(encoding='utf-8').splitlines():
        line = line.strip()
        if line and not line.startswith('#'):
            paths.append(line)
    return paths
