"""
Decoding of the recorder's ``key=value`` response bodies.

Bodies are CRLF (sometimes bare LF) separated lines. Some keys encode an
indexed path, e.g. ``items[3].Channel=1`` or ``items[3].Flags[0]=Manual``.
"""

import logging
import re
from typing import Dict, List, Optional, Tuple

from dahua_nvr.models.found_file import FIELD_NAMES, INTEGER_FIELDS, FindResult, FoundFile

logger = logging.getLogger(__name__)

# items[<index>].<Field>[<subindex>]
ITEM_KEY = re.compile(r"^items\[(\d+)\]\.(\w+)(?:\[(\d+)\])?(?:\.(.+))?$")


def split_lines(text: str) -> List[str]:
    return [line for line in text.replace("\r\n", "\n").split("\n") if line.strip()]


def split_key_value(line: str) -> Optional[Tuple[str, str]]:
    """Split one line on its first '='; returns None when there is no '='."""
    if "=" not in line:
        return None
    key, value = line.split("=", 1)
    return key.strip(), value.strip()


def parse_key_values(text: str) -> Dict[str, str]:
    """Parse a flat ``key=value`` body into a dict. Lines without '=' are skipped."""
    result = {}
    for line in split_lines(text):
        pair = split_key_value(line)
        if pair is not None:
            result[pair[0]] = pair[1]
    return result


class _FoundFileBuilder:
    """Collects the fields of one ``items[i]`` entry in whatever order they arrive."""

    def __init__(self, index: int):
        self.index = index
        self.fields: Dict[str, str] = {}
        self.events: Dict[int, str] = {}
        self.flags: Dict[int, str] = {}
        self.extra: Dict[str, str] = {}

    def set(self, field: str, subindex: Optional[str], rest: Optional[str], value: str):
        if field == "Events" and subindex is not None and rest is None:
            self.events[int(subindex)] = value
        elif field == "Flags" and subindex is not None and rest is None:
            self.flags[int(subindex)] = value
        elif field in FIELD_NAMES and subindex is None and rest is None:
            self.fields[field] = value
        else:
            key = field
            if subindex is not None:
                key += f"[{subindex}]"
            if rest is not None:
                key += f".{rest}"
            self.extra[key] = value

    def build(self) -> FoundFile:
        record = FoundFile(index=self.index)
        for field, value in self.fields.items():
            if field in INTEGER_FIELDS:
                try:
                    value = int(value)
                except ValueError:
                    logger.warning(f"items[{self.index}].{field} is not an integer: {value!r}")
                    self.extra[field] = value
                    continue
            setattr(record, FIELD_NAMES[field], value)
        record.events = [self.events[i] for i in sorted(self.events)]
        record.flags = [self.flags[i] for i in sorted(self.flags)]
        record.extra = self.extra
        return record


def decode_find_results(text: str) -> FindResult:
    """Decode a ``findNextFile`` body into a FindResult.

    Records are ordered by their reported index; gaps in the indices are kept.
    """
    found = 0
    builders: Dict[int, _FoundFileBuilder] = {}

    for line in split_lines(text):
        pair = split_key_value(line)
        if pair is None:
            continue
        key, value = pair

        if key == "found":
            try:
                found = int(value)
            except ValueError:
                logger.warning(f"Unexpected found count: {value!r}")
            continue

        match = ITEM_KEY.match(key.replace(" ", ""))
        if not match:
            continue

        index = int(match.group(1))
        builder = builders.get(index)
        if builder is None:
            builder = builders[index] = _FoundFileBuilder(index)
        builder.set(match.group(2), match.group(3), match.group(4), value)

    items = [builders[i].build() for i in sorted(builders)]
    return FindResult(found=found, items=items)
