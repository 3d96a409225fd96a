"""
Ordering of image versions.

Policy:
- identical references are never newer than each other
- when both images carry a tag, tags compare by natural version key: digit
  runs numerically, text chunks lexically, a leading "v" before a digit is
  ignored ("v10" > "v9", "1.10.0" > "1.9.3")
- equal keys with different references (other registry, new digest) count
  as newer
- when either tag is missing (digest references) any difference counts as
  newer
"""

import re
from typing import Iterable, Optional, Tuple

from spacegun.modules.api import Image

_DIGITS = re.compile(r"(\d+)")

VersionKey = Tuple[Tuple[int, int, str], ...]


def version_key(tag: str) -> VersionKey:
    if len(tag) > 1 and tag[0] in "vV" and tag[1].isdigit():
        tag = tag[1:]
    key = []
    for chunk in _DIGITS.split(tag):
        if not chunk:
            continue
        # Numbers rank above text so "1.0.1" > "1.0.beta"
        key.append((1, int(chunk), "") if chunk.isdigit() else (0, 0, chunk))
    return tuple(key)


def is_newer(candidate: Image, current: Optional[Image]) -> bool:
    """True when candidate should replace current."""
    if current is None:
        return True
    if candidate.url == current.url:
        return False
    if candidate.tag and current.tag:
        candidate_key, current_key = version_key(candidate.tag), version_key(current.tag)
        if candidate_key != current_key:
            return candidate_key > current_key
    return True


def newest(images: Iterable[Image]) -> Optional[Image]:
    """
    Pick the newest image.

    Uses last_updated when every image has one, tag order otherwise.
    """
    images = [image for image in images if image.tag]
    if not images:
        return None
    if all(image.last_updated is not None for image in images):
        return max(images, key=lambda image: (image.last_updated, version_key(image.tag)))
    return max(images, key=lambda image: version_key(image.tag))
