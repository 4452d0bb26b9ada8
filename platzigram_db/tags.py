import re
from typing import List, Optional

HASHTAG_RE = re.compile(r"#(\w+)")


def normalize(text: str) -> str:
    """Lower-cases a tag and strips surrounding whitespace and '#' marks."""
    return text.replace("#", "").strip().lower()


def extract_tags(text: Optional[str]) -> List[str]:
    """Returns the unique normalized hashtags of ``text``, in order of appearance."""
    if not text:
        return []
    tags = []
    for match in HASHTAG_RE.findall(text):
        tag = normalize(match)
        if tag not in tags:
            tags.append(tag)
    return tags
