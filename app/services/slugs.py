import re
import unicodedata

_NON_WORD_RE = re.compile(r"[^a-z0-9]+")


def slugify(value: str) -> str:
    normalized = unicodedata.normalize("NFKD", str(value or "")).encode("ascii", "ignore").decode("ascii")
    slug = _NON_WORD_RE.sub("-", normalized.lower()).strip("-")
    return slug or "item"
