import re
from typing import Union

from bookresolver.errors import ValidationError
from bookresolver.models import Identifier, IdentifierKind, TextQuery

_SEPARATORS = re.compile(r"[\s-]+")
_ISBN10 = re.compile(r"^\d{10}$")
_ISBN13 = re.compile(r"^\d{13}$")


def normalize(raw_query: str) -> Union[Identifier, TextQuery]:
    """
    Classify a raw query as an ISBN or free text.

    Hyphens and whitespace are stripped before matching, so "978-0-14-312774-1"
    becomes Identifier("9780143127741"). Anything else is returned trimmed as a
    TextQuery. Raises ValidationError when nothing is left after trimming.
    """
    text = (raw_query or "").strip()
    if not text:
        raise ValidationError("Query is empty.")

    digits = _SEPARATORS.sub("", text)
    if _ISBN13.match(digits): return Identifier(digits, IdentifierKind.ISBN13)
    if _ISBN10.match(digits): return Identifier(digits, IdentifierKind.ISBN10)
    return TextQuery(text)
