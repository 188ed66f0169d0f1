"""Scrubbing for free-text identifiers spliced into sql.

sort fields and sort directions come straight from the request and can't be
bound as parameters, so they go through here first. the keyword list is
blunt on purpose - it's a backstop, not a parser.
"""

import structlog

from aggforge.errors import RejectedInputError

logger = structlog.get_logger(__name__)

STRIPPED_CHARS = ("'", '"', ";", "\\")

# trailing space matters - "selected_at" is a fine column name, "select " is not
ILLEGAL_KEYWORDS = (
    "master ",
    "truncate ",
    "insert ",
    "select ",
    "delete ",
    "update ",
    "declare ",
    "alert ",
    "drop ",
)


def sql_inject(source: str | None) -> str | None:
    """Scrub an identifier string before it goes into sql.

    strips quotes, semicolons and backslashes, lower-cases the rest and
    rejects anything containing an illegal keyword. blank input gives None.

    Raises:
        RejectedInputError: if a keyword from ILLEGAL_KEYWORDS is present.
    """
    if source is None or not source.strip():
        return None

    for ch in STRIPPED_CHARS:
        source = source.replace(ch, "")
    source = source.lower()

    for keyword in ILLEGAL_KEYWORDS:
        if keyword in source:
            logger.warning("sql_inject_rejected", keyword=keyword.strip())
            raise RejectedInputError(source, keyword)

    return source
