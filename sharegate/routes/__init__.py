"""HTTP routes. Each module exposes a ``router``."""
from urllib.parse import quote


def content_disposition(disposition: str, filename: str) -> str:
    """Content-Disposition value for a user-supplied filename.

    Names that survive URL quoting unchanged go in ``filename="..."``;
    anything else (non-ASCII, quotes) is sent RFC 5987 encoded.
    """
    quoted = quote(filename)
    if quoted != filename:
        return f"{disposition}; filename*=utf-8''{quoted}"
    return f'{disposition}; filename="{filename}"'
