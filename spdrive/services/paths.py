"""Drive path helpers shared by the Graph services and the adapter."""
from typing import Tuple
from urllib.parse import quote


def normalize_path(path: str) -> str:
    """Return ``path`` as ``/a/b`` (root is ``/``)."""
    stripped = path.strip("/")
    return f"/{stripped}" if stripped else "/"


def split_path(path: str) -> Tuple[str, str]:
    """Split ``a/b/c.txt`` into (``/a/b``, ``c.txt``)."""
    parts = path.split("/")
    name = parts.pop()
    parent = "/" + "/".join(parts).lstrip("/")
    return parent, name


def item_url(drive_id: str, path: str, suffix: str = "") -> str:
    """
    Build the Graph URL addressing a drive item by path.

    Args:
        drive_id: Drive identifier
        path: Drive-relative path
        suffix: Optional action or relationship (e.g. ``/children``, ``/content``)
    """
    path = normalize_path(path)
    if path == "/":
        return f"/drives/{drive_id}/root{suffix}"
    url = f"/drives/{drive_id}/root:{quote(path, safe='/')}"
    return f"{url}:{suffix}" if suffix else url
