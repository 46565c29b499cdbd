"""
json-home document parsing.

Accepts both the RFC layout, where relations live under a ``resources``
object, and a flat object keyed by relation name:

    {"resources": {"profile": {"href": "/api/profile"}}}
    {"search": {"href-template": "/search?q={query}"}}

A top-level ``resources`` value that is itself an entry is read as the
relation named ``resources`` in a flat document.
"""
import json
import logging
import time
from typing import Any, Optional, Union

from .errors import FetchError
from .types import DirectEntry, DirectoryEntry, Snapshot, TemplateEntry

logger = logging.getLogger(__name__)

HREF = "href"
HREF_TEMPLATE = "href-template"
RESOURCES = "resources"


def parse_entry(relation_name: str, value: Any) -> DirectoryEntry:
    """Parse a single resource object into a directory entry"""
    if not isinstance(value, dict):
        raise FetchError(f"Resource '{relation_name}' is not an object: {value!r}")

    if HREF in value and HREF_TEMPLATE in value:
        raise FetchError(
            f"Resource '{relation_name}' has both '{HREF}' and '{HREF_TEMPLATE}'"
        )

    href = value.get(HREF)
    if isinstance(href, str):
        return DirectEntry(href=href)

    href_template = value.get(HREF_TEMPLATE)
    if isinstance(href_template, str):
        return TemplateEntry(href_template=href_template)

    raise FetchError(
        f"Resource '{relation_name}' has neither a string '{HREF}' nor a string '{HREF_TEMPLATE}'"
    )


def _is_resources_wrapper(value: Any) -> bool:
    """A 'resources' object that is not itself an entry holds the relations"""
    return isinstance(value, dict) and HREF not in value and HREF_TEMPLATE not in value


def parse_json_home(
    document: Union[str, bytes, dict],
    url: Optional[str] = None,
    fetched_at: Optional[float] = None,
) -> Snapshot:
    """
    Parse a json-home document into a Snapshot.

    Args:
        document: Raw body or already-decoded JSON object
        url: Document URL, attached to errors
        fetched_at: Fetch timestamp (default: now)

    Raises:
        FetchError: if the document is not valid json-home
    """
    if isinstance(document, (str, bytes)):
        try:
            document = json.loads(document)
        except ValueError as e:
            raise FetchError(f"Invalid JSON in json-home document: {e}", url=url) from e

    if not isinstance(document, dict):
        raise FetchError(
            f"json-home document must be a JSON object, got {type(document).__name__}",
            url=url,
        )

    resources = document
    if _is_resources_wrapper(document.get(RESOURCES)):
        resources = document[RESOURCES]

    entries: dict[str, DirectoryEntry] = {}
    for relation_name, value in resources.items():
        try:
            entries[relation_name] = parse_entry(relation_name, value)
        except FetchError as e:
            e.url = url
            raise

    logger.debug(f"parse_json_home: url={url}, relations={sorted(entries)}")
    return Snapshot(entries, fetched_at=time.time() if fetched_at is None else fetched_at)
