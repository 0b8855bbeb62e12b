"""Catalog reconciliation - diff a stored catalog against a fresh remote listing.

Hey future me - this is a PURE function module. No I/O, no session, no adapter. The
provider service fetches the listing, calls reconcile(), then stages the two lists on the
unit of work. Keep it that way so the set laws stay trivially testable.

Keying:
- The ONLY key is remote_id (provider-assigned, survives renames/moves).
- Path, name and hash are NOT compared. An entry present on both sides is left alone,
  even if the provider reports a new hash. Content is treated as immutable once indexed.
- Duplicate remote_ids inside one listing: last-seen-wins, with a warning log.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from cloudmusic.domain.entities import CatalogEntry, RemoteFile
from cloudmusic.domain.value_objects import ProviderLinkId

logger = logging.getLogger(__name__)


@dataclass
class CatalogDiff:
    """Entries to add and remove so the catalog matches the remote listing."""

    to_add: list[CatalogEntry] = field(default_factory=list)
    to_remove: list[CatalogEntry] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        """True when the catalog already matches the listing."""
        return not self.to_add and not self.to_remove

    def summary(self) -> dict[str, int]:
        """Counts for logging."""
        return {"added": len(self.to_add), "removed": len(self.to_remove)}


def index_remote_files(remote: Iterable[RemoteFile]) -> dict[str, RemoteFile]:
    """Map remote_id to remote file, last-seen-wins on duplicates."""
    by_id: dict[str, RemoteFile] = {}
    for remote_file in remote:
        if remote_file.remote_id in by_id:
            logger.warning(
                "Duplicate remote id in listing, keeping last occurrence",
                extra={"remote_id": remote_file.remote_id, "path": remote_file.path},
            )
        by_id[remote_file.remote_id] = remote_file
    return by_id


# Listen up, this is O(old + new): one pass to build the dict, one pass over the old
# catalog popping matches. Whatever is left in the dict afterwards is new. Don't "simplify"
# this into set comprehensions over both sides - that reintroduces repeated lookups
# against the listing and loses the last-seen-wins policy.
def reconcile(
    existing: Iterable[CatalogEntry],
    remote: Iterable[RemoteFile],
    provider_link_id: ProviderLinkId,
) -> CatalogDiff:
    """Compute additions and removals for a provider link's catalog.

    Args:
        existing: Catalog entries currently stored for the link
        remote: Freshly fetched remote listing
        provider_link_id: Link the new entries belong to

    Returns:
        CatalogDiff with new entries to add and stored entries to remove
    """
    pending = index_remote_files(remote)
    diff = CatalogDiff()

    for entry in existing:
        if pending.pop(entry.remote_id, None) is None:
            diff.to_remove.append(entry)

    diff.to_add = [
        CatalogEntry.from_remote(provider_link_id, remote_file)
        for remote_file in pending.values()
    ]
    return diff
