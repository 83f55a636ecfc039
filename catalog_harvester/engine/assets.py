"""Download the asset slots of an extracted record into the sharded asset store."""

from __future__ import annotations

from dataclasses import replace

import structlog

from ..config import AssetConfig
from ..domain import ExtractedRecord, failed_asset, failed_asset_url, is_remote
from ..infra import ContentStore
from ..infra.files import extension_from_url
from .fetcher import FetchError, Fetcher


class AssetDownloader:
    """Fetch every pending slot of a record, isolating per-slot failures.

    A slot is pending when it holds a remote URL or a failure sentinel; slots
    that already point at a local file are left alone.
    """

    def __init__(
        self,
        fetcher: Fetcher,
        content_store: ContentStore,
        policy: AssetConfig,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.fetcher = fetcher
        self.content_store = content_store
        self.policy = policy
        self.logger = logger or structlog.get_logger("catalog_harvester.assets")

    def fetch_record_assets(self, record: ExtractedRecord) -> tuple[ExtractedRecord, bool]:
        """Return the record with rewritten slots and whether every slot succeeded."""

        if record.id is None:
            raise ValueError("Asset paths need a stored record id")
        slots = list(record.assets)
        all_ok = True
        for slot, reference in enumerate(record.assets, start=1):
            url = failed_asset_url(reference) or (reference if is_remote(reference) else None)
            if url is None:
                continue
            extension = extension_from_url(url, self.policy.default_extension)
            path = self.content_store.asset_path(
                record.brand, record.id, record.external_id, slot, extension
            )
            try:
                response = self.fetcher.fetch(url, self.policy)
                self.content_store.write_asset(path, response.content)
            except (FetchError, OSError) as exc:
                self.logger.warning(
                    "asset_failed",
                    external_id=record.external_id,
                    slot=slot,
                    url=url,
                    error=str(exc),
                )
                slots[slot - 1] = failed_asset(url)
                all_ok = False
                continue
            slots[slot - 1] = str(path)
        return replace(record, assets=tuple(slots)), all_ok


__all__ = ["AssetDownloader"]
