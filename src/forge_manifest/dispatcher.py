"""
Fetch dispatch: run manifest retrieval for every planned sub-group, either
sequentially or on a bounded worker pool.

Each image gets its own ManifestResult written to its original index, so the
output order matches the input regardless of completion order. Failures are
recorded per image and never abort the batch.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

from forge_manifest.exceptions import RegistryError
from forge_manifest.manifest import ManifestFetcher
from forge_manifest.models import ImageSpec, ManifestResult
from forge_manifest.planner import SubGroup

logger = logging.getLogger(__name__)


class FetchDispatcher:
    """Executes a batch plan and collects position-stable results."""

    def __init__(self, fetcher: ManifestFetcher, log: Optional[logging.Logger] = None):
        self.fetcher = fetcher
        self.logger = log or logger

    def dispatch(self, groups: list[SubGroup], total: int, concurrency: int = 0) -> list[ManifestResult]:
        """
        Fetch every image in the plan.

        Args:
            groups: Sub-groups from BatchPlanner.plan()
            total: Length of the original input list
            concurrency: 0 or less runs sequentially; otherwise the worker count

        Returns:
            One result per input index

        Raises:
            ValueError: If the groups leave an input index without a result
        """
        results: list[Optional[ManifestResult]] = [None] * total

        if concurrency <= 0:
            self._fetch_sequentially(groups, results)
        else:
            self._fetch_concurrently(groups, results, concurrency)

        missing = [index for index, result in enumerate(results) if result is None]
        if missing:
            raise ValueError(f"Batch plan left input positions {missing} without a result")
        return results

    def fetch_single(self, spec: ImageSpec, group: SubGroup) -> ManifestResult:
        """Fetch one image, reusing the group's batch token when it has one."""
        result = ManifestResult(image=spec.image, tag=spec.tag)
        try:
            if group.has_token:
                manifest, digest = self.fetcher.get_manifest_with_token(
                    spec.image, spec.tag, group.registry_key, group.token
                )
            else:
                manifest, digest = self.fetcher.get_manifest_with_digest(spec.image, spec.tag)
        except RegistryError as e:
            self.logger.debug(f"Failed to fetch {spec}: {e}")
            result.error = e
            return result

        result.manifest = manifest
        result.digest = digest
        return result

    def _fetch_sequentially(self, groups: list[SubGroup], results: list) -> None:
        for group in groups:
            for index, spec in group.members():
                results[index] = self.fetch_single(spec, group)

    def _fetch_concurrently(self, groups: list[SubGroup], results: list, concurrency: int) -> None:
        # Each task owns a distinct index, so results needs no locking.
        def fetch_into(index: int, spec: ImageSpec, group: SubGroup) -> None:
            results[index] = self.fetch_single(spec, group)

        with ThreadPoolExecutor(max_workers=concurrency) as executor:
            futures = [
                executor.submit(fetch_into, index, spec, group)
                for group in groups
                for index, spec in group.members()
            ]
            for future in futures:
                future.result()
