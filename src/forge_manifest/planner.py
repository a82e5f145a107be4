"""
Batch planning: partition image specs into registry-homogeneous, size-bounded
sub-groups and pre-acquire one batch token per sub-group.

Bounding sub-group size caps both the auth URL length and how many images
are affected when one batch token request fails. Partitioning by registry
keeps every batch token's scopes within one auth service.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from forge_manifest.auth import TokenAcquirer
from forge_manifest.constants import DEFAULT_MAX_BATCH_SIZE
from forge_manifest.exceptions import RegistryError
from forge_manifest.models import ImageSpec
from forge_manifest.resolver import ImageNameResolver, is_custom_route

logger = logging.getLogger(__name__)


@dataclass
class SubGroup:
    """
    Images that share a registry and, optionally, one batch token.

    ``indices[i]`` is the position of ``specs[i]`` in the caller's input list.
    """

    registry_key: str
    specs: list[ImageSpec] = field(default_factory=list)
    indices: list[int] = field(default_factory=list)
    token: str = ""

    @property
    def images(self) -> list[str]:
        return [spec.image for spec in self.specs]

    @property
    def has_token(self) -> bool:
        return bool(self.token)

    def members(self) -> list[tuple[int, ImageSpec]]:
        """(original index, spec) pairs in group order."""
        return list(zip(self.indices, self.specs))

    def __len__(self) -> int:
        return len(self.specs)


def effective_batch_size(max_batch_size: Optional[int]) -> int:
    """
    Resolve the caller's group size override.

    None or anything outside [1, DEFAULT_MAX_BATCH_SIZE] falls back to
    DEFAULT_MAX_BATCH_SIZE.
    """
    if max_batch_size is None or max_batch_size < 1 or max_batch_size > DEFAULT_MAX_BATCH_SIZE:
        return DEFAULT_MAX_BATCH_SIZE
    return max_batch_size


class BatchPlanner:
    """Groups image specs for batched authentication and fetching."""

    def __init__(
        self,
        resolver: ImageNameResolver,
        acquirer: TokenAcquirer,
        log: Optional[logging.Logger] = None,
    ):
        self.resolver = resolver
        self.acquirer = acquirer
        self.logger = log or logger

    def plan(self, specs: list[ImageSpec], max_batch_size: Optional[int] = None) -> list[SubGroup]:
        """
        Partition specs by registry, then split each partition into chunks.

        Partitions appear in order of their first image; chunks preserve
        input order within a partition.

        Args:
            specs: Input image specs
            max_batch_size: Optional chunk size override

        Returns:
            Sub-groups covering every input index exactly once
        """
        size = effective_batch_size(max_batch_size)

        partitions: dict[str, SubGroup] = {}
        for index, spec in enumerate(specs):
            key = self.resolver.resolve_route(spec.image)
            group = partitions.setdefault(key, SubGroup(registry_key=key))
            group.specs.append(spec)
            group.indices.append(index)

        groups: list[SubGroup] = []
        for key, partition in partitions.items():
            total = len(partition)
            if total <= size:
                groups.append(partition)
                continue

            batches = (total + size - 1) // size
            self.logger.warning(
                f"Registry {key} has {total} images, more than the batch limit {size}; "
                f"splitting into {batches} batches"
            )
            for start in range(0, total, size):
                groups.append(
                    SubGroup(
                        registry_key=key,
                        specs=partition.specs[start:start + size],
                        indices=partition.indices[start:start + size],
                    )
                )

        self._log_plan(len(partitions), groups)
        return groups

    def acquire_batch_tokens(self, groups: list[SubGroup]) -> None:
        """
        Attach a multi-scope token to every sub-group with more than one image.

        Failures are logged and leave the group tokenless, so its images
        authenticate one by one later. Groups for unregistered hosts are
        skipped since their auth service is only known after discovery.
        """
        for group in groups:
            if len(group) <= 1 or is_custom_route(group.registry_key):
                continue

            try:
                group.token = self.acquirer.get_token_for_images(group.images, group.registry_key)
            except RegistryError as e:
                self.logger.warning(
                    f"Batch authentication failed for {len(group)} images on {group.registry_key}, "
                    f"falling back to per-image auth: {e}"
                )
                continue

            self.logger.info(f"Acquired batch token for {len(group)} images on {group.registry_key}")

    def _log_plan(self, registry_count: int, groups: list[SubGroup]) -> None:
        if registry_count > 1:
            self.logger.info(f"Detected {registry_count} registries, {len(groups)} batches in total")
        elif len(groups) > 1:
            self.logger.info(f"Processing in {len(groups)} batches")

        for number, group in enumerate(groups, start=1):
            endpoint = self.resolver.directory.get(group.registry_key)
            name = endpoint.name if endpoint else group.registry_key
            self.logger.info(f"Batch {number}: {name}, {len(group)} images")
