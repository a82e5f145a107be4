"""
Centralized configuration constants for forge-manifest.

Single source of truth for registry keys, wire-protocol media types and the
limits used by token acquisition and batch planning.
"""

__version__ = "0.1.0"

# ============================================================================
# Registry Keys
# ============================================================================

DOCKERHUB_KEY = "dockerhub"
"""Directory key of the built-in Docker Hub entry."""

GHCR_KEY = "ghcr"
"""Directory key of the built-in GitHub Container Registry entry."""

BUILTIN_KEYS = frozenset({DOCKERHUB_KEY, GHCR_KEY})
"""Keys that can never be registered over or removed."""

GHCR_PREFIX = "ghcr.io/"
"""Image reference prefix that always routes to GHCR."""

OFFICIAL_IMAGE_NAMESPACE = "library"
"""Docker Hub namespace for single-segment (official) image names."""

CUSTOM_ROUTE_PREFIX = "custom:"
"""Route key prefix for hosts that are not in the registry directory."""

# ============================================================================
# Token Acquisition
# ============================================================================

MAX_AUTH_URL_LENGTH = 2048
"""Conservative auth URL length limit (proxy compatibility, not an HTTP limit)."""

MAX_RECOMMENDED_SCOPES = 50
"""Scope count above which a multi-scope token request logs a warning."""

BATCH_ESTIMATE_SAFETY_FACTOR = 0.9
"""Multiplier applied to the estimated batch size."""

DISCOVERY_PROBE_TAG = "latest"
"""Tag used by the unauthenticated probe that harvests a WWW-Authenticate challenge."""

# ============================================================================
# Batch Fetching
# ============================================================================

DEFAULT_MAX_BATCH_SIZE = 30
"""Largest number of images that share one batch token."""

DEFAULT_CONCURRENCY = 5
"""Default worker count used by the CLI for batch fetches."""

# ============================================================================
# HTTP
# ============================================================================

REQUEST_TIMEOUT = 30.0
"""Per-request network timeout in seconds."""

DIGEST_HEADER = "Docker-Content-Digest"

MEDIA_TYPE_DOCKER_MANIFEST = "application/vnd.docker.distribution.manifest.v2+json"
MEDIA_TYPE_DOCKER_MANIFEST_LIST = "application/vnd.docker.distribution.manifest.list.v2+json"
MEDIA_TYPE_OCI_MANIFEST = "application/vnd.oci.image.manifest.v1+json"
MEDIA_TYPE_OCI_INDEX = "application/vnd.oci.image.index.v1+json"

MANIFEST_MEDIA_TYPES = (
    MEDIA_TYPE_DOCKER_MANIFEST,
    MEDIA_TYPE_DOCKER_MANIFEST_LIST,
    MEDIA_TYPE_OCI_MANIFEST,
    MEDIA_TYPE_OCI_INDEX,
)
"""Accept order for manifest requests; registries pick the most specific match."""
