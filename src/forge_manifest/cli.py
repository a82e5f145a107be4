"""forge-manifest CLI entry point.

Usage:
    forge-manifest --image nginx                        Single manifest
    forge-manifest --image nginx:1.25,redis:alpine      Batch fetch
    forge-manifest --image ghcr.io/o/r --ghcr-username u --ghcr-token t
    forge-manifest --image nginx --credentials dockerhub:user:token --digest --pretty
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from forge_manifest.client import RegistryClient
from forge_manifest.config import Settings, credentials_from_env, load_registries_file
from forge_manifest.constants import __version__
from forge_manifest.exceptions import RegistryError
from forge_manifest.models import ImageSpec

logger = logging.getLogger(__name__)


def build_parser(settings: Settings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="forge-manifest",
        description="Fetch Docker/OCI image manifests from Docker Hub, GHCR and custom registries",
    )
    parser.add_argument(
        "--image",
        required=True,
        help="Image name(s), comma-separated; each may carry its own :tag",
    )
    parser.add_argument("--tag", default="latest", help="Tag for images without one (default: latest)")
    parser.add_argument("--dockerhub-username", default="", help="Docker Hub username")
    parser.add_argument("--dockerhub-token", default="", help="Docker Hub access token")
    parser.add_argument("--ghcr-username", default="", help="GitHub username")
    parser.add_argument("--ghcr-token", default="", help="GitHub token")
    parser.add_argument(
        "--credentials",
        action="append",
        default=[],
        metavar="REGISTRY:USERNAME:TOKEN",
        help="Credential for a registry key or domain (repeatable)",
    )
    parser.add_argument("--pretty", action="store_true", help="Pretty-print manifest JSON")
    parser.add_argument("--digest", action="store_true", help="Show manifest digests")
    parser.add_argument(
        "--concurrency",
        type=int,
        default=settings.default_concurrency,
        help=f"Parallel fetches for batches, 0 = sequential (default: {settings.default_concurrency})",
    )
    parser.add_argument(
        "--batch-auth",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Share one token per registry batch (default: on)",
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        default=settings.max_batch_size,
        help=f"Max images per batch token (default: {settings.max_batch_size})",
    )
    parser.add_argument(
        "--registries-file",
        type=Path,
        default=settings.registries_file,
        help="YAML file declaring custom registries",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    parser.add_argument("--version", action="version", version=f"forge-manifest {__version__}")
    return parser


def parse_image_list(value: str, default_tag: str) -> list[ImageSpec]:
    """Split a comma-separated image list into specs, dropping blanks."""
    return [
        ImageSpec.parse(item, default_tag)
        for item in value.split(",")
        if item.strip()
    ]


def configure_credentials(client: RegistryClient, args: argparse.Namespace) -> None:
    """Apply credential flags; generic --credentials entries win over the named flags."""
    if args.dockerhub_username and args.dockerhub_token:
        client.add_credential("dockerhub", args.dockerhub_username, args.dockerhub_token)
        logger.info("Configured Docker Hub credentials")

    if args.ghcr_username and args.ghcr_token:
        client.add_credential("ghcr", args.ghcr_username, args.ghcr_token)
        logger.info("Configured GitHub Container Registry credentials")

    for entry in args.credentials:
        parts = entry.split(":", 2)
        if len(parts) != 3:
            logger.warning(f"Ignoring credential not in registry:username:token form: {entry}")
            continue
        key, username, token = parts
        client.add_credential(key, username, token)
        logger.info(f"Configured credentials for {key}")


def format_manifest(manifest: str, pretty: bool) -> str:
    if not pretty:
        return manifest
    try:
        return json.dumps(json.loads(manifest), indent=2)
    except json.JSONDecodeError:
        logger.warning("Manifest is not valid JSON, printing raw body")
        return manifest


def run(argv: list[str] | None = None) -> int:
    """Run the CLI and return the process exit code."""
    settings = Settings()
    args = build_parser(settings).parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )

    specs = parse_image_list(args.image, args.tag)
    if not specs:
        print("Error: no valid image names given", file=sys.stderr)
        return 1

    try:
        client = RegistryClient.from_settings(settings, credentials=credentials_from_env())
        if args.registries_file:
            load_registries_file(args.registries_file, client.directory)
    except (RegistryError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    configure_credentials(client, args)

    if len(specs) == 1:
        spec = specs[0]
        try:
            manifest, digest = client.get_manifest_with_digest(spec.image, spec.tag)
        except RegistryError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1

        if args.digest and digest:
            print(f"Digest: {digest}\n", file=sys.stderr)
        print(format_manifest(manifest, args.pretty))
        return 0

    print(f"Fetching {len(specs)} images...", file=sys.stderr)
    results = client.get_manifests_with_digest(
        specs,
        concurrency=args.concurrency,
        batch_auth=args.batch_auth,
        max_batch_size=args.batch_size,
    )

    failed = 0
    for number, result in enumerate(results, start=1):
        print(f"\n[{number}/{len(results)}] {result.image}:{result.tag}", file=sys.stderr)
        if not result.ok:
            print(f"✗ Failed: {result.error}", file=sys.stderr)
            failed += 1
            continue

        if args.digest and result.digest:
            print(f"✓ Digest: {result.digest}", file=sys.stderr)
        else:
            print("✓ OK", file=sys.stderr)
        print(format_manifest(result.manifest, args.pretty))

    print(
        f"\nTotal: {len(results)} images, succeeded: {len(results) - failed}, failed: {failed}",
        file=sys.stderr,
    )
    return 1 if failed else 0


def main() -> None:
    """Main entry point."""
    sys.exit(run())


if __name__ == "__main__":
    main()
