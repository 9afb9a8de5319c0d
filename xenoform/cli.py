#!/usr/bin/env python3
"""
Xenoform command line.

Usage:
    xenoform species [--mutate-from FILE] [--image] [--out FILE]
    xenoform ecosystem [--size N]
    xenoform favorites list [--client ID]
    xenoform favorites delete NAME [--client ID]

Species are printed as pretty JSON, the same format the page exports.
"""

from __future__ import annotations

import argparse
import base64
import json
import sys
from pathlib import Path

from dotenv import load_dotenv
from pydantic import ValidationError

from xenoform.config import ECOSYSTEM_SIZE, ECOSYSTEM_SIZE_MAX, get_env
from xenoform.infrastructure.database import init_database
from xenoform.observability.logging import get_logger
from xenoform.species.generator import GenerationError, SpeciesGenerator
from xenoform.species.models import Species
from xenoform.storage.favorites import FavoritesRepository

logger = get_logger(__name__)

DEFAULT_CLIENT_ID = "local"


def _load_species(path: Path) -> Species:
    try:
        return Species.model_validate_json(path.read_text(encoding="utf-8"))
    except (OSError, ValidationError) as e:
        raise SystemExit(f"Cannot read species from {path}: {e}") from None


def _save_image(data_url: str, species: Species, directory: Path) -> Path:
    """Decode a data: URL and write it next to the JSON output."""
    _, encoded = data_url.split(",", 1)
    path = directory / (Path(species.export_filename()).stem + ".jpg")
    path.write_bytes(base64.b64decode(encoded))
    return path


def _ecosystem_size(value: str) -> int:
    size = int(value)
    if not 1 <= size <= ECOSYSTEM_SIZE_MAX:
        raise argparse.ArgumentTypeError(f"size must be between 1 and {ECOSYSTEM_SIZE_MAX}")
    return size


def cmd_species(args: argparse.Namespace, generator: SpeciesGenerator) -> int:
    previous = _load_species(args.mutate_from) if args.mutate_from else None
    species = generator.generate_species(previous)
    output = species.to_json()

    if args.out:
        args.out.write_text(output + "\n", encoding="utf-8")
        print(f"Wrote {args.out}", file=sys.stderr)
    else:
        print(output)

    if args.image:
        directory = args.out.parent if args.out else Path.cwd()
        image_path = _save_image(generator.generate_species_image(species), species, directory)
        print(f"Wrote {image_path}", file=sys.stderr)

    return 0


def cmd_ecosystem(args: argparse.Namespace, generator: SpeciesGenerator) -> int:
    members = generator.generate_ecosystem(args.size)
    payload = {"ecosystem": [s.model_dump() for s in members]}
    print(json.dumps(payload, indent=2, ensure_ascii=False))
    return 0


def cmd_favorites(args: argparse.Namespace) -> int:
    init_database()

    if args.action == "list":
        records = FavoritesRepository.list(args.client)
        print(json.dumps([r.species.model_dump() for r in records], indent=2, ensure_ascii=False))
        return 0

    if not FavoritesRepository.delete(args.client, args.name):
        print(f"No favorite named {args.name!r}", file=sys.stderr)
        return 1
    print(f"Deleted {args.name!r}", file=sys.stderr)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="xenoform", description="Procedural life-form generator"
    )
    sub = parser.add_subparsers(dest="command", required=True)

    species = sub.add_parser("species", help="Generate one species")
    species.add_argument(
        "--mutate-from", type=Path, metavar="FILE", help="Species JSON to evolve from"
    )
    species.add_argument("--image", action="store_true", help="Also render an illustration")
    species.add_argument("--out", type=Path, metavar="FILE", help="Write JSON here")

    ecosystem = sub.add_parser("ecosystem", help="Generate an interconnected ecosystem")
    ecosystem.add_argument("--size", type=_ecosystem_size, default=ECOSYSTEM_SIZE)

    favorites = sub.add_parser("favorites", help="Manage saved species")
    default_client = get_env("XENOFORM_CLIENT_ID", DEFAULT_CLIENT_ID)
    fav_sub = favorites.add_subparsers(dest="action", required=True)
    fav_list = fav_sub.add_parser("list", help="Print saved species")
    fav_list.add_argument("--client", default=default_client)
    fav_delete = fav_sub.add_parser("delete", help="Delete a saved species")
    fav_delete.add_argument("name")
    fav_delete.add_argument("--client", default=default_client)

    return parser


def main(argv: list[str] | None = None, generator: SpeciesGenerator | None = None) -> int:
    load_dotenv()
    args = build_parser().parse_args(argv)

    if args.command == "favorites":
        return cmd_favorites(args)

    generator = generator or SpeciesGenerator()
    try:
        if args.command == "species":
            return cmd_species(args, generator)
        return cmd_ecosystem(args, generator)
    except GenerationError as e:
        logger.error("Generation failed (stage=%s): %s", e.stage, e)
        print(f"Generation failed: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
