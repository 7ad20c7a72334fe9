#!/usr/bin/env python3
"""Generate one case with the real backends and write it as JSON.

Usage:
    python scripts/generate_case.py --difficulty hard --suspects 5 --seed demo -o case.json
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

# Add parent directory to path to import the project packages
sys.path.insert(0, str(Path(__file__).parent.parent))

from game.case_builder import CaseBuilder  # noqa: E402
from game.errors import StoryGenerationError  # noqa: E402
from mystery_config import create_validated_config  # noqa: E402
from services.case_store import InMemoryCaseStore  # noqa: E402
from services.image_service import get_image_service  # noqa: E402
from services.llm import get_text_generator  # noqa: E402
from services.media_storage import LocalMediaStorage  # noqa: E402
from services.perf_tracker import get_perf_summary  # noqa: E402

load_dotenv()
logger = logging.getLogger("generate_case")


def main() -> int:
    parser = argparse.ArgumentParser(description="Generate a murder-mystery case")
    parser.add_argument("--user", default="local-player")
    parser.add_argument("--difficulty", default="medium")
    parser.add_argument("--suspects", type=int, default=None)
    parser.add_argument("--player-name", default=None)
    parser.add_argument("--seed", default=None)
    parser.add_argument("--no-images", action="store_true", help="skip portraits and map art")
    parser.add_argument("-o", "--output", default="case.json")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    config = create_validated_config(args.difficulty, args.suspects, args.player_name, args.seed)
    images = None if args.no_images else get_image_service()
    if images is not None and not images.is_available:
        logger.warning("HF_TOKEN not set, generating without images")
        images = None

    builder = CaseBuilder(
        get_text_generator(),
        InMemoryCaseStore(),
        images=images,
        storage=LocalMediaStorage() if images else None,
    )
    try:
        record = builder.build_case(args.user, config)
    except StoryGenerationError as e:
        logger.error("Case generation failed: %s", e)
        return 1

    Path(args.output).write_text(json.dumps(record.to_document(), indent=2), encoding="utf-8")
    print(get_perf_summary())
    print(f"Wrote '{record.title}' to {args.output}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
