#!/usr/bin/env python3
"""Play one action against a case file written by generate_case.py.

The case is loaded, the action runs with the real backends, and the updated
case (progress, findings, verdict) is written back to the same file.

Usage:
    python scripts/investigate.py case.json visit L1
    python scripts/investigate.py case.json discover L1 "A torn letter"
    python scripts/investigate.py case.json images L1
    python scripts/investigate.py case.json interrogate "Raj Patel" "Where were you at ten?"
    python scripts/investigate.py case.json findings
    python scripts/investigate.py case.json verdict "Raj Patel" "The knife was his"
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

# Add parent directory to path to import the project packages
sys.path.insert(0, str(Path(__file__).parent.parent))

from game.errors import CaseError  # noqa: E402
from game.investigation import InvestigationService  # noqa: E402
from game.models import CaseRecord  # noqa: E402
from services.case_store import InMemoryCaseStore  # noqa: E402
from services.image_service import get_image_service  # noqa: E402
from services.llm import get_text_generator  # noqa: E402
from services.media_storage import LocalMediaStorage  # noqa: E402
from services.operation_tracker import OperationStatus, get_operation_tracker, wait_for_operation  # noqa: E402
from services.voice_service import get_voice_service  # noqa: E402

load_dotenv()
logger = logging.getLogger("investigate")

POLL_INTERVAL = 2.0


def build_service(store: InMemoryCaseStore, text=None) -> InvestigationService:
    images = get_image_service()
    voices = get_voice_service()
    if not images.is_available:
        logger.warning("HF_TOKEN not set, scene images disabled")
        images = None
    if not voices.is_available:
        logger.warning("ELEVENLABS_API_KEY not set, interrogation audio disabled")
        voices = None
    return InvestigationService(
        store,
        text or get_text_generator(),
        tracker=get_operation_tracker(),
        images=images,
        voices=voices,
        storage=LocalMediaStorage() if images or voices else None,
    )


def finish(service: InvestigationService, outcome) -> dict:
    if not outcome.accepted:
        return {"accepted": False, "message": outcome.message}
    if outcome.operation_id is None:
        return {"accepted": True, "message": outcome.message, **(outcome.data or {})}
    op = wait_for_operation(service.tracker, outcome.operation_id, attempts=120, interval=POLL_INTERVAL)
    if op.status != OperationStatus.COMPLETED:
        return {"accepted": True, "message": op.error or op.message}
    return {"accepted": True, "message": outcome.message, **(op.result or {})}


def run(service: InvestigationService, case_id: str, args) -> dict:
    if args.action == "visit":
        return finish(service, service.visit_location(case_id, args.location))
    if args.action == "discover":
        return finish(service, service.discover_clues(case_id, args.location, args.clues))
    if args.action == "images":
        return finish(service, service.start_location_images(case_id, args.location))
    if args.action == "interrogate":
        outcome = service.interrogate_suspect(case_id, args.suspect, args.questions, detective_name=args.detective)
        return finish(service, outcome)
    if args.action == "findings":
        return {"findings": [f.to_document() for f in service.list_findings(case_id, only_new=args.new)]}
    return service.submit_verdict(case_id, args.suspect, args.reasoning).to_document()


def main() -> int:
    parser = argparse.ArgumentParser(description="Investigate a generated case")
    parser.add_argument("case_file")
    actions = parser.add_subparsers(dest="action", required=True)

    visit = actions.add_parser("visit", help="visit a location (once per game day)")
    visit.add_argument("location", help="location id, e.g. L1")

    discover = actions.add_parser("discover", help="record clues found at a visited location")
    discover.add_argument("location")
    discover.add_argument("clues", nargs="+")

    images = actions.add_parser("images", help="render crime-scene images for a visited location")
    images.add_argument("location")

    interrogate = actions.add_parser("interrogate", help="question a suspect (once per game day)")
    interrogate.add_argument("suspect")
    interrogate.add_argument("questions", nargs="+")
    interrogate.add_argument("--detective", default="Detective")

    findings = actions.add_parser("findings", help="list findings, newest first")
    findings.add_argument("--new", action="store_true", help="only unseen findings")

    verdict = actions.add_parser("verdict", help="accuse a suspect and close the case")
    verdict.add_argument("suspect")
    verdict.add_argument("reasoning")

    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    path = Path(args.case_file)
    record = CaseRecord.model_validate(json.loads(path.read_text(encoding="utf-8")))
    store = InMemoryCaseStore()
    case_id = store.create_case(record)
    service = build_service(store)

    try:
        result = run(service, case_id, args)
    except (CaseError, ValueError) as e:
        logger.error("Action failed: %s", e)
        return 1

    path.write_text(json.dumps(store.get_case(case_id).to_document(), indent=2), encoding="utf-8")
    print(json.dumps(result, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
