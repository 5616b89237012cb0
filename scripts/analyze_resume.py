from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from resumind.core.platform import Platform  # noqa: E402
from resumind.core.security import ApiKeyIdentity  # noqa: E402
from resumind.normalize.feedback import feedback_to_payload  # noqa: E402
from resumind.services.analysis_pipeline import AnalysisPipeline  # noqa: E402
from resumind.services.feedback_store import FeedbackStore  # noqa: E402


async def _run(args: argparse.Namespace) -> int:
    platform = Platform.from_settings()
    await platform.start()
    try:
        pipeline = AnalysisPipeline(
            blob_store=platform.blob_store,
            record_store=platform.record_store,
            inference=platform.inference,
            readiness=platform.readiness,
            identity=ApiKeyIdentity(args.api_key),
            raster_scale=platform.raster_scale,
            ready_timeout_s=platform.ready_timeout_s,
        )
        path = Path(args.pdf)
        record_id = None
        async for event in pipeline.run(
            path.read_bytes(),
            filename=path.name,
            company_name=args.company,
            job_title=args.job_title,
            job_description=args.job_description,
        ):
            if event.kind == "status":
                print(event.message)
            elif event.kind == "preview":
                print(f"Preview ready ({len(event.image_bytes or b'')} bytes)")
            elif event.kind == "failed":
                print(f"Error [{event.stage}]: {event.reason}", file=sys.stderr)
                return 1
            elif event.kind == "complete":
                record_id = event.record_id
                print(f"Record: {record_id}")

        if args.feedback and record_id:
            feedback = FeedbackStore(platform.record_store).get_feedback(record_id)
            if feedback is not None:
                print(json.dumps(feedback_to_payload(feedback), indent=2, ensure_ascii=False))
        return 0
    finally:
        platform.close()


def main() -> None:
    parser = argparse.ArgumentParser(description="Analyze a resume PDF and store the feedback record.")
    parser.add_argument("pdf", help="Path to the resume PDF")
    parser.add_argument("--company", default="", help="Company name")
    parser.add_argument("--job-title", default="", help="Job title")
    parser.add_argument("--job-description", default="", help="Job description text")
    parser.add_argument("--api-key", default=None, help="API key when AUTH_MODE=protected")
    parser.add_argument(
        "--feedback",
        action="store_true",
        help="Print the normalized feedback JSON after a successful run.",
    )
    args = parser.parse_args()
    raise SystemExit(asyncio.run(_run(args)))


if __name__ == "__main__":
    main()
