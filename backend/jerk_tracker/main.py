"""Replay entry point: run recorded pose frames through the tracker."""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Iterator, List, Optional, Tuple

from jerk_tracker.config import get_settings
from jerk_tracker.cv.pose import Pose
from jerk_tracker.schemas import FormAnalysisResponse, PoseFrame
from jerk_tracker.tracker import FrameProcessor

logger = logging.getLogger(__name__)


def configure_logging(debug: bool = False):
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


def read_frames(path: Path) -> Iterator[Tuple[float, Pose]]:
    """Yield (timestamp_ms, pose) from a JSON-lines recording."""
    with path.open() as f:
        for line_number, line in enumerate(f, start=1):
            line = line.strip()
            if not line:
                continue
            frame = PoseFrame.model_validate_json(line)
            logger.debug(f"Line {line_number}: {len(frame.keypoints)} keypoints")
            yield frame.timestamp_ms, frame.to_pose()


def replay(path: Path, processor: Optional[FrameProcessor] = None) -> List[dict]:
    """Process a recording and return one JSON-ready record per frame."""
    processor = processor or FrameProcessor()
    records = []
    for result in processor.process_poses(read_frames(path)):
        records.append({
            "timestamp_ms": result.timestamp_ms,
            "phase": result.phase.value,
            "rep_count": result.rep_count,
            "is_valid_rep": result.is_valid_rep,
            "form": FormAnalysisResponse.from_result(result.form).model_dump(),
        })

    summary = processor.summary()
    logger.info(f"Replay finished: {summary.reps} reps in {summary.duration_seconds:.1f}s "
                f"over {summary.frames_processed} frames")
    return records


def main(argv: Optional[List[str]] = None) -> int:
    settings = get_settings()
    parser = argparse.ArgumentParser(description=f"{settings.app_name} replay")
    parser.add_argument("recording", type=Path, help="JSON-lines file of pose frames")
    parser.add_argument("--summary-only", action="store_true", help="Print only the session summary")
    args = parser.parse_args(argv)

    configure_logging(settings.debug)

    processor = FrameProcessor(settings)
    records = replay(args.recording, processor)
    if not args.summary_only:
        for record in records:
            print(json.dumps(record))
    print(processor.summary().model_dump_json())
    return 0


if __name__ == "__main__":
    sys.exit(main())
