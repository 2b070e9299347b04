"""
Recognize an expression image from the command line

Runs the full pipeline with the providers configured in the environment
(.env) and prints the consensus with every supporting candidate.

Usage:
    python scripts/recognize_image.py <image_path> [--hint EXPR] [--json]
"""

import asyncio
import json
import logging
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from equation_ocr import RecognitionError, RecognitionPipeline, RecognitionRequest, Settings


def print_result(result):
    print("\n=== Consensus ===")
    print(f"  expression: {result.final_text}")
    print(f"  confidence: {result.final_confidence:.1f}%")
    print(f"  agreement:  {result.agreement_count} source(s)")
    if result.image_class:
        print(f"  image:      {result.image_class.value}")

    print("\n=== Providers ===")
    for r in result.provider_results:
        status = "ok" if r.succeeded else r.error_kind.value
        print(f"  {r.provider_id:14s} {status:15s} {r.latency_ms:5d}ms  {r.raw_text!r}")

    print("\n=== Candidates ===")
    for c in result.supporting_candidates:
        print(f"  {c.confidence:5.1f}  {c.text}")
        print(f"         {c.explanation}")


def main():
    import argparse

    parser = argparse.ArgumentParser(description="Recognize a mathematical expression image")
    parser.add_argument("image_path", help="Path to a PNG/JPEG image")
    parser.add_argument("--hint", help="Previously recognized expression")
    parser.add_argument("--json", action="store_true", help="Print the result as JSON")
    parser.add_argument("--verbose", action="store_true", help="Show pipeline logs")

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    image_path = Path(args.image_path)
    if not image_path.exists():
        print(f"Image not found: {image_path}")
        sys.exit(1)

    pipeline = RecognitionPipeline.from_settings(Settings.from_env())
    request = RecognitionRequest(image=image_path.read_bytes(), hint=args.hint)

    try:
        result = asyncio.run(pipeline.recognize(request))
    except RecognitionError as e:
        print(f"Recognition failed: {e.user_message} ({e})")
        sys.exit(2)

    if args.json:
        print(json.dumps(result.to_dict(), ensure_ascii=False, indent=2))
    else:
        print_result(result)


if __name__ == "__main__":
    main()
