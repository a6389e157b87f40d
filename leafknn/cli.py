#!/usr/bin/env python3
"""
Command line access to the persisted training session.

    leafknn train 1 leaf1.jpg leaf2.jpg
    leafknn predict unknown.jpg
    leafknn state
    leafknn clear
"""

import argparse
import asyncio
import sys
from pathlib import Path

from .core.config import CLASS_NAMES, validate_config
from .core.errors import DimensionMismatch, NotTrained
from .api.main import build_session
from .vector.images import ImageDecodeError


async def _train(args) -> int:
    session = build_session()
    await session.start()
    uploads = [Path(p).read_bytes() for p in args.files]
    report = await session.train(args.label, uploads)
    print(f"{report.status} added={report.added} skipped={report.skipped} saved={report.saved}")
    for error in report.errors:
        print(f"  skipped {error}")
    return 0 if report.saved else 1


async def _predict(args) -> int:
    session = build_session()
    await session.start()
    try:
        prediction = session.predict(Path(args.file).read_bytes(), k=args.k)
    except NotTrained as e:
        print(f"ERROR: {e}")
        return 1
    except (ImageDecodeError, DimensionMismatch, ValueError) as e:
        print(f"ERROR: {e}")
        return 1
    print(f"{prediction.class_name} ({prediction.confidence * 100:.2f}%)")
    for label, confidence in prediction.confidences.items():
        print(f"  {label} {session.class_names[label]}: {confidence:.4f}")
    return 0


async def _state(args) -> int:
    session = build_session()
    await session.start()
    print(session.status)
    for label, count in session.counts.items():
        print(f"  {label} {session.class_names[label]}: {count}")
    return 0


async def _clear(args) -> int:
    session = build_session()
    await session.start()
    cleared = await session.clear()
    print(session.status)
    return 0 if cleared else 1


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Leaf health nearest-neighbor classifier")
    subparsers = parser.add_subparsers(dest="command", required=True)

    train_parser = subparsers.add_parser("train", help="Add example images to a class")
    train_parser.add_argument("label", type=int, choices=range(len(CLASS_NAMES)))
    train_parser.add_argument("files", nargs="+")
    train_parser.set_defaults(handler=_train)

    predict_parser = subparsers.add_parser("predict", help="Classify an image")
    predict_parser.add_argument("file")
    predict_parser.add_argument("--k", type=int, default=None)
    predict_parser.set_defaults(handler=_predict)

    state_parser = subparsers.add_parser("state", help="Show per-class example counts")
    state_parser.set_defaults(handler=_state)

    clear_parser = subparsers.add_parser("clear", help="Remove all training data")
    clear_parser.set_defaults(handler=_clear)

    args = parser.parse_args(argv)

    issues = validate_config()
    if issues:
        for issue in issues:
            print(f"ERROR: {issue}")
        return 2

    return asyncio.run(args.handler(args))


if __name__ == "__main__":
    sys.exit(main())
