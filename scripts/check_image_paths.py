#!/usr/bin/env python
"""Show how image references normalize and whether the files are on disk."""
from __future__ import annotations

import argparse

from app.services.image_paths import image_path_resolver, is_external

SAMPLE_PATHS = [
    "../../uploads/test-image.jpg",
    "/api/uploads/test-image.jpg",
    "http://localhost:5000/uploads/test-image.jpg",
    "uploads/test-image.jpg",
    "test-image.jpg",
    "https://example.com/uploads/test-image.jpg",
    "uploads\\test-image.jpg",
]


def main() -> None:
    parser = argparse.ArgumentParser(description="Check image path normalization")
    parser.add_argument("paths", nargs="*", help="Image references to check (defaults to a sample set)")
    parser.add_argument("--missing-only", action="store_true", help="Only report references whose file is missing")
    args = parser.parse_args()

    print("Upload roots:")
    for root in image_path_resolver.roots:
        print(f"  {root} ({'present' if root.is_dir() else 'missing'})")
    print()

    missing = 0
    for raw in args.paths or SAMPLE_PATHS:
        resolution = image_path_resolver.resolve(raw)
        local = resolution.normalized is not None and not is_external(resolution.normalized)
        if local and not resolution.exists:
            missing += 1
        elif args.missing_only:
            continue
        print(resolution.model_dump_json(indent=2))

    print(f"\n{missing} reference(s) without a file on disk")


if __name__ == "__main__":
    main()
