#!/usr/bin/env python3
"""
Dev helper: list the template names the backend will allow.

Runs the same registry scan the service runs at startup, so what is printed
here is exactly the allowlist a freshly started process would use.

Usage
-----
python scripts/sync_templates.py
python scripts/sync_templates.py --dir path/to/templates
python scripts/sync_templates.py --json
"""

import argparse
import json
import sys

from app.config import get_templates_dir
from app.services.templates import TemplateRegistry


def main() -> int:
    parser = argparse.ArgumentParser(
        prog="sync_templates.py",
        description="List template names discovered under the template root.",
    )
    parser.add_argument(
        "--dir",
        default=None,
        metavar="PATH",
        help="Template root (default: TEMPLATES_DIR or backend/templates)",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the names as a JSON array.",
    )
    args = parser.parse_args()

    registry = TemplateRegistry(args.dir or get_templates_dir())
    names = sorted(registry.names)
    if not names:
        print(f"ERROR: No templates found under {registry.root}", file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps(names, indent=2))
    else:
        print(f"Templates under {registry.root}:")
        for name in names:
            print(f"  {name}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
