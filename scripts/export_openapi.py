"""Export the FastAPI-generated OpenAPI spec to a static JSON file.

Usage: python scripts/export_openapi.py [output-path]
"""

import json
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from main import app  # noqa: E402

DEFAULT_PATH = Path(__file__).resolve().parent.parent / "openapi.json"


def main(argv: list[str]) -> None:
    path = Path(argv[0]) if argv else DEFAULT_PATH
    path.write_text(json.dumps(app.openapi(), indent=2) + "\n")
    print(f"Wrote {path}")


if __name__ == "__main__":
    main(sys.argv[1:])
