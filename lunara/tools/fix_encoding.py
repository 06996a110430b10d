from __future__ import annotations

import sys
from pathlib import Path

from lunara.config import PROJECT_ROOT

BOM = b"\xef\xbb\xbf"


def strip_bom(path: Path) -> bool:
    """Drops a leading UTF-8 BOM; True when the file was rewritten."""
    data = path.read_bytes()
    if not data.startswith(BOM):
        return False
    path.write_bytes(data[len(BOM):])
    return True


def default_targets() -> list[Path]:
    return sorted((PROJECT_ROOT / "lunara").rglob("*.py")) + [PROJECT_ROOT / "streamlit_app.py"]


def main(argv: list[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    targets = [Path(a) for a in args] if args else default_targets()

    fixed = 0
    for path in targets:
        if not path.is_file():
            print(f"Not found: {path}")
            continue
        if strip_bom(path):
            fixed += 1
            print(f"BOM removed: {path}")

    print(f"OK: {fixed} file(s) fixed, {len(targets)} checked.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
