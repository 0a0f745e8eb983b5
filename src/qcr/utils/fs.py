from __future__ import annotations
from pathlib import Path

from qcr.core.errors import AnalysisInputError
from qcr.core.schemas import SourceFile

# extensions the upload page accepts
CODE_EXTS = {
    ".js", ".jsx", ".ts", ".tsx", ".py", ".java", ".cpp", ".c", ".cs",
    ".php", ".rb", ".go", ".rs", ".html", ".css",
}


def iter_files(target: str, recursive: bool = True) -> list[Path]:
    p = Path(target)
    if p.is_file():
        return [p]
    if not p.is_dir():
        return []

    pattern = p.rglob("*") if recursive else p.glob("*")
    return sorted(fp for fp in pattern if fp.is_file() and fp.suffix.lower() in CODE_EXTS)


def decode_bytes(data: bytes, name: str = "<upload>") -> str:
    if b"\x00" in data:
        raise AnalysisInputError(f"{name} looks like a binary file")
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        return data.decode("latin-1", errors="replace")


def read_text_file(path: Path) -> str:
    return decode_bytes(path.read_bytes(), name=str(path))


def load_source(path: Path) -> SourceFile:
    return SourceFile(name=str(path), content=read_text_file(path))
