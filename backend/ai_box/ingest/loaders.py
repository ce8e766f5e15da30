"""Document loaders for supported formats."""

from __future__ import annotations

from pathlib import Path

import fitz
import yaml
from markdown_it import MarkdownIt
from markdown_it.token import Token

from ai_box.core.errors import UnsupportedInputError
from ai_box.ingest.types import ParsedDocument
from ai_box.utils.text import normalize

_MD = MarkdownIt()


class BaseLoader:
    """Common loader interface."""

    suffixes: tuple[str, ...] = ()
    file_type: str = "bin"

    def can_load(self, path: Path) -> bool:
        return path.suffix.lower() in self.suffixes

    def load(self, path: Path) -> ParsedDocument:  # pragma: no cover - interface
        raise NotImplementedError


class TextLoader(BaseLoader):
    suffixes = (".txt",)
    file_type = "txt"

    def load(self, path: Path) -> ParsedDocument:
        raw = path.read_bytes()
        text = raw.decode("utf-8", errors="replace")
        return ParsedDocument(path=path, text=normalize(text), file_type=self.file_type, size_bytes=len(raw))


class MarkdownLoader(BaseLoader):
    suffixes = (".md", ".markdown")
    file_type = "md"

    def load(self, path: Path) -> ParsedDocument:
        raw = path.read_bytes()
        text = raw.decode("utf-8", errors="replace")
        _, body = _split_front_matter(text)
        return ParsedDocument(path=path, text=_markdown_to_text(body), file_type=self.file_type, size_bytes=len(raw))


class PDFLoader(BaseLoader):
    suffixes = (".pdf",)
    file_type = "pdf"

    def load(self, path: Path) -> ParsedDocument:
        raw = path.read_bytes()
        try:
            with fitz.open(stream=raw, filetype="pdf") as doc:
                pages = [page.get_text("text", sort=True) for page in doc]
        except (RuntimeError, ValueError) as exc:
            raise UnsupportedInputError(f"PDF parse error: {exc}") from exc
        return ParsedDocument(
            path=path,
            text=normalize("\n\n".join(pages)),
            file_type=self.file_type,
            size_bytes=len(raw),
        )


class LoaderRegistry:
    """Registry that selects an appropriate loader for a path."""

    def __init__(self) -> None:
        self._loaders: list[BaseLoader] = [
            MarkdownLoader(),
            TextLoader(),
            PDFLoader(),
        ]

    def for_path(self, path: Path) -> BaseLoader | None:
        for loader in self._loaders:
            if loader.can_load(path):
                return loader
        return None

    def load(self, path: Path) -> ParsedDocument:
        loader = self.for_path(path)
        if loader is None:
            suffix = path.suffix.lstrip(".").lower()
            raise UnsupportedInputError(f"Unsupported file type: .{suffix}")
        return loader.load(path)


def parse_file(path: Path) -> ParsedDocument:
    """Extract plain text from a txt, Markdown or PDF file."""
    return LoaderRegistry().load(path)


def _split_front_matter(text: str) -> tuple[dict[str, object] | None, str]:
    if text.startswith("---"):
        parts = text.split("---", 2)
        if len(parts) >= 3:
            try:
                front_matter = yaml.safe_load(parts[1]) or {}
            except yaml.YAMLError:
                return None, text
            if isinstance(front_matter, dict):
                return front_matter, parts[2]
    return None, text


def _markdown_to_text(text: str) -> str:
    # Headings, paragraphs and list items surface as inline tokens; fences and
    # indented code keep their source.
    parts: list[str] = []
    for token in _MD.parse(text):
        if token.type == "inline":
            content = _inline_text(token).strip()
        elif token.type in {"fence", "code_block"}:
            content = token.content.strip()
        else:
            continue
        if content:
            parts.append(content)
    return normalize("\n\n".join(parts) if parts else text)


def _inline_text(token: Token) -> str:
    pieces: list[str] = []
    for child in token.children or []:
        if child.type in {"text", "code_inline"}:
            pieces.append(child.content)
        elif child.type in {"softbreak", "hardbreak"}:
            pieces.append("\n")
    return "".join(pieces)


__all__ = ["BaseLoader", "TextLoader", "MarkdownLoader", "PDFLoader", "LoaderRegistry", "parse_file"]
