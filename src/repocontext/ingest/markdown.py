"""Markdown chunker — block lexer plus H1-sectioned chunk assembly."""

from __future__ import annotations

import re
from dataclasses import dataclass

from repocontext.db.models import ChunkMetadata, ChunkType, DocumentChunk
from repocontext.ingest.base import BaseChunker
from repocontext.ingest.code import normalize_language

_ATX_HEADING_RE = re.compile(r"^ {0,3}(#{1,6})(?=[ \t]|$)(.*)$")
_CLOSING_HASHES_RE = re.compile(r"(?:^|[ \t]+)#+[ \t]*$")
_SETEXT_RE = re.compile(r"^ {0,3}(=+|-+)[ \t]*$")
_FENCE_OPEN_RE = re.compile(r"^ {0,3}(`{3,}|~{3,})(.*)$")
_HR_RE = re.compile(r"^ {0,3}([-*_])(?:[ \t]*\1){2,}[ \t]*$")
_BLOCKQUOTE_RE = re.compile(r"^ {0,3}>")
_LIST_ITEM_RE = re.compile(r"^ {0,3}(?:[*+-]|\d{1,9}[.)])(?:[ \t]+|$)")
_BULLET_ITEM_RE = re.compile(r"^ {0,3}[*+-](?:[ \t]+|$)")
_INDENTED_RE = re.compile(r"^(?: {4}|\t)")
_CONTINUATION_RE = re.compile(r"^(?: {2,}|\t)")


@dataclass
class MarkdownToken:
    """One block-level token.

    ``raw`` holds the exact source lines (joined by ``\\n``, no trailing
    newline), so ``line_count`` is precise.
    """

    type: str
    raw: str
    text: str = ""
    depth: int = 0
    lang: str | None = None

    @property
    def line_count(self) -> int:
        return self.raw.count("\n") + 1


def _is_blank(line: str) -> bool:
    return not line.strip()


def _heading_text(rest: str) -> str:
    return _CLOSING_HASHES_RE.sub("", rest).strip()


def _starts_block(line: str) -> bool:
    """True when *line* opens a block that interrupts a paragraph."""
    return bool(
        _ATX_HEADING_RE.match(line)
        or _FENCE_OPEN_RE.match(line)
        or _HR_RE.match(line)
        or _BLOCKQUOTE_RE.match(line)
        or _BULLET_ITEM_RE.match(line)
    )


def lex_markdown(content: str) -> list[MarkdownToken]:
    """Tokenize *content* into block tokens.

    Token types: ``heading``, ``code``, ``paragraph``, ``list``,
    ``blockquote``, ``hr`` and ``space``. Tables and HTML blocks come back as
    paragraphs.
    """
    lines = content.split("\n")
    tokens: list[MarkdownToken] = []
    n = len(lines)
    i = 0

    while i < n:
        line = lines[i]

        if _is_blank(line):
            j = i
            while j < n and _is_blank(lines[j]):
                j += 1
            tokens.append(MarkdownToken("space", "\n".join(lines[i:j])))
            i = j
            continue

        fence = _FENCE_OPEN_RE.match(line)
        if fence and not (fence.group(1)[0] == "`" and "`" in fence.group(2)):
            marker = fence.group(1)
            info = fence.group(2).strip().split()
            close_re = re.compile(
                r"^ {0,3}" + re.escape(marker[0]) + "{" + str(len(marker)) + r",}[ \t]*$"
            )
            j = i + 1
            while j < n and not close_re.match(lines[j]):
                j += 1
            body = lines[i + 1 : j]
            end = min(j + 1, n)
            tokens.append(
                MarkdownToken(
                    "code",
                    "\n".join(lines[i:end]),
                    text="\n".join(body),
                    lang=info[0] if info else None,
                )
            )
            i = end
            continue

        heading = _ATX_HEADING_RE.match(line)
        if heading:
            tokens.append(
                MarkdownToken(
                    "heading",
                    line,
                    text=_heading_text(heading.group(2)),
                    depth=len(heading.group(1)),
                )
            )
            i += 1
            continue

        if _HR_RE.match(line):
            tokens.append(MarkdownToken("hr", line))
            i += 1
            continue

        if _INDENTED_RE.match(line):
            j = i + 1
            last = i
            while j < n and (_is_blank(lines[j]) or _INDENTED_RE.match(lines[j])):
                if not _is_blank(lines[j]):
                    last = j
                j += 1
            block = lines[i : last + 1]
            tokens.append(
                MarkdownToken(
                    "code",
                    "\n".join(block),
                    text="\n".join(_INDENTED_RE.sub("", b, count=1) for b in block),
                )
            )
            i = last + 1
            continue

        if _BLOCKQUOTE_RE.match(line):
            j = i + 1
            while j < n and not _is_blank(lines[j]):
                if not _BLOCKQUOTE_RE.match(lines[j]) and _starts_block(lines[j]):
                    break
                j += 1
            raw = "\n".join(lines[i:j])
            tokens.append(MarkdownToken("blockquote", raw, text=raw))
            i = j
            continue

        if _LIST_ITEM_RE.match(line):
            j = i + 1
            while j < n:
                current = lines[j]
                if _is_blank(current):
                    k = j
                    while k < n and _is_blank(lines[k]):
                        k += 1
                    if k < n and (
                        _CONTINUATION_RE.match(lines[k]) or _LIST_ITEM_RE.match(lines[k])
                    ):
                        j = k
                        continue
                    break
                if _CONTINUATION_RE.match(current) or _LIST_ITEM_RE.match(current):
                    j += 1
                    continue
                if _starts_block(current):
                    break
                j += 1
            raw = "\n".join(lines[i:j])
            tokens.append(MarkdownToken("list", raw, text=raw))
            i = j
            continue

        # Paragraph, possibly turned into a setext heading by its underline.
        j = i + 1
        setext_depth = 0
        while j < n and not _is_blank(lines[j]):
            underline = _SETEXT_RE.match(lines[j])
            if underline:
                setext_depth = 1 if underline.group(1)[0] == "=" else 2
                break
            if _starts_block(lines[j]):
                break
            j += 1
        if setext_depth:
            tokens.append(
                MarkdownToken(
                    "heading",
                    "\n".join(lines[i : j + 1]),
                    text=" ".join(part.strip() for part in lines[i:j]),
                    depth=setext_depth,
                )
            )
            i = j + 1
            continue
        raw = "\n".join(lines[i:j])
        tokens.append(MarkdownToken("paragraph", raw, text=raw))
        i = j

    return tokens


class MarkdownChunker(BaseChunker):
    """Split Markdown into H1 sections, with fenced code as separate chunks.

    Strategy:
    - Only depth-1 headings close the running chunk; deeper headings stay in
      it but still update the header hierarchy recorded in metadata.
    - A chunk that contains a heading is typed ``header``, otherwise
      ``content``.
    - Every code block is flushed out as its own ``code`` chunk carrying the
      normalized fence language.
    - Paragraphs, lists and blockquotes accumulate; blank lines are kept so
      chunk content reproduces the source text.
    """

    def _split(self, content: str, file_path: str) -> list[DocumentChunk]:
        chunks: list[DocumentChunk] = []
        headers: list[str] = []
        current: list[str] = []
        chunk_headers: list[str] = []
        chunk_type = ChunkType.CONTENT
        line = 1
        start_line = 1
        end_line = 1

        def flush() -> None:
            text = "\n".join(current).strip()
            if text:
                chunks.append(
                    DocumentChunk(
                        content=text,
                        metadata=ChunkMetadata(
                            headers=list(chunk_headers),
                            chunk_type=chunk_type,
                            start_line=start_line,
                            end_line=end_line,
                        ),
                    )
                )
            current.clear()

        for token in lex_markdown(content):
            count = token.line_count

            if token.type == "heading":
                if token.depth == 1 and current:
                    flush()
                headers = headers[: token.depth - 1]
                headers.extend([""] * (token.depth - 1 - len(headers)))
                headers.append(token.text)
                chunk_headers = list(headers)
                chunk_type = ChunkType.HEADER
                if not current:
                    start_line = line
                current.append(token.raw)
                end_line = line + count - 1

            elif token.type == "code":
                if current:
                    flush()
                chunks.append(
                    DocumentChunk(
                        content=token.text,
                        metadata=ChunkMetadata(
                            headers=list(headers),
                            chunk_type=ChunkType.CODE,
                            language=normalize_language(token.lang),
                            start_line=line,
                            end_line=line + count - 1,
                        ),
                    )
                )
                chunk_headers = list(headers)
                chunk_type = ChunkType.CONTENT

            elif token.type in ("paragraph", "list", "blockquote"):
                if not current:
                    start_line = line
                    chunk_headers = list(headers)
                current.append(token.raw)
                end_line = line + count - 1

            elif token.type == "space" and current:
                current.append("")

            line += count

        if current:
            flush()
        return chunks
