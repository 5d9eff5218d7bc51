"""
Block matcher — search/replace edits on raw text.

The search block is located with a fixed sequence of strategies: exact
substring, elision-aware anchoring, whitespace/case-insensitive line windows,
and finally fuzzy line windows scored with ``difflib.SequenceMatcher``. The
first strategy that reaches a verdict wins.
"""

from __future__ import annotations

import difflib
import functools
import logging
import re
from dataclasses import dataclass
from typing import Optional

from .diff_generator import DiffGenerator, split_keepends
from .edit_result import EditErrorKind, EditResult
from .syntax_check import detect_language

logger = logging.getLogger(__name__)

# "..." or "... anything ..."
_MARKER_CORE = r"\.\.\.(?:.*?\.\.\.)?"

_COMMENT_STYLES: dict[str, str] = {
    "hash": r"#\s*" + _MARKER_CORE,
    "slash": r"//\s*" + _MARKER_CORE,
    "block": r"/\*\s*" + _MARKER_CORE + r"\s*\*/",
    "html": r"<!--\s*" + _MARKER_CORE + r"\s*-->",
    "dash": r"--\s*" + _MARKER_CORE,
}

_LANGUAGE_STYLES: dict[str, tuple[str, ...]] = {
    "python": ("hash",),
    "ruby": ("hash",),
    "shell": ("hash",),
    "yaml": ("hash",),
    "javascript": ("slash", "block"),
    "typescript": ("slash", "block"),
    "java": ("slash", "block"),
    "c": ("slash", "block"),
    "cpp": ("slash", "block"),
    "c_sharp": ("slash", "block"),
    "go": ("slash", "block"),
    "rust": ("slash", "block"),
    "php": ("slash", "block", "hash"),
    "html": ("html",),
    "xml": ("html",),
    "sql": ("dash",),
    "lua": ("dash",),
}


@functools.lru_cache(maxsize=None)
def _marker_pattern(language: Optional[str]) -> re.Pattern:
    styles = _LANGUAGE_STYLES.get(language or "", tuple(_COMMENT_STYLES))
    alternatives = [_MARKER_CORE] + [_COMMENT_STYLES[s] for s in styles]
    return re.compile(r"^\s*(?:" + "|".join(alternatives) + r")\s*$")


def is_elision_marker(line: str, language: Optional[str] = None) -> bool:
    """True if *line* stands for omitted, unchanged content."""
    return bool(_marker_pattern(language).match(line))


def _block_lines(block: str) -> list[str]:
    """Split a block into line texts, ignoring one trailing newline."""
    if block.endswith("\n"):
        block = block[:-1]
    return block.split("\n")


def _trim_blank(lines: list[str]) -> list[str]:
    start, end = 0, len(lines)
    while start < end and not lines[start].strip():
        start += 1
    while end > start and not lines[end - 1].strip():
        end -= 1
    return lines[start:end]


def _strip_eol(line: str) -> str:
    if line.endswith("\r\n"):
        return line[:-2]
    if line.endswith("\n"):
        return line[:-1]
    return line


def _count_occurrences(haystack: str, needle: str, limit: int = 2) -> int:
    """Count (possibly overlapping) occurrences, stopping at *limit*."""
    count, start = 0, 0
    while count < limit:
        idx = haystack.find(needle, start)
        if idx < 0:
            break
        count += 1
        start = idx + 1
    return count


@dataclass
class MatchOptions:
    """Knobs for :meth:`BlockMatcher.find_and_replace`."""
    fuzzy_match_threshold: float = 1.0
    ignore_whitespace: bool = False
    support_elision: bool = False
    language: Optional[str] = None
    ignore_case: bool = False

    def __post_init__(self) -> None:
        if not 0.0 <= self.fuzzy_match_threshold <= 1.0:
            raise ValueError(
                "fuzzy_match_threshold must be within [0, 1], got "
                f"{self.fuzzy_match_threshold}"
            )

    @classmethod
    def from_config(cls, config, language: Optional[str] = None) -> "MatchOptions":
        return cls(
            fuzzy_match_threshold=config.FUZZY_MATCH_THRESHOLD,
            ignore_whitespace=config.IGNORE_WHITESPACE,
            support_elision=config.SUPPORT_ELISION,
            language=language,
        )


class BlockMatcher:
    """Find one occurrence of a search block and replace it."""

    def __init__(self, generator: Optional[DiffGenerator] = None) -> None:
        self._generator = generator or DiffGenerator()

    def find_and_replace(
        self,
        content: Optional[str],
        search_block: str,
        replace_block: str,
        options: Optional[MatchOptions] = None,
        path: Optional[str] = None,
    ) -> EditResult:
        """Replace the single occurrence of *search_block* in *content*.

        Parameters
        ----------
        content:
            Current file text (``""`` or ``None`` for a new file).
        search_block:
            Text to locate. May contain elision marker lines when
            ``options.support_elision`` is set.
        replace_block:
            Replacement text.
        options:
            Matching options; defaults to exact matching only.
        path:
            File path, used for labels in the generated diff and to pick the
            comment syntax of elision markers.

        Returns
        -------
        EditResult
            ``content`` holds the edited text on success.
        """
        options = options or MatchOptions()
        content = content or ""
        language = options.language or detect_language(path)

        if not search_block.strip():
            if not content:
                return self._success(content, replace_block, path, "create")
            return self._fail(
                EditErrorKind.AMBIGUOUS_MATCH,
                "Empty search block matches everywhere in a non-empty file",
                path,
            )

        result = self._exact(content, search_block, replace_block, path)
        if result is not None:
            return result

        lines = split_keepends(content)
        texts = [_strip_eol(line) for line in lines]
        search_lines = _trim_blank(_block_lines(search_block))
        replace_lines = _block_lines(replace_block) if replace_block else []

        if options.support_elision and any(
            is_elision_marker(l, language) for l in search_lines
        ):
            result = self._elision(
                lines, texts, search_lines, replace_lines, options, language, path,
            )
            if result is not None:
                return result

        if options.ignore_whitespace or options.ignore_case:
            result = self._normalized(
                lines, texts, search_lines, replace_lines, options, path,
            )
            if result is not None:
                return result

        if options.fuzzy_match_threshold < 1.0:
            result = self._fuzzy(
                lines, texts, search_lines, replace_lines, options, path,
            )
            if result is not None:
                return result

        applied_text = replace_block.rstrip("\n")
        if applied_text.strip() and applied_text in content:
            logger.debug("[BlockMatch] Replace block already present in %s", path)
            return EditResult(
                success=True,
                message="Replace block already present; no changes made",
                changes_applied=0,
                affected_files=[path] if path else None,
                content=content,
                strategy="exact",
            )

        return self._fail(
            EditErrorKind.CONTEXT_MISMATCH, "Search block not found", path,
        )

    # ------------------------------------------------------------------
    # Strategies
    # ------------------------------------------------------------------

    def _exact(
        self,
        content: str,
        search_block: str,
        replace_block: str,
        path: Optional[str],
    ) -> Optional[EditResult]:
        occurrences = _count_occurrences(content, search_block)
        if occurrences == 0:
            return None
        if occurrences > 1:
            return self._fail(
                EditErrorKind.AMBIGUOUS_MATCH,
                "Search block occurs more than once; add surrounding context",
                path,
            )

        idx = content.find(search_block)
        inner = replace_block.find(search_block)
        if inner >= 0 and replace_block != search_block:
            outer = content.find(replace_block)
            if outer >= 0 and outer + inner == idx:
                logger.debug("[BlockMatch] Replacement already applied in %s", path)
                return EditResult(
                    success=True,
                    message="Replace block already present; no changes made",
                    changes_applied=0,
                    affected_files=[path] if path else None,
                    content=content,
                    strategy="exact",
                )

        new_content = (
            content[:idx] + replace_block + content[idx + len(search_block):]
        )
        return self._success(content, new_content, path, "exact")

    def _elision(
        self,
        lines: list[str],
        texts: list[str],
        search_lines: list[str],
        replace_lines: list[str],
        options: MatchOptions,
        language: Optional[str],
        path: Optional[str],
    ) -> Optional[EditResult]:
        segments: list[list[str]] = [[]]
        for line in search_lines:
            if is_elision_marker(line, language):
                if segments[-1]:
                    segments.append([])
            else:
                segments[-1].append(line)
        segments = [s for s in segments if s]
        if not segments:
            return None

        key = functools.partial(self._normalize, options=options)
        norm = [key(t) for t in texts]
        segments = [[key(l) for l in s] for s in segments]

        anchorings: list[list[tuple[int, int]]] = []
        first = segments[0]
        for start in range(len(norm) - len(first) + 1):
            if norm[start:start + len(first)] != first:
                continue
            spans = [(start, start + len(first))]
            for segment in segments[1:]:
                pos = self._find_block(norm, segment, spans[-1][1])
                if pos is None:
                    break
                spans.append((pos, pos + len(segment)))
            else:
                anchorings.append(spans)
                if len(anchorings) > 1:
                    break

        if not anchorings:
            logger.debug("[BlockMatch] Elided search block could not be anchored")
            return None
        if len(anchorings) > 1:
            return self._fail(
                EditErrorKind.AMBIGUOUS_MATCH,
                "Elided search block can be anchored at more than one position",
                path,
            )

        spans = anchorings[0]
        gaps = [texts[a[1]:b[0]] for a, b in zip(spans, spans[1:])]

        body = list(replace_lines)
        while body and is_elision_marker(body[0], language):
            body.pop(0)
        while body and is_elision_marker(body[-1], language):
            body.pop()
        markers = [i for i, l in enumerate(body) if is_elision_marker(l, language)]

        if markers and len(markers) != len(gaps):
            return self._fail(
                EditErrorKind.CONTEXT_MISMATCH,
                f"Replace block has {len(markers)} elision marker(s) but the "
                f"search block elides {len(gaps)} region(s)",
                path,
            )
        if markers:
            replacement: list[str] = []
            gap_iter = iter(gaps)
            for line in body:
                if is_elision_marker(line, language):
                    replacement.extend(next(gap_iter))
                else:
                    replacement.append(line)
        else:
            replacement = body

        new_content = self._replace_window(
            lines, spans[0][0], spans[-1][1], replacement,
        )
        return self._success("".join(lines), new_content, path, "elision")

    def _normalized(
        self,
        lines: list[str],
        texts: list[str],
        search_lines: list[str],
        replace_lines: list[str],
        options: MatchOptions,
        path: Optional[str],
    ) -> Optional[EditResult]:
        key = functools.partial(self._normalize, options=options)
        norm = [key(t) for t in texts]
        wanted = [key(l) for l in search_lines]
        size = len(wanted)

        hits = [
            i for i in range(len(norm) - size + 1)
            if norm[i:i + size] == wanted
        ]
        if not hits:
            return None
        if len(hits) > 1:
            return self._fail(
                EditErrorKind.AMBIGUOUS_MATCH,
                f"Search block matches {len(hits)} locations when ignoring "
                "whitespace/case",
                path,
            )
        strategy = "whitespace" if options.ignore_whitespace else "ignore_case"
        new_content = self._replace_window(
            lines, hits[0], hits[0] + size, replace_lines,
        )
        return self._success("".join(lines), new_content, path, strategy)

    def _fuzzy(
        self,
        lines: list[str],
        texts: list[str],
        search_lines: list[str],
        replace_lines: list[str],
        options: MatchOptions,
        path: Optional[str],
    ) -> Optional[EditResult]:
        threshold = options.fuzzy_match_threshold
        key = functools.partial(self._normalize, options=options)
        norm = [key(t) for t in texts]
        size = len(search_lines)

        matcher = difflib.SequenceMatcher(None, autojunk=False)
        matcher.set_seq2("\n".join(key(l) for l in search_lines))

        best, best_at, perfect = 0.0, None, 0
        for i in range(len(norm) - size + 1):
            matcher.set_seq1("\n".join(norm[i:i + size]))
            bar = max(threshold, best)
            if matcher.real_quick_ratio() < bar or matcher.quick_ratio() < bar:
                continue
            score = matcher.ratio()
            if score == 1.0:
                perfect += 1
            if best_at is None or score > best:
                best, best_at = score, i

        if perfect > 1:
            return self._fail(
                EditErrorKind.AMBIGUOUS_MATCH,
                f"Search block matches {perfect} locations exactly",
                path,
            )
        if best_at is None or best < threshold:
            logger.debug(
                "[BlockMatch] Best fuzzy score %.3f below threshold %.3f",
                best, threshold,
            )
            return None

        logger.debug(
            "[BlockMatch] Fuzzy match at line %d (score %.3f)", best_at + 1, best,
        )
        new_content = self._replace_window(
            lines, best_at, best_at + size, replace_lines,
        )
        result = self._success("".join(lines), new_content, path, "fuzzy")
        result.message = f"Fuzzy match at line {best_at + 1} (similarity {best:.2f})"
        return result

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _normalize(line: str, options: MatchOptions) -> str:
        if options.ignore_whitespace:
            line = " ".join(line.split())
        if options.ignore_case:
            line = line.lower()
        return line

    @staticmethod
    def _find_block(
        haystack: list[str], block: list[str], start: int,
    ) -> Optional[int]:
        for i in range(start, len(haystack) - len(block) + 1):
            if haystack[i:i + len(block)] == block:
                return i
        return None

    @staticmethod
    def _replace_window(
        lines: list[str], start: int, end: int, replacement: list[str],
    ) -> str:
        """Swap ``lines[start:end]`` for *replacement*, keeping the window's
        line terminator on its last line."""
        last = lines[end - 1] if end > start else ""
        if last.endswith("\r\n"):
            eol = "\r\n"
        elif last.endswith("\n"):
            eol = "\n"
        else:
            eol = ""
        prefix = "".join(lines[:start])
        suffix = "".join(lines[end:])
        if not replacement:
            if not eol and not suffix:
                prefix = prefix.rstrip("\r\n")
            return prefix + suffix
        middle = (eol or "\n").join(replacement) + eol
        return prefix + middle + suffix

    def _success(
        self,
        old: str,
        new: str,
        path: Optional[str],
        strategy: str,
    ) -> EditResult:
        name = path or "file"
        logger.debug("[BlockMatch] %s: replaced via %s strategy", name, strategy)
        return EditResult(
            success=True,
            diff=self._generator.generate(old, new, f"a/{name}", f"b/{name}"),
            message=f"Replaced search block using {strategy} match",
            changes_applied=1,
            affected_files=[path] if path else None,
            content=new,
            strategy=strategy,
        )

    @staticmethod
    def _fail(
        kind: EditErrorKind, message: str, path: Optional[str],
    ) -> EditResult:
        logger.warning("[BlockMatch] %s%s", message, f" in {path}" if path else "")
        return EditResult.failure(
            kind, message, affected_files=[path] if path else None,
        )
