"""
Syntax check — tree-sitter based validation of edited file content.

Uses tree-sitter >= 0.22 API with individual language packages.
"""

from __future__ import annotations

import logging
import os
from typing import Optional

logger = logging.getLogger(__name__)

EXTENSION_TO_LANGUAGE: dict[str, str] = {
    ".py": "python",
    ".js": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".jsx": "javascript",
    ".ts": "typescript",
    ".tsx": "typescript",
    ".java": "java",
    ".c": "c",
    ".h": "c",
    ".cpp": "cpp",
    ".cc": "cpp",
    ".cxx": "cpp",
    ".hpp": "cpp",
    ".hxx": "cpp",
    ".go": "go",
    ".rs": "rust",
    ".rb": "ruby",
    ".php": "php",
    ".cs": "c_sharp",
}


def detect_language(file_path: Optional[str]) -> Optional[str]:
    """Return the tree-sitter language name for *file_path*, or None."""
    if not file_path:
        return None
    ext = os.path.splitext(file_path)[1].lower()
    return EXTENSION_TO_LANGUAGE.get(ext)


def _get_lang_func(language: str):
    """Return the tree-sitter language() function for *language*, or None."""
    try:
        if language == "python":
            import tree_sitter_python as m  # type: ignore
            return m.language
        elif language == "javascript":
            import tree_sitter_javascript as m  # type: ignore
            return m.language
        elif language == "typescript":
            import tree_sitter_typescript as m  # type: ignore
            return m.language_typescript
        elif language == "java":
            import tree_sitter_java as m  # type: ignore
            return m.language
        elif language == "c":
            import tree_sitter_c as m  # type: ignore
            return m.language
        elif language == "cpp":
            import tree_sitter_cpp as m  # type: ignore
            return m.language
        elif language == "go":
            import tree_sitter_go as m  # type: ignore
            return m.language
        elif language == "rust":
            import tree_sitter_rust as m  # type: ignore
            return m.language
        elif language == "ruby":
            import tree_sitter_ruby as m  # type: ignore
            return m.language
        elif language == "php":
            import tree_sitter_php as m  # type: ignore
            return m.language_php
        elif language == "c_sharp":
            import tree_sitter_c_sharp as m  # type: ignore
            return m.language
    except ImportError:
        logger.debug("[SyntaxCheck] Grammar package for %s not installed", language)
    return None


_PARSER_CACHE: dict[str, object] = {}


def _get_parser(language: str):
    """Return a cached tree-sitter Parser for *language*, or None."""
    if language in _PARSER_CACHE:
        return _PARSER_CACHE[language]
    func = _get_lang_func(language)
    if func is None:
        return None
    import tree_sitter as ts  # type: ignore

    parser = ts.Parser(ts.Language(func()))
    _PARSER_CACHE[language] = parser
    return parser


def _first_error(node) -> Optional[object]:
    if node.type == "ERROR" or node.is_missing:
        return node
    if not node.has_error:
        return None
    for child in node.children:
        found = _first_error(child)
        if found is not None:
            return found
    return node


def check_syntax(content: str, language: Optional[str]) -> Optional[str]:
    """Parse *content* and describe the first syntax error.

    Returns None when the content parses cleanly or when no grammar is
    available for *language*.
    """
    if not language:
        return None
    parser = _get_parser(language)
    if parser is None:
        return None

    tree = parser.parse(content.encode("utf-8"))
    if not tree.root_node.has_error:
        return None
    node = _first_error(tree.root_node)
    row, col = node.start_point
    kind = "missing" if node.is_missing else "unexpected"
    return f"{language} syntax error ({kind} {node.type}) at line {row + 1}, column {col + 1}"
