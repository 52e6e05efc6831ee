"""
depwatch Import Extractor.

Finds import specifiers in Python, JavaScript and TypeScript sources using
Tree-sitter grammars.
Requires Python 3.11+.
"""

import time
from pathlib import Path
from typing import Iterator

import tree_sitter_javascript as tsjavascript
import tree_sitter_python as tspython
import tree_sitter_typescript as tstypescript
from tree_sitter import Language, Node, Parser

from depwatch.errors import ParseSkipError
from depwatch.imports.models import FROM_IMPORT_SEPARATOR, FileKind
from depwatch.utils.logger import LoggerMixin


class TreeSitterExtractor(LoggerMixin):
    """
    Import extractor backed by Tree-sitter.

    Specifiers are returned in source order without duplicates. For Python,
    ``from pkg import name`` yields ``pkg:name``: the resolver picks the
    submodule ``pkg.name`` when it exists and ``pkg`` otherwise.
    TypeScript ``import type`` / ``export type`` statements are ignored since
    they never reach the emitted code.
    """

    LANGUAGES: dict[FileKind, Language] = {
        FileKind.PYTHON: Language(tspython.language()),
        FileKind.JAVASCRIPT: Language(tsjavascript.language()),
        FileKind.JSX: Language(tsjavascript.language()),
        FileKind.TYPESCRIPT: Language(tstypescript.language_typescript()),
        FileKind.TSX: Language(tstypescript.language_tsx()),
    }

    def extract(self, content: bytes, kind: FileKind, path: Path | None = None) -> list[str]:
        """
        Extract raw import specifiers from source content.

        Args:
            content: File content as bytes
            kind: Grammar to parse the content with
            path: Path of the file, used for diagnostics only

        Returns:
            Ordered, deduplicated import specifiers

        Raises:
            ParseSkipError: If the content is not valid source for the kind
        """
        start_time = time.perf_counter()

        # Parser instances are not thread-safe; the scanner extracts
        # sibling files from worker threads.
        parser = Parser(self.LANGUAGES[kind])
        tree = parser.parse(content)
        root = tree.root_node

        if root.has_error:
            raise ParseSkipError(path, f"syntax error in {kind.value} source")

        if kind.is_python:
            found = self._python_specifiers(root, content)
        else:
            found = self._script_specifiers(root, content)

        specifiers = list(dict.fromkeys(found))
        self.log.debug(
            "extracted_imports",
            path=str(path) if path else "<memory>",
            count=len(specifiers),
            elapsed_ms=round((time.perf_counter() - start_time) * 1000, 2),
        )
        return specifiers

    def _walk(self, root: Node) -> Iterator[Node]:
        """Depth-first, source-ordered walk over all nodes."""
        stack = [root]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def _text(self, node: Node, source: bytes) -> str:
        return source[node.start_byte : node.end_byte].decode("utf-8", errors="replace")

    # -- Python ---------------------------------------------------------

    def _python_specifiers(self, root: Node, source: bytes) -> Iterator[str]:
        for node in self._walk(root):
            if node.type == "import_statement":
                for name in node.children_by_field_name("name"):
                    yield self._python_name(name, source)
            elif node.type == "import_from_statement":
                yield from self._python_from_import(node, source)

    def _python_name(self, node: Node, source: bytes) -> str:
        if node.type == "aliased_import":
            inner = node.child_by_field_name("name")
            if inner is not None:
                node = inner
        return "".join(self._text(node, source).split())

    def _python_from_import(self, node: Node, source: bytes) -> Iterator[str]:
        module_node = node.child_by_field_name("module_name")
        if module_node is None:
            return
        module = "".join(self._text(module_node, source).split())

        names = node.children_by_field_name("name")
        if not names:
            # from module import *
            yield module
        for name_node in names:
            yield f"{module}{FROM_IMPORT_SEPARATOR}{self._python_name(name_node, source)}"

    # -- JavaScript / TypeScript ----------------------------------------

    def _script_specifiers(self, root: Node, source: bytes) -> Iterator[str]:
        for node in self._walk(root):
            if node.type in ("import_statement", "export_statement"):
                if self._is_type_only(node):
                    continue
                source_node = node.child_by_field_name("source")
                if source_node is not None:
                    yield self._string_value(source_node, source)
            elif node.type == "import_require_clause":
                # import x = require("y")
                source_node = node.child_by_field_name("source")
                if source_node is not None:
                    yield self._string_value(source_node, source)
            elif node.type == "call_expression":
                specifier = self._call_specifier(node, source)
                if specifier is not None:
                    yield specifier

    def _is_type_only(self, node: Node) -> bool:
        """Check for ``import type ...`` / ``export type ... from``."""
        return any(child.type == "type" for child in node.children[1:3])

    def _call_specifier(self, node: Node, source: bytes) -> str | None:
        """Specifier of ``import("x")`` or ``require("x")`` calls."""
        function = node.child_by_field_name("function")
        arguments = node.child_by_field_name("arguments")
        if function is None or arguments is None:
            return None

        if function.type == "import":
            pass
        elif function.type == "identifier" and self._text(function, source) == "require":
            pass
        else:
            return None

        named = arguments.named_children
        if len(named) != 1 or named[0].type != "string":
            return None
        return self._string_value(named[0], source)

    def _string_value(self, node: Node, source: bytes) -> str:
        """Strip the quotes of a string literal node."""
        return self._text(node, source)[1:-1]
