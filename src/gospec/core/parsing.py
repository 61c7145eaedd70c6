from collections.abc import Iterator
from functools import cache
from pathlib import Path

from tree_sitter import Node, Query, QueryCursor, Tree
from tree_sitter_language_pack import get_language, get_parser

LANGUAGE = "go"


class SyntaxFailure(Exception):
    """Raised when a Go source file does not parse cleanly."""

    def __init__(self, message: str, line: int | None = None, column: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.line = line
        self.column = column


@cache
def load_query(query_type: str) -> Query:
    queries_dir = Path(__file__).parent.parent / "queries"
    query_path = queries_dir / f"{LANGUAGE}_{query_type}.scm"
    if not query_path.exists():
        raise FileNotFoundError(f"Query file not found: {query_path}")
    query_text = query_path.read_text(encoding="utf-8")
    return Query(get_language(LANGUAGE), query_text)


def parse_go_source(source_bytes: bytes) -> Tree:
    """Parse Go source, raising ``SyntaxFailure`` if the tree contains errors."""
    parser = get_parser(LANGUAGE)
    tree = parser.parse(source_bytes)
    error_node = find_syntax_error(tree.root_node)
    if error_node is not None:
        row, column = error_node.start_point
        if error_node.is_missing:
            message = f"missing {error_node.type}"
        else:
            snippet = node_text(error_node).splitlines()[0][:40] if error_node.text else ""
            message = f"unexpected {snippet!r}" if snippet else "syntax error"
        raise SyntaxFailure(message, line=row + 1, column=column + 1)
    return tree


def parse_go_file(path: str | Path) -> Tree:
    file_path = Path(path)
    try:
        source_bytes = file_path.read_bytes()
    except FileNotFoundError:
        raise FileNotFoundError(f"File not found: {path}") from None
    return parse_go_source(source_bytes)


def find_syntax_error(root: Node) -> Node | None:
    """Return the first ERROR or MISSING node in document order, if any."""
    if not root.has_error:
        return None
    for node in walk(root):
        if node.is_error or node.is_missing:
            return node
    return root


def walk(root: Node) -> Iterator[Node]:
    """Yield ``root`` and its descendants in pre-order (source order)."""
    stack = [root]
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(node.children))


def node_text(node: Node | None) -> str:
    if node is None or node.text is None:
        return ""
    return node.text.decode("utf-8", errors="replace")


def string_literal_value(node: Node | None) -> str | None:
    """Return the unquoted value of a Go string literal node, else None."""
    if node is None or node.type not in ("interpreted_string_literal", "raw_string_literal"):
        return None
    text = node_text(node)
    if len(text) >= 2 and text[0] == text[-1] and text[0] in "\"`":
        return text[1:-1]
    return text


def unwrap_element(node: Node | None) -> Node | None:
    """Strip ``literal_element`` and ``parenthesized_expression`` wrappers."""
    while node is not None and node.type in ("literal_element", "parenthesized_expression", "type_elem"):
        inner = node.named_children
        if not inner:
            return node
        node = inner[0]
    return node


def capture_nodes(query: Query, root: Node) -> dict[str, list[Node]]:
    """Run ``query`` over ``root`` and return captures sorted into source order."""
    cursor = QueryCursor(query)
    result: dict[str, list[Node]] = {}
    for _, matched_captures in cursor.matches(root):
        for cap_name, nodes in matched_captures.items():
            result.setdefault(cap_name, []).extend(nodes)
    for nodes in result.values():
        nodes.sort(key=lambda n: n.start_byte)
    return result


def leading_comments(node: Node) -> list[str]:
    """Return the comment lines directly above ``node`` with comment markers removed."""
    lines: list[str] = []
    expected_row = node.start_point[0]
    sibling = node.prev_sibling
    while sibling is not None and sibling.type == "comment" and sibling.end_point[0] >= expected_row - 1:
        text = node_text(sibling).strip()
        if text.startswith("//"):
            text = text[2:]
        elif text.startswith("/*"):
            text = text[2:].removesuffix("*/")
        lines.insert(0, text.strip())
        expected_row = sibling.start_point[0]
        sibling = sibling.prev_sibling
    return [line for line in lines if line]
