"""
locate.py - Mapping structural routes to concrete source spans

This module resolves a route (a sequence of mapping keys and sequence
indices) against a YAML document and returns the exact span of source text
it addresses, along with any comments on the lines it covers. Spans are
computed from PyYAML's composed node tree, so no re-serialization is involved
and comments are preserved.
"""

import re
from bisect import bisect_right
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple, Union

from yaml.nodes import MappingNode, Node, ScalarNode, SequenceNode

from ..utils.yaml_handler import compose_yaml

RouteComponent = Union[str, int]
Route = Tuple[RouteComponent, ...]

ANY_COMMENT = re.compile(r"#.*$")

IGNORE_EXPR = re.compile(r"(?:^|\s)# wraith: ignore\[(.+)\]\s*$")


class QueryError(Exception):
    """Exception raised when a route does not exist in a document"""

    def __init__(self, route: Sequence[RouteComponent], reason: str) -> None:
        super().__init__(f"route {list(route)!r} does not resolve: {reason}")
        self.route = tuple(route)


@dataclass(frozen=True)
class Point:
    """A zero-based (row, column) position"""

    row: int
    column: int


@dataclass(frozen=True)
class ConcreteLocation:
    start_point: Point
    end_point: Point
    offset_span: Tuple[int, int]
    byte_span: Tuple[int, int]


@dataclass(frozen=True)
class Comment:
    """A single source comment, from the ``#`` to the end of its line"""

    text: str

    def ignores(self, rule_id: str) -> bool:
        """
        Check whether this comment suppresses a rule

        Only the exact form ``# wraith: ignore[id1,id2]`` is recognized.
        Whitespace around each identifier is ignored, as are empty entries.

        Args:
            rule_id: Rule identifier, e.g. ``template-injection``

        Returns:
            True if the rule is listed in the directive
        """
        match = IGNORE_EXPR.search(self.text)
        if match is None:
            return False
        return any(entry.strip() == rule_id for entry in match.group(1).split(","))


@dataclass(frozen=True)
class Feature:
    """A resolved span of a document, with its text and nearby comments"""

    location: ConcreteLocation
    parent_location: ConcreteLocation
    feature: str
    comments: Tuple[Comment, ...]


class LineIndex:
    """Converts character offsets into (row, column) points"""

    def __init__(self, source: str) -> None:
        self.line_starts = [0]
        for index, char in enumerate(source):
            if char == "\n":
                self.line_starts.append(index + 1)

    def line_col(self, offset: int) -> Point:
        row = bisect_right(self.line_starts, offset) - 1
        return Point(row, offset - self.line_starts[row])


class Document:
    """
    A YAML document that can be queried by route

    Args:
        source: Raw YAML text

    Raises:
        yaml.YAMLError: If the text is not valid YAML
    """

    def __init__(self, source: str) -> None:
        self.source = source
        self.root: Optional[Node] = compose_yaml(source)
        self.line_index = LineIndex(source)
        self.lines = source.split("\n")

    def query(self, route: Sequence[RouteComponent]) -> Tuple[int, int]:
        """
        Resolve a route to a character span

        A route ending in a key spans the whole ``key: value`` pair; a route
        ending in an index spans the sequence item. Trailing whitespace and
        comments after the node are not part of the span.

        Args:
            route: Keys and indices from the document root

        Returns:
            (start, end) character offsets

        Raises:
            QueryError: If any component of the route is missing
        """
        if not route:
            return self.root_span()

        node = self.root
        key_node: Optional[Node] = None
        start = 0
        for depth, component in enumerate(route):
            if node is None:
                raise QueryError(route, "document is empty")
            if isinstance(component, int):
                if not isinstance(node, SequenceNode):
                    raise QueryError(route, f"component {depth} indexes a non-sequence")
                if not 0 <= component < len(node.value):
                    raise QueryError(route, f"index {component} is out of range")
                node = node.value[component]
                start = node.start_mark.index
            else:
                if not isinstance(node, MappingNode):
                    raise QueryError(route, f"component {depth} keys into a non-mapping")
                pair = _lookup(node, component)
                if pair is None:
                    raise QueryError(route, f"key {component!r} is missing")
                key_node, node = pair
                start = key_node.start_mark.index

        end = max(self._node_end(node), start)
        if isinstance(route[-1], str) and key_node is not None:
            end = max(end, self._node_end(key_node))
        return start, end

    def root_span(self) -> Tuple[int, int]:
        return 0, len(self.source.rstrip())

    def feature(self, route: Sequence[RouteComponent]) -> Feature:
        """
        Resolve a route to a feature, including its parent's location

        Args:
            route: Keys and indices from the document root

        Returns:
            Feature for the route; the whole document for an empty route

        Raises:
            QueryError: If the route or its parent do not resolve
        """
        span = self.query(route)
        parent_span = self.query(route[:-1]) if route else span
        return self._build_feature(span, parent_span)

    def feature_from_span(self, span: Tuple[int, int]) -> Feature:
        """
        Build a feature directly from a character span

        Used for spans discovered by scanning raw text rather than by
        walking the document structure.

        Args:
            span: (start, end) character offsets

        Returns:
            Feature for the span
        """
        return self._build_feature(span, span)

    def concrete_location(self, span: Tuple[int, int]) -> ConcreteLocation:
        start, end = span
        return ConcreteLocation(
            start_point=self.line_index.line_col(start),
            end_point=self.line_index.line_col(end),
            offset_span=(start, end),
            byte_span=(
                len(self.source[:start].encode("utf-8")),
                len(self.source[:end].encode("utf-8")),
            ),
        )

    def comments_in(self, location: ConcreteLocation) -> Tuple[Comment, ...]:
        comments = []
        for row in range(location.start_point.row, location.end_point.row + 1):
            match = ANY_COMMENT.search(self.lines[row])
            if match:
                comments.append(Comment(match.group().rstrip()))
        return tuple(comments)

    def _build_feature(self, span: Tuple[int, int], parent_span: Tuple[int, int]) -> Feature:
        location = self.concrete_location(span)
        return Feature(
            location=location,
            parent_location=self.concrete_location(parent_span),
            feature=self.source[span[0] : span[1]],
            comments=self.comments_in(location),
        )

    def _node_end(self, node: Node) -> int:
        if isinstance(node, ScalarNode):
            start = node.start_mark.index
            end = node.end_mark.index
            while end > start and self.source[end - 1].isspace():
                end -= 1
            return end

        if node.flow_style or not node.value:
            return node.end_mark.index

        # Block collections end where the next token begins, which can be
        # several comment lines later; use the last child's end instead.
        if isinstance(node, MappingNode):
            last_key, last_value = node.value[-1]
            return max(self._node_end(last_key), self._node_end(last_value))
        return self._node_end(node.value[-1])


def _lookup(node: MappingNode, key: str) -> Optional[Tuple[Node, Node]]:
    # Loading keeps the last of duplicate keys, so resolve to the same one.
    for key_node, value_node in reversed(node.value):
        if isinstance(key_node, ScalarNode) and key_node.value == key:
            return key_node, value_node
    return None

