# Version 8
#
# Restores discovery order as the default filter order (reverse, first match wins).
#   - --order length is the opt-in: longest first, keeps only true maxima.
#   - --confirm-prime reports a walk that discovery order kept inside another.
# Edge endpoints with ports (B:s, "n":p:ne) resolve to the node id; the port is
# kept as tailport/headport on the edge.
# Reads the strict flag the same way on pydot 3 and pydot 4.
# A failed write removes the output directory it created.
#
# Notes:
#   - Enumeration is bounded by the node count but can still be exponential on
#     dense graphs; use --max-seconds/--max-paths.
#   - Subgraphs and edge chains (A -> B -> C) are rejected, never flattened.

import sys
import os
import re
import shutil
import time
import argparse
import contextlib
import hashlib
import datetime
import json
import platform
import socket
from collections import defaultdict
from dataclasses import dataclass, field
from enum import Enum

import traceback as _traceback

import pydot
import pyparsing as pp

# ----------------------------
# JSON-first output policy
# ----------------------------
# When --json is requested, stdout MUST be a single JSON object for both success
# and failure. Human-readable lines and traces are routed to stderr instead.
_JSON_MODE = False
_JSON_EMITTED = False


def _pm_print(*args, **kwargs):
    """Human-readable output. In --json mode, route to stderr by default."""
    if _JSON_MODE and "file" not in kwargs:
        kwargs["file"] = sys.stderr
    print(*args, **kwargs)


def _emit_json(payload: dict) -> None:
    """Emit exactly one JSON object to stdout."""
    global _JSON_EMITTED
    _JSON_EMITTED = True
    sys.stdout.write(json.dumps(payload, indent=2))
    sys.stdout.write("\n")
    sys.stdout.flush()


def _json_error_payload(*, exit_code: int, message: str, error_code: str, details: dict | None = None,
                        filename: str | None = None, argv: list | None = None) -> dict:
    return {
        "schema_version": "1.0",
        "run": {
            "argv": list(argv or []),
            "json_requested": True,
            "filename": filename,
        },
        "results": {
            "summary": {
                "exit_code": exit_code,
                "status": "INCONCLUSIVE" if exit_code == 2 else "ERROR",
                "message": message,
            },
            "error": {
                "code": error_code,
                "message": message,
                "details": details or {},
            },
        },
    }


class _ToolExit(Exception):
    """Structured termination with an exit code and JSON-friendly fields."""
    def __init__(self, exit_code: int, error_code: str, message: str, details: dict | None = None):
        super().__init__(message)
        self.exit_code = int(exit_code)
        self.error_code = str(error_code)
        self.message = str(message)
        self.details = details or {}


@dataclass(frozen=True)
class Unsupported:
    """A construct the prime path model cannot represent."""
    construct: str   # "subgraph" | "edge_chain"
    detail: str
    line: int | None = None


class UnsupportedConstructError(_ToolExit):
    """Well-formed input that uses a subgraph or an edge chain."""
    def __init__(self, unsupported: Unsupported, others=()):
        where = f" (line {unsupported.line})" if unsupported.line is not None else ""
        super().__init__(
            exit_code=1,
            error_code="UNSUPPORTED_CONSTRUCT",
            message=f"Unsupported construct '{unsupported.construct}'{where}: {unsupported.detail}",
            details={
                "construct": unsupported.construct,
                "detail": unsupported.detail,
                "line": unsupported.line,
                "all": [[u.construct, u.detail, u.line] for u in (unsupported, *others)],
            },
        )
        self.unsupported = unsupported


class InternalConsistencyError(_ToolExit):
    """The parsed statements and the graph model disagree. Not a user error."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(exit_code=1, error_code="INTERNAL_CONSISTENCY", message=message, details=details)


class SearchLimitReached(Exception):
    """Raised when enumeration exceeds user-provided limits (time/paths)."""
    pass


def _sha256_file(path):
    h = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(1024 * 1024), b""):
            h.update(chunk)
    return h.hexdigest()


def _utc_timestamp():
    return datetime.datetime.now(datetime.timezone.utc).isoformat().replace("+00:00", "Z")


def _run_id():
    return f"{_utc_timestamp()}::pid{os.getpid()}"


def _relpath(p):
    try:
        return os.path.relpath(p).replace("\\", "/")
    except ValueError:
        # Different drive on Windows.
        return str(p).replace("\\", "/")


def _extract_version_number():
    # Reads the leading "# Version NN" line at top of file.
    try:
        with open(__file__, "r", encoding="utf-8") as f:
            first = f.readline().strip()
    except OSError:
        return None
    m = re.search(r"Version\s+(\d+)", first)
    return int(m.group(1)) if m else None


HELP_EPILOG = """
PRIME_MASTER(1)             User Commands             PRIME_MASTER(1)

NAME
    Prime_Master — compute the prime paths of a DOT graph

SYNOPSIS
    Prime_Master.py [OPTIONS] FILE

DESCRIPTION
    Prime_Master reads one graph in DOT format and computes its prime paths:
    the simple paths and simple cycles that are not a contiguous subpath of
    any other. Prime paths are the test requirements of prime path coverage.

    Every edge is followed source -> target, including in undirected graphs.

    Supported statements: graph attributes (a=b), attribute blocks
    (graph/node/edge [...]), node statements and two-endpoint edges.
    Subgraphs and edge chains (A -> B -> C) are rejected. An endpoint with
    a port (B:s) refers to node B; the port is kept as tailport/headport.

OUTPUT
    Default:
        One DOT file per prime path, 0.dot, 1.dot, ... in ./paths
        (or --out-dir). The directory must not already exist.

    --stdout:
        Print each prime path's DOT text to stdout instead.

    --json
        Emit a single JSON object to stdout (schema_version 1.0), even on
        failure. Files are only written when --out-dir is given.

FILTER ORDER
    --order discovery (default)
        Filter in discovery order, newest first (reverse, first match wins).
        Output is numbered in that order. Can keep a walk that a
        same-generation cycle contains; see --confirm-prime.

    --order length
        Terminal walks are ordered by node count, then discovery order, and
        filtered longest-first. Kept paths are mutually non-containing.

CONFIRM-PRIME
    --confirm-prime
        Check every prime path is a valid simple walk, no prime path contains
        another, and every terminal walk is covered by some prime path.

ENUMERATION LIMITS
    --max-seconds SECONDS
        Stop enumeration after the given number of seconds.

    --max-paths COUNT
        Stop enumeration after finalizing the given number of terminal walks.

DIAGNOSTICS
    -v, --verbose
        Enable verbose tracing

    -t, --time
        Print elapsed execution time

EXIT STATUS
    0   Success.

    1   Failure. Usage, input, unsupported construct, internal consistency or
        output errors, and --confirm-prime failure.

    2   Inconclusive. Enumeration stopped early due to a search limit.

    130 Interrupted by user (Ctrl+C / SIGINT).

SEE ALSO

    Ammann & Offutt, Introduction to Software Testing (prime path coverage)
"""


# ---------------------------------------------------------------------
# GRAPH MODEL
# ---------------------------------------------------------------------
class GraphKind(Enum):
    UNDIRECTED = "graph"
    DIRECTED = "digraph"


class StatementKind(Enum):
    ATTRIBUTE = "attribute"
    ATTRIBUTE_BLOCK = "attribute_block"
    NODE = "node"
    EDGE = "edge"
    SUBGRAPH = "subgraph"


@dataclass(frozen=True)
class Node:
    id: str
    attributes: dict = field(default_factory=dict, compare=False, hash=False)


@dataclass(frozen=True)
class Edge:
    source: str
    target: str
    attributes: dict = field(default_factory=dict, compare=False, hash=False)


@dataclass(frozen=True)
class AttributeBlock:
    kind: str   # graph | node | edge
    attributes: dict = field(default_factory=dict, compare=False, hash=False)


@dataclass(frozen=True)
class Statement:
    """One flat statement as handed over by the parser."""
    kind: StatementKind
    name: str = ""
    value: str | None = None
    endpoints: tuple = ()
    attributes: dict = field(default_factory=dict, compare=False, hash=False)


_ATTRIBUTE_BLOCK_NAMES = ("graph", "node", "edge")

_QUOTED_ID = re.compile(r'"(?:[^"\\]|\\.)*"')


def split_port(endpoint):
    """Split an edge endpoint into (node id, port). Port is None when absent.

    B:s -> ("B", "s"), "a:b":p:ne -> ('"a:b"', "p:ne"). Colons inside a quoted
    or HTML id belong to the id.
    """
    if endpoint.startswith('"'):
        m = _QUOTED_ID.match(endpoint)
        cut = m.end() if m else len(endpoint)
    elif endpoint.startswith("<"):
        depth = 0
        cut = len(endpoint)
        for i, ch in enumerate(endpoint):
            depth += {"<": 1, ">": -1}.get(ch, 0)
            if depth == 0:
                cut = i + 1
                break
    else:
        cut = endpoint.find(":")
        if cut < 0:
            cut = len(endpoint)
    port = endpoint[cut + 1:]
    return endpoint[:cut], (port or None)


class Graph:
    def __init__(self, kind, strict, attributes=(), attribute_blocks=(), nodes=(), edges=(), graph_id=None):
        self.kind = kind
        self.strict = bool(strict)
        self.attributes = tuple(attributes)            # verbatim (key, value) statements
        self.attribute_blocks = tuple(attribute_blocks)
        self.nodes = tuple(nodes)
        self.edges = tuple(edges)
        self.graph_id = graph_id

        self._nodes_by_id = {n.id: n for n in self.nodes}
        self._adjacency = defaultdict(list)   # source id -> edges, declaration order
        for e in self.edges:
            self._adjacency[e.source].append(e)

    def get_node(self, node_id):
        """Return the node with this identifier, or None."""
        return self._nodes_by_id.get(node_id)

    def successors(self, node_id):
        # Source -> target only, even for undirected graphs.
        return list(self._adjacency.get(node_id, ()))

    def __repr__(self):
        return (f"Graph(kind={self.kind.value}, strict={self.strict}, "
                f"nodes={len(self.nodes)}, edges={len(self.edges)})")

    @classmethod
    def from_statements(cls, kind, strict, statements, graph_id=None):
        """Flatten a parser statement list into a Graph.

        Node order is first appearance, counting edge endpoints as implicit
        node declarations. Subgraphs and edges with more than two endpoints
        reject the whole input.
        """
        attributes = []
        blocks = []
        node_attrs = {}   # insertion order = node order
        edges = []

        for stmt in statements:
            if stmt.kind is StatementKind.ATTRIBUTE:
                attributes.append((stmt.name, stmt.value))
            elif stmt.kind is StatementKind.ATTRIBUTE_BLOCK:
                blocks.append(AttributeBlock(stmt.name, dict(stmt.attributes)))
            elif stmt.kind is StatementKind.NODE:
                node_attrs.setdefault(stmt.name, {}).update(stmt.attributes)
            elif stmt.kind is StatementKind.EDGE:
                if len(stmt.endpoints) > 2:
                    raise UnsupportedConstructError(
                        Unsupported("edge_chain", " -> ".join(str(p) for p in stmt.endpoints)))
                if len(stmt.endpoints) < 2:
                    raise InternalConsistencyError(
                        f"Edge statement with {len(stmt.endpoints)} endpoint(s).",
                        details={"endpoints": list(stmt.endpoints)},
                    )
                source, target = stmt.endpoints
                node_attrs.setdefault(source, {})
                node_attrs.setdefault(target, {})
                edges.append(Edge(source, target, dict(stmt.attributes)))
            elif stmt.kind is StatementKind.SUBGRAPH:
                raise UnsupportedConstructError(Unsupported("subgraph", stmt.name or "anonymous subgraph"))
            else:
                raise InternalConsistencyError(f"Unknown statement kind: {stmt.kind!r}")

        nodes = [Node(node_id, attrs) for node_id, attrs in node_attrs.items()]
        return cls(kind, strict, attributes, blocks, nodes, edges, graph_id)

    @classmethod
    def from_dot(cls, dot, text):
        """Build a Graph from a parsed pydot graph and the source text it was parsed from.

        The text is required: pydot has already split edge chains into pairwise
        edges, so only the source shows them.
        """
        if text is None:
            raise ValueError("DOT source text is required to detect edge chains and subgraphs.")
        syntax = scan_dot_syntax(text)
        if syntax.unsupported:
            raise UnsupportedConstructError(syntax.unsupported[0], syntax.unsupported[1:])

        kind = GraphKind.UNDIRECTED if dot.get_type() == "graph" else GraphKind.DIRECTED
        # get_strict() changed signature between pydot 3 and 4
        strict = syntax.strict or bool(dot.obj_dict.get("strict", False))

        statements = [Statement(StatementKind.ATTRIBUTE, name=k, value=v)
                      for k, v in dot.get_attributes().items()]

        items = list(dot.get_node_list()) + list(dot.get_edge_list()) + list(dot.get_subgraph_list())
        items.sort(key=lambda item: item.obj_dict.get("sequence", 0))
        for item in items:
            if isinstance(item, pydot.Subgraph):
                statements.append(Statement(StatementKind.SUBGRAPH, name=item.get_name()))
            elif isinstance(item, pydot.Edge):
                source, target = item.get_source(), item.get_destination()
                if not isinstance(source, str) or not isinstance(target, str):
                    # pydot hands over subgraph endpoints (A -> {B C}) as dicts
                    statements.append(Statement(StatementKind.SUBGRAPH, name="edge endpoint"))
                    continue
                source, tailport = split_port(source)
                target, headport = split_port(target)
                attributes = dict(item.get_attributes())
                if tailport is not None:
                    attributes.setdefault("tailport", tailport)
                if headport is not None:
                    attributes.setdefault("headport", headport)
                statements.append(Statement(StatementKind.EDGE, endpoints=(source, target),
                                            attributes=attributes))
            elif item.get_name() in _ATTRIBUTE_BLOCK_NAMES:
                statements.append(Statement(StatementKind.ATTRIBUTE_BLOCK, name=item.get_name(),
                                            attributes=item.get_attributes()))
            else:
                statements.append(Statement(StatementKind.NODE, name=item.get_name(),
                                            attributes=item.get_attributes()))

        return cls.from_statements(kind, strict, statements, graph_id=dot.get_name())


# ---------------------------------------------------------------------
# SYNTAX SCAN (constructs pydot would silently flatten)
# ---------------------------------------------------------------------
@dataclass
class DotSyntax:
    strict: bool = False
    unsupported: list = field(default_factory=list)


_EDGE_OPS = ("->", "--")
_PUNCTUATION = ("{", "}", "[", "]", ";", ",", "=")

_DOT_TOKEN = (
    pp.cpp_style_comment
    | pp.Regex(r"#[^\n]*")
    | pp.Literal("->")
    | pp.Literal("--")
    | pp.QuotedString('"', esc_char="\\", multiline=True, unquote_results=False)
    | pp.nested_expr("<", ">")
    | pp.Regex(r"-?(\.[0-9]+|[0-9]+(\.[0-9]*)?)")
    | pp.Regex(r"[^\W\d]\w*")
    | pp.Char("{}[];,=:")
)


def scan_dot_syntax(text):
    """Token scan of DOT source for the strict keyword, edge chains and subgraphs."""
    syntax = DotSyntax()
    first = True
    brace_depth = 0
    bracket_depth = 0
    chain = []
    chain_line = None
    after_edge_op = False
    after_port = False

    def close_chain():
        if len(chain) > 2:
            syntax.unsupported.append(Unsupported("edge_chain", " -> ".join(chain), chain_line))
        chain.clear()

    for _, start, end in _DOT_TOKEN.scan_string(text):
        lexeme = text[start:end]
        if lexeme.startswith(("//", "/*", "#")):
            continue
        if first:
            syntax.strict = lexeme.lower() == "strict"
            first = False

        if bracket_depth:
            # attribute list contents never form statements
            if lexeme == "[":
                bracket_depth += 1
            elif lexeme == "]":
                bracket_depth -= 1
            continue

        if lexeme in _EDGE_OPS:
            after_edge_op = True
            continue
        if lexeme == ":":
            after_port = True
            continue
        if after_port and lexeme not in _PUNCTUATION:
            # port or compass point of the previous endpoint
            after_port = False
            continue
        after_port = False

        if lexeme in _PUNCTUATION:
            close_chain()
            after_edge_op = False
            if lexeme == "{":
                if brace_depth >= 1:
                    syntax.unsupported.append(
                        Unsupported("subgraph", "nested '{ ... }' block", pp.lineno(start, text)))
                brace_depth += 1
            elif lexeme == "}":
                brace_depth -= 1
            elif lexeme == "[":
                bracket_depth = 1
            continue

        if after_edge_op:
            chain.append(lexeme)
            after_edge_op = False
        else:
            close_chain()
            chain.append(lexeme)
            chain_line = pp.lineno(start, text)

    close_chain()
    return syntax


# ---------------------------------------------------------------------
# PATHS AND ENUMERATION
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class Path:
    nodes: tuple
    edges: tuple = ()

    @property
    def node_ids(self):
        return tuple(n.id for n in self.nodes)

    @property
    def is_cycle(self):
        return len(self.nodes) > 1 and self.nodes[0] == self.nodes[-1]

    def extend(self, node, edge):
        return Path(self.nodes + (node,), self.edges + (edge,))

    def is_subpath_of(self, other):
        """True if this node sequence occurs as a contiguous block of other's (equal counts)."""
        mine = self.node_ids
        theirs = other.node_ids
        n = len(mine)
        if n > len(theirs):
            return False
        return any(theirs[i:i + n] == mine for i in range(len(theirs) - n + 1))

    def __str__(self):
        return " -> ".join(self.node_ids)


class Termination(Enum):
    DEAD_END = "dead_end"
    CLOSED_CYCLE = "closed_cycle"
    BLOCKED_REVISIT = "blocked_revisit"


@dataclass(frozen=True)
class TerminalWalk:
    path: Path
    reason: Termination
    generation: int
    index: int   # discovery order


class PathEnumerator:
    def __init__(self, graph, verbose: bool = False):
        self.graph = graph
        self.verbose = verbose

        self.terminal = []      # TerminalWalk, discovery order
        self.generations = 0

        # Optional limits (None means "no limit")
        self.max_seconds = None
        self.max_paths = None
        self._t0 = None

    def enumerate(self):
        """Grow walks from every node, generation by generation, until none can grow."""
        self.terminal = []
        self.generations = 0
        self._t0 = time.perf_counter()

        if self.verbose:
            lims = []
            if self.max_seconds is not None:
                lims.append(f"max_seconds={self.max_seconds}")
            if self.max_paths is not None:
                lims.append(f"max_paths={self.max_paths}")
            _pm_print(f"[INFO] Starting path enumeration ({', '.join(lims) if lims else 'no limits'})...")

        frontier = [Path((node,)) for node in self.graph.nodes]
        while frontier:
            self.generations += 1
            frontier = self._extend_generation(frontier)
            if self.verbose:
                _pm_print(f"[GEN] generation={self.generations}, frontier={len(frontier)}, "
                          f"terminal={len(self.terminal)}")

        if self.verbose:
            _pm_print(f"[INFO] Enumeration complete: generations={self.generations}, "
                      f"terminal_walks={len(self.terminal)}")
        return self.terminal

    def successors(self, path):
        """(node, edge) pairs leaving the last node of path."""
        last = path.nodes[-1]
        nexts = []
        for edge in self.graph.successors(last.id):
            node = self.graph.get_node(edge.target)
            if node is None:
                raise InternalConsistencyError(
                    f"Edge '{edge.source} -> {edge.target}' targets unknown node '{edge.target}'.",
                    details={"edge": [edge.source, edge.target]},
                )
            nexts.append((node, edge))
        return nexts

    def _extend_generation(self, frontier):
        extended = []
        for path in frontier:
            self._check_limits()
            nexts = self.successors(path)
            if not nexts:
                self._finalize(path, Termination.DEAD_END)
                continue

            for node, edge in nexts:
                if node == path.nodes[0]:
                    self._finalize(path.extend(node, edge), Termination.CLOSED_CYCLE)
                elif node in path.nodes:
                    # the unextended path is what gets finalized, once per blocked successor
                    self._finalize(path, Termination.BLOCKED_REVISIT)
                else:
                    extended.append(path.extend(node, edge))
        return extended

    def _finalize(self, path, reason):
        self.terminal.append(TerminalWalk(path, reason, self.generations, len(self.terminal)))
        if self.max_paths is not None and len(self.terminal) >= self.max_paths:
            raise SearchLimitReached(f"Path limit exceeded ({self.max_paths}).")

    def _check_limits(self):
        if self.max_seconds is not None:
            elapsed = time.perf_counter() - self._t0
            if elapsed > self.max_seconds:
                raise SearchLimitReached(f"Time limit exceeded ({self.max_seconds} seconds).")


# ---------------------------------------------------------------------
# MAXIMAL-PATH FILTER
# ---------------------------------------------------------------------
FILTER_ORDERS = ("discovery", "length")


def filter_order(walks, order="discovery"):
    """The sequence remove_subpaths consumes, oldest first."""
    if order == "discovery":
        return list(walks)
    if order == "length":
        return sorted(walks, key=lambda w: len(w.path.nodes))
    raise ValueError(f"Unknown filter order: {order!r}")


def remove_subpaths(walks, order="discovery"):
    """Keep walks not contained in an already-kept walk, visiting the ordered walks in reverse."""
    maximal = []
    for walk in reversed(filter_order(walks, order)):
        if not any(walk.path.is_subpath_of(kept.path) for kept in maximal):
            maximal.append(walk)
    return maximal


@dataclass
class PrimePathResult:
    graph: Graph
    terminal: list
    prime: list
    generations: int
    order: str

    @property
    def paths(self):
        return [w.path for w in self.prime]


def find_prime_paths(graph, order="discovery", verbose=False, max_seconds=None, max_paths=None):
    enumerator = PathEnumerator(graph, verbose=verbose)
    enumerator.max_seconds = max_seconds
    enumerator.max_paths = max_paths
    terminal = enumerator.enumerate()

    if verbose:
        _pm_print(f"[INFO] Removing subpaths (order={order})...")
    prime = remove_subpaths(terminal, order=order)
    if verbose:
        _pm_print(f"[INFO] Filter complete: prime_paths={len(prime)}")

    return PrimePathResult(graph, terminal, prime, enumerator.generations, order)


def confirm_prime_paths(graph, terminal, prime):
    """Check walk validity, simplicity, non-containment and coverage of a prime path set."""
    failures = []
    checks = {"valid_walks": True, "simple": True, "non_containment": True, "coverage": True, "non_empty": True}

    paths = [w.path for w in prime]
    for k, p in enumerate(paths):
        ids = p.node_ids
        ok = len(p.edges) == len(p.nodes) - 1 and all(
            e.source == ids[i] and e.target == ids[i + 1] and e in graph.successors(e.source)
            for i, e in enumerate(p.edges)
        )
        if not ok:
            checks["valid_walks"] = False
            failures.append(f"prime path {k} ({p}) is not a walk over the graph's edges")

        inner = ids[:-1] if p.is_cycle else ids
        if len(set(inner)) != len(inner):
            checks["simple"] = False
            failures.append(f"prime path {k} ({p}) revisits a node")

    for i, p in enumerate(paths):
        for j, q in enumerate(paths):
            if i != j and p.is_subpath_of(q):
                checks["non_containment"] = False
                failures.append(f"prime path {i} ({p}) is a subpath of prime path {j} ({q})")

    for walk in terminal:
        if not any(walk.path.is_subpath_of(p) for p in paths):
            checks["coverage"] = False
            failures.append(f"terminal walk {walk.index} ({walk.path}) is not covered by any prime path")

    if graph.nodes and not paths:
        checks["non_empty"] = False
        failures.append("graph has nodes but no prime paths were produced")

    return {"pass": not failures, "failures": failures, "checks": checks}


def _print_confirm(report):
    _pm_print("=== CONFIRM-PRIME ===")
    for name, ok in report["checks"].items():
        _pm_print(f"{name}: {'PASS' if ok else 'FAIL'}")
    for line in report["failures"][:20]:
        _pm_print(f"[FAIL] {line}")
    if len(report["failures"]) > 20:
        _pm_print(f"[FAIL] ... {len(report['failures']) - 20} more")
    _pm_print(f"Result: {'PASS' if report['pass'] else 'FAIL'}")


# ---------------------------------------------------------------------
# DOT INPUT / OUTPUT
# ---------------------------------------------------------------------
def load_dot(filename):
    """Read and parse one DOT graph. Returns (text, pydot.Dot)."""
    try:
        with open(filename, "r", encoding="utf-8") as file:
            text = file.read()
    except FileNotFoundError:
        raise _ToolExit(
            exit_code=1,
            error_code="INPUT_NOT_FOUND",
            message=f"File '{filename}' not found.",
            details={"path": filename},
        )
    except (OSError, UnicodeDecodeError) as e:
        raise _ToolExit(
            exit_code=1,
            error_code="INPUT_UNREADABLE",
            message=f"File '{filename}' could not be read: {e}",
            details={"path": filename, "exception_type": type(e).__name__},
        )

    if not text.strip():
        raise _ToolExit(
            exit_code=1,
            error_code="INPUT_EMPTY",
            message="Input file is empty or contains only whitespace.",
            details={"path": filename},
        )

    # Older pydot releases print parse errors; keep stdout clean for --json.
    with contextlib.redirect_stdout(sys.stderr):
        try:
            graphs = pydot.graph_from_dot_data(text)
        except Exception as e:  # exception type varies across pydot releases
            raise _ToolExit(
                exit_code=1,
                error_code="INPUT_FORMAT",
                message=f"Input is not a valid DOT graph: {e}",
                details={"path": filename, "exception_type": type(e).__name__},
            )

    if not graphs:
        raise _ToolExit(
            exit_code=1,
            error_code="INPUT_FORMAT",
            message="Input is not a valid DOT graph.",
            details={"path": filename},
        )
    if len(graphs) > 1:
        raise _ToolExit(
            exit_code=1,
            error_code="INPUT_FORMAT",
            message=f"Expected exactly one graph, found {len(graphs)}.",
            details={"path": filename, "graph_count": len(graphs)},
        )
    return text, graphs[0]


def prime_graph_id(graph, index):
    graph_id = f"prime_path_{index}"
    if graph.graph_id is not None and graph_id == graph.graph_id.strip('"'):
        graph_id = f"{graph_id}_"
    return graph_id


def restricted_graph(graph, path, graph_id):
    """The source graph's kind, strictness and attributes, restricted to one path."""
    dot = pydot.Dot(graph_id, graph_type=graph.kind.value, strict=graph.strict)
    for key, value in graph.attributes:
        dot.set(key, value)
    for block in graph.attribute_blocks:
        dot.add_node(pydot.Node(block.kind, **block.attributes))

    seen = set()
    for node in path.nodes:
        if node.id in seen:
            continue   # a cycle's start node closes the path a second time
        seen.add(node.id)
        dot.add_node(pydot.Node(node.id, **node.attributes))
    for edge in path.edges:
        dot.add_edge(pydot.Edge(edge.source, edge.target, **edge.attributes))
    return dot


def path_from_dot(dot):
    """(node ids, edge pairs) of a restricted graph, rebuilt from its statements."""
    edges = [(e.get_source(), e.get_destination()) for e in dot.get_edge_list()]
    if edges:
        return tuple([edges[0][0]] + [t for _, t in edges]), edges
    nodes = [n.get_name() for n in dot.get_node_list() if n.get_name() not in _ATTRIBUTE_BLOCK_NAMES]
    return tuple(nodes), edges


def write_prime_paths(texts, out_dir):
    """Create out_dir fresh and write one numbered .dot file per prime path."""
    try:
        os.mkdir(out_dir)
    except FileExistsError:
        raise _ToolExit(
            exit_code=1,
            error_code="OUTPUT_EXISTS",
            message=f"Output directory '{out_dir}' already exists.",
            details={"out_dir": out_dir},
        )
    except OSError as e:
        raise _ToolExit(
            exit_code=1,
            error_code="OUTPUT_IO",
            message=f"Could not create output directory '{out_dir}': {e}",
            details={"out_dir": out_dir, "exception_type": type(e).__name__},
        )

    files = []
    for i, text in enumerate(texts):
        target = os.path.join(out_dir, f"{i}.dot")
        try:
            with open(target, "x", encoding="utf-8") as f:
                f.write(text)
        except OSError as e:
            # no partial output: drop the directory this call created
            shutil.rmtree(out_dir, ignore_errors=True)
            raise _ToolExit(
                exit_code=1,
                error_code="OUTPUT_IO",
                message=f"Could not write '{target}': {e}",
                details={"file": target, "exception_type": type(e).__name__},
            )
        files.append(target)
    return files


def _paths_fingerprint(paths):
    h = hashlib.sha256()
    for p in paths:
        h.update(" ".join(p.node_ids).encode("utf-8"))
        h.update(b"\n")
    return h.hexdigest()


# ---------------------------------------------------------------------
# JSON REPORTING
# ---------------------------------------------------------------------
def _analysis_dict(result, texts, confirm, output, order):
    graph = result.graph
    terminations = {t.value: 0 for t in Termination}
    for walk in result.terminal:
        terminations[walk.reason.value] += 1

    return {
        "graph": {
            "node_count": len(graph.nodes),
            "edge_count": len(graph.edges),
            "nodes": [n.id for n in graph.nodes],
            "edges": [[e.source, e.target] for e in graph.edges],
        },
        "enumeration": {
            "generations": result.generations,
            "terminal_count": len(result.terminal),
            "terminations": terminations,
        },
        "prime_paths": {
            "count": len(result.prime),
            "order": order,
            "fingerprint": _paths_fingerprint(result.paths),
            "paths": [
                {
                    "index": i,
                    "nodes": list(w.path.node_ids),
                    "edges": [[e.source, e.target] for e in w.path.edges],
                    "length": len(w.path.edges),
                    "cycle": w.path.is_cycle,
                    "termination": w.reason.value,
                    "discovery_index": w.index,
                    "dot": texts[i] if texts is not None else None,
                }
                for i, w in enumerate(result.prime)
            ],
        },
        "confirm_prime": {
            "enabled": confirm is not None,
            "pass": confirm["pass"] if confirm is not None else None,
            "checks": confirm["checks"] if confirm is not None else None,
            "failures": confirm["failures"] if confirm is not None else [],
        },
        "output": output,
        "performance": {"elapsed_seconds": None, "elapsed_nanoseconds": None},
    }


def make_json_payload(args, argv, graph, analysis_obj, exit_code, status, message, elapsed_seconds):
    filename_abs = args.filename
    payload = {
        "schema_version": "1.0",
        "tool": {
            "name": "Prime_Master",
            "version": _extract_version_number(),
            "source_file": _relpath(__file__),
        },
        "run": {
            "run_id": _run_id(),
            "timestamp_utc": _utc_timestamp(),
            "host": socket.gethostname(),
            "platform": platform.platform(),
        },
        "input": {
            "file_path": _relpath(filename_abs),
            "file_name": os.path.basename(filename_abs),
            "sha256": _sha256_file(filename_abs),
            "graph_type": graph.kind.value,
            "strict": graph.strict,
            "graph_id": graph.graph_id,
        },
        "options": {
            "argv": list(argv),
            "order": args.order,
            "verbose": bool(args.verbose),
            "time_enabled": bool(args.time),
            "confirm_prime": bool(args.confirm_prime),
            "stdout": bool(args.stdout),
            "out_dir": args.out_dir,
            "json_enabled": True,
        },
        "limits": {
            "max_seconds": args.max_seconds,
            "max_paths": args.max_paths,
        },
        "results": {
            "summary": {
                "exit_code": exit_code,
                "status": status,
                "message": message,
            },
            "analysis": analysis_obj,
        },
    }
    if analysis_obj is not None:
        analysis_obj["performance"]["elapsed_seconds"] = elapsed_seconds
        analysis_obj["performance"]["elapsed_nanoseconds"] = (
            int(elapsed_seconds * 1_000_000_000) if elapsed_seconds is not None else None
        )
    return payload


# ---------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------
DEFAULT_OUT_DIR = "paths"


def build_parser():
    parser = argparse.ArgumentParser(
        prog="Prime_Master.py",
        description="Compute the prime paths of a graph described in DOT.",
        epilog=HELP_EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("filename", help="Input DOT file")
    parser.add_argument("-t", "--time", action="store_true", help="Print elapsed execution time")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose tracing while running")
    parser.add_argument("--out-dir", default=None,
                        help=f"Directory for the numbered .dot files (default: ./{DEFAULT_OUT_DIR}; must not exist)")
    parser.add_argument("--stdout", action="store_true",
                        help="Print each prime path's DOT text to stdout instead of writing files")
    parser.add_argument("--order", choices=FILTER_ORDERS, default="discovery",
                        help="Order the subpath filter consumes (default: discovery)")
    parser.add_argument("--confirm-prime", action="store_true",
                        help="Check non-containment, coverage and walk validity of the result")
    parser.add_argument("--json", action="store_true",
                        help="Emit machine-readable JSON (schema_version 1.0) to stdout")

    parser.add_argument("--max-seconds", type=float, default=None,
                        help="Stop enumeration after this many seconds (inconclusive)")
    parser.add_argument("--max-paths", type=int, default=None,
                        help="Stop enumeration after this many terminal walks (inconclusive)")
    return parser


def parse_args(argv):
    return build_parser().parse_args(argv)


def _elapsed(start_time_ns):
    return (time.perf_counter_ns() - start_time_ns) / 1_000_000_000.0


def _fail(e, args, argv, internal=False):
    """Report a _ToolExit in the active output mode and return its exit code."""
    if _JSON_MODE:
        _emit_json(_json_error_payload(
            exit_code=e.exit_code,
            message=e.message,
            error_code=e.error_code,
            details=e.details,
            filename=getattr(args, "filename", None),
            argv=argv,
        ))
        return e.exit_code
    prefix = "Internal error" if internal else "Error"
    print(f"{prefix}: {e.message}", file=sys.stderr)
    return e.exit_code


def run(args, argv, start_time_ns):
    text, dot = load_dot(args.filename)
    graph = Graph.from_dot(dot, text)

    if args.verbose:
        _pm_print(f"[INFO] Parsed {graph.kind.value}: nodes={len(graph.nodes)}, edges={len(graph.edges)}, "
                  f"strict={graph.strict}")
        if graph.kind is GraphKind.UNDIRECTED and graph.edges:
            _pm_print("[WARN] Undirected graph: edges are followed source -> target only.")
        if not graph.nodes:
            _pm_print("[WARN] Graph has no nodes; no prime paths.")

    try:
        result = find_prime_paths(graph, order=args.order, verbose=args.verbose,
                                  max_seconds=args.max_seconds, max_paths=args.max_paths)
    except SearchLimitReached as e:
        if _JSON_MODE:
            _emit_json(_json_error_payload(
                exit_code=2,
                message=f"Stopped early due to search limits: {e}",
                error_code="INCONCLUSIVE",
                details={"max_seconds": args.max_seconds, "max_paths": args.max_paths},
                filename=args.filename,
                argv=argv,
            ))
            return 2
        print(f"Stopped early due to search limits: {e}")
        return 2

    texts = [restricted_graph(graph, w.path, prime_graph_id(graph, i)).to_string()
             for i, w in enumerate(result.prime)]
    confirm = confirm_prime_paths(graph, result.terminal, result.prime) if args.confirm_prime else None

    out_dir = args.out_dir
    if out_dir is None and not args.stdout and not _JSON_MODE:
        out_dir = DEFAULT_OUT_DIR

    output = {"mode": "none", "directory": None, "files": []}
    if args.stdout and not _JSON_MODE:
        output["mode"] = "stdout"
        for text_ in texts:
            print(text_)
    elif out_dir is not None:
        files = write_prime_paths(texts, out_dir)
        output = {"mode": "directory", "directory": _relpath(out_dir), "files": [_relpath(f) for f in files]}

    exit_code = 0 if confirm is None or confirm["pass"] else 1

    if _JSON_MODE:
        analysis_obj = _analysis_dict(result, texts, confirm, output, args.order)
        payload = make_json_payload(
            args=args, argv=argv, graph=graph, analysis_obj=analysis_obj,
            exit_code=exit_code,
            status="OK" if exit_code == 0 else "FAIL",
            message="Prime paths computed successfully" if exit_code == 0 else "Prime path confirmation failed",
            elapsed_seconds=_elapsed(start_time_ns),
        )
        _emit_json(payload)
        return exit_code

    if not args.stdout:
        print("Prime Paths:")
        for path in result.paths:
            print(str(path))

        print(f"Number of Nodes: {len(graph.nodes)}")
        print(f"Number of Edges: {len(graph.edges)}")
        print(f"Generations: {result.generations}")
        print(f"Number of Terminal Walks: {len(result.terminal)}")
        print(f"Number of Prime Paths Found: {len(result.prime)}")
        if output["mode"] == "directory":
            print(f"Wrote {len(output['files'])} file(s) to {output['directory']}")

    if confirm is not None:
        # keep --stdout output pure DOT
        if args.stdout:
            with contextlib.redirect_stdout(sys.stderr):
                _print_confirm(confirm)
        else:
            _print_confirm(confirm)

    if args.time:
        elapsed = _elapsed(start_time_ns)
        _pm_print(f"Elapsed Time (seconds): {elapsed:.9f} (ns={int(elapsed * 1_000_000_000)})",
                  file=sys.stderr if args.stdout else sys.stdout)

    return exit_code


def main(argv=None):
    global _JSON_MODE
    start_time_ns = time.perf_counter_ns()
    argv = sys.argv[1:] if argv is None else list(argv)
    _JSON_MODE = "--json" in argv
    args = None

    # In JSON mode, --help/-h returns one JSON object instead of argparse help text.
    if _JSON_MODE and ("--help" in argv or "-h" in argv):
        _emit_json({
            "schema_version": "1.0",
            "run": {"argv": argv, "tool": {"name": "Prime_Master", "version": _extract_version_number()}},
            "options": {"json": True},
            "results": {"summary": {"exit_code": 0, "status": "OK", "message": "Help text"},
                        "help": {"text": build_parser().format_help()}},
        })
        return 0

    try:
        try:
            args = parse_args(argv)
        except SystemExit as e:
            if e.code in (0, None):
                return 0
            # argparse has already printed usage to stderr
            raise _ToolExit(
                exit_code=1,
                error_code="CLI_USAGE",
                message="Command-line usage error.",
                details={"system_exit_code": e.code},
            )
        if args.json:
            args.verbose = False
        return run(args, argv, start_time_ns)

    except InternalConsistencyError as e:
        _traceback.print_exc(file=sys.stderr)
        return _fail(e, args, argv, internal=True)

    except _ToolExit as e:
        return _fail(e, args, argv)

    except KeyboardInterrupt:
        if _JSON_MODE and not _JSON_EMITTED:
            _emit_json(_json_error_payload(
                exit_code=130,
                message="Interrupted by user (Ctrl+C / SIGINT).",
                error_code="INTERRUPTED",
                filename=getattr(args, "filename", None),
                argv=argv,
            ))
        else:
            print("Error: Interrupted by user.", file=sys.stderr)
        return 130

    except Exception as e:
        # Unexpected crash: keep traceback on stderr; JSON envelope on stdout if requested.
        if not _JSON_MODE or _JSON_EMITTED:
            raise
        _traceback.print_exc(file=sys.stderr)
        _emit_json(_json_error_payload(
            exit_code=1,
            message=f"Internal error: {type(e).__name__}",
            error_code="INTERNAL",
            details={"exception_type": type(e).__name__},
            filename=getattr(args, "filename", None),
            argv=argv,
        ))
        return 1


if __name__ == "__main__":
    sys.exit(main())
