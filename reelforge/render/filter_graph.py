"""Typed FFmpeg filter graph.

A FilterGraph is a small DAG of FilterNode objects. Labels are allocated
from a per-graph counter so optional stages (captions, watermark, music) can
be inserted in any combination without colliding. ``serialize()`` emits
nodes in topological order and applies FFmpeg's two levels of escaping to
every option value, so callers never build filter strings by hand.

An EngineCommand bundles the graph with its inputs, stream mappings and
encode arguments and renders the final ffmpeg argument list.
"""

import re
from dataclasses import dataclass, field
from typing import Any

# Stream specifiers referencing an ffmpeg input, e.g. "0:v", "1:a", "2:v:0"
_INPUT_STREAM_RE = re.compile(r"^\d+:[va](:\d+)?$")

_LEVEL1_SPECIALS = ("\\", "'", ":")
_LEVEL2_SPECIALS = ("\\", "'", "[", "]", ",", ";")


def _escape(value: str, specials: tuple[str, ...]) -> str:
    # Backslash must be handled first so later escapes are not doubled
    for ch in specials:
        value = value.replace(ch, "\\" + ch)
    return value


def escape_option_value(value: str) -> str:
    """Escape a filter option value for use inside -filter_complex.

    First level protects the value inside the filter's option list, second
    level protects it inside the whole graph description.
    """
    return _escape(_escape(value, _LEVEL1_SPECIALS), _LEVEL2_SPECIALS)


def format_number(value: float) -> str:
    """Render a number without float noise (0.4 -> '0.4', 2.0 -> '2')."""
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, int):
        return str(value)
    text = f"{value:.6f}".rstrip("0").rstrip(".")
    return text if text not in ("", "-0") else "0"


def _format_value(value: Any) -> str:
    if isinstance(value, (int, float)):
        return format_number(value)
    return escape_option_value(str(value))


@dataclass
class FilterNode:
    """One filter in the graph: [inputs]operation=params[output]."""

    operation: str
    params: dict[str, Any] = field(default_factory=dict)
    input_labels: list[str] = field(default_factory=list)
    output_label: str = ""
    positional: tuple[Any, ...] = ()

    def render(self) -> str:
        args = [_format_value(v) for v in self.positional]
        args.extend(f"{k}={_format_value(v)}" for k, v in self.params.items())
        inputs = "".join(f"[{label}]" for label in self.input_labels)
        body = self.operation
        if args:
            body += "=" + ":".join(args)
        return f"{inputs}{body}[{self.output_label}]"


class FilterGraph:
    """Builder and serializer for an ffmpeg filter_complex graph."""

    def __init__(self) -> None:
        self._nodes: list[FilterNode] = []
        self._counter = 0
        self._outputs: set[str] = set()

    @property
    def nodes(self) -> list[FilterNode]:
        return list(self._nodes)

    def new_label(self, prefix: str = "s") -> str:
        label = f"{prefix}{self._counter}"
        self._counter += 1
        return label

    def add(
        self,
        operation: str,
        inputs: str | list[str] | None = None,
        params: dict[str, Any] | None = None,
        *,
        positional: tuple[Any, ...] = (),
        prefix: str = "s",
    ) -> str:
        """Append a node and return its freshly allocated output label."""
        if isinstance(inputs, str):
            inputs = [inputs]
        node = FilterNode(
            operation=operation,
            params=dict(params or {}),
            input_labels=list(inputs or []),
            output_label=self.new_label(prefix),
            positional=positional,
        )
        self._nodes.append(node)
        return node.output_label

    def chain(self, source: str, filters: list[tuple[str, dict[str, Any]]], prefix: str = "s") -> str:
        """Apply filters one after another, returning the last label."""
        label = source
        for operation, params in filters:
            label = self.add(operation, label, params, prefix=prefix)
        return label

    def mark_output(self, label: str) -> str:
        """Declare a label that will be consumed by -map."""
        self._outputs.add(label)
        return label

    def _producers(self) -> dict[str, int]:
        producers: dict[str, int] = {}
        for idx, node in enumerate(self._nodes):
            if node.output_label in producers:
                raise ValueError(f"Duplicate filter label: {node.output_label}")
            if _INPUT_STREAM_RE.match(node.output_label):
                raise ValueError(f"Filter output shadows an input stream: {node.output_label}")
            producers[node.output_label] = idx
        return producers

    def topological_order(self) -> list[FilterNode]:
        """Return nodes ordered so every label is produced before it is used.

        Insertion order is kept whenever it is already valid.
        """
        producers = self._producers()
        consumed: dict[str, int] = {}
        deps: list[set[int]] = []
        for node in self._nodes:
            node_deps: set[int] = set()
            for label in node.input_labels:
                if label in producers:
                    node_deps.add(producers[label])
                    consumed[label] = consumed.get(label, 0) + 1
                elif not _INPUT_STREAM_RE.match(label):
                    raise ValueError(f"Filter input label is never produced: {label}")
            deps.append(node_deps)

        for label, count in consumed.items():
            if count > 1:
                raise ValueError(f"Filter label consumed more than once: {label}")
        for label in producers:
            if label not in consumed and label not in self._outputs:
                raise ValueError(f"Filter output is never used: {label}")
        for label in self._outputs:
            if label not in producers:
                raise ValueError(f"Mapped output is never produced: {label}")

        ordered: list[FilterNode] = []
        done: set[int] = set()
        while len(done) < len(self._nodes):
            progressed = False
            for idx, node in enumerate(self._nodes):
                if idx not in done and deps[idx] <= done:
                    ordered.append(node)
                    done.add(idx)
                    progressed = True
                    break
            if not progressed:
                raise ValueError("Filter graph contains a cycle")
        return ordered

    def serialize(self) -> str:
        return ";".join(node.render() for node in self.topological_order())


@dataclass
class EngineInput:
    """An ffmpeg input file with the options that precede its -i."""

    path: str
    options: list[str] = field(default_factory=list)

    def to_args(self) -> list[str]:
        return [*self.options, "-i", self.path]


@dataclass
class EngineCommand:
    """Everything the media engine needs for one invocation."""

    inputs: list[EngineInput]
    graph: FilterGraph
    maps: list[str]
    output_args: list[str]
    output_path: str

    def map_args(self) -> list[str]:
        args: list[str] = []
        for target in self.maps:
            # Graph labels are bracketed, input streams are not
            args.extend(["-map", target if _INPUT_STREAM_RE.match(target.rstrip("?")) else f"[{target}]"])
        return args

    def to_args(self, ffmpeg_path: str = "ffmpeg") -> list[str]:
        args = [ffmpeg_path, "-y"]
        for engine_input in self.inputs:
            args.extend(engine_input.to_args())
        if self.graph.nodes:
            args.extend(["-filter_complex", self.graph.serialize()])
        args.extend(self.map_args())
        args.extend(self.output_args)
        args.append(self.output_path)
        return args

    @property
    def input_paths(self) -> list[str]:
        return [i.path for i in self.inputs]
