"""Typed filter-graph descriptors.

The compositor builds a FilterGraph out of FilterStage objects and only turns
it into ffmpeg's ``-filter_complex`` text at the very end, in ``serialize``.
Tests can inspect stages, labels and parameters without running ffmpeg.
"""

import re
from dataclasses import dataclass, field
from typing import Union

ParamValue = Union[str, int, float]

# Characters that must not appear bare inside a filter argument
_NEEDS_QUOTING = re.compile(r"[,:;\[\]'\\\s]")
_STREAM_SPECIFIER = re.compile(r"^\d+:[vas](:\d+)?$")


def format_number(value: float) -> str:
    """Render a number without float noise (3.0 -> "3", 0.1 -> "0.1")."""
    if isinstance(value, bool):
        return str(int(value))
    if isinstance(value, int):
        return str(value)
    text = f"{value:.6f}".rstrip("0").rstrip(".")
    return "0" if text in ("", "-0") else text


def escape_value(value: ParamValue) -> str:
    if isinstance(value, (int, float)):
        return format_number(value)
    text = str(value)
    if _NEEDS_QUOTING.search(text):
        return "'" + text.replace("'", "'\\''") + "'"
    return text


@dataclass
class FilterStage:
    """One filter: ``[inputs]name=args:key=value[outputs]``."""

    name: str
    args: tuple[ParamValue, ...] = ()
    kwargs: dict[str, ParamValue] = field(default_factory=dict)
    inputs: list[str] = field(default_factory=list)
    outputs: list[str] = field(default_factory=list)

    def serialize(self) -> str:
        params = [escape_value(a) for a in self.args]
        params.extend(f"{k}={escape_value(v)}" for k, v in self.kwargs.items())
        text = self.name
        if params:
            text += "=" + ":".join(params)
        ins = "".join(f"[{label}]" for label in self.inputs)
        outs = "".join(f"[{label}]" for label in self.outputs)
        return f"{ins}{text}{outs}"


@dataclass
class FilterChain:
    """Stages joined with ',' (each feeds the next)."""

    stages: list[FilterStage] = field(default_factory=list)

    @property
    def inputs(self) -> list[str]:
        return self.stages[0].inputs if self.stages else []

    @property
    def outputs(self) -> list[str]:
        return self.stages[-1].outputs if self.stages else []

    def serialize(self) -> str:
        return ",".join(stage.serialize() for stage in self.stages)


class FilterGraph:
    """An ordered list of filter chains plus a label allocator."""

    def __init__(self):
        self.chains: list[FilterChain] = []
        self._counter = 0

    def label(self, prefix: str) -> str:
        """Allocate a new intermediate stream name.

        One counter is shared by all prefixes, so names are strictly
        increasing in allocation order and can never collide.
        """
        name = f"{prefix}{self._counter}"
        self._counter += 1
        return name

    def add_chain(
        self,
        stages: list[FilterStage],
        inputs: list[str] | None = None,
        outputs: list[str] | None = None,
    ) -> FilterChain:
        if not stages:
            raise ValueError("A filter chain needs at least one stage")
        if inputs:
            stages[0].inputs = list(inputs)
        if outputs:
            stages[-1].outputs = list(outputs)
        chain = FilterChain(stages)
        self.chains.append(chain)
        return chain

    def stages(self) -> list[FilterStage]:
        return [stage for chain in self.chains for stage in chain.stages]

    def find(self, name: str) -> list[FilterStage]:
        return [stage for stage in self.stages() if stage.name == name]

    def validate(self) -> None:
        """Check that every consumed label is produced exactly once, earlier.

        Input stream specifiers such as ``0:v`` are always available.
        """
        produced: set[str] = set()
        for stage in self.stages():
            for label in stage.inputs:
                if not _STREAM_SPECIFIER.match(label) and label not in produced:
                    raise ValueError(f"Filter input [{label}] used before it is produced")
            for label in stage.outputs:
                if label in produced:
                    raise ValueError(f"Filter output [{label}] produced twice")
                produced.add(label)

    def serialize(self) -> str:
        return ";".join(chain.serialize() for chain in self.chains)
