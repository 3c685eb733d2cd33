"""Prometheus text exposition format (version 0.0.4)"""

import math
from typing import Dict, Iterable, List, Mapping

from monerod_exporter.metrics import CATALOGUE, Number, Sample

CONTENT_TYPE = "text/plain; version=0.0.4; charset=utf-8"


def escape_label_value(value: str) -> str:
    return value.replace("\\", "\\\\").replace("\n", "\\n").replace('"', '\\"')


def escape_help(text: str) -> str:
    return text.replace("\\", "\\\\").replace("\n", "\\n")


def format_value(value: Number) -> str:
    if isinstance(value, bool):
        return str(int(value))
    if isinstance(value, int):
        return str(value)
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    if value.is_integer() and abs(value) < 1e15:
        return str(int(value))
    return repr(value)


def format_labels(labels: Mapping[str, str]) -> str:
    if not labels:
        return ""
    label_str = ",".join(f'{k}="{escape_label_value(v)}"' for k, v in labels.items())
    return f"{{{label_str}}}"


def render(samples: Iterable[Sample]) -> str:
    """
    Render samples as Prometheus text

    Samples sharing a name are grouped under one HELP/TYPE header, in the
    order the name first appears.
    """
    groups: Dict[str, List[Sample]] = {}
    for s in samples:
        groups.setdefault(s.name, []).append(s)

    lines = []
    for name, group in groups.items():
        lines.append(f"# HELP {name} {escape_help(CATALOGUE[name].help)}")
        lines.append(f"# TYPE {name} {group[0].kind.value}")
        for s in group:
            lines.append(f"{name}{format_labels(s.labels)} {format_value(s.value)}")

    return "\n".join(lines) + "\n" if lines else ""
