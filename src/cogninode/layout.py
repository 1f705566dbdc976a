from __future__ import annotations

import math
from typing import Any, Iterable

import numpy as np

from cogninode.graph import (
	Edge, EdgeKind, Node, NodeKind, NodeMetadata, Position, RawTopic,
	generate_id, parse_difficulty,
)

"""
Radial layout  (vectorised)
---------------------------
Positions a batch of sibling nodes around a parent point:

  • level 0  → flat row on the x-axis, centred on zero
  • level ≥1 → evenly spaced on a circle of the caller's radius

Angles and coordinates are computed in one numpy pass, so the result is a
pure function of (index, n, radius, center, phase).
"""

# ── constants ───────────────────────────────────────────────────────
NODE_SPACING     = 200          # horizontal gap for the flat level-0 row
BRANCH_RADIUS    = 300          # root → branch
CHILD_RADIUS     = 250          # generic parent → child
EXPANSION_RADIUS = 200          # node expansion
TOP_PHASE        = -math.pi / 2 # first child straight above the parent

ROOT_POSITION    = (0.0, -200.0)
DEFAULT_TIME     = 30           # minutes

EDGE_STYLE: dict[str, Any] = {"stroke": "#00f5ff", "strokeWidth": 2}


def _normalise(raw: Iterable[RawTopic | dict]) -> list[RawTopic]:
	return [r if isinstance(r, RawTopic) else RawTopic.from_dict(r) for r in raw]


def radial_positions(
	n: int,
	center: tuple[float, float] = (0.0, 0.0),
	radius: float = CHILD_RADIUS,
	phase: float = 0.0,
) -> np.ndarray:
	"""(n, 2) array of points evenly spaced on a circle around *center*."""
	if n <= 0:
		return np.empty((0, 2), dtype=np.float64)
	angles = np.arange(n, dtype=np.float64) * (2 * np.pi / n) + phase
	cx, cy = center
	return np.column_stack((cx + radius * np.cos(angles), cy + radius * np.sin(angles)))


def linear_positions(n: int, spacing: float = NODE_SPACING) -> np.ndarray:
	"""(n, 2) array on the x-axis, centred on zero."""
	if n <= 0:
		return np.empty((0, 2), dtype=np.float64)
	xs = (np.arange(n, dtype=np.float64) - (n - 1) / 2) * spacing
	return np.column_stack((xs, np.zeros(n)))


def layout_nodes(
	raw: Iterable[RawTopic | dict],
	center: tuple[float, float] = (0.0, 0.0),
	level: int = 1,
	radius: float = CHILD_RADIUS,
	phase: float = 0.0,
	parent_id: str | None = None,
) -> list[Node]:
	"""
	Turn raw subtopic records into positioned Nodes.

	Each node gets its supplied id (or a fresh one), the kind implied by
	*level*, the given parent, status unexplored and default metadata where
	the record leaves it out.  An empty batch returns [].
	"""
	topics = _normalise(raw)
	n = len(topics)
	if n == 0:
		return []

	if level == 0:
		coords = linear_positions(n)
	else:
		coords = radial_positions(n, center=center, radius=radius, phase=phase)

	kind = NodeKind.for_level(level)
	nodes: list[Node] = []
	for topic, (x, y) in zip(topics, coords):
		est = topic.estimated_time
		nodes.append(Node(
			id=topic.id or generate_id(),
			kind=kind,
			title=topic.title,
			description=topic.description,
			level=level,
			parent_id=parent_id,
			position=Position(float(x), float(y)),
			metadata=NodeMetadata(
				difficulty=parse_difficulty(topic.difficulty),
				estimated_time=est if est is not None and est > 0 else DEFAULT_TIME,
				prerequisites=[],
			),
		))
	return nodes


def derive_edges(nodes: Iterable[Node], parent_id: str | None) -> list[Edge]:
	"""One parent → child edge per node; none when there is no parent."""
	if not parent_id:
		return []
	return [
		Edge(
			id=f"{parent_id}-{node.id}",
			source=parent_id,
			target=node.id,
			kind=EdgeKind.DEFAULT,
			style=dict(EDGE_STYLE),
		)
		for node in nodes
	]
