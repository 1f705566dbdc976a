from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Sequence

from cogninode.generation import TopicGenerator
from cogninode.graph import (
	Difficulty, Edge, KnowledgeCard, LearningMap, MapMetadata, Node, NodeKind,
	NodeMetadata, Position, Resource, generate_id,
)
from cogninode.layout import (
	BRANCH_RADIUS, EXPANSION_RADIUS, ROOT_POSITION, TOP_PHASE,
	derive_edges, layout_nodes,
)
from cogninode.resources import search_articles, search_videos

"""
Map generation, node expansion and knowledge-card lookup
--------------------------------------------------------
Each operation is one sequential pipeline: validate input → ask the
generator → lay out → derive edges.  Nothing is written to a store here;
callers commit the returned batch in one step, so a failure anywhere leaves
the store untouched.
"""

log = logging.getLogger(__name__)

MAX_RESOURCES = 6

Searcher = Callable[[str], list[Resource]]


@dataclass(slots=True)
class Subgraph:
	"""New nodes + their connecting edges from one expansion."""
	nodes: list[Node] = field(default_factory=list)
	edges: list[Edge] = field(default_factory=list)

	def to_dict(self) -> dict:
		return {
			"nodes": [n.to_dict() for n in self.nodes],
			"edges": [e.to_dict() for e in self.edges],
		}


def _require(value: str | None, name: str) -> str:
	text = (value or "").strip()
	if not text:
		raise ValueError(f"{name} is required")
	return text


# ---------------------------------------------------------------------------
# Generation
# ---------------------------------------------------------------------------
def build_root(topic: str) -> Node:
	return Node(
		id=generate_id(),
		kind=NodeKind.ROOT,
		title=topic,
		description=f"Master the fundamentals and advanced concepts of {topic}",
		level=0,
		position=Position(*ROOT_POSITION),
		metadata=NodeMetadata(difficulty=Difficulty.BEGINNER, estimated_time=0),
	)


def generate_map(topic: str, generator: TopicGenerator) -> LearningMap:
	"""Root at (0, -200) with the generated subtopics on a circle around it."""
	topic = _require(topic, "Topic")
	raw = generator.generate_topics(topic)

	root = build_root(topic)
	branches = layout_nodes(
		raw,
		center=(root.position.x, root.position.y),
		level=1,
		radius=BRANCH_RADIUS,
		phase=TOP_PHASE,
		parent_id=root.id,
	)
	nodes = [root, *branches]
	edges = derive_edges(branches, root.id)

	now = datetime.now()
	return LearningMap(
		id=generate_id(),
		title=f"{topic} Learning Map",
		root_topic=topic,
		nodes=nodes,
		edges=edges,
		metadata=MapMetadata(
			total_nodes=len(nodes),
			max_depth=max(n.level for n in nodes),
			created_at=now,
			last_modified=now,
		),
	)


# ---------------------------------------------------------------------------
# Expansion
# ---------------------------------------------------------------------------
def expand_node(
	node_id: str,
	title: str,
	context: Sequence[str],
	position: Position | tuple[float, float],
	generator: TopicGenerator,
	level: int = 2,
) -> Subgraph:
	"""
	Break *title* into sub-concepts placed on a circle around *position*.

	The caller must pass the expanding node's real position; the returned
	batch is not committed anywhere.
	"""
	node_id = _require(node_id, "Node ID")
	title = _require(title, "Parent topic")
	if isinstance(position, Position):
		center = (position.x, position.y)
	else:
		center = (float(position[0]), float(position[1]))

	raw = generator.expand_topic(title, list(context or []))
	leaves = layout_nodes(
		raw,
		center=center,
		level=level,
		radius=EXPANSION_RADIUS,
		phase=0.0,
		parent_id=node_id,
	)
	return Subgraph(nodes=leaves, edges=derive_edges(leaves, node_id))


# ---------------------------------------------------------------------------
# Knowledge card
# ---------------------------------------------------------------------------
def gather_resources(
	query: str,
	searchers: Sequence[Searcher] = (search_videos, search_articles),
	limit: int = MAX_RESOURCES,
) -> list[Resource]:
	"""
	Run the searchers concurrently and concatenate their results in
	searcher order.  A searcher that raises contributes nothing.
	"""
	if not searchers:
		return []
	with ThreadPoolExecutor(max_workers=len(searchers)) as pool:
		futures = [pool.submit(search, query) for search in searchers]
		combined: list[Resource] = []
		for search, future in zip(searchers, futures):
			try:
				combined.extend(future.result() or [])
			except Exception as exc:
				log.warning("resource search %s failed: %s", getattr(search, "__name__", search), exc)
	return combined[:limit]


def build_knowledge_card(
	title: str,
	description: str | None,
	generator: TopicGenerator,
	node_id: str | None = None,
	searchers: Sequence[Searcher] = (search_videos, search_articles),
) -> KnowledgeCard:
	title = _require(title, "Node title")
	content = generator.generate_card(title, description or "")
	resources = gather_resources(title, searchers)
	return KnowledgeCard(
		node_id=node_id or "unknown",
		summary=content.summary,
		key_points=content.key_points,
		next_steps=content.next_steps,
		resources=resources,
		code_example=content.code_example,
	)
