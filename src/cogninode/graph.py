from __future__ import annotations

import json
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any

"""
CogniNode Learning Map  (graph store + progress tracking)
---------------------------------------------------------
Holds one learning map at a time and the learner's progress:

  • Node / Edge / LearningMap are plain slotted dataclasses
  • GraphStore is the single owner of the map; mutations keep
    totalNodes / maxDepth / lastModified in step with the node list
  • ProgressTracker owns nodeId → status and survives map replacement
  • Status edits go through GraphStore.update_node_status() so the map
    and the tracker never disagree
  • Only {progress, currentMap} is persisted; everything else is transient
"""

log = logging.getLogger(__name__)

STORAGE_NAME = "cogninode-storage"
STORAGE_VERSION = 0


# ---------------------------------------------------------------------------
# Labels
# ---------------------------------------------------------------------------
class NodeKind(Enum):
	ROOT = "root"
	BRANCH = "branch"
	LEAF = "leaf"

	@classmethod
	def for_level(cls, level: int) -> "NodeKind":
		if level <= 0:
			return cls.ROOT
		if level == 1:
			return cls.BRANCH
		return cls.LEAF


class NodeStatus(Enum):
	UNEXPLORED = "unexplored"
	LEARNING = "learning"
	MASTERED = "mastered"
	SKIPPED = "skipped"


class Difficulty(Enum):
	BEGINNER = "beginner"
	INTERMEDIATE = "intermediate"
	ADVANCED = "advanced"


class EdgeKind(Enum):
	DEFAULT = "default"
	ANIMATED = "animated"


class ResourceType(Enum):
	VIDEO = "video"
	ARTICLE = "article"
	DOCUMENTATION = "documentation"
	COURSE = "course"


# Mapping from string → enum for model output (unknown strings fall back)
_DIFFICULTY_MAP: dict[str, Difficulty] = {d.value: d for d in Difficulty}


def parse_difficulty(value: Any, default: Difficulty = Difficulty.BEGINNER) -> Difficulty:
	if isinstance(value, Difficulty):
		return value
	if not isinstance(value, str):
		return default
	return _DIFFICULTY_MAP.get(value.strip().lower(), default)


def generate_id() -> str:
	"""Opaque, short, unique identifier for nodes, edges and maps."""
	return uuid.uuid4().hex[:12]


def format_duration(minutes: int) -> str:
	"""45 → '45m', 90 → '1h 30m', 120 → '2h'."""
	if minutes < 60:
		return f"{minutes}m"
	hours, rest = divmod(minutes, 60)
	return f"{hours}h {rest}m" if rest else f"{hours}h"


def _parse_time(value: Any) -> datetime:
	if isinstance(value, datetime):
		return value
	return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


def _parse_minutes(value: Any) -> int | None:
	"""Whole minutes from 45, 45.0 or "45"; None for anything else."""
	if value is None or isinstance(value, bool):
		return None
	try:
		minutes = int(float(value))
	except (TypeError, ValueError, OverflowError):
		return None
	return minutes if minutes > 0 else None


# ---------------------------------------------------------------------------
# Lightweight input record for layout (no position, no graph pointers)
# ---------------------------------------------------------------------------
@dataclass(slots=True, frozen=True)
class RawTopic:
	"""One subtopic as proposed by the generator, before layout."""
	title: str
	description: str = ""
	difficulty: str | None = None
	estimated_time: int | None = None
	id: str | None = None

	@classmethod
	def from_dict(cls, data: dict[str, Any]) -> "RawTopic":
		return cls(
			title=str(data["title"]).strip(),
			description=str(data.get("description") or ""),
			difficulty=data.get("difficulty"),
			estimated_time=_parse_minutes(data.get("estimatedTime", data.get("estimated_time"))),
			id=str(data["id"]) if data.get("id") else None,
		)


# ---------------------------------------------------------------------------
# Graph records
# ---------------------------------------------------------------------------
@dataclass(slots=True)
class Position:
	x: float = 0.0
	y: float = 0.0

	def to_dict(self) -> dict[str, float]:
		return {"x": self.x, "y": self.y}


@dataclass(slots=True)
class NodeMetadata:
	difficulty: Difficulty = Difficulty.BEGINNER
	estimated_time: int = 30                      # minutes
	prerequisites: list[str] = field(default_factory=list)

	def to_dict(self) -> dict[str, Any]:
		return {
			"difficulty": self.difficulty.value,
			"estimatedTime": self.estimated_time,
			"prerequisites": list(self.prerequisites),
		}


@dataclass(slots=True)
class Node:
	"""A single topic on the map.  Identity is fixed at creation."""
	id: str
	kind: NodeKind
	title: str
	description: str = ""
	level: int = 0
	parent_id: str | None = None
	position: Position = field(default_factory=Position)
	status: NodeStatus = NodeStatus.UNEXPLORED
	metadata: NodeMetadata = field(default_factory=NodeMetadata)

	def to_dict(self) -> dict[str, Any]:
		out: dict[str, Any] = {
			"id": self.id,
			"type": self.kind.value,
			"title": self.title,
			"description": self.description,
			"level": self.level,
			"position": self.position.to_dict(),
			"status": self.status.value,
			"metadata": self.metadata.to_dict(),
		}
		if self.parent_id is not None:
			out["parentId"] = self.parent_id
		return out

	@classmethod
	def from_dict(cls, data: dict[str, Any]) -> "Node":
		meta = data.get("metadata") or {}
		pos = data.get("position") or {}
		level = int(data.get("level", 0))
		return cls(
			id=data["id"],
			kind=NodeKind(data["type"]) if data.get("type") else NodeKind.for_level(level),
			title=data.get("title", ""),
			description=data.get("description", ""),
			level=level,
			parent_id=data.get("parentId"),
			position=Position(float(pos.get("x", 0.0)), float(pos.get("y", 0.0))),
			status=NodeStatus(data.get("status", NodeStatus.UNEXPLORED.value)),
			metadata=NodeMetadata(
				difficulty=Difficulty(meta.get("difficulty", Difficulty.BEGINNER.value)),
				estimated_time=int(meta.get("estimatedTime", 30)),
				prerequisites=list(meta.get("prerequisites", [])),
			),
		)


@dataclass(slots=True)
class Edge:
	id: str
	source: str
	target: str
	kind: EdgeKind = EdgeKind.DEFAULT
	style: dict[str, Any] | None = None

	def to_dict(self) -> dict[str, Any]:
		out: dict[str, Any] = {
			"id": self.id,
			"source": self.source,
			"target": self.target,
			"type": self.kind.value,
		}
		if self.style is not None:
			out["style"] = dict(self.style)
		return out

	@classmethod
	def from_dict(cls, data: dict[str, Any]) -> "Edge":
		return cls(
			id=data["id"],
			source=data["source"],
			target=data["target"],
			kind=EdgeKind(data.get("type", EdgeKind.DEFAULT.value)),
			style=data.get("style"),
		)


@dataclass(slots=True)
class MapMetadata:
	total_nodes: int = 0
	max_depth: int = 0
	created_at: datetime = field(default_factory=datetime.now)
	last_modified: datetime = field(default_factory=datetime.now)

	def to_dict(self) -> dict[str, Any]:
		return {
			"totalNodes": self.total_nodes,
			"maxDepth": self.max_depth,
			"createdAt": self.created_at.isoformat(),
			"lastModified": self.last_modified.isoformat(),
		}


@dataclass(slots=True)
class LearningMap:
	"""Root-first, creation-ordered list of nodes plus their edges."""
	id: str
	title: str
	root_topic: str
	nodes: list[Node] = field(default_factory=list)
	edges: list[Edge] = field(default_factory=list)
	metadata: MapMetadata = field(default_factory=MapMetadata)

	def to_dict(self) -> dict[str, Any]:
		return {
			"id": self.id,
			"title": self.title,
			"rootTopic": self.root_topic,
			"nodes": [n.to_dict() for n in self.nodes],
			"edges": [e.to_dict() for e in self.edges],
			"metadata": self.metadata.to_dict(),
		}

	@classmethod
	def from_dict(cls, data: dict[str, Any]) -> "LearningMap":
		nodes = [Node.from_dict(n) for n in data.get("nodes", [])]
		meta = data.get("metadata") or {}
		now = datetime.now()
		return cls(
			id=data["id"],
			title=data.get("title", ""),
			root_topic=data.get("rootTopic", ""),
			nodes=nodes,
			edges=[Edge.from_dict(e) for e in data.get("edges", [])],
			metadata=MapMetadata(
				total_nodes=int(meta.get("totalNodes", len(nodes))),
				max_depth=int(meta.get("maxDepth", max((n.level for n in nodes), default=0))),
				created_at=_parse_time(meta["createdAt"]) if meta.get("createdAt") else now,
				last_modified=_parse_time(meta["lastModified"]) if meta.get("lastModified") else now,
			),
		)


# ---------------------------------------------------------------------------
# Knowledge card  (transient, never persisted)
# ---------------------------------------------------------------------------
@dataclass(slots=True)
class CodeExample:
	language: str
	code: str
	explanation: str = ""

	def to_dict(self) -> dict[str, str]:
		return {"language": self.language, "code": self.code, "explanation": self.explanation}


@dataclass(slots=True)
class Resource:
	id: str
	type: ResourceType
	title: str
	url: str
	description: str = ""
	difficulty: Difficulty = Difficulty.BEGINNER
	duration: int | None = None
	rating: float | None = None
	thumbnail: str | None = None

	def to_dict(self) -> dict[str, Any]:
		out: dict[str, Any] = {
			"id": self.id,
			"type": self.type.value,
			"title": self.title,
			"url": self.url,
			"description": self.description,
			"difficulty": self.difficulty.value,
		}
		for key in ("duration", "rating", "thumbnail"):
			value = getattr(self, key)
			if value is not None:
				out[key] = value
		return out


@dataclass(slots=True)
class KnowledgeCard:
	node_id: str
	summary: str
	key_points: list[str] = field(default_factory=list)
	next_steps: list[str] = field(default_factory=list)
	resources: list[Resource] = field(default_factory=list)
	code_example: CodeExample | None = None

	def to_dict(self) -> dict[str, Any]:
		out: dict[str, Any] = {
			"nodeId": self.node_id,
			"summary": self.summary,
			"keyPoints": list(self.key_points),
			"nextSteps": list(self.next_steps),
			"resources": [r.to_dict() for r in self.resources],
		}
		if self.code_example is not None:
			out["codeExample"] = self.code_example.to_dict()
		return out


# ---------------------------------------------------------------------------
# Progress tracker
# ---------------------------------------------------------------------------
class ProgressTracker:
	"""nodeId → learning status.  Outlives any single map."""

	__slots__ = ("_progress",)

	def __init__(self, progress: dict[str, NodeStatus] | None = None) -> None:
		self._progress: dict[str, NodeStatus] = dict(progress or {})

	def __len__(self) -> int:
		return len(self._progress)

	def __contains__(self, node_id: str) -> bool:
		return node_id in self._progress

	def set_status(self, node_id: str, status: NodeStatus) -> None:
		self._progress[node_id] = status

	def get_status(self, node_id: str) -> NodeStatus:
		return self._progress.get(node_id, NodeStatus.UNEXPLORED)

	def reset(self) -> None:
		self._progress.clear()

	def summary(self) -> dict[str, int]:
		counts = {s.value: 0 for s in NodeStatus}
		for status in self._progress.values():
			counts[status.value] += 1
		return counts

	def as_dict(self) -> dict[str, str]:
		return {nid: s.value for nid, s in self._progress.items()}

	@classmethod
	def from_dict(cls, data: dict[str, str]) -> "ProgressTracker":
		return cls({nid: NodeStatus(s) for nid, s in (data or {}).items()})


# ---------------------------------------------------------------------------
# GraphStore  (application state owned by the top-level controller)
# ---------------------------------------------------------------------------
class GraphStore:
	"""
	Current learning map + progress + transient UI state.

	Only ``progress`` and ``current_map`` survive a reload; see
	to_persisted() / from_persisted().
	"""

	__slots__ = (
		"current_map", "progress",
		"selected_node", "knowledge_card", "is_loading", "error",
	)

	def __init__(
		self,
		current_map: LearningMap | None = None,
		progress: ProgressTracker | None = None,
	) -> None:
		self.current_map = current_map
		self.progress = progress if progress is not None else ProgressTracker()
		self.selected_node: Node | None = None
		self.knowledge_card: KnowledgeCard | None = None
		self.is_loading: bool = False
		self.error: str | None = None

	# ---- lookups -----------------------------------------------------------
	def get_node(self, node_id: str) -> Node | None:
		if self.current_map is None:
			return None
		for node in self.current_map.nodes:
			if node.id == node_id:
				return node
		return None

	def context_path(self, node_id: str) -> list[str]:
		"""Ancestor titles, root first, excluding the node itself."""
		if self.current_map is None:
			return []
		by_id = {n.id: n for n in self.current_map.nodes}
		path: list[str] = []
		seen: set[str] = set()
		node = by_id.get(node_id)
		while node is not None and node.parent_id is not None and node.parent_id not in seen:
			seen.add(node.parent_id)
			node = by_id.get(node.parent_id)
			if node is not None:
				path.append(node.title)
		path.reverse()
		return path

	# ---- structural mutations ---------------------------------------------
	def replace_map(self, learning_map: LearningMap) -> None:
		"""Total replacement; clears any error left by a previous attempt."""
		self.current_map = learning_map
		self.error = None

	def append_subgraph(self, nodes: list[Node], edges: list[Edge]) -> None:
		"""
		Append one expansion batch.  Pure append, no de-duplication:
		passing an id already on the map is a caller error.
		"""
		m = self.current_map
		if m is None:
			return
		m.nodes.extend(nodes)
		m.edges.extend(edges)
		m.metadata.total_nodes = len(m.nodes)
		if nodes:
			m.metadata.max_depth = max(m.metadata.max_depth, max(n.level for n in nodes))
		m.metadata.last_modified = datetime.now()

	def update_node_status(self, node_id: str, status: NodeStatus) -> None:
		"""Record status in the tracker and mirror it onto the map node."""
		self.progress.set_status(node_id, status)
		if self.current_map is None:
			return
		node = self.get_node(node_id)
		if node is not None:
			node.status = status
		self.current_map.metadata.last_modified = datetime.now()

	def move_node(self, node_id: str, x: float, y: float) -> bool:
		node = self.get_node(node_id)
		if node is None:
			return False
		node.position = Position(float(x), float(y))
		self.current_map.metadata.last_modified = datetime.now()
		return True

	# ---- transient state ---------------------------------------------------
	def select_node(self, node: Node | None) -> None:
		self.selected_node = node

	def set_knowledge_card(self, card: KnowledgeCard | None) -> None:
		self.knowledge_card = card

	def set_loading(self, loading: bool) -> None:
		self.is_loading = loading

	def set_error(self, error: str | None) -> None:
		self.error = error
		self.is_loading = False

	# ---- persistence boundary ---------------------------------------------
	def to_persisted(self) -> dict[str, Any]:
		return {
			"progress": self.progress.as_dict(),
			"currentMap": self.current_map.to_dict() if self.current_map else None,
		}

	@classmethod
	def from_persisted(cls, data: dict[str, Any]) -> "GraphStore":
		if not isinstance(data, dict):
			raise ValueError("persisted state is not an object")
		raw_map = data.get("currentMap")
		if raw_map and not isinstance(raw_map, dict):
			raise ValueError("persisted currentMap is not an object")
		return cls(
			current_map=LearningMap.from_dict(raw_map) if raw_map else None,
			progress=ProgressTracker.from_dict(data.get("progress") or {}),
		)

	# ---- pretty printing ---------------------------------------------------
	def print_map(self) -> None:
		m = self.current_map
		if m is None:
			print("=== (no learning map loaded) ===")
			return
		print(f"=== {m.title} ===")
		for node in m.nodes:
			indent = "  " * (node.level + 1)
			status = self.progress.get_status(node.id).value
			print(
				f"{indent}[{status}] {node.title} "
				f"({node.metadata.difficulty.value}, {format_duration(node.metadata.estimated_time)})"
			)
		counts = self.progress.summary()
		print(
			f"\nNodes: {m.metadata.total_nodes}  depth: {m.metadata.max_depth}  "
			f"mastered: {counts['mastered']}  learning: {counts['learning']}"
		)


# ---------------------------------------------------------------------------
# File persistence  (single named record)
# ---------------------------------------------------------------------------
def save_state(store: GraphStore, path: str | Path) -> None:
	record = {STORAGE_NAME: {"state": store.to_persisted(), "version": STORAGE_VERSION}}
	path = Path(path)
	path.parent.mkdir(parents=True, exist_ok=True)
	path.write_text(json.dumps(record, indent=2), encoding="utf-8")


def load_state(path: str | Path) -> GraphStore:
	"""Load a persisted store; a missing or unreadable file yields a fresh one."""
	path = Path(path)
	if not path.exists():
		return GraphStore()
	try:
		record = json.loads(path.read_text(encoding="utf-8"))
		return GraphStore.from_persisted(record[STORAGE_NAME]["state"])
	except (OSError, ValueError, KeyError, TypeError, AttributeError) as exc:
		log.warning("could not load state from %s: %s", path, exc)
		return GraphStore()
