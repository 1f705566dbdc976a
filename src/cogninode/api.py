"""
CogniNode: Flask REST API
==========================
Exposes map generation, node expansion, knowledge cards and progress
tracking as JSON endpoints for the graph-canvas frontend.

The app owns a single GraphStore (current map + progress).  Every mutation
runs under one lock and, when COGNINODE_STATE_FILE is set, the persisted
{progress, currentMap} record is rewritten afterwards.

Endpoints
---------
POST /api/generate-map      Build a new learning map for a topic
POST /api/expand-node       Expand a node into sub-concepts
POST /api/knowledge-card    Explanation + resources for a node
POST /api/node-status       Set a node's learning status
POST /api/node-position     Move a node (drag)
GET  /api/map               Current learning map
GET  /api/state             Persisted state {progress, currentMap}
GET  /api/health            Health check
"""
from __future__ import annotations

import logging
import threading
import time
import traceback
from typing import Any

from flask import Flask, jsonify, request
from flask_cors import CORS

# ── Backend imports ─────────────────────────────────────────────────
from cogninode import config
from cogninode.builder import build_knowledge_card, expand_node, generate_map
from cogninode.generation import GenerationError, TopicGenerator
from cogninode.graph import GraphStore, NodeStatus, Position, load_state, save_state
from cogninode.resources import search_articles, search_videos

# ── App setup ───────────────────────────────────────────────────────
app = Flask(__name__)
CORS(app)  # allow requests from the frontend dev server

logging.basicConfig(level=logging.INFO, format="%(asctime)s  %(message)s")
log = logging.getLogger(__name__)

# Application state, restored from disk when a state file is configured.
_state_path = config.state_file()
_store: GraphStore = load_state(_state_path) if _state_path else GraphStore()
_store_lock = threading.Lock()

# External collaborators (replaced in tests)
_generator = TopicGenerator()
_searchers = (search_videos, search_articles)


def _persist() -> None:
    """Write the persisted subset; caller holds _store_lock."""
    path = config.state_file()
    if path is None:
        return
    try:
        save_state(_store, path)
    except OSError as exc:
        log.warning("could not save state to %s: %s", path, exc)


def _fail(message: str, exc: Exception, status: int = 500):
    """Record the failure on the store and build the error response."""
    with _store_lock:
        _store.set_error(message)
    return jsonify({"error": message, "details": str(exc)}), status


def _parse_position(raw: Any) -> Position | None:
    if not isinstance(raw, dict):
        return None
    try:
        return Position(float(raw["x"]), float(raw["y"]))
    except (KeyError, TypeError, ValueError):
        return None


# ═══════════════════════════════════════════════════════════════════
# Routes
# ═══════════════════════════════════════════════════════════════════
@app.route("/api/health", methods=["GET"])
def health():
    return jsonify({
        "status": "ok",
        "mapLoaded": _store.current_map is not None,
        "search": config.optional_config(),
    })


@app.route("/api/generate-map", methods=["POST"])
def generate_learning_map():
    """
    Build a full learning map for a topic and make it the current map.

    Request JSON:  { "topic": "Rust" }
    Response JSON: { "success": true, "data": {"nodes": [...], "edges": [...]}, "map": {...} }
    """
    body = request.get_json(silent=True) or {}
    topic = str(body.get("topic") or "").strip()
    if not topic:
        return jsonify({"error": "Topic is required"}), 400

    log.info("generate  topic=%r", topic)
    t0 = time.time()
    with _store_lock:
        _store.set_loading(True)

    try:
        learning_map = generate_map(topic, _generator)
    except GenerationError as exc:
        log.error("generate failed: %s", exc)
        return _fail("Failed to generate learning map", exc)
    except Exception as exc:
        log.error("generate failed: %s\n%s", exc, traceback.format_exc())
        return _fail("Failed to generate learning map", exc)

    with _store_lock:
        _store.replace_map(learning_map)
        _store.select_node(None)
        _store.set_knowledge_card(None)
        _store.set_loading(False)
        _persist()

    log.info(
        "generate  topic=%r  nodes=%d  elapsed=%.2fs",
        topic, learning_map.metadata.total_nodes, time.time() - t0,
    )
    payload = learning_map.to_dict()
    return jsonify({
        "success": True,
        "data": {"nodes": payload["nodes"], "edges": payload["edges"]},
        "map": payload,
    })


@app.route("/api/expand-node", methods=["POST"])
def expand_learning_node():
    """
    Expand one node into sub-concepts and append them to the current map.

    Request JSON:  { "nodeId": "a1b2", "parentTopic": "Ownership",
                     "context": ["Rust"], "position": {"x": 0, "y": 100} }
    Response JSON: { "success": true, "data": {"nodes": [...], "edges": [...]} }

    ``position`` and ``context`` may be omitted when the node is on the
    current map; they are then read from the stored node.
    """
    body = request.get_json(silent=True) or {}
    node_id = str(body.get("nodeId") or "").strip()
    parent_topic = str(body.get("parentTopic") or "").strip()
    if not node_id or not parent_topic:
        return jsonify({"error": "Node ID and parent topic are required"}), 400

    with _store_lock:
        stored = _store.get_node(node_id)
        stored_context = _store.context_path(node_id) if stored else []
        map_id = _store.current_map.id if _store.current_map else None

    position = _parse_position(body.get("position"))
    if position is None and stored is not None:
        position = stored.position
    if position is None:
        return jsonify({"error": "Node position is required for a node not on the current map"}), 400

    context = body.get("context")
    if not isinstance(context, list):
        context = stored_context
    level = stored.level + 1 if stored is not None else 2

    log.info("expand  node=%s  topic=%r  context=%r", node_id, parent_topic, context)
    t0 = time.time()
    try:
        subgraph = expand_node(
            node_id, parent_topic, [str(c) for c in context], position, _generator, level=level,
        )
    except GenerationError as exc:
        log.error("expand failed: %s", exc)
        return _fail("Failed to expand node", exc)
    except Exception as exc:
        log.error("expand failed: %s\n%s", exc, traceback.format_exc())
        return _fail("Failed to expand node", exc)

    with _store_lock:
        current_id = _store.current_map.id if _store.current_map else None
        if current_id == map_id:
            _store.append_subgraph(subgraph.nodes, subgraph.edges)
            _persist()
        else:
            log.warning("expand  node=%s  map replaced during expansion, batch not appended", node_id)

    log.info("expand  node=%s  new=%d  elapsed=%.2fs", node_id, len(subgraph.nodes), time.time() - t0)
    return jsonify({"success": True, "data": subgraph.to_dict()})


@app.route("/api/knowledge-card", methods=["POST"])
def knowledge_card():
    """
    Generate a knowledge card for a node.

    Request JSON:  { "nodeTitle": "Ownership", "nodeDescription": "...", "nodeId": "a1b2" }
    Response JSON: { "success": true, "data": {card} }
    """
    body = request.get_json(silent=True) or {}
    title = str(body.get("nodeTitle") or "").strip()
    if not title:
        return jsonify({"error": "Node title is required"}), 400
    node_id = body.get("nodeId")

    log.info("card  title=%r", title)
    t0 = time.time()
    try:
        card = build_knowledge_card(
            title, body.get("nodeDescription") or "", _generator,
            node_id=node_id, searchers=_searchers,
        )
    except GenerationError as exc:
        log.error("knowledge card failed: %s", exc)
        return _fail("Failed to generate knowledge card", exc)
    except Exception as exc:
        log.error("knowledge card failed: %s\n%s", exc, traceback.format_exc())
        return _fail("Failed to generate knowledge card", exc)

    with _store_lock:
        if node_id:
            _store.select_node(_store.get_node(node_id))
        _store.set_knowledge_card(card)

    log.info("card  title=%r  resources=%d  elapsed=%.2fs", title, len(card.resources), time.time() - t0)
    return jsonify({"success": True, "data": card.to_dict()})


@app.route("/api/node-status", methods=["POST"])
def node_status():
    """
    Set a node's learning status.

    Request JSON:  { "nodeId": "a1b2", "status": "mastered" }
    Response JSON: { "success": true, "progress": {...}, "node": {...} | null }
    """
    body = request.get_json(silent=True) or {}
    node_id = str(body.get("nodeId") or "").strip()
    status_str = str(body.get("status") or "").strip().lower()
    if not node_id or not status_str:
        return jsonify({"error": "missing 'nodeId' and/or 'status'"}), 400
    try:
        status = NodeStatus(status_str)
    except ValueError:
        valid = ", ".join(s.value for s in NodeStatus)
        return jsonify({"error": f"invalid status: {status_str} (expected one of {valid})"}), 400

    with _store_lock:
        _store.update_node_status(node_id, status)
        node = _store.get_node(node_id)
        _persist()
        progress = _store.progress.as_dict()

    return jsonify({
        "success": True,
        "progress": progress,
        "node": node.to_dict() if node else None,
    })


@app.route("/api/node-position", methods=["POST"])
def node_position():
    """
    Move a node after a drag on the canvas.

    Request JSON:  { "nodeId": "a1b2", "x": 120.5, "y": -40 }
    """
    body = request.get_json(silent=True) or {}
    node_id = str(body.get("nodeId") or "").strip()
    position = _parse_position(body)
    if not node_id or position is None:
        return jsonify({"error": "missing 'nodeId' and/or numeric 'x', 'y'"}), 400

    with _store_lock:
        if _store.current_map is None:
            return jsonify({"error": "no learning map loaded, generate first"}), 404
        if not _store.move_node(node_id, position.x, position.y):
            return jsonify({"error": f"node {node_id} not found in map"}), 404
        node = _store.get_node(node_id)
        _persist()

    return jsonify({"success": True, "node": node.to_dict()})


@app.route("/api/map", methods=["GET"])
def current_map():
    with _store_lock:
        if _store.current_map is None:
            return jsonify({"error": "no learning map loaded, generate first"}), 404
        return jsonify(_store.current_map.to_dict())


@app.route("/api/state", methods=["GET"])
def persisted_state():
    with _store_lock:
        return jsonify(_store.to_persisted())


# ═══════════════════════════════════════════════════════════════════
# Entry point
# ═══════════════════════════════════════════════════════════════════
if __name__ == "__main__":
    try:
        config.validate_config()
    except RuntimeError as exc:
        log.warning("%s", exc)
    host, port = config.server_address()
    app.run(host=host, port=port, debug=True)
