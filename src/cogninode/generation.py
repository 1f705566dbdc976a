"""
Language-model collaborator: subtopics, expansions and knowledge-card text.

Every response is parsed and shape-checked here, before anything reaches the
layout or the store, so the rest of the code only ever sees RawTopic tuples
and CardContent records.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any

from openai import OpenAI

from cogninode import config
from cogninode.graph import CodeExample, RawTopic

log = logging.getLogger(__name__)


class GenerationError(RuntimeError):
    """The model could not be reached or did not answer with JSON."""


class ShapeError(GenerationError):
    """The model answered with JSON of the wrong shape."""


MAP_PROMPT = """You are an expert learning designer. Create a comprehensive learning map for: "{topic}"

Generate exactly 6-8 main subtopics that cover this subject comprehensively.
Each subtopic should be:
- Specific and actionable
- Logically sequenced
- Appropriate for progressive learning
- Cover different aspects of the main topic

Return ONLY valid JSON in this exact format (no markdown, no explanations):
{{
  "nodes": [
    {{
      "title": "Subtopic Title",
      "description": "Brief 1-sentence description of what this covers",
      "difficulty": "beginner|intermediate|advanced",
      "estimatedTime": 45
    }}
  ]
}}

Make sure the difficulty progresses logically.
"""

EXPAND_PROMPT = """You are expanding the learning topic: "{title}"
Parent context: {context}

Generate 4-6 specific sub-concepts that break down this topic into learnable chunks.
Focus on practical, specific concepts that a learner can master individually.

Return ONLY valid JSON in this exact format (no markdown, no explanations):
{{
  "nodes": [
    {{
      "title": "Specific Sub-concept",
      "description": "Brief 1-sentence description",
      "difficulty": "beginner|intermediate|advanced",
      "estimatedTime": 30
    }}
  ]
}}

Make each sub-concept specific and actionable, not too broad.
"""

CARD_PROMPT = """Create a comprehensive knowledge card for: "{title}"
Description: {description}

Generate educational content that helps someone learn this topic effectively.

Return ONLY valid JSON in this exact format (no markdown, no explanations):
{{
  "summary": "A 200-300 word explanation covering the key concepts, why they matter and how they fit into the broader topic.",
  "keyPoints": ["Key concept 1", "Key concept 2", "Key concept 3", "Key concept 4"],
  "codeExample": {{
    "language": "python",
    "code": "# Relevant code example if this is a technical topic",
    "explanation": "Brief explanation of what this code demonstrates"
  }},
  "nextSteps": ["Next learning step 1", "Next learning step 2", "Next learning step 3"]
}}

If the topic is not technical, omit the codeExample field entirely.
"""

_FENCE_RE = re.compile(r"```(?:json)?\n?")


@dataclass
class CardContent:
    summary: str
    key_points: list[str] = field(default_factory=list)
    next_steps: list[str] = field(default_factory=list)
    code_example: CodeExample | None = None


def strip_fences(text: str) -> str:
    """Remove markdown code fences the model sometimes wraps JSON in."""
    return _FENCE_RE.sub("", text or "").strip()


def parse_node_batch(payload: Any) -> tuple[RawTopic, ...]:
    """
    Validate a ``{"nodes": [...]}`` payload into RawTopic records.

    Ids proposed by the model are placeholders ("unique-id-1", ...) that repeat
    across calls, so they are dropped and the layout assigns fresh ones.
    """
    if not isinstance(payload, dict):
        raise ShapeError("model response is not a JSON object")
    nodes = payload.get("nodes")
    if not isinstance(nodes, list):
        raise ShapeError("model response has no 'nodes' list")
    if not nodes:
        raise ShapeError("model response has an empty 'nodes' list")

    topics: list[RawTopic] = []
    for index, entry in enumerate(nodes):
        if not isinstance(entry, dict):
            raise ShapeError(f"node {index} is not an object")
        title = entry.get("title")
        if not isinstance(title, str) or not title.strip():
            raise ShapeError(f"node {index} has no title")
        raw = RawTopic.from_dict(entry)
        topics.append(RawTopic(
            title=raw.title,
            description=raw.description,
            difficulty=raw.difficulty,
            estimated_time=raw.estimated_time,
        ))
    return tuple(topics)


def parse_card(payload: Any) -> CardContent:
    if not isinstance(payload, dict):
        raise ShapeError("model response is not a JSON object")
    summary = payload.get("summary")
    if not isinstance(summary, str):
        raise ShapeError("model response has no 'summary' text")

    code_example = None
    raw_code = payload.get("codeExample")
    if isinstance(raw_code, dict) and raw_code.get("code"):
        code_example = CodeExample(
            language=str(raw_code.get("language") or "text"),
            code=str(raw_code["code"]),
            explanation=str(raw_code.get("explanation") or ""),
        )

    return CardContent(
        summary=summary,
        key_points=[str(p) for p in payload.get("keyPoints") or [] if p],
        next_steps=[str(s) for s in payload.get("nextSteps") or [] if s],
        code_example=code_example,
    )


class TopicGenerator:
    """
    Prompt-in / JSON-out wrapper around an OpenAI-compatible chat client.

    The client is created lazily so the app can start (and serve stored maps)
    without a key; the first generation call then fails with GenerationError.
    """

    def __init__(self, client: Any | None = None, model: str | None = None) -> None:
        self._client = client
        self.model = model or config.llm_model()

    @property
    def client(self) -> Any:
        if self._client is None:
            api_key = config.openai_api_key()
            if not api_key:
                raise GenerationError("OPENAI_API_KEY environment variable not set")
            self._client = OpenAI(api_key=api_key)
        return self._client

    def _chat_json(self, prompt: str) -> dict[str, Any]:
        try:
            completion = self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                temperature=0.7,
            )
            content = completion.choices[0].message.content or ""
        except GenerationError:
            raise
        except Exception as exc:
            log.error("model call failed: %s", exc)
            raise GenerationError("Failed to reach the language model. Please try again.") from exc

        try:
            return json.loads(strip_fences(content))
        except json.JSONDecodeError as exc:
            log.error("model returned invalid JSON: %s", exc)
            raise GenerationError("The language model returned malformed JSON. Please try again.") from exc

    # ---- collaborator contract ---------------------------------------------
    def generate_topics(self, topic: str) -> tuple[RawTopic, ...]:
        return parse_node_batch(self._chat_json(MAP_PROMPT.format(topic=topic)))

    def expand_topic(self, title: str, context: list[str]) -> tuple[RawTopic, ...]:
        prompt = EXPAND_PROMPT.format(title=title, context=" → ".join(context))
        return parse_node_batch(self._chat_json(prompt))

    def generate_card(self, title: str, description: str = "") -> CardContent:
        prompt = CARD_PROMPT.format(title=title, description=description)
        return parse_card(self._chat_json(prompt))
