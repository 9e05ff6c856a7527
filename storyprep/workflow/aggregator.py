"""
Context aggregation for story Dev Notes.

For a story's classifications, fetches the fixed document set of each
category, keeps only the content that mentions the story's scope terms
(node, script and asset names from the epic text), and wraps each kept
section into a CitedFact pointing at its document and section.

Rules:
- Generic is always consulted, first.
- A document shared by two categories is fetched once and credited to the
  first category in render order; a section yields at most one fact.
- A category with no matching content gets exactly one sentinel fact.
- A document that does not exist is reported as MissingSourceDocument for
  its category; the other documents are still aggregated.
- A document that exists but cannot be read raises DocumentReadFailed,
  which aborts the aggregation.

Documents are fetched concurrently and merged back in plan order, so the
output is identical from run to run for an unchanged docs tree.
"""

import logging
import re
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Iterable, Optional

from storyprep.docs.markdown import split_blocks, term_pattern
from storyprep.docs.store import DocumentNotFound
from storyprep.errors import MissingSourceDocument
from storyprep.story.models import (
    CATEGORY_ORDER,
    CitedFact,
    DocumentLocator,
    StoryRef,
    StoryTypeClassification as T,
)

logger = logging.getLogger(__name__)

CATEGORY_DOCUMENTS: dict[T, list[str]] = {
    T.GENERIC: ["tech-stack", "project-structure", "coding-standards", "testing-conventions"],
    T.GAMEPLAY: ["systems-architecture", "component-details", "physics-config",
                 "input-system", "state-machines", "data-models"],
    T.UI: ["ui-architecture", "ui-components", "ui-state-management", "scene-management"],
    T.BACKEND: ["data-models", "persistence", "save-system", "analytics", "multiplayer-architecture"],
    T.GRAPHICS: ["rendering-pipeline", "shader-guidelines", "sprite-management", "particle-systems"],
    T.AUDIO: ["audio-architecture", "audio-mixing", "sound-banks"],
}

CLASSIFICATION_KEYWORDS: dict[T, list[str]] = {
    T.GAMEPLAY: ["gameplay", "player", "enemy", "enemies", "mechanic", "mechanics", "combat",
                 "physics", "movement", "jump", "collision", "input", "ability", "spawn",
                 "state machine", "controller"],
    T.UI: ["ui", "hud", "menu", "button", "screen", "dialog", "inventory", "tooltip",
           "widget", "scene transition"],
    T.BACKEND: ["save", "load game", "persistence", "database", "analytics", "server",
                "multiplayer", "network", "leaderboard", "cloud", "data model"],
    T.GRAPHICS: ["sprite", "shader", "particle", "particles", "rendering", "render",
                 "animation", "texture", "lighting", "vfx", "tilemap"],
    T.AUDIO: ["audio", "sound", "sounds", "music", "sfx", "mixer", "volume", "wav", "ogg"],
}

BACKTICK_RE = re.compile(r'`([^`\n]{1,60})`')
FILENAME_RE = re.compile(
    r'\b([\w\-/]+\.(?:gd|gdshader|shader|tscn|tres|cs|cpp|h|ts|js|py|json|ya?ml|png|jpg|svg|wav|ogg|mp3))\b'
)
CAMEL_RE = re.compile(r'\b([A-Z][a-z0-9]+(?:[A-Z][a-z0-9]*)+)\b')
SNAKE_RE = re.compile(r'\b([a-z][a-z0-9]*(?:_[a-z0-9]+)+)\b')


CLASSIFICATION_PATTERNS = {
    category: re.compile(r"\b(?:" + "|".join(re.escape(k) for k in keywords) + r")\b", re.IGNORECASE)
    for category, keywords in CLASSIFICATION_KEYWORDS.items()
}


def classify_story(text: str) -> list[T]:
    """Classify story text. Generic is always included and always first."""
    found = [T.GENERIC]
    for category in CATEGORY_ORDER:
        pattern = CLASSIFICATION_PATTERNS.get(category)
        if pattern and pattern.search(text):
            found.append(category)
    return found


def extract_scope_terms(text: str, extra: Iterable[str] = ()) -> list[str]:
    """Names the story is about: backticked spans, file names, CamelCase and snake_case identifiers."""
    terms: dict[str, str] = {}

    def add(term: str):
        term = term.strip()
        if term and term.lower() not in terms:
            terms[term.lower()] = term

    for match in BACKTICK_RE.finditer(text):
        add(match.group(1))
    for match in FILENAME_RE.finditer(text):
        add(match.group(1).rsplit("/", 1)[-1])
    for regex in (CAMEL_RE, SNAKE_RE):
        for match in regex.finditer(text):
            add(match.group(1))
    for term in extra:
        add(term)
    return sorted(terms.values(), key=str.lower)


def normalize_classifications(classifications: Iterable[T]) -> list[T]:
    """Generic first, then the rest in render order, without duplicates."""
    wanted = set(classifications) | {T.GENERIC}
    return [c for c in CATEGORY_ORDER if c in wanted]


def plan_fetches(classifications: Iterable[T]) -> list[tuple[T, str]]:
    """(category, document_id) pairs in render order, each document once."""
    plan = []
    claimed = set()
    for category in normalize_classifications(classifications):
        for doc_id in CATEGORY_DOCUMENTS[category]:
            if doc_id in claimed:
                continue
            claimed.add(doc_id)
            plan.append((category, doc_id))
    return plan


@dataclass
class AggregationResult:
    """Facts in render order plus any documents that could not be found."""
    facts: list[CitedFact] = field(default_factory=list)
    missing: list[MissingSourceDocument] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.missing

    def missing_for(self, category: T) -> list[MissingSourceDocument]:
        return [m for m in self.missing if m.category == category.value]

    def raise_for_missing(self) -> None:
        """Raise the first MissingSourceDocument, if any."""
        if self.missing:
            raise self.missing[0]


def _fetch_sections(store, document_id: str) -> list[tuple[Optional[str], str]]:
    """Read every section of a document. Raises DocumentNotFound."""
    sections = []
    for anchor in store.list_sections(document_id):
        text = store.read_section(document_id, anchor)
        if text is not None:
            sections.append((anchor, text))
    logger.debug(f"[AGG] Fetched {document_id}: {len(sections)} section(s)")
    return sections


def _relevant_text(text: str, pattern: Optional[re.Pattern]) -> str:
    if pattern is None:
        return ""
    kept = [b.text for b in split_blocks(text) if pattern.search(b.text) or pattern.search(b.heading)]
    return "\n\n".join(kept)


def aggregate(
    story_ref: StoryRef,
    classifications: Iterable[T],
    store,
    scope_terms: Iterable[str],
    max_workers: int = 4,
) -> AggregationResult:
    """Collect cited Dev Notes facts for a story."""
    classifications = normalize_classifications(classifications)
    plan = plan_fetches(classifications)
    pattern = term_pattern(scope_terms)
    if pattern is None:
        logger.warning(f"[AGG] Story {story_ref}: no scope terms; every category will be empty")

    with ThreadPoolExecutor(max_workers=max(1, max_workers)) as pool:
        futures = [pool.submit(_fetch_sections, store, doc_id) for _, doc_id in plan]

    result = AggregationResult()
    by_category: dict[T, list[CitedFact]] = {c: [] for c in classifications}

    for (category, doc_id), future in zip(plan, futures):
        try:
            sections = future.result()
        except DocumentNotFound:
            logger.warning(f"[AGG] Story {story_ref}: missing {doc_id} ({category.value})")
            result.missing.append(MissingSourceDocument(doc_id, category.value))
            continue
        for anchor, text in sections:
            relevant = _relevant_text(text, pattern)
            if relevant:
                by_category[category].append(
                    CitedFact(category=category, text=relevant, source=DocumentLocator(doc_id, anchor))
                )

    for category, facts in by_category.items():
        if facts:
            result.facts.extend(facts)
        else:
            result.facts.append(CitedFact.no_guidance(category))

    logger.info(
        f"[AGG] Story {story_ref}: {len(result.facts)} fact(s) across "
        f"{len(by_category)} categor{'y' if len(by_category) == 1 else 'ies'}, "
        f"{len(result.missing)} missing document(s)"
    )
    return result


class ContextAggregator:
    """Aggregator bound to a document store and worker count."""

    def __init__(self, store, max_workers: int = 4, extra_scope_terms: Iterable[str] = ()):
        self.store = store
        self.max_workers = max_workers
        self.extra_scope_terms = list(extra_scope_terms)

    def aggregate(self, story_ref: StoryRef, classifications: Iterable[T], story_text: str) -> AggregationResult:
        terms = extract_scope_terms(story_text, self.extra_scope_terms)
        logger.debug(f"[AGG] Story {story_ref} scope terms: {terms}")
        return aggregate(story_ref, classifications, self.store, terms, self.max_workers)
