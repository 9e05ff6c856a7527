"""Shared fixtures: a small game project with epics and architecture docs."""

from pathlib import Path

import pytest

from storyprep.docs.store import FileDocumentStore
from storyprep.story.models import StoryArtifact, StoryRef, StoryStatus, Task
from storyprep.story.repository import FileStoryRepository

EPICS_MD = """\
# Space Hopper Epics

## Epic 1: Core Movement

### Story 1.1: Player Jump
As a player, I want to jump, so that I can reach ledges.

#### Acceptance Criteria
1. `PlayerController` applies `jump_force` when the jump input is pressed
2. Landing is detected by `GroundSensor`

### Story 1.2: Jump Sound
As a player, I want audio feedback, so that jumps feel responsive.

**Acceptance Criteria:**
- `PlayerController` plays `jump.wav` through the `SfxBus`

### Story 1.3: Double Jump
As a player, I want a double jump.

#### Acceptance Criteria
1. `PlayerController` allows one extra jump in the air

## Epic 2: Hazards

### Story 2.1: Spike Traps
As a player, I want spikes to hurt me.

#### Acceptance Criteria
1. `SpikeTrap` damages the `PlayerController` on contact
"""

ARCHITECTURE_DOCS = {
    "architecture/index.md": "# Architecture\n\n- [Tech Stack](./tech-stack.md)\n",
    "architecture/tech-stack.md": (
        "# Tech Stack\n\n"
        "- Engine: Godot 4.2\n"
        "- Language: GDScript with static typing for `PlayerController` and all gameplay scripts\n"
    ),
    "architecture/project-structure.md": (
        "# Project Structure\n\n"
        "Scenes live under `scenes/`, scripts under `scripts/`.\n\n"
        "The `PlayerController` script is `scripts/player/player_controller.gd`.\n"
    ),
    "architecture/coding-standards.md": (
        "# Coding Standards\n\nUse snake_case for functions and PascalCase for classes.\n"
    ),
    "architecture/testing-conventions.md": (
        "# Testing Conventions\n\n"
        "Unit tests use GUT and live in `tests/unit/`.\n\n"
        "`PlayerController` tests must simulate input events rather than calling handlers directly.\n"
    ),
    "architecture/systems-architecture/index.md": (
        "# Systems Architecture\n\n- [Movement](./movement.md)\n- [Combat](./combat.md)\n"
    ),
    "architecture/systems-architecture/movement.md": (
        "# Movement\n\n"
        "`PlayerController` extends CharacterBody2D and owns horizontal movement.\n\n"
        "Enemies use a separate `EnemyController`.\n"
    ),
    "architecture/systems-architecture/combat.md": "# Combat\n\n`SpikeTrap` deals 1 damage on contact.\n",
    "architecture/component-details.md": (
        "# Component Details\n\n"
        "## Player Components\n\n"
        "### GroundSensor\n\n"
        "Raycasts 4px below the feet every physics frame.\n\n"
        "## Enemy Components\n\n"
        "### SpikeTrap\n\n"
        "Static hazard with an Area2D hitbox.\n"
    ),
    "physics-config.md": (
        "# Physics Config\n\n"
        "## Gravity\n\n"
        "Gravity is 980 px/s^2.\n\n"
        "## Jumping\n\n"
        "`jump_force` defaults to 420.0 and is exported on the player scene.\n"
    ),
    "architecture/input-system.md": "# Input System\n\nThe jump action is bound to Space and gamepad A.\n",
    "architecture/state-machines.md": "# State Machines\n\n`PlayerController` states: Idle, Run, Jump, Fall.\n",
    "architecture/data-models.md": (
        "# Data Models\n\n"
        "`PlayerData` stores health and coins for the `PlayerController`.\n\n"
        "`LevelData` lists spawn points.\n"
    ),
    "architecture/audio-architecture.md": "# Audio Architecture\n\nAll effects route through the `SfxBus`.\n",
    "architecture/audio-mixing.md": "# Audio Mixing\n\nThe `SfxBus` sits at -6 dB.\n",
    "architecture/sound-banks.md": "# Sound Banks\n\n`jump.wav` and `land.wav` are in the movement bank.\n",
}

PLAIN_DOCS = [
    "ui-architecture", "ui-components", "ui-state-management", "scene-management",
    "persistence", "save-system", "analytics", "multiplayer-architecture",
    "rendering-pipeline", "shader-guidelines", "sprite-management", "particle-systems",
]


def write_docs(docs_dir: Path) -> None:
    docs_dir.mkdir(parents=True, exist_ok=True)
    (docs_dir / "epics.md").write_text(EPICS_MD)
    for rel, content in ARCHITECTURE_DOCS.items():
        path = docs_dir / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
    for doc_id in PLAIN_DOCS:
        title = doc_id.replace("-", " ").title()
        (docs_dir / "architecture" / f"{doc_id}.md").write_text(f"# {title}\n\nNothing story-specific here.\n")


@pytest.fixture
def project_dir(tmp_path):
    """A project directory with project.env and a full docs tree."""
    project = tmp_path / "space-hopper"
    project.mkdir()
    (project / "project.env").write_text('PROJECT_NAME="space-hopper"\nFETCH_WORKERS=4\n')
    write_docs(project / "docs")
    return project


@pytest.fixture
def docs_dir(project_dir):
    return project_dir / "docs"


@pytest.fixture
def store(docs_dir):
    return FileDocumentStore(docs_dir, exclude=[docs_dir / "stories"])


@pytest.fixture
def repo(docs_dir):
    return FileStoryRepository(docs_dir / "stories")


def make_artifact(ref: StoryRef, title: str = "Existing story") -> StoryArtifact:
    """A minimal valid Draft story."""
    return StoryArtifact(
        ref=ref,
        status=StoryStatus.DRAFT,
        title=title,
        acceptance_criteria=["It works"],
        tasks=[Task("Make it work", [1])],
    )


def add_story(repo: FileStoryRepository, ref: StoryRef, status: StoryStatus = StoryStatus.DRAFT) -> None:
    repo.write_artifact(make_artifact(ref))
    if status != StoryStatus.DRAFT:
        repo.advance_status(ref, status)
