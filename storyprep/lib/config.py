"""
Project configuration for storyprep.

Loads project.env from a project directory. Paths in the file are
relative to that directory.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from storyprep.errors import RepositoryUnavailable
from . import envparse

logger = logging.getLogger(__name__)

PROJECT_ENV = "project.env"
DEFAULT_FETCH_WORKERS = 4


@dataclass
class ProjectConfig:
    """Project-level configuration from project.env"""
    name: str
    project_dir: Path
    docs_path: Path  # Root of design/architecture documents
    stories_path: Path  # Where story artifacts are written
    epics_doc: str  # Document id of the epic listing, e.g. "epics"
    fetch_workers: int = DEFAULT_FETCH_WORKERS
    checklist_path: Optional[Path] = None  # YAML ruleset override
    template_path: Optional[Path] = None  # YAML story template override
    scope_terms: list[str] = field(default_factory=list)  # Extra terms for relevance filtering


def _resolve(project_dir: Path, value: str) -> Path:
    path = Path(value)
    return path if path.is_absolute() else project_dir / path


def _parse_workers(raw: str) -> int:
    try:
        workers = int(raw)
    except ValueError:
        logger.warning(f"Invalid FETCH_WORKERS '{raw}', using {DEFAULT_FETCH_WORKERS}")
        return DEFAULT_FETCH_WORKERS
    if workers < 1:
        logger.warning(f"FETCH_WORKERS must be >= 1, got {workers}; using 1")
        return 1
    return workers


def load_project_config(project_dir: Path) -> ProjectConfig:
    """Load project.env and return ProjectConfig.

    Raises:
        RepositoryUnavailable: if project.env is missing, unparseable, or lacks PROJECT_NAME
    """
    project_dir = Path(project_dir)
    env_path = project_dir / PROJECT_ENV
    try:
        env = envparse.load_env(env_path)
    except FileNotFoundError:
        raise RepositoryUnavailable(str(env_path), "project config not found") from None
    except ValueError as e:
        raise RepositoryUnavailable(str(env_path), str(e)) from None

    name = env.get("PROJECT_NAME", "").strip()
    if not name:
        raise RepositoryUnavailable(str(env_path), "PROJECT_NAME is required")

    checklist = env.get("CHECKLIST_PATH", "")
    template = env.get("STORY_TEMPLATE", "")
    scope_terms = [t.strip() for t in env.get("SCOPE_TERMS", "").split(",") if t.strip()]

    return ProjectConfig(
        name=name,
        project_dir=project_dir,
        docs_path=_resolve(project_dir, env.get("DOCS_PATH", "docs")),
        stories_path=_resolve(project_dir, env.get("STORIES_PATH", "docs/stories")),
        epics_doc=env.get("EPICS_DOC", "epics"),
        fetch_workers=_parse_workers(env.get("FETCH_WORKERS", str(DEFAULT_FETCH_WORKERS))),
        checklist_path=_resolve(project_dir, checklist) if checklist else None,
        template_path=_resolve(project_dir, template) if template else None,
        scope_terms=scope_terms,
    )
