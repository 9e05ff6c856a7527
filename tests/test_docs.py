"""Tests for storyprep.docs.markdown and storyprep.docs.store."""

import pytest
from unittest.mock import patch

from storyprep.docs.markdown import (
    document_title,
    list_items,
    slugify,
    split_blocks,
    split_sections,
    term_pattern,
)
from storyprep.docs.store import DocumentNotFound, FileDocumentStore
from storyprep.errors import DocumentReadFailed


class TestSlugify:
    @pytest.mark.parametrize("title,expected", [
        ("Jumping", "jumping"),
        ("Player Controller (v2)", "player-controller-v2"),
        ("  UI / HUD  ", "ui-hud"),
    ])
    def test_slugify(self, title, expected):
        assert slugify(title) == expected


class TestSplitSections:
    """Tests for level-2 section splitting."""

    def test_sections_at_level_two(self):
        text = "# Physics\n\nIntro.\n\n## Gravity\n\n980\n\n### Notes\n\ndeep\n\n## Jumping\n\n420\n"
        sections = split_sections(text)
        assert [s.anchor for s in sections] == [None, "gravity", "jumping"]
        assert sections[0].body == "Intro."
        assert "### Notes" in sections[1].body
        assert sections[2].body == "420"

    def test_title_without_preamble_adds_no_section(self):
        sections = split_sections("# Physics\n\n## Gravity\n\n980\n")
        assert [s.anchor for s in sections] == ["gravity"]

    def test_text_after_higher_heading_is_kept(self):
        text = "# Combat\n\n## Damage\n\n1 per hit\n\n# Appendix\n\n`SpikeTrap` tuning table\n"
        sections = split_sections(text)
        assert [s.anchor for s in sections] == ["damage", "appendix"]
        assert sections[1].body == "`SpikeTrap` tuning table"
        assert sections[1].level == 1

    def test_repeated_headings_get_numbered_anchors(self):
        text = "## Notes\n\nfirst\n\n## Notes\n\nsecond\n\n## Notes\n\nthird\n"
        sections = split_sections(text)
        assert [s.anchor for s in sections] == ["notes", "notes-1", "notes-2"]
        assert [s.body for s in sections] == ["first", "second", "third"]

    def test_no_level_two_headings_is_one_section(self):
        sections = split_sections("# Tech Stack\n\n- Godot 4.2\n")
        assert len(sections) == 1
        assert sections[0].anchor is None
        assert sections[0].body == "- Godot 4.2"

    def test_headings_inside_fences_ignored(self):
        text = "## Setup\n\n```\n## not a heading\n```\n"
        sections = split_sections(text)
        assert [s.anchor for s in sections] == ["setup"]
        assert "## not a heading" in sections[0].body

    def test_document_title(self):
        assert document_title("intro\n# Data Models\n## Player\n") == "Data Models"
        assert document_title("## Only Sections\n") == ""


class TestSplitBlocks:
    def test_paragraphs_list_items_and_fences(self):
        text = (
            "### GroundSensor\n\n"
            "Raycasts down.\nEvery frame.\n\n"
            "- first item\n  continued\n- second item\n\n"
            "```gdscript\nvar x = 1\n\nvar y = 2\n```\n"
        )
        blocks = split_blocks(text)
        assert [b.text for b in blocks] == [
            "Raycasts down.\nEvery frame.",
            "- first item\n  continued",
            "- second item",
            "```gdscript\nvar x = 1\n\nvar y = 2\n```",
        ]
        assert all(b.heading == "GroundSensor" for b in blocks)

    def test_list_items(self):
        text = "1. `PlayerController` jumps\n   when pressed\n2) Lands\n- Sounds\n"
        assert list_items(text) == ["`PlayerController` jumps when pressed", "Lands", "Sounds"]


class TestTermPattern:
    """Scope-term matching."""

    def test_none_for_no_terms(self):
        assert term_pattern([]) is None
        assert term_pattern(["  "]) is None

    def test_word_bounded_case_insensitive(self):
        pattern = term_pattern(["PlayerController", "jump_force"])
        assert pattern.search("the playercontroller node")
        assert pattern.search("`jump_force` = 420")
        assert not pattern.search("EnemyPlayerControllerBase")
        assert not pattern.search("max_jump_force_scale")

    def test_file_names(self):
        pattern = term_pattern(["jump.wav"])
        assert pattern.search("load `jump.wav` at start")
        assert not pattern.search("big_jump.wave")


class TestFileDocumentStore:
    """Tests for document lookup over a docs tree."""

    def test_documents_indexed(self, store):
        for doc_id in ["epics", "tech-stack", "physics-config", "architecture", "systems-architecture", "movement"]:
            assert store.has_document(doc_id)
        assert not store.has_document("index")
        assert not store.has_document("nope")

    def test_list_documents_by_area(self, store):
        ids = store.list_documents("architecture")
        assert "tech-stack" in ids
        assert "systems-architecture" in ids
        assert "physics-config" not in ids
        assert "architecture" not in ids

    def test_monolithic_sections(self, store):
        assert not store.is_sharded("physics-config")
        assert store.list_sections("physics-config") == ["gravity", "jumping"]
        assert store.read_section("physics-config", "jumping").startswith("`jump_force` defaults to 420.0")
        assert store.read_section("physics-config", "friction") is None

    def test_document_without_sections(self, store):
        assert store.list_sections("tech-stack") == [None]
        assert "Godot 4.2" in store.read_section("tech-stack", None)

    def test_sharded_sections_follow_index_order(self, store):
        assert store.is_sharded("systems-architecture")
        assert store.list_sections("systems-architecture") == ["movement", "combat"]
        assert "CharacterBody2D" in store.read_section("systems-architecture", "movement")
        assert store.read_section("systems-architecture", None).startswith("# Systems Architecture")
        assert store.read_section("systems-architecture", "stealth") is None

    def test_unlinked_shards_sorted_after_linked(self, docs_dir):
        (docs_dir / "architecture" / "systems-architecture" / "audio.md").write_text("# Audio\n")
        store = FileDocumentStore(docs_dir)
        assert store.list_sections("systems-architecture") == ["movement", "combat", "audio"]

    def test_missing_document(self, store):
        with pytest.raises(DocumentNotFound):
            store.list_sections("physics")
        with pytest.raises(DocumentNotFound):
            store.is_sharded("physics")
        assert store.read_section("physics") is None
        assert store.read_document("physics") is None

    def test_shallowest_duplicate_wins(self, docs_dir):
        (docs_dir / "architecture" / "physics-config.md").write_text("# Deeper copy\n")
        store = FileDocumentStore(docs_dir)
        assert store.read_document("physics-config").startswith("# Physics Config")

    def test_excluded_paths(self, docs_dir):
        stories = docs_dir / "stories"
        stories.mkdir()
        (stories / "1.1.story.md").write_text("# Story 1.1: Player Jump\n")
        assert FileDocumentStore(docs_dir).has_document("1.1.story")
        assert not FileDocumentStore(docs_dir, exclude=[stories]).has_document("1.1.story")

    def test_read_sharded_document(self, store):
        text = store.read_document("systems-architecture")
        assert text.index("# Movement") < text.index("# Combat")

    def test_missing_root(self, tmp_path, caplog):
        store = FileDocumentStore(tmp_path / "nope")
        assert store.list_documents() == []
        assert "Docs root does not exist" in caplog.text

    def test_preamble_is_an_unanchored_section(self, docs_dir):
        (docs_dir / "physics-config.md").write_text(
            "# Physics Config\n\nAll values are in pixels.\n\n## Gravity\n\n980\n"
        )
        store = FileDocumentStore(docs_dir)
        assert store.list_sections("physics-config") == [None, "gravity"]
        assert store.read_section("physics-config", None) == "All values are in pixels."

    def test_repeated_headings_read_their_own_text(self, docs_dir):
        (docs_dir / "physics-config.md").write_text("## Notes\n\nfirst\n\n## Notes\n\nsecond\n")
        store = FileDocumentStore(docs_dir)
        assert store.list_sections("physics-config") == ["notes", "notes-1"]
        assert store.read_section("physics-config", "notes-1") == "second"


class TestUnreadableDocuments:
    """A document that exists but cannot be decoded names itself in the error."""

    def test_undecodable_monolithic_document(self, docs_dir):
        path = docs_dir / "physics-config.md"
        path.write_bytes(b"# Physics\n\xff\xfe\n")
        store = FileDocumentStore(docs_dir)
        with pytest.raises(DocumentReadFailed) as exc_info:
            store.list_sections("physics-config")
        assert exc_info.value.document_id == "physics-config"
        assert exc_info.value.path == path
        assert "physics-config" in str(exc_info.value)

    def test_undecodable_shard_index(self, docs_dir):
        (docs_dir / "architecture" / "systems-architecture" / "index.md").write_bytes(b"\xff\xfe")
        store = FileDocumentStore(docs_dir)
        with pytest.raises(DocumentReadFailed, match="systems-architecture"):
            store.read_document("systems-architecture")

    def test_os_error_is_wrapped(self, store):
        with patch("pathlib.Path.read_text", side_effect=PermissionError("denied")):
            with pytest.raises(DocumentReadFailed) as exc_info:
                store.read_section("physics-config", "jumping")
        assert exc_info.value.reason == "denied"
