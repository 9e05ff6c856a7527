#!/usr/bin/env python3
"""storyprep CLI entrypoint."""

import sys
import argparse
import logging
from pathlib import Path

from storyprep.errors import (
    DocumentReadFailed,
    InvalidDecision,
    InvalidStatusTransition,
    MissingSourceDocument,
    RepositoryUnavailable,
    WriteFailed,
)
from storyprep.lib.config import load_project_config
from storyprep.lib.constants import (
    EXIT_CONFIG,
    EXIT_FAILED,
    EXIT_MISSING_DOCUMENT,
    EXIT_WRITE_FAILED,
)
from storyprep.commands import next as cmd_next_module
from storyprep.commands import stories as cmd_stories_module

DECISIONS = ["confirm", "decline", "next_epic", "cancel"]
STATUSES = ["Approved", "InProgress", "Done"]
DEV_RECORD_FIELDS = ["agent_model", "debug_log", "completion_notes", "file_list"]


def run_command(handler, args) -> int:
    """Load config and run a command, mapping fatal errors to exit codes."""
    try:
        config = load_project_config(Path(args.project_dir))
        return handler(args, config)
    except RepositoryUnavailable as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return EXIT_CONFIG
    except MissingSourceDocument as e:
        print(f"ERROR: {e}", file=sys.stderr)
        print("  Add the document to the docs tree or shard it from the architecture doc.", file=sys.stderr)
        return EXIT_MISSING_DOCUMENT
    except DocumentReadFailed as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return EXIT_MISSING_DOCUMENT
    except WriteFailed as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return EXIT_WRITE_FAILED
    except (InvalidDecision, InvalidStatusTransition, ValueError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return EXIT_FAILED


def cmd_next(args):
    return run_command(cmd_next_module.cmd_next, args)


def cmd_status(args):
    return run_command(cmd_stories_module.cmd_status, args)


def cmd_list(args):
    return run_command(cmd_stories_module.cmd_list, args)


def cmd_show(args):
    return run_command(cmd_stories_module.cmd_show, args)


def cmd_validate(args):
    return run_command(cmd_stories_module.cmd_validate, args)


def cmd_advance(args):
    return run_command(cmd_stories_module.cmd_advance, args)


def cmd_record(args):
    return run_command(cmd_stories_module.cmd_record, args)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='storyprep', description='Draft implementation stories from design docs')
    parser.add_argument('--project-dir', '-C', default='.', help='Directory containing project.env')
    parser.add_argument('--verbose', '-v', action='store_true', help='Debug logging')
    subparsers = parser.add_subparsers(dest='command', required=True)

    # storyprep next
    p_next = subparsers.add_parser('next', help='Draft the next story')
    p_next.add_argument('--decision', '-d', choices=DECISIONS, help='Answer for a pending decision')
    p_next.add_argument('--story', '-s', help='Draft a specific story (EPIC.STORY) after a completed epic')
    p_next.add_argument('--type', '-t', action='append', help='Story type override (repeatable)')
    p_next.add_argument('--dry-run', action='store_true', help='Assemble and check without writing')
    p_next.add_argument('--strict', action='store_true', help='Exit non-zero on checklist failures')
    p_next.add_argument('--flow', action='store_true', help='Run as a Prefect flow')
    p_next.set_defaults(func=cmd_next)

    # storyprep status
    p_status = subparsers.add_parser('status', help='Show story progress')
    p_status.set_defaults(func=cmd_status)

    # storyprep list
    p_list = subparsers.add_parser('list', help='List stories')
    p_list.set_defaults(func=cmd_list)

    # storyprep show
    p_show = subparsers.add_parser('show', help='Show a story')
    p_show.add_argument('ref', help='Story (EPIC.STORY)')
    p_show.set_defaults(func=cmd_show)

    # storyprep validate
    p_validate = subparsers.add_parser('validate', help='Run the draft checklist on a story')
    p_validate.add_argument('ref', help='Story (EPIC.STORY)')
    p_validate.set_defaults(func=cmd_validate)

    # storyprep advance
    p_advance = subparsers.add_parser('advance', help='Move a story status forward')
    p_advance.add_argument('ref', help='Story (EPIC.STORY)')
    p_advance.add_argument('status', choices=STATUSES, help='New status')
    p_advance.add_argument('--author', help='Change log author')
    p_advance.set_defaults(func=cmd_advance)

    # storyprep record
    p_record = subparsers.add_parser('record', help='Append to the Dev Agent Record')
    p_record.add_argument('ref', help='Story (EPIC.STORY)')
    p_record.add_argument('field', choices=DEV_RECORD_FIELDS, help='Record field')
    p_record.add_argument('entries', nargs='+', help='Entries to append')
    p_record.set_defaults(func=cmd_record)

    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    return args.func(args)


if __name__ == '__main__':
    sys.exit(main())
