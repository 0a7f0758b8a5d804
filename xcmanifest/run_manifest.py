#!/usr/bin/env python3
"""
xcmanifest command line

Loads an Xcode project, applies one operation (or a JSON plan of operations)
and writes the project file and any generated schemes back.

Usage:
    xcmanifest --project App.xcodeproj add-file App/Views/Main.swift --target App
    xcmanifest move-file App/Views/Main.swift Shared
    xcmanifest set-setting SWIFT_VERSION 5.0 --configuration Debug --target App
    xcmanifest apply-preset recommended
    xcmanifest generate-scheme App --target App --private
    xcmanifest apply plan.json --dry-run
    xcmanifest check
    xcmanifest show App/Views/Main.swift
"""

import argparse
import json
import logging
import sys

from .core import ManifestError
from .core.model import APPLICATION_PRODUCT_TYPE, DEFAULT_PHASES, FILE_KINDS, PHASE_KINDS
from .editor import ManifestEditor
from .persistence import ProjectFile, SchemeFiles
from .settings import PRESETS, settings

logger = logging.getLogger(__name__)


def parse_value(text: str):
    """A list when the text is a JSON array, otherwise the raw text."""
    if text.startswith("["):
        try:
            value = json.loads(text)
        except json.JSONDecodeError:
            return text
        if isinstance(value, list):
            return value
    return text


def scope_selection(args) -> dict:
    if args.project_scope:
        return {"targets": [], "include_project": True}
    if args.target:
        return {"targets": args.target, "include_project": False}
    return {"targets": None, "include_project": True}


# ============= Subcommands =============


def cmd_add_file(editor: ManifestEditor, args):
    ref = editor.add_file(
        args.path, kind=args.kind, target=args.target, phase=args.phase, link_existing=args.link_existing
    )
    return f"{ref.full_path} ({ref.kind or 'untyped'})"


def cmd_remove_file(editor: ManifestEditor, args):
    editor.remove_file(args.path)
    return f"removed {args.path}"


def cmd_move_file(editor: ManifestEditor, args):
    ref = editor.move_file(args.path, args.group)
    return f"moved to {ref.full_path}"


def cmd_remove_group(editor: ManifestEditor, args):
    editor.remove_group(args.group)
    return f"removed group {args.group}"


def cmd_show(editor: ManifestEditor, args):
    info = editor.describe(args.path)
    lines = [f"{info['path']} ({info['kind'] or 'untyped'}) {info['identifier']}"]
    for target, kinds in info["memberships"].items():
        lines.append(f"  {target}: {', '.join(kinds)}")
    if not info["memberships"]:
        lines.append("  not built by any target")
    if info["product_of"]:
        lines.append(f"  product of {info['product_of']}")
    return "\n".join(lines)


def cmd_attach(editor: ManifestEditor, args):
    added = editor.attach(args.target, args.path, phase=args.phase)
    return "attached" if added else "already attached"


def cmd_detach(editor: ManifestEditor, args):
    removed = editor.detach(args.target, args.path)
    return f"detached from {removed} phases"


def cmd_set_product(editor: ManifestEditor, args):
    if args.create:
        ref = editor.retarget_product(args.target, args.path, group_path=args.group)
    else:
        ref = editor.set_product(args.target, args.path)
    return f"product of {args.target} is {ref.full_path}"


def cmd_add_target(editor: ManifestEditor, args):
    target = editor.add_target(args.name, product_type=args.product_type, phases=args.phases, product=args.product)
    return f"created target {target.name}"


def cmd_remove_target(editor: ManifestEditor, args):
    editor.remove_target(args.name)
    return f"removed target {args.name}"


def cmd_set_setting(editor: ManifestEditor, args):
    stats = editor.set_settings(
        {args.key: parse_value(args.value)}, configuration=args.configuration, **scope_selection(args)
    )
    return f"{stats['changed']} of {stats['scopes']} configurations changed"


def cmd_unset_setting(editor: ManifestEditor, args):
    stats = editor.unset_settings([args.key], configuration=args.configuration, **scope_selection(args))
    return f"{stats['changed']} of {stats['scopes']} configurations changed"


def cmd_apply_preset(editor: ManifestEditor, args):
    stats = editor.apply_preset(args.name, configuration=args.configuration)
    return f"{stats['changed']} settings changed across {stats['scopes']} configurations"


def cmd_set_attribute(editor: ManifestEditor, args):
    changed = editor.set_attribute(args.key, args.value)
    return f"{args.key} = {args.value}" if changed else f"{args.key} unchanged"


def cmd_generate_scheme(editor: ManifestEditor, args):
    scheme = editor.generate_scheme(args.name, args.target, shared=not args.private)
    return repr(scheme)


def cmd_recreate_schemes(editor: ManifestEditor, args):
    schemes = editor.recreate_schemes()
    return f"recreated {len(schemes)} schemes"


def cmd_apply(editor: ManifestEditor, args):
    with open(args.plan, "r", encoding="utf-8") as f:
        steps = json.load(f)
    if not isinstance(steps, list):
        raise ManifestError(f"{args.plan} must contain a JSON list of steps", identifier=args.plan)
    count = editor.apply_plan(steps)
    return f"applied {count} steps"


def add_scope_arguments(parser: argparse.ArgumentParser):
    parser.add_argument("--configuration", "-c", type=str, help="Only this configuration (default: all)")
    parser.add_argument("--target", "-t", action="append", help="Only this target (repeatable)")
    parser.add_argument("--project-scope", action="store_true", help="Only project-level configurations")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="xcmanifest", description="Edit Xcode project manifests")
    parser.add_argument(
        "--project",
        "-p",
        type=str,
        default=settings.PROJECT,
        help="Path to the .xcodeproj bundle or project.pbxproj (env XCMANIFEST_PROJECT)",
    )
    parser.add_argument("--dry-run", action="store_true", help="Apply and report without writing files")
    parser.add_argument("--backup", action="store_true", help="Keep a timestamped copy of the project file")
    parser.add_argument("--log-level", type=str, default=settings.LOG_LEVEL, help="Logging level")
    parser.add_argument("--scheme-user", type=str, default=settings.SCHEME_USER, help="Owner of private schemes")

    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("add-file", help="Add a file, creating missing groups")
    p.add_argument("path", help="Logical path, e.g. App/Views/Main.swift")
    p.add_argument("--kind", choices=FILE_KINDS)
    p.add_argument("--target", "-t", help="Target that builds the file")
    p.add_argument("--phase", choices=PHASE_KINDS)
    p.add_argument("--link-existing", action="store_true", help="Reuse an existing reference at the path")
    p.set_defaults(func=cmd_add_file)

    p = sub.add_parser("remove-file", help="Remove a file from its group and every target")
    p.add_argument("path")
    p.set_defaults(func=cmd_remove_file)

    p = sub.add_parser("move-file", help="Move a file to another group")
    p.add_argument("path")
    p.add_argument("group", help="Destination group path (created if missing)")
    p.set_defaults(func=cmd_move_file)

    p = sub.add_parser("remove-group", help="Remove a group and everything beneath it")
    p.add_argument("group")
    p.set_defaults(func=cmd_remove_group)

    p = sub.add_parser("show", help="Show a file's kind, target memberships and product owner")
    p.add_argument("path")
    p.set_defaults(func=cmd_show, read_only=True)

    p = sub.add_parser("attach", help="Build a file in a target")
    p.add_argument("target")
    p.add_argument("path")
    p.add_argument("--phase", choices=PHASE_KINDS)
    p.set_defaults(func=cmd_attach)

    p = sub.add_parser("detach", help="Stop building a file in a target")
    p.add_argument("target")
    p.add_argument("path")
    p.set_defaults(func=cmd_detach)

    p = sub.add_parser("set-product", help="Set the product reference of a target")
    p.add_argument("target")
    p.add_argument("path", help="Product path, or product name with --create")
    p.add_argument("--create", action="store_true", help="Find or create the product in the products group")
    p.add_argument("--group", default=None, help="Products group (default: XCMANIFEST_PRODUCTS_GROUP)")
    p.set_defaults(func=cmd_set_product)

    p = sub.add_parser("add-target", help="Create a target")
    p.add_argument("name")
    p.add_argument("--product-type", default=APPLICATION_PRODUCT_TYPE)
    p.add_argument("--phases", nargs="+", choices=PHASE_KINDS, default=list(DEFAULT_PHASES))
    p.add_argument("--product", help="Product name, e.g. App.app")
    p.set_defaults(func=cmd_add_target)

    p = sub.add_parser("remove-target", help="Remove a target and its schemes")
    p.add_argument("name")
    p.set_defaults(func=cmd_remove_target)

    p = sub.add_parser("set-setting", help="Set a build setting")
    p.add_argument("key")
    p.add_argument("value", help='Value; a JSON list such as \'["$(inherited)", "-ObjC"]\' sets a list')
    add_scope_arguments(p)
    p.set_defaults(func=cmd_set_setting)

    p = sub.add_parser("unset-setting", help="Remove a build setting")
    p.add_argument("key")
    add_scope_arguments(p)
    p.set_defaults(func=cmd_unset_setting)

    p = sub.add_parser("apply-preset", help="Apply a named settings preset everywhere")
    p.add_argument("name", choices=sorted(PRESETS))
    p.add_argument("--configuration", "-c", type=str)
    p.set_defaults(func=cmd_apply_preset)

    p = sub.add_parser("set-attribute", help="Set a project attribute such as LastUpgradeCheck")
    p.add_argument("key")
    p.add_argument("value")
    p.set_defaults(func=cmd_set_attribute)

    p = sub.add_parser("generate-scheme", help="Create or replace a scheme")
    p.add_argument("name")
    p.add_argument("--target", "-t", required=True)
    p.add_argument("--private", action="store_true", help="Write to the user's scheme directory")
    p.set_defaults(func=cmd_generate_scheme)

    p = sub.add_parser("recreate-schemes", help="One private scheme per target")
    p.set_defaults(func=cmd_recreate_schemes)

    p = sub.add_parser("apply", help="Apply a JSON plan of operations as one batch")
    p.add_argument("plan", help="Path to the plan file")
    p.set_defaults(func=cmd_apply)

    p = sub.add_parser("check", help="Report manifest inconsistencies")
    p.set_defaults(func=None)

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    if not args.project:
        parser.error("no project given (use --project or XCMANIFEST_PROJECT)")

    try:
        project = ProjectFile(args.project)
        store = project.load()
        scheme_files = SchemeFiles(project.xcodeproj_dir, args.scheme_user)
        scheme_files.load(store)

        if args.func is None:
            problems = store.validate()
            for problem in problems:
                logger.warning(problem)
            print(f"{len(problems)} problems found" if problems else "Project is consistent")
            return 1 if problems else 0

        editor = ManifestEditor(store)
        result = args.func(editor, args)

        if args.dry_run:
            logger.info("Dry run: nothing written")
        elif not getattr(args, "read_only", False):
            project.save(store, backup=args.backup)
            scheme_files.save(store)

        print(result)
        return 0

    except ManifestError as e:
        logger.error(f"{e.kind}: {e}")
        return 1
    except Exception as e:
        logger.error(f"Command failed: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
