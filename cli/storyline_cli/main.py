"""Main entry point for Storyline CLI."""

from __future__ import annotations

import argparse
import sys

import httpx

from storyline_cli import __version__
from storyline_cli.client import ApiClient, ApiError
from storyline_cli.config import Config


def render_tree(tree: dict) -> str:
    """
    Render the /tree projection as indented text.

    Groups are shown with their focus marker, stories with their link state:
      [*] focused group
      ->  story is a link origin
      <-  story is a link destination
    """
    lines: list[str] = []

    def walk(node: dict, depth: int) -> None:
        indent = "  " * depth
        if node["type"] == "group":
            focus = "[*] " if node.get("selected") else ""
            lines.append(f"{indent}{focus}{node['title']}  ({node['id']})")
            for child in node.get("children", []):
                walk(child, depth + 1)
            return
        marks = ""
        if node.get("is_link_origin"):
            marks += " ->"
        if node.get("is_link_destination"):
            marks += " <-"
        lines.append(f"{indent}- {node['title']}{marks}  ({node['id']})")

    for group in tree.get("groups", []):
        walk(group, 0)
    return "\n".join(lines) if lines else "(empty project)"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="storyline", description="Edit a project's story tree.")
    parser.add_argument("--api-url", help="Override API endpoint (default: http://localhost:8000)")
    parser.add_argument("--project", help="Project id (default: the one set with `storyline use`)")
    parser.add_argument("-v", "--version", action="version", version=f"storyline-cli {__version__}")

    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("new-project", help="Create a project and make it the default")
    p.add_argument("name")
    p.add_argument("--empty", action="store_true", help="Skip the default and intro story groups")

    p = sub.add_parser("use", help="Set the default project")
    p.add_argument("project_id")

    sub.add_parser("tree", help="Show the story tree")

    p = sub.add_parser("add-group", help="Create a story group")
    p.add_argument("name")
    p.add_argument("--parent", default=None)

    p = sub.add_parser("add-story", help="Add a story to a group")
    p.add_argument("group_id")
    p.add_argument("--title", default=None)
    p.add_argument("--body", default="")

    p = sub.add_parser("rename", help="Rename a group or story")
    p.add_argument("node_id")
    p.add_argument("name")

    p = sub.add_parser("delete", help="Delete a story, or a group and its stories")
    p.add_argument("node_id")
    p.add_argument("-y", "--yes", action="store_true", help="Do not ask for confirmation")

    p = sub.add_parser("move", help="Move or reorder a node")
    p.add_argument("node_id")
    p.add_argument("--parent", default=None, help="Target group (omit for top level)")
    p.add_argument("--index", type=int, default=0)

    p = sub.add_parser("link", help="Link a story to another story")
    p.add_argument("story_id")
    p.add_argument("destination_id")

    p = sub.add_parser("unlink", help="Remove links from a story to another story")
    p.add_argument("story_id")
    p.add_argument("destination_id")

    return parser


def run(args: argparse.Namespace, config: Config, client: ApiClient) -> int:
    """Execute one command. Returns the process exit code."""
    if args.command == "new-project":
        project = client.create_project(args.name, seed=not args.empty)
        config.default_project_id = project["id"]
        print(f"Created project {project['name']} ({project['id']})")
    elif args.command == "use":
        config.default_project_id = args.project_id
        print(f"Default project set to {args.project_id}")
    elif args.command == "tree":
        print(render_tree(client.tree()))
    elif args.command == "add-group":
        print(client.add_group(args.name, args.parent))
    elif args.command == "add-story":
        print(client.add_story(args.group_id, args.title, args.body))
    elif args.command == "rename":
        updated = client.rename(args.node_id, args.name)
        print("Renamed." if updated else "Nothing to rename.")
    elif args.command == "delete":
        check = client.deletability(args.node_id)
        print(check["message"])
        if not check["deletable"]:
            return 1
        if not args.yes and input("Continue? [y/N] ").strip().lower() != "y":
            return 1
        result = client.delete(args.node_id)
        print(f"Deleted {len(result['deleted_ids'])} nodes.")
    elif args.command == "move":
        print(render_tree(client.move(args.node_id, args.parent, args.index)))
    elif args.command == "link":
        print("Linked." if client.link(args.story_id, args.destination_id) else "Already linked.")
    elif args.command == "unlink":
        print("Unlinked." if client.unlink(args.story_id, args.destination_id) else "No such link.")
    return 0


def main(argv: list[str] | None = None):
    """Main entry point."""
    args = build_parser().parse_args(argv if argv is not None else sys.argv[1:])
    config = Config(api_url_override=args.api_url)
    client = ApiClient(config.api_url, args.project or config.default_project_id)
    try:
        code = run(args, config, client)
    except ApiError as e:
        print(f"Error: {e.detail}", file=sys.stderr)
        code = 1
    except httpx.HTTPError as e:
        print(f"Error: could not reach {config.api_url} ({e})", file=sys.stderr)
        code = 1
    finally:
        client.close()
    sys.exit(code)


if __name__ == "__main__":
    main()
