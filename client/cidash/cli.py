"""
Command-line front end for the image builder workflow.

Every command restores the workflow from the state file, acts on it and
leaves it persisted, so consecutive invocations behave like one session:

    cidash repos
    cidash select 1
    cidash set base-branch feature-a
    cidash set current-branch main
    cidash detect branch
    cidash build --all --registry registry.example.com/team --tag v1.2.0
    cidash monitor 3 --seconds 30
    cidash images 3 list
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from cidash.api import ApiClient, BackendApi
from cidash.channels import websocket_channel_factory
from cidash.config import settings
from cidash.core.logging import setup_logging
from cidash.entities import ComparisonMode, Notification, NotificationType
from cidash.persistence import PersistenceAdapter, create_store
from cidash.services.connectivity import ConnectivityMonitor
from cidash.services.image_manager import RegistryImageManager
from cidash.services.notification_service import Notifier
from cidash.services.workflow_store import WorkflowStateStore
from cidash.views import project_registry, project_workflow

logger = logging.getLogger(__name__)

_MARKERS = {
    NotificationType.INFO: "i",
    NotificationType.SUCCESS: "+",
    NotificationType.ERROR: "!",
}


def _print_notification(notification: Notification) -> None:
    marker = _MARKERS[notification.type]
    text = f"[{marker}] {notification.title}"
    if notification.message:
        text += f": {notification.message}"
    print(text, file=sys.stderr if notification.type == NotificationType.ERROR else sys.stdout)


# ----------------------------------------------------------------------
# Commands
# ----------------------------------------------------------------------


async def cmd_repos(store: WorkflowStateStore, args: argparse.Namespace) -> int:
    repositories = await store.fetch_repositories()
    if not repositories:
        print("No repositories found. Please add repositories in the Repositories tab.")
        return 0
    selected = store.state.selected_repo.id if store.state.selected_repo else None
    for repo in repositories:
        marker = "*" if repo.id == selected else " "
        branch = f" [{repo.current_branch}]" if repo.current_branch else ""
        print(f"{marker} {repo.id:>4}  {repo.display_name}{branch}  {repo.url}")
    return 0


async def cmd_select(store: WorkflowStateStore, args: argparse.Namespace) -> int:
    repositories = await store.fetch_repositories()
    if not any(repo.id == args.repo_id for repo in repositories):
        print(f"Repository {args.repo_id} not found", file=sys.stderr)
        return 1
    await store.select_repository(args.repo_id)
    print(f"Selected {store.state.selected_repo.display_name} ({len(store.state.branches)} branches)")
    return 0


async def cmd_branches(store: WorkflowStateStore, args: argparse.Namespace) -> int:
    if store.state.selected_repo is None:
        print("No repository selected", file=sys.stderr)
        return 1
    await store.refresh_branches()
    options = store.current_branch_options if args.side == "current" else store.base_branch_options
    if args.all:
        options.show_all_local()
        options.show_all_remote()

    print("Local Branches")
    for branch in options.local.visible:
        print(f"  {branch.name}{'  (current)' if branch.is_current else ''}")
    if options.local.remaining:
        print(f"  ... {options.local.remaining} remaining")
    print("Remote Branches")
    for branch in options.remote.visible:
        print(f"  {branch.name}  (remote)")
    if options.remote.remaining:
        print(f"  ... {options.remote.remaining} remaining")
    return 0


async def cmd_commits(store: WorkflowStateStore, args: argparse.Namespace) -> int:
    commits = await store.load_commits(args.branch)
    if not commits:
        print("No commits found")
        return 0
    for _ in range(max(args.pages - 1, 0)):
        store.commits.show_more()
    for commit in store.commits.visible:
        print(f"{commit.short_hash}  {commit.author:<20.20}  {commit.message.splitlines()[0] if commit.message else ''}")
    if store.commits.remaining:
        print(f"... {store.commits.remaining} more")
    return 0


async def cmd_set(store: WorkflowStateStore, args: argparse.Namespace) -> int:
    setters = {
        "base-branch": store.set_base_branch,
        "current-branch": store.set_current_branch,
        "base-commit": store.set_base_commit,
        "current-commit": store.set_current_commit,
    }
    return 0 if setters[args.field](args.value) else 1


async def cmd_clear(store: WorkflowStateStore, args: argparse.Namespace) -> int:
    if args.mode == ComparisonMode.BRANCH.value:
        cleared = store.clear_branch_comparison()
    else:
        cleared = store.clear_commit_comparison()
    return 0 if cleared else 1


async def _detect(store: WorkflowStateStore, mode: str) -> Optional[list]:
    if mode == ComparisonMode.BRANCH.value:
        return await store.detect_branch_changes()
    return await store.detect_commit_changes()


async def cmd_detect(store: WorkflowStateStore, args: argparse.Namespace) -> int:
    if args.base is not None and not _set_pair(store, args.mode, args.base, args.current):
        return 1
    services = await _detect(store, args.mode)
    if services is None:
        return 1
    for row in project_workflow(store).services:
        print(f"  {row.path}{'' if row.has_build_recipe else '  (no Dockerfile)'}")
    return 0


def _set_pair(store: WorkflowStateStore, mode: str, base: str, current: Optional[str]) -> bool:
    if mode == ComparisonMode.BRANCH.value:
        return store.set_base_branch(base) and store.set_current_branch(current)
    return store.set_base_commit(base) and store.set_current_commit(current)


async def cmd_build(store: WorkflowStateStore, args: argparse.Namespace) -> int:
    mode = store.active_comparison
    if mode is None:
        print("Run 'detect' first so the build knows which reference to use", file=sys.stderr)
        return 1

    # Detection results are not persisted; refresh them for this session.
    # A fresh result empties the selection, so remember the persisted one.
    previous = store.selected_services
    if await _detect(store, mode.value) is None:
        return 1

    if not args.all and not args.service:
        store.restore_selection(previous)
    if args.all:
        store.select_all_services()
    for path in args.service or []:
        if not store.selection.is_selected(path) and not store.toggle_service(path):
            return 1

    outcome = await store.submit_build(tag=args.tag, registry=args.registry)
    for result in outcome.results:
        status = "ok" if result.success else "failed"
        print(f"  {result.service}: {status} {result.tag}")
    return 0 if outcome.accepted else 1


async def cmd_state(store: WorkflowStateStore, args: argparse.Namespace) -> int:
    view = project_workflow(store)
    state = store.state
    mode = store.active_comparison
    print(f"Repository:       {view.repository_label or '-'}")
    print(f"Comparison:       {mode.value if mode else 'none'}")
    print(f"Branches:         {state.base_branch or '-'} -> {state.current_branch or '-'}")
    print(f"Commits:          {state.base_commit or '-'} -> {state.current_commit or '-'}")
    print(f"Selected services: {', '.join(store.selected_services) or '-'}")
    print(f"Build reference:  {view.build_ref or '-'}")
    return 0


async def cmd_monitor(store: WorkflowStateStore, args: argparse.Namespace) -> int:
    registries = store.api.registries
    registry = await registries.get_registry(args.registry_id)
    monitor = ConnectivityMonitor(
        registry.id,
        registries.status_channel_url(registry.id),
        websocket_channel_factory(),
    )

    if args.once:
        await monitor.check_once(registries)
        _print_registry(registry, monitor)
        return 0 if monitor.is_usable else 1

    last_badge = None
    async with monitor:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + args.seconds
        while loop.time() < deadline:
            view = project_registry(registry, monitor)
            if (view.badge, view.message) != last_badge:
                _print_registry(registry, monitor)
                last_badge = (view.badge, view.message)
            if not monitor.channel_open:
                break
            await asyncio.sleep(0.5)
    return 0 if monitor.is_usable else 1


async def cmd_images(store: WorkflowStateStore, args: argparse.Namespace) -> int:
    registries = store.api.registries
    registry_ids = [args.registry_id]
    if args.action == "copy":
        registry_ids.append(args.to_registry)

    # Image actions are gated on each registry answering its connection test
    monitors = {}
    for registry_id in dict.fromkeys(registry_ids):
        monitor = ConnectivityMonitor(
            registry_id,
            registries.status_channel_url(registry_id),
            websocket_channel_factory(),
        )
        await monitor.check_once(registries)
        monitors[registry_id] = monitor

    manager = RegistryImageManager(registries, lambda rid: monitors[rid].is_usable, store.notifier)

    if args.action == "list":
        images = await manager.list_images(args.registry_id)
        if images is None:
            return 1
        if not images:
            print("No images found")
        for image in images:
            print(f"{image.name}  {', '.join(image.tags) or '-'}  {image.size} bytes")
        return 0

    if args.action == "detail":
        detail = await manager.image_detail(args.registry_id, args.image, args.tag)
        if detail is None:
            return 1
        print(f"{detail.name}:{args.tag}  {detail.config.os}/{detail.config.architecture}  {detail.size} bytes")
        for layer in detail.layers:
            print(f"  {layer.digest}  {layer.size} bytes")
        for key, value in sorted(detail.labels.items()):
            print(f"  {key}={value}")
        return 0

    if args.action == "retag":
        ok = await manager.retag(args.registry_id, args.image, args.tag, args.new_tag, args.new_image)
    elif args.action == "delete":
        ok = await manager.delete(args.registry_id, args.image, args.tag)
    else:
        ok = await manager.copy(args.registry_id, args.image, args.tag, args.to_registry, args.to_image, args.to_tag)
    return 0 if ok else 1


def _print_registry(registry, monitor: ConnectivityMonitor) -> None:
    view = project_registry(registry, monitor)
    actions = "actions enabled" if view.can_edit else "actions disabled"
    print(f"{view.name}: {view.badge} - {view.message or 'no message'} ({view.last_checked}, {actions})")


# ----------------------------------------------------------------------
# Entry point
# ----------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="cidash", description="CI dashboard image builder client")
    parser.add_argument("--api-url", default=None, help=f"Backend base URL (default: {settings.API_BASE_URL})")
    parser.add_argument("--state-file", default=None, help="Workflow state file (empty string disables it)")
    parser.add_argument("--log-format", choices=["text", "json"], default=None)
    parser.add_argument("-v", "--verbose", action="store_true")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("repos", help="List repositories").set_defaults(func=cmd_repos)

    p = sub.add_parser("select", help="Select a repository")
    p.add_argument("repo_id", type=int)
    p.set_defaults(func=cmd_select)

    p = sub.add_parser("branches", help="List candidate branches")
    p.add_argument("--side", choices=["base", "current"], default="base")
    p.add_argument("--all", action="store_true", help="Show all branches instead of the first page")
    p.set_defaults(func=cmd_branches)

    p = sub.add_parser("commits", help="List commits of a branch")
    p.add_argument("branch")
    p.add_argument("--pages", type=int, default=1)
    p.set_defaults(func=cmd_commits)

    p = sub.add_parser("set", help="Set one reference")
    p.add_argument("field", choices=["base-branch", "current-branch", "base-commit", "current-commit"])
    p.add_argument("value")
    p.set_defaults(func=cmd_set)

    p = sub.add_parser("clear", help="Clear a comparison")
    p.add_argument("mode", choices=[m.value for m in ComparisonMode])
    p.set_defaults(func=cmd_clear)

    p = sub.add_parser("detect", help="Detect changed services")
    p.add_argument("mode", choices=[m.value for m in ComparisonMode])
    p.add_argument("--base", default=None)
    p.add_argument("--current", default=None)
    p.set_defaults(func=cmd_detect)

    p = sub.add_parser("build", help="Build the selected changed services")
    p.add_argument("--service", action="append", help="Service path to build (repeatable)")
    p.add_argument("--all", action="store_true", help="Build every changed service with a Dockerfile")
    p.add_argument("--tag", default=None)
    p.add_argument("--registry", required=True)
    p.set_defaults(func=cmd_build)

    p = sub.add_parser("monitor", help="Watch a registry's connectivity")
    p.add_argument("registry_id", type=int)
    p.add_argument("--seconds", type=float, default=30.0)
    p.add_argument("--once", action="store_true", help="Use the one-shot connection test")
    p.set_defaults(func=cmd_monitor)

    p = sub.add_parser("images", help="Manage a connected registry's images")
    p.add_argument("registry_id", type=int)
    actions = p.add_subparsers(dest="action", required=True)
    actions.add_parser("list", help="List images")
    a = actions.add_parser("detail", help="Show one image")
    a.add_argument("image")
    a.add_argument("tag")
    a = actions.add_parser("retag", help="Add a tag to an image")
    a.add_argument("image")
    a.add_argument("tag")
    a.add_argument("new_tag")
    a.add_argument("--new-image", default=None)
    a = actions.add_parser("delete", help="Delete an image tag")
    a.add_argument("image")
    a.add_argument("tag")
    a = actions.add_parser("copy", help="Copy an image to another registry")
    a.add_argument("image")
    a.add_argument("tag")
    a.add_argument("--to-registry", type=int, required=True)
    a.add_argument("--to-image", default=None)
    a.add_argument("--to-tag", default=None)
    p.set_defaults(func=cmd_images)

    sub.add_parser("state", help="Show the persisted workflow state").set_defaults(func=cmd_state)
    return parser


async def run(args: argparse.Namespace) -> int:
    state_file = settings.STATE_FILE if args.state_file is None else args.state_file
    persistence = PersistenceAdapter(create_store(state_file))
    notifier = Notifier(listener=_print_notification)

    async with BackendApi(ApiClient(base_url=args.api_url)) as api:
        store = WorkflowStateStore(api, persistence, notifier)
        store.load()
        return await args.func(store, args)


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(log_format=args.log_format, level="DEBUG" if args.verbose else None)
    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        return 130
    except Exception as e:
        logger.error(f"Command failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
