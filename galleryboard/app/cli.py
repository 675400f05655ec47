"""Command-line interface for the shared board."""

from __future__ import annotations

import argparse
import getpass
import sys
import threading
from pathlib import Path
from typing import Callable, Sequence

from ..platforms import BackendError
from ..security import build_secret_provider
from ..services.models import FeedSnapshot, Notice, Post
from ..settings import AppConfig, load_config
from ..utils.logging import configure_logging, get_logger
from .dashboard import build_auth, build_dashboard

LOGGER = get_logger(__name__)


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    try:
        config = load_config(args.config)
    except FileNotFoundError as exc:
        print(exc, file=sys.stderr)
        return 2
    configure_logging(
        structured=not args.log_plain,
        log_file=config.paths.log_dir / "galleryboard.log",
    )

    handler: Callable[[argparse.Namespace, AppConfig], int] | None = getattr(args, "handler", None)
    if handler is None:
        parser.print_help(sys.stderr)
        return 1
    return handler(args, config)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="galleryboard", description="Shared photo board client")
    parser.add_argument("--config", help="Path to configuration file", default=None)
    parser.add_argument(
        "--log-plain",
        action="store_true",
        help="Use plain-text logs instead of JSON",
    )

    subparsers = parser.add_subparsers(dest="command")

    _add_auth_commands(subparsers)
    _add_feed_commands(subparsers)
    _add_post_commands(subparsers)

    return parser


def _add_auth_commands(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    login_parser = subparsers.add_parser("login", help="Sign in with email and password")
    login_parser.add_argument("--email", help="Account email; defaults to the auth.email secret")
    login_parser.set_defaults(handler=_handle_login)

    logout_parser = subparsers.add_parser("logout", help="Forget the cached session")
    logout_parser.set_defaults(handler=_handle_logout)

    whoami_parser = subparsers.add_parser("whoami", help="Show the signed-in identity")
    whoami_parser.set_defaults(handler=_handle_whoami)


def _add_feed_commands(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    feed_parser = subparsers.add_parser("feed", help="Read the live feed")
    feed_subparsers = feed_parser.add_subparsers(dest="feed_command", required=True)

    list_parser = feed_subparsers.add_parser("list", help="Print the current feed and exit")
    list_parser.add_argument(
        "--timeout",
        type=float,
        default=30.0,
        help="Seconds to wait for the first snapshot",
    )
    list_parser.set_defaults(handler=_handle_feed_list)

    watch_parser = feed_subparsers.add_parser("watch", help="Print every feed update until interrupted")
    watch_parser.set_defaults(handler=_handle_feed_watch)


def _add_post_commands(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    post_parser = subparsers.add_parser("post", help="Publish or delete posts")
    post_subparsers = post_parser.add_subparsers(dest="post_command", required=True)

    create_parser = post_subparsers.add_parser("create", help="Publish a new post")
    create_parser.add_argument("--title", required=True, help="Post title")
    body = create_parser.add_mutually_exclusive_group(required=True)
    body.add_argument("--content", help="Post body as HTML")
    body.add_argument("--content-file", type=Path, help="File holding the post body")
    create_parser.add_argument(
        "--markdown",
        action="store_true",
        help="Treat the body as Markdown and convert it to HTML",
    )
    create_parser.add_argument("--cover", type=Path, help="Cover image file")
    create_parser.add_argument(
        "--inline",
        type=Path,
        nargs="+",
        default=[],
        metavar="IMAGE",
        help="Images to upload and append to the body",
    )
    create_parser.set_defaults(handler=_handle_post_create)

    delete_parser = post_subparsers.add_parser("delete", help="Delete one of your posts")
    delete_parser.add_argument("post_id", help="Identifier of the post")
    delete_parser.add_argument("--yes", action="store_true", help="Skip the confirmation prompt")
    delete_parser.set_defaults(handler=_handle_post_delete)


def _handle_login(args: argparse.Namespace, config: AppConfig) -> int:
    secrets = build_secret_provider(config.paths.secrets_file)
    email = args.email or secrets.find_secret("auth.email")
    if not email:
        email = input("Email: ").strip()
    password = secrets.find_secret("auth.password") or getpass.getpass("Password: ")

    auth = build_auth(config)
    try:
        identity = auth.sign_in(email, password)
    except (BackendError, RuntimeError) as exc:
        LOGGER.error("Sign-in failed", extra={"event": "cli.error", "command": "login"})
        print(f"Sign-in failed: {exc}", file=sys.stderr)
        return 1
    print(f"Signed in as {identity.display}")
    return 0


def _handle_logout(args: argparse.Namespace, config: AppConfig) -> int:
    build_auth(config).sign_out()
    print("Signed out")
    return 0


def _handle_whoami(args: argparse.Namespace, config: AppConfig) -> int:
    identity = build_auth(config).current_identity()
    if identity is None:
        print("<signed-out>")
        return 1
    print(f"{identity.display} ({identity.uid})")
    return 0


def _handle_feed_list(args: argparse.Namespace, config: AppConfig) -> int:
    _require_project(config, "feed.list")
    ready = threading.Event()
    notices: list[Notice] = []

    def on_notice(notice: Notice) -> None:
        notices.append(notice)
        _print_notice(notice)
        ready.set()

    dashboard = build_dashboard(config, notify=on_notice, on_snapshot=lambda _: ready.set())
    try:
        with dashboard.controller as controller:
            if not ready.wait(args.timeout):
                print("Timed out waiting for the feed", file=sys.stderr)
                return 1
            if notices:
                return 1
            _print_snapshot(controller.snapshot, controller.can_delete)
    finally:
        dashboard.close()
    return 0


def _handle_feed_watch(args: argparse.Namespace, config: AppConfig) -> int:
    _require_project(config, "feed.watch")
    stopped = threading.Event()

    def on_snapshot(snapshot: FeedSnapshot) -> None:
        print(f"--- {len(snapshot)} posts ---")
        _print_snapshot(snapshot, dashboard.controller.can_delete)
        sys.stdout.flush()

    def on_notice(notice: Notice) -> None:
        _print_notice(notice)
        stopped.set()

    dashboard = build_dashboard(config, notify=on_notice, on_snapshot=on_snapshot)
    LOGGER.info("Watching feed", extra={"event": "cli.command", "command": "feed.watch"})
    try:
        with dashboard.controller:
            stopped.wait()
    except KeyboardInterrupt:
        LOGGER.info("Stopped watching", extra={"event": "cli.command", "command": "feed.watch"})
        return 0
    finally:
        dashboard.close()
    return 1


def _handle_post_create(args: argparse.Namespace, config: AppConfig) -> int:
    _require_project(config, "post.create")
    notices: list[Notice] = []

    def on_notice(notice: Notice) -> None:
        notices.append(notice)
        _print_notice(notice)

    dashboard = build_dashboard(config, notify=on_notice, on_progress=_print_progress)
    controller = dashboard.controller
    try:
        body = args.content if args.content is not None else args.content_file.read_text(encoding="utf-8")
        if args.markdown:
            controller.editor.load_markdown(body)
        else:
            controller.editor.set_content(body)

        for image in args.inline:
            controller.editor.select(controller.editor.length())
            if controller.insert_inline_image(image) is None:
                return 1

        controller.draft.title = args.title
        controller.draft.cover = args.cover
        created = controller.submit()
    finally:
        dashboard.close()

    if created:
        print("Post published")
        return 0
    if not notices:
        print("Nothing to publish: title and content must not be empty", file=sys.stderr)
        return 2
    return 1


def _handle_post_delete(args: argparse.Namespace, config: AppConfig) -> int:
    _require_project(config, "post.delete")
    confirm = (lambda _: True) if args.yes else _prompt_confirm
    dashboard = build_dashboard(config, notify=_print_notice, confirm=confirm)
    try:
        deleted = dashboard.controller.delete_post(args.post_id)
    finally:
        dashboard.close()
    if deleted:
        print(f"Deleted {args.post_id}")
        return 0
    return 1


def _require_project(config: AppConfig, command: str) -> None:
    if config.firebase.project_id:
        return
    LOGGER.error(
        "firebase.project_id is not configured",
        extra={"event": "cli.error", "command": command},
    )
    raise SystemExit(2)


def _prompt_confirm(question: str) -> bool:
    answer = input(f"{question} [y/N] ").strip().lower()
    return answer in {"y", "yes"}


def _print_notice(notice: Notice) -> None:
    print(notice.message, file=sys.stderr)


def _print_progress(percent: float) -> None:
    if percent <= 0:
        return
    print(f"\rUploading... {round(percent)}%", end="", file=sys.stderr)
    if percent >= 100:
        print(file=sys.stderr)


def _print_snapshot(snapshot: FeedSnapshot, can_delete: Callable[[Post], bool] | None) -> None:
    if not len(snapshot):
        print("Gallery is empty")
        return
    for post in snapshot:
        print(_format_post(post, owned=bool(can_delete and can_delete(post))))


def _format_post(post: Post, *, owned: bool = False) -> str:
    if post.created_at is not None:
        when = post.created_at.strftime("%b %d, %H:%M")
    else:
        when = "Unknown date" if post.undated else "Just now"
    line = f"{post.id}  {when}  {post.author_handle}  {post.title}"
    if post.image_url:
        line += f"  [cover: {post.image_url}]"
    if owned:
        line += "  (yours)"
    return line


__all__ = ["main"]
