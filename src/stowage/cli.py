"""CLI entry point for stowage."""

import argparse
import asyncio
import logging
import sys
from contextlib import aclosing
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Awaitable, Callable

import yaml
from pydantic import ValidationError as PydanticValidationError

from stowage.config import load_config
from stowage.errors import InvalidArgument, StowageError, from_os_error
from stowage.logging_config import configure_logging
from stowage.reporting import ConsoleReporter, Reporter, ReporterConfig
from stowage.resolver import Resolver
from stowage.session import SessionStore
from stowage.storage import BucketInfo, ObjectMetadata
from stowage.transfer import COPY_COMMAND, DEFAULT_JOBS, CopyResult, run_session, start_copy
from stowage.validation import validate_targets

logger = logging.getLogger("stowage")


@dataclass
class Context:
    """Collaborators shared by every command of one invocation."""

    resolver: Resolver
    reporter: Reporter
    store: SessionStore


TargetAction = Callable[[Context, str], Awaitable[None]]


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Args:
        argv: Argument list to parse. Defaults to sys.argv[1:].

    Returns:
        Parsed argument namespace.
    """
    parser = argparse.ArgumentParser(
        prog="stowage",
        description="stowage - copy and manage objects on S3-compatible storage and local disks",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to YAML configuration file (default: ~/.stowage/config.yaml)",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        default=False,
        help="Emit one JSON object per message",
    )
    parser.add_argument(
        "--quiet",
        action="store_true",
        default=False,
        help="Suppress informational messages",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Log level (overrides config, default: WARNING)",
    )
    parser.add_argument(
        "--log-format",
        type=str,
        default=None,
        choices=["text", "json"],
        help="Log format: 'text' (human-readable) or 'json' (structured)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    mb_parser = subparsers.add_parser("mb", help="Make buckets or folders")
    mb_parser.add_argument("targets", nargs="+", metavar="TARGET")

    rb_parser = subparsers.add_parser("rb", help="Remove empty buckets or folders")
    rb_parser.add_argument("targets", nargs="+", metavar="TARGET")

    ls_parser = subparsers.add_parser("ls", help="List buckets and objects")
    ls_parser.add_argument("targets", nargs="*", default=["."], metavar="TARGET")
    ls_parser.add_argument("-r", "--recursive", action="store_true", default=False)

    rm_parser = subparsers.add_parser("rm", help="Remove objects")
    rm_parser.add_argument("targets", nargs="+", metavar="TARGET")

    cp_parser = subparsers.add_parser("cp", help="Copy objects (resumable)")
    cp_parser.add_argument("paths", nargs="+", metavar="SOURCE... TARGET")
    cp_parser.add_argument("-r", "--recursive", action="store_true", default=False)
    cp_parser.add_argument(
        "--jobs", type=int, default=DEFAULT_JOBS,
        help=f"Number of concurrent copies (default: {DEFAULT_JOBS})",
    )

    acl_parser = subparsers.add_parser("acl", help="Get or set bucket access")
    acl_sub = acl_parser.add_subparsers(dest="acl_command", required=True)
    acl_get = acl_sub.add_parser("get", help="Show a bucket's canned ACL")
    acl_get.add_argument("targets", nargs="+", metavar="TARGET")
    acl_set = acl_sub.add_parser("set", help="Apply a canned ACL")
    acl_set.add_argument("target", metavar="TARGET")
    acl_set.add_argument(
        "acl", metavar="ACL",
        help="private, public-read, public-read-write or authenticated-read",
    )

    session_parser = subparsers.add_parser("session", help="Manage resumable sessions")
    session_sub = session_parser.add_subparsers(dest="session_command", required=True)
    session_sub.add_parser("list", help="List resumable sessions")
    resume_parser = session_sub.add_parser("resume", help="Resume a session")
    resume_parser.add_argument("session_id", metavar="SESSION")
    resume_parser.add_argument("--jobs", type=int, default=DEFAULT_JOBS)
    clear_parser = session_sub.add_parser("clear", help="Clear sessions")
    clear_group = clear_parser.add_mutually_exclusive_group(required=True)
    clear_group.add_argument("session_id", nargs="?", metavar="SESSION")
    clear_group.add_argument("--all", action="store_true", default=False)

    return parser.parse_args(argv)


def _timestamp(value: datetime | None) -> str:
    if value is None:
        return " " * 19
    return value.astimezone().strftime("%Y-%m-%d %H:%M:%S")


async def _for_each(ctx: Context, targets: list[str], action: TargetAction, failure: str) -> int:
    """Run ``action`` on every target; one failure never stops the rest.

    Returns:
        The number of targets that failed.
    """
    validate_targets(targets)
    failed = 0
    for arg in targets:
        try:
            await action(ctx, arg)
        except StowageError as exc:
            failed += 1
            ctx.reporter.error(f"{failure} ‘{arg}’.", exc, target=arg)
        except OSError as exc:
            failed += 1
            ctx.reporter.error(f"{failure} ‘{arg}’.", from_os_error(exc, arg), target=arg)
    return failed


# -- Buckets ----------------------------------------------------------------


async def _make_bucket(ctx: Context, arg: str) -> None:
    url = ctx.resolver.resolve(arg)
    client = ctx.resolver.client(url)
    try:
        await client.make_bucket()
    finally:
        await client.close()
    ctx.reporter.info(f"Bucket created successfully ‘{url}’.", bucket=str(url))


async def _remove_bucket(ctx: Context, arg: str) -> None:
    url = ctx.resolver.resolve(arg)
    client = ctx.resolver.client(url)
    try:
        await client.remove_bucket()
    finally:
        await client.close()
    ctx.reporter.info(f"Removed bucket ‘{url}’.", bucket=str(url))


async def _get_acl(ctx: Context, arg: str) -> None:
    url = ctx.resolver.resolve(arg)
    client = ctx.resolver.client(url)
    try:
        acl = await client.get_bucket_acl()
    finally:
        await client.close()
    ctx.reporter.info(f"Access permission for ‘{url}’ is ‘{acl}’.", bucket=str(url), acl=str(acl))


def _set_acl(acl: str) -> TargetAction:
    async def action(ctx: Context, arg: str) -> None:
        url = ctx.resolver.resolve(arg)
        client = ctx.resolver.client(url)
        try:
            await client.set_bucket_acl(acl)
        finally:
            await client.close()
        ctx.reporter.info(
            f"Access permission for ‘{url}’ is set to ‘{acl}’.",
            bucket=str(url),
            acl=acl,
        )

    return action


# -- Objects ----------------------------------------------------------------


def _report_bucket(ctx: Context, info: BucketInfo) -> None:
    ctx.reporter.info(
        f"[{_timestamp(info.created)}] {0:>10} {info.name}/",
        type="folder",
        key=info.name,
        lastModified=info.created,
    )


def _report_object(ctx: Context, meta: ObjectMetadata) -> None:
    ctx.reporter.info(
        f"[{_timestamp(meta.last_modified)}] {meta.size:>10} {meta.key}",
        type="file",
        key=meta.key,
        size=meta.size,
        lastModified=meta.last_modified,
    )


def _list(recursive: bool) -> TargetAction:
    async def action(ctx: Context, arg: str) -> None:
        url = ctx.resolver.resolve(arg)
        client = ctx.resolver.client(url)
        try:
            if not url.is_filesystem and not url.bucket:
                async with aclosing(client.list_buckets()) as buckets:
                    async for info in buckets:
                        _report_bucket(ctx, info)
                return
            bucket, key = client.location()
            if url.is_filesystem and not Path(url.path).is_dir():
                _report_object(ctx, await client.stat_object(bucket, key))
                return
            if url.is_filesystem and not recursive:
                async with aclosing(client.list_buckets()) as folders:
                    async for info in folders:
                        _report_bucket(ctx, info)
            async with aclosing(client.list_objects(bucket, key, recursive)) as objects:
                async for meta in objects:
                    _report_object(ctx, meta)
        finally:
            await client.close()

    return action


async def _remove_object(ctx: Context, arg: str) -> None:
    url = ctx.resolver.resolve(arg)
    client = ctx.resolver.client(url)
    try:
        bucket, key = client.location()
        if not key and not url.is_filesystem:
            raise InvalidArgument(f"No object key in ‘{url}’.")
        await client.remove_object(bucket, key)
    finally:
        await client.close()
    ctx.reporter.info(f"Removed ‘{url}’.", key=str(url))


# -- Copy and sessions --------------------------------------------------------


def _copy_progress(ctx: Context) -> Callable[[CopyResult], None]:
    def report(result: CopyResult) -> None:
        if result.ok:
            ctx.reporter.info(
                f"‘{result.source}’ -> ‘{result.target}’ ({result.size} bytes)",
                source=result.source,
                target=result.target,
                size=result.size,
            )
        else:
            ctx.reporter.error(
                f"Failed to copy ‘{result.source}’.",
                result.error,
                source=result.source,
                target=result.target,
            )

    return report


async def _run_copy(ctx: Context, session_id: str, jobs: int) -> int:
    session = ctx.store.load(session_id)
    if session.command_type != COPY_COMMAND:
        raise InvalidArgument(f"Session ‘{session_id}’ is not a copy session.")
    results = await run_session(session, ctx.resolver, jobs, progress=_copy_progress(ctx))
    failed = sum(1 for r in results if not r.ok)
    if failed:
        ctx.reporter.error(
            f"{failed} of {len(results)} copies failed; "
            f"resume with ‘stowage session resume {session.session_id}’.",
            session=session.session_id,
        )
    return failed


async def _copy(ctx: Context, args: argparse.Namespace) -> int:
    if len(args.paths) < 2:
        raise InvalidArgument("cp needs at least one source and a target.")
    *sources, target = args.paths
    validate_targets(args.paths)
    if args.jobs < 1:
        raise InvalidArgument(f"Invalid number of jobs {args.jobs}.")
    session = await start_copy(ctx.store, ctx.resolver, sources, target, args.recursive)
    return await _run_copy(ctx, session.session_id, args.jobs)


def _list_sessions(ctx: Context) -> int:
    for session in ctx.store.sessions():
        ctx.reporter.info(
            str(session),
            session=session.session_id,
            command=session.command_type,
            started=session.started,
            pending=len(session.pending()),
        )
    return 0


def _clear_sessions(ctx: Context, args: argparse.Namespace) -> int:
    if args.all:
        count = ctx.store.clear_all()
        ctx.reporter.info(f"Cleared {count} session(s).", cleared=count)
        return 0
    ctx.store.clear(args.session_id)
    ctx.reporter.info(f"Session ‘{args.session_id}’ cleared.", session=args.session_id)
    return 0


async def run_command(ctx: Context, args: argparse.Namespace) -> int:
    """Dispatch the parsed command; returns the number of failed targets."""
    if args.command == "mb":
        return await _for_each(ctx, args.targets, _make_bucket, "Unable to make bucket")
    if args.command == "rb":
        return await _for_each(ctx, args.targets, _remove_bucket, "Unable to remove bucket")
    if args.command == "ls":
        return await _for_each(ctx, args.targets, _list(args.recursive), "Unable to list")
    if args.command == "rm":
        return await _for_each(ctx, args.targets, _remove_object, "Unable to remove")
    if args.command == "acl":
        if args.acl_command == "get":
            return await _for_each(ctx, args.targets, _get_acl, "Unable to get access permission for")
        return await _for_each(
            ctx, [args.target], _set_acl(args.acl), "Unable to set access permission for"
        )
    if args.command == "cp":
        return await _copy(ctx, args)
    if args.command == "session":
        if args.session_command == "list":
            return _list_sessions(ctx)
        if args.session_command == "resume":
            return await _run_copy(ctx, args.session_id, args.jobs)
        return _clear_sessions(ctx, args)
    raise InvalidArgument(f"Unknown command '{args.command}'.")


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the stowage CLI.

    Args:
        argv: Argument list to parse. Defaults to sys.argv[1:].

    Returns:
        Process exit status: 0 when every target succeeded, 1 otherwise.
    """
    args = parse_args(argv)

    # Use a basic stderr logger for config-loading errors
    logging.basicConfig(level=logging.WARNING, stream=sys.stderr)

    try:
        config = load_config(args.config)
    except FileNotFoundError:
        logger.error("Config file not found: %s", args.config)
        return 1
    except (OSError, yaml.YAMLError, PydanticValidationError) as exc:
        logger.error("Failed to load config: %s", exc)
        return 1

    if args.log_level is not None:
        config.logging.level = args.log_level
    if args.log_format is not None:
        config.logging.format = args.log_format
    configure_logging(level=config.logging.level, fmt=config.logging.format)

    reporter = ConsoleReporter(ReporterConfig(json=args.json, quiet=args.quiet))
    ctx = Context(
        resolver=Resolver(config),
        reporter=reporter,
        store=SessionStore(config.session_dir),
    )

    try:
        failed = asyncio.run(run_command(ctx, args))
    except StowageError as exc:
        reporter.error(f"Unable to run ‘{args.command}’.", exc)
        return 1
    except KeyboardInterrupt:
        reporter.error("Interrupted; unfinished copies can be resumed with ‘stowage session list’.")
        return 130
    return 1 if failed else 0


def entry_point() -> None:
    sys.exit(main())


if __name__ == "__main__":
    entry_point()
