"""
Command-line interface for the URL moderator.

This module provides the ``url-moderator`` entry point with commands for:
- list: Show the submitted URLs
- add: Submit a URL
- approve / reject / remove-error: Moderate a URL
- domains: Group the URLs by hostname
- visit: Record a visit
- order: Show or change the domain order
"""

import argparse
import asyncio
import mimetypes
import sys
from pathlib import Path
from typing import Awaitable, Callable, Optional

from . import __version__
from .annotation import error_input_from_payload
from .audit_logger import AuditLogger
from .config import SystemConfig, load_config_from_env
from .console import ModerationConsole
from .enums import UrlStatus
from .exceptions import ConfigurationError
from .i18n import get_message
from .models import ImageFile, UrlRecord, VisitorInfo


CommandHandler = Callable[[ModerationConsole, argparse.Namespace], Awaitable[int]]


def _language(console: ModerationConsole) -> str:
    return console.config.language


def _fail(console: ModerationConsole) -> int:
    print(
        get_message("cli.failed", _language(console), error=console.error or ""),
        file=sys.stderr,
    )
    return 1


def _done(console: ModerationConsole) -> int:
    print(get_message("cli.done", _language(console)))
    return 0


def format_record(record: UrlRecord, language: str) -> str:
    """One-line summary of a record."""
    status = get_message(f"status.{record.status.value}", language)
    line = f"{record.id}  [{status}]  {record.name}  {record.original}  visits={record.visits}"
    if record.error_messages:
        line += f"  errors={len(record.error_messages)}"
    return line


async def cmd_list(console: ModerationConsole, args: argparse.Namespace) -> int:
    """Handle the 'list' command."""
    if args.status:
        records = await console.urls.fetch_by_status(UrlStatus(args.status))
    else:
        records = await console.urls.fetch_all()

    if not records:
        if console.error:
            return _fail(console)
        print(get_message("cli.no_urls", _language(console)))
        return 0

    for record in records:
        print(format_record(record, _language(console)))
        if args.verbose:
            for index, entry in enumerate(record.error_messages):
                image = f"  ({entry.image_url})" if entry.image_url else ""
                print(f"    {index}: {entry.text}{image}")
    return 0


async def cmd_add(console: ModerationConsole, args: argparse.Namespace) -> int:
    """Handle the 'add' command."""
    record_id = await console.urls.add(args.name, args.url, site_name=args.site_name)
    if record_id is None:
        return _fail(console)
    print(get_message("cli.added", _language(console), id=record_id))
    return 0


async def cmd_approve(console: ModerationConsole, args: argparse.Namespace) -> int:
    """Handle the 'approve' command."""
    if not await console.urls.approve(args.id):
        return _fail(console)
    return _done(console)


def _read_image(path: Path) -> ImageFile:
    content_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
    return ImageFile(filename=path.name, content=path.read_bytes(), content_type=content_type)


async def cmd_reject(console: ModerationConsole, args: argparse.Namespace) -> int:
    """
    Handle the 'reject' command.

    Every reason is staged in the annotation session and all of them are
    sent as one rejection. ``--image``/``--image-url`` go with the first
    reason.
    """
    session = console.annotation
    session.open(args.id)

    for position, text in enumerate(args.reasons):
        payload: dict = {"text": text}
        if position == 0 and args.image_url:
            payload["imageUrl"] = args.image_url
        elif position == 0 and args.image:
            try:
                payload["image"] = _read_image(Path(args.image))
            except OSError as e:
                print(get_message("cli.failed", _language(console), error=str(e)), file=sys.stderr)
                session.close()
                return 1

        error_input = error_input_from_payload(payload)
        if error_input is not None:
            await session.stage(error_input)

    if not await session.commit():
        session.close()
        return _fail(console)
    return _done(console)


async def cmd_remove_error(console: ModerationConsole, args: argparse.Namespace) -> int:
    """Handle the 'remove-error' command."""
    if not await console.urls.remove_error(args.id, args.index):
        return _fail(console)
    return _done(console)


async def cmd_domains(console: ModerationConsole, args: argparse.Namespace) -> int:
    """Handle the 'domains' command."""
    await console.urls.fetch_all()
    if console.error and not console.urls.records:
        return _fail(console)

    if args.domain:
        for record in console.urls.get_by_domain(args.domain):
            print(format_record(record, _language(console)))
        return 0

    known = set(console.urls.get_unique_domains())
    ordered = [domain for domain in console.domain_order.order if domain in known]
    ordered += [domain for domain in console.urls.get_unique_domains() if domain not in ordered]
    for domain in ordered:
        print(f"{domain}  ({len(console.urls.get_by_domain(domain))})")
    return 0


async def cmd_visit(console: ModerationConsole, args: argparse.Namespace) -> int:
    """Handle the 'visit' command."""
    visitor_info = None
    if args.user_agent or args.referrer or args.country:
        visitor_info = VisitorInfo(
            user_agent=args.user_agent,
            referrer=args.referrer,
            country=args.country,
        )
    if not await console.visits.record(args.id, visitor_info):
        return _fail(console)
    return _done(console)


async def cmd_order(console: ModerationConsole, args: argparse.Namespace) -> int:
    """Handle the 'order' command."""
    if args.domains:
        if not await console.domain_order.save(args.domains):
            return _fail(console)
        return _done(console)

    await console.urls.fetch_all()
    for position, domain in enumerate(console.domain_order.order, start=1):
        print(f"{position}. {domain}")
    return 0


async def run_command(
    handler: CommandHandler,
    args: argparse.Namespace,
    config: SystemConfig,
) -> int:
    """
    Run one command handler inside a console.

    Args:
        handler: Command coroutine function
        args: Parsed command line arguments
        config: System configuration

    Returns:
        Exit code
    """
    logger = None
    if args.verbose:
        logger = AuditLogger.from_level_name(
            "debug",
            output_format=config.logging.output_format,
        )
    elif config.logging.level in ("debug", "warn", "error"):
        logger = AuditLogger.from_level_name(
            config.logging.level,
            output_format=config.logging.output_format,
        )

    async with ModerationConsole(config, logger=logger) as console:
        return await handler(console, args)


def load_cli_config(args: argparse.Namespace) -> Optional[SystemConfig]:
    """Load the configuration and apply command line overrides."""
    env_file = Path(args.env_file) if args.env_file else None
    config = load_config_from_env(env_file)
    if args.simulate:
        config.simulation_mode = True
    if args.language:
        config.language = args.language

    try:
        config.validate()
    except ConfigurationError as e:
        print(get_message("cli.config_error", config.language, error=e.message), file=sys.stderr)
        return None
    return config


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="url-moderator",
        description="Moderation console for submitted URLs",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "--simulate",
        action="store_true",
        help="Simulation mode - in-memory store, no uploads",
    )
    parser.add_argument(
        "--env-file",
        help="Path to a dotenv file (default: .env lookup)",
    )
    parser.add_argument(
        "--language", "-l",
        choices=["es", "en"],
        help="Message language (default: LANGUAGE or es)",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose output",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    list_parser = subparsers.add_parser("list", help="List submitted URLs")
    list_parser.add_argument(
        "--status", "-s",
        choices=[status.value for status in UrlStatus],
        help="Only URLs in this status (queried remotely)",
    )
    list_parser.set_defaults(handler=cmd_list)

    add_parser = subparsers.add_parser("add", help="Submit a URL")
    add_parser.add_argument("name", help="Display name")
    add_parser.add_argument("url", help="Original URL")
    add_parser.add_argument("--site-name", help="Optional site name")
    add_parser.set_defaults(handler=cmd_add)

    approve_parser = subparsers.add_parser("approve", help="Approve a URL")
    approve_parser.add_argument("id", help="Record id")
    approve_parser.set_defaults(handler=cmd_approve)

    reject_parser = subparsers.add_parser("reject", help="Reject a URL with reasons")
    reject_parser.add_argument("id", help="Record id")
    reject_parser.add_argument("reasons", nargs="+", help="Rejection reasons")
    image_group = reject_parser.add_mutually_exclusive_group()
    image_group.add_argument("--image", help="Screenshot file for the first reason")
    image_group.add_argument("--image-url", help="Hosted screenshot URL for the first reason")
    reject_parser.set_defaults(handler=cmd_reject)

    remove_parser = subparsers.add_parser("remove-error", help="Remove one rejection reason")
    remove_parser.add_argument("id", help="Record id")
    remove_parser.add_argument("index", type=int, help="Position of the reason (from 0)")
    remove_parser.set_defaults(handler=cmd_remove_error)

    domains_parser = subparsers.add_parser("domains", help="Group URLs by hostname")
    domains_parser.add_argument("--domain", "-d", help="Only URLs of this hostname")
    domains_parser.set_defaults(handler=cmd_domains)

    visit_parser = subparsers.add_parser("visit", help="Record a visit")
    visit_parser.add_argument("id", help="Record id")
    visit_parser.add_argument("--user-agent", help="Visitor user agent")
    visit_parser.add_argument("--referrer", help="Visitor referrer")
    visit_parser.add_argument("--country", help="Visitor country")
    visit_parser.set_defaults(handler=cmd_visit)

    order_parser = subparsers.add_parser("order", help="Show or set the domain order")
    order_parser.add_argument("domains", nargs="*", help="New order (hostnames)")
    order_parser.set_defaults(handler=cmd_order)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """
    Main entry point for the CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    config = load_cli_config(args)
    if config is None:
        return 1

    return asyncio.run(run_command(args.handler, args, config))


if __name__ == "__main__":
    sys.exit(main())
