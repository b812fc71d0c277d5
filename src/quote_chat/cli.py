"""Backfill CLI: ensure users are participants of a chat thread.

Resolves a thread directly or through its quote, gathers explicit users and
every member of the given organizations, and ensures each one as a
participant.  A failure for one user is reported and the run continues.

Usage::

    python -m quote_chat.cli --thread 7f1c... --org org_gallery,org_shipper
    python -m quote_chat.cli --quote q_123 --initiator user_1 --user user_2,user_3
"""

from __future__ import annotations

import argparse
import sys
from dataclasses import dataclass, field
from pathlib import Path

import structlog

from quote_chat.config import ChatRoleConfig, get_settings
from quote_chat.domain.errors import ChatError, ConfigurationError
from quote_chat.provider.client import ConversationsClient
from quote_chat.state.schema import connect_chat_db
from quote_chat.wiring import ChatServices, build_chat_services

logger = structlog.get_logger()


@dataclass
class BackfillSummary:
    """Outcome of one backfill run."""

    thread_id: str
    ensured: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)


def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser for participant backfills.

    Returns:
        A configured :class:`argparse.ArgumentParser`.
    """
    parser = argparse.ArgumentParser(description="Backfill chat thread participants")

    parser.add_argument("--thread", type=str, help="Chat thread ID")
    parser.add_argument("--quote", type=str, help="Quote ID (resolves or creates its thread)")
    parser.add_argument(
        "--initiator",
        type=str,
        help="User ID that initiates thread resolution (required with --quote)",
    )
    parser.add_argument(
        "--org",
        type=str,
        default="",
        help="Comma-separated organization IDs whose members are added",
    )
    parser.add_argument(
        "--user",
        type=str,
        default="",
        help="Comma-separated user IDs to add",
    )
    parser.add_argument(
        "--db",
        type=str,
        default=None,
        help="Path to chat database (default: CHAT_DB_PATH setting)",
    )

    return parser


def parse_csv(value: str | None) -> list[str]:
    """Split a comma-separated option into distinct, non-empty values."""
    if not value:
        return []
    return list(dict.fromkeys(part.strip() for part in value.split(",") if part.strip()))


def collect_targets(
    services: ChatServices,
    users: list[str],
    organizations: list[str],
) -> dict[str, str | None]:
    """Map each user to add onto the organization they join under.

    Explicit users join under the thread default; organization members join
    under their organization.  An explicit user who is also an organization
    member keeps the organization.
    """
    targets: dict[str, str | None] = {user_id: None for user_id in users}
    for organization_id in organizations:
        for member in services.directory.get_members_for_organization(organization_id):
            if targets.get(member.user_id) is None:
                targets[member.user_id] = organization_id
    return targets


def run_backfill(
    services: ChatServices,
    *,
    thread_id: str | None,
    quote_id: str | None,
    initiator: str | None,
    users: list[str],
    organizations: list[str],
) -> BackfillSummary:
    """Resolve the thread and ensure every target user as a participant.

    Raises:
        NotFoundError: If the thread or quote does not exist.
    """
    if thread_id is None:
        if quote_id is None or initiator is None:
            raise ValueError("--quote requires --initiator")
        thread_id = services.threads.ensure_thread_for_quote(quote_id, initiator).thread.id

    summary = BackfillSummary(thread_id=thread_id)
    for user_id, organization_id in collect_targets(services, users, organizations).items():
        try:
            services.participants.ensure_participant_in_thread(
                thread_id, user_id, organization_id=organization_id
            )
        except ChatError as exc:
            logger.warning("backfill_participant_failed", thread_id=thread_id, user_id=user_id)
            summary.failed[user_id] = str(exc)
            continue
        summary.ensured.append(user_id)
    return summary


def format_summary(summary: BackfillSummary) -> str:
    """Format a backfill summary for the terminal."""
    lines = [
        f"Thread: {summary.thread_id}",
        f"Ensured participants: {len(summary.ensured)}",
    ]
    lines.extend(f"  + {user_id}" for user_id in summary.ensured)
    if summary.failed:
        lines.append(f"Failed: {len(summary.failed)}")
        lines.extend(f"  ! {user_id}: {error}" for user_id, error in summary.failed.items())
    return "\n".join(lines)


def main(argv: list[str] | None = None) -> int:
    """Parse arguments, run the backfill and print a summary.

    Returns:
        The process exit code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.thread and not args.quote:
        print("error: one of --thread or --quote is required", file=sys.stderr)
        return 1
    if args.quote and not args.thread and not args.initiator:
        print("error: --quote requires --initiator", file=sys.stderr)
        return 1

    users = parse_csv(args.user)
    organizations = parse_csv(args.org)
    if not users and not organizations:
        print("error: nothing to backfill; pass --user and/or --org", file=sys.stderr)
        return 1

    settings = get_settings()
    try:
        provider = ConversationsClient.from_settings(settings)
        role_config = ChatRoleConfig.from_settings(settings)
    except ConfigurationError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    db_path = Path(args.db) if args.db else settings.chat_db_path
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = connect_chat_db(db_path)
    try:
        services = build_chat_services(conn, provider, role_config)
        try:
            summary = run_backfill(
                services,
                thread_id=args.thread,
                quote_id=args.quote,
                initiator=args.initiator,
                users=users,
                organizations=organizations,
            )
        except ChatError as exc:
            print(f"error: {exc}", file=sys.stderr)
            return 1
        print(format_summary(summary))
    finally:
        conn.close()

    return 0


if __name__ == "__main__":
    sys.exit(main())
