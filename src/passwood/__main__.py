# Main Entry Point - Command Line Interface
#
# passwood [--dir DIR | --server URL] <command> ...
#
# Every command that touches a vault prompts for the master password
# (getpass), opens a VaultSession, does its work, saves if anything
# changed and locks the session again.

import argparse
import getpass
import sys
from typing import List, Optional

from . import __version__
from .config import ConfigError, get_settings
from .core import EventSeverity, EventType, log_security_event
from .session import VaultSession
from .storage import BlobStore, LocalBlobStore, RemoteBlobStore, StorageError
from .vault import operations
from .vault.exceptions import VaultError
from .vault.models import Record
from .vault.passwords import generate_password, password_strength


def _build_store(args) -> BlobStore:
    if args.server:
        return RemoteBlobStore(args.server, app_password=get_settings().app_password)
    return LocalBlobStore(args.dir or get_settings().data_dir)


def _prompt_password(confirm: bool = False) -> str:
    password = getpass.getpass("Master password: ")
    if confirm and getpass.getpass("Repeat master password: ") != password:
        raise VaultError("Passwords do not match")
    return password


def _format_record(record: Record, reveal: bool = False) -> str:
    lines = [
        f"id:       {record.id}",
        f"title:    {record.title}",
        f"login:    {record.login}",
        f"secret:   {record.secret if reveal else '********'}",
    ]
    if record.url:
        lines.append(f"url:      {record.url}")
    if record.tag_names:
        lines.append(f"tags:     {', '.join(record.tag_names)}")
    if record.notes:
        lines.append(f"notes:    {record.notes}")
    for field in record.custom_fields:
        value = "********" if field.type.value == "password" and not reveal else field.value
        lines.append(f"{field.name}: {value}")
    lines.append(f"modified: {record.modified_at.isoformat()}")
    return "\n".join(lines)


def _summary(record: Record) -> str:
    tags = f"  [{', '.join(record.tag_names)}]" if record.tag_names else ""
    return f"{record.id}  {record.title}  ({record.login}){tags}"


def _register_tags(session: VaultSession, names) -> None:
    """Give new tag names a registry entry with the next palette colour."""
    for name in names:
        if operations.find_tag(session.vault, name) is None:
            session.apply(operations.add_tag, name)


# ── Commands ─────────────────────────────────────────────────────────


def cmd_init(session: VaultSession, args) -> int:
    session.create(args.vault, _prompt_password(confirm=True))
    print(f"Vault created: {args.vault}")
    return 0


def cmd_files(store: BlobStore, args) -> int:
    for name in store.list_blobs():
        print(name)
    return 0


def cmd_list(session: VaultSession, args) -> int:
    if args.tag:
        records = session.apply(operations.filter_by_tags, args.tag)
    else:
        records = list(session.vault.records)
    for record in records:
        print(_summary(record))
    print(f"{len(records)} record(s)")
    return 0


def cmd_search(session: VaultSession, args) -> int:
    for record in session.apply(operations.search_records, args.query):
        print(_summary(record))
    return 0


def cmd_show(session: VaultSession, args) -> int:
    record = session.apply(operations.get_record, args.id)
    if args.reveal:
        session.reveal_secret(args.id)
    print(_format_record(record, reveal=args.reveal))
    return 0


def cmd_add(session: VaultSession, args) -> int:
    if args.generate:
        secret = generate_password(args.generate)
    else:
        secret = getpass.getpass("Secret to store: ")
    record = operations.create_record(
        title=args.title,
        login=args.login or "",
        secret=secret,
        url=args.url,
        notes=args.notes,
        tag_names=args.tag or (),
    )
    session.apply(operations.add_record, record)
    _register_tags(session, record.tag_names)
    print(f"Added {record.id} (strength {password_strength(secret)}/100)")
    return 0


def cmd_update(session: VaultSession, args) -> int:
    fields = {}
    for name in ("title", "login", "url", "notes"):
        value = getattr(args, name)
        if value is not None:
            fields[name] = value
    if args.tags is not None:
        fields["tag_names"] = [t for t in args.tags.split(",") if t.strip()]
    if args.secret:
        fields["secret"] = getpass.getpass("New secret: ")
    if not fields:
        print("Nothing to update")
        return 1
    session.apply(operations.update_record, args.id, **fields)
    _register_tags(session, fields.get("tag_names", ()))
    print(f"Updated {args.id}")
    return 0


def cmd_delete(session: VaultSession, args) -> int:
    session.apply(operations.delete_record, args.id)
    print(f"Deleted {args.id}")
    return 0


def cmd_tags(session: VaultSession, args) -> int:
    action = args.tag_action
    if action == "add":
        session.apply(operations.add_tag, args.name, args.color)
    elif action == "rename":
        session.apply(operations.rename_tag, args.old, args.new)
    elif action == "delete":
        session.apply(operations.delete_tag, args.name)
    elif action == "color":
        session.apply(operations.set_tag_color, args.name, args.color)
    elif action == "order":
        session.apply(operations.reorder_tags, args.names)

    for tag in session.vault.tags:
        print(f"{tag.color}  {tag.name}")
    return 0


def cmd_generate(args) -> int:
    password = generate_password(
        args.length,
        uppercase=not args.no_upper,
        lowercase=not args.no_lower,
        digits=not args.no_digits,
        symbols=not args.no_symbols,
    )
    print(password)
    print(f"strength: {password_strength(password)}/100", file=sys.stderr)
    return 0


# ── Parser ───────────────────────────────────────────────────────────


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="passwood",
        description="Passwood - encrypted password vault files (.pass)",
    )
    parser.add_argument("--version", action="version", version=f"Passwood v{__version__}")
    location = parser.add_mutually_exclusive_group()
    location.add_argument("--dir", help="Directory of .pass files (default: PASSWOOD_DATA_DIR)")
    location.add_argument("--server", help="Remote password-file API base URL")

    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("init", help="Create a new vault")
    p.add_argument("vault")

    sub.add_parser("files", help="List vault files")

    p = sub.add_parser("list", help="List records")
    p.add_argument("vault")
    p.add_argument("--tag", action="append", help="Only records with this tag")

    p = sub.add_parser("search", help="Search title, login, url and tags")
    p.add_argument("vault")
    p.add_argument("query")

    p = sub.add_parser("show", help="Show one record")
    p.add_argument("vault")
    p.add_argument("id")
    p.add_argument("--reveal", action="store_true", help="Print the secret")

    p = sub.add_parser("add", help="Add a record")
    p.add_argument("vault")
    p.add_argument("--title", required=True)
    p.add_argument("--login")
    p.add_argument("--url")
    p.add_argument("--notes")
    p.add_argument("--tag", action="append")
    p.add_argument("--generate", type=int, metavar="LENGTH",
                   help="Generate a random secret instead of prompting")

    p = sub.add_parser("update", help="Change a record")
    p.add_argument("vault")
    p.add_argument("id")
    p.add_argument("--title")
    p.add_argument("--login")
    p.add_argument("--url")
    p.add_argument("--notes")
    p.add_argument("--tags", help="Comma-separated replacement tag list")
    p.add_argument("--secret", action="store_true", help="Prompt for a new secret")

    p = sub.add_parser("delete", help="Delete a record")
    p.add_argument("vault")
    p.add_argument("id")

    p = sub.add_parser("tags", help="List or manage tags")
    p.add_argument("vault")
    tag_sub = p.add_subparsers(dest="tag_action")
    tag_sub.add_parser("list")
    t = tag_sub.add_parser("add")
    t.add_argument("name")
    t.add_argument("--color")
    t = tag_sub.add_parser("rename")
    t.add_argument("old")
    t.add_argument("new")
    t = tag_sub.add_parser("delete")
    t.add_argument("name")
    t = tag_sub.add_parser("color")
    t.add_argument("name")
    t.add_argument("color")
    t = tag_sub.add_parser("order")
    t.add_argument("names", nargs="+")

    p = sub.add_parser("generate", help="Generate a random password")
    p.add_argument("--length", type=int, default=16)
    p.add_argument("--no-upper", action="store_true")
    p.add_argument("--no-lower", action="store_true")
    p.add_argument("--no-digits", action="store_true")
    p.add_argument("--no-symbols", action="store_true")

    return parser


_VAULT_COMMANDS = {
    "list": cmd_list,
    "search": cmd_search,
    "show": cmd_show,
    "add": cmd_add,
    "update": cmd_update,
    "delete": cmd_delete,
    "tags": cmd_tags,
}


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for Passwood.

    Returns the process exit status.
    """
    args = build_parser().parse_args(argv)

    if args.command == "generate":
        try:
            return cmd_generate(args)
        except ValueError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 2

    log_security_event(
        EventType.SYSTEM_START,
        EventSeverity.INFO,
        "Passwood CLI starting",
        details={"version": __version__, "command": args.command},
    )

    try:
        store = _build_store(args)
        if args.command == "files":
            return cmd_files(store, args)

        session = VaultSession(store)
        with session:
            if args.command == "init":
                return cmd_init(session, args)

            session.unlock(args.vault, _prompt_password())
            status = _VAULT_COMMANDS[args.command](session, args)
            if session.dirty:
                session.save()
            return status

    # DecryptionError prints the same text for wrong password and tampering
    except (VaultError, StorageError, ConfigError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nAborted", file=sys.stderr)
        log_security_event(
            EventType.SYSTEM_STOP,
            EventSeverity.INFO,
            "Passwood CLI interrupted",
        )
        return 130


if __name__ == "__main__":
    sys.exit(main())
