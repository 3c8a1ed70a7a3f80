from __future__ import annotations

import argparse
import getpass as _getpass
import os
import sys
from typing import List, Optional

from ark.categories import CATEGORIES
from ark.config import ArkConfig, load_config, with_categories
from ark.engine import create, restore
from ark.errors import ArkError
from ark.retention import list_archives, prune


PASSPHRASE_ENV = "OPENCLAW_BACKUP_PASSPHRASE"
MIN_PASSPHRASE_LEN = 8


def _mib(n: int) -> str:
    return f"{n / 1024 / 1024:.1f}MB"


def _split_ids(raw: Optional[str]) -> Optional[List[str]]:
    if not raw:
        return None
    return [c.strip() for c in raw.split(",") if c.strip()]


def _get_passphrase(explicit: Optional[str], *, confirm: bool) -> str:
    """Resolve the passphrase from the flag, the environment, or a prompt."""
    pw = explicit or os.environ.get(PASSPHRASE_ENV)
    if pw:
        return pw
    if not sys.stdin.isatty():
        raise ValueError(f"passphrase required (--passphrase or {PASSPHRASE_ENV})")
    pw = _getpass.getpass("Passphrase: ")
    if confirm and _getpass.getpass("Confirm passphrase: ") != pw:
        raise ValueError("passphrases do not match")
    return pw


def cmd_create(config: ArkConfig, *, passphrase: Optional[str] = None, categories: Optional[List[str]] = None, quiet: bool = False) -> bool:
    """Create an encrypted backup, then apply the retention policy.

    Args:
        config: Parsed configuration.
        passphrase: Encryption passphrase (at least 8 characters).
        categories: Restrict the backup to these category ids.
        quiet: Limit output to the final summary.
    """
    pw = _get_passphrase(passphrase, confirm=True)
    if len(pw) < MIN_PASSPHRASE_LEN:
        raise ValueError(f"passphrase must be at least {MIN_PASSPHRASE_LEN} characters")
    if categories:
        config = with_categories(config, categories)
    log = None if quiet else print
    print("Creating backup...", flush=True)
    result = create(pw, config, log=log)
    print(f"Backup created: {result.path}")
    print(f"  Size: {_mib(result.size_bytes)} | Files: {result.manifest.file_count} | Time: {result.duration_ms}ms")
    print(f"  Categories: {', '.join(result.manifest.categories)}")
    if result.skipped:
        print(f"  Skipped: {result.skipped} unreadable path(s)")
    pruned = prune(config, log=log)
    if pruned:
        print(f"  Pruned {len(pruned)} old backup(s)")
    return True


def cmd_restore(
    config: ArkConfig,
    archive: str,
    *,
    passphrase: Optional[str] = None,
    categories: Optional[List[str]] = None,
    dry_run: bool = False,
) -> bool:
    """Restore categories from an archive (or preview with ``dry_run``)."""
    pw = _get_passphrase(passphrase, confirm=False)
    print("Previewing restore..." if dry_run else "Restoring backup...", flush=True)
    result = restore(archive, pw, config, categories=categories, dry_run=dry_run, log=print if dry_run else None)
    label = "Preview" if dry_run else "Restored"
    cats = ", ".join(result.restored_categories) or "none"
    print(f"{label}: {result.file_count} files from {cats}")
    print(f"  Backup created: {result.manifest.created_at} on {result.manifest.hostname}")
    for failure in result.failures:
        print(f"  failed: {failure}", file=sys.stderr)
    if not dry_run:
        print("Restart the gateway to apply config changes.")
    return not result.failures


def cmd_list(config: ArkConfig) -> bool:
    """List archives in the backup directory, newest first."""
    archives = list_archives(config.backup_dir)
    if not archives:
        print("No backups found.")
        return True
    print(f"Backups in {config.backup_dir}:\n")
    for a in archives:
        print(f"  {a.filename}  {_mib(a.size_bytes)}  {a.created_at.isoformat()}")
    return True


def cmd_prune(config: ArkConfig) -> bool:
    """Remove archives that violate the retention policy."""
    pruned = prune(config, log=print)
    print(f"Pruned {len(pruned)} backup(s)" if pruned else "Nothing to prune")
    return True


def cmd_status(config: ArkConfig) -> bool:
    """Show configuration, retention policy and the most recent archive."""
    archives = list_archives(config.backup_dir)
    enabled = [
        f"{c.id} ({c.label}{', sensitive' if c.sensitive else ''})"
        for c in CATEGORIES
        if config.categories.get(c.id)
    ]
    print(f"Dir: {config.backup_dir}")
    print(f"Categories: {', '.join(enabled) or 'none'}")
    print(f"Retention: {config.retention.max_backups} backups, {config.retention.max_age_days} days")
    print(f"Total backups: {len(archives)}")
    if archives:
        last = archives[0]
        print(f"Last: {last.filename} ({_mib(last.size_bytes)}, {last.created_at.isoformat()})")
    else:
        print("Last: none")
    return True


def main(argv: List[str] | None = None):
    ap = argparse.ArgumentParser(
        prog="ark",
        description="Encrypted backups of OpenClaw configs, credentials, wallet and workspaces",
        epilog=f"The passphrase may also be supplied through ${PASSPHRASE_ENV}.",
    )
    ap.add_argument("--config", help="JSON config file")
    ap.add_argument("--backup-dir", help="Directory holding .ocbak archives")
    ap.add_argument("--base-dir", help="OpenClaw base directory (default ~/.openclaw)")
    ap.add_argument("--workspace", help="Primary agent workspace")
    sub = ap.add_subparsers(dest="cmd", required=True)

    ap_create = sub.add_parser("create", help="Create an encrypted backup")
    ap_create.add_argument("-p", "--passphrase", help="Encryption passphrase")
    ap_create.add_argument("-c", "--categories", help="Comma-separated categories to include")
    ap_create.add_argument("--quiet", help="limit outputs to summaries only", action="store_true")

    ap_restore = sub.add_parser("restore", help="Restore from an encrypted backup")
    ap_restore.add_argument("archive", help="Archive path")
    ap_restore.add_argument("-p", "--passphrase", help="Decryption passphrase")
    ap_restore.add_argument("-c", "--categories", help="Comma-separated categories to restore")
    ap_restore.add_argument("--dry-run", action="store_true", help="Preview without writing files")

    sub.add_parser("list", help="List backup archives")
    sub.add_parser("prune", help="Remove old backups per retention policy")
    sub.add_parser("status", help="Show backup configuration and last archive")

    args = ap.parse_args(argv)
    try:
        config = load_config(
            args.config,
            {"backupDir": args.backup_dir, "baseDir": args.base_dir, "workspace": args.workspace},
        )
        if args.cmd == "create":
            cmd_create(config, passphrase=args.passphrase, categories=_split_ids(args.categories), quiet=args.quiet)
        elif args.cmd == "restore":
            ok = cmd_restore(
                config,
                args.archive,
                passphrase=args.passphrase,
                categories=_split_ids(args.categories),
                dry_run=args.dry_run,
            )
            sys.exit(0 if ok else 1)
        elif args.cmd == "list":
            cmd_list(config)
        elif args.cmd == "prune":
            cmd_prune(config)
        elif args.cmd == "status":
            cmd_status(config)
        else:
            raise RuntimeError("Unknown command")
    except (ArkError, OSError, ValueError, RuntimeError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
