"""Command line interface for qamus-sync.

USAGE:
    qamus-sync run                       Run the scheduler service until stopped
    qamus-sync backup                    Back up the database now
    qamus-sync restore [--backup-id ID]  Restore the latest (or a given) backup
    qamus-sync list [--format table|json]
    qamus-sync delete <backup-id>
    qamus-sync settings show
    qamus-sync settings set [--frequency F] [--reminder-interval N]
                            [--reminder | --no-reminder]
                            [--mobile-data | --no-mobile-data]
    qamus-sync settings reset

ENVIRONMENT:
    QAMUS_SYNC_DATA_DIR, QAMUS_SYNC_BACKUP_FOLDER, QAMUS_SYNC_CREDENTIALS_FILE
    and the other QAMUS_SYNC_* settings; see SyncConfig.
"""

from __future__ import annotations

import argparse
import json
import os
import sys
from typing import List, Optional

from qamus_sync.config import AutomaticBackupFrequency, JsonSettingsStore, SettingsStore, SyncConfig
from qamus_sync.exceptions import SyncError
from qamus_sync.scheduling import reminder_interval
from qamus_sync.service import SyncService
from qamus_sync.transfer import Error, InProgress, Success, TransferState
from qamus_sync.util import format_bytes, format_minutes


def _print_progress(state: TransferState) -> None:
    if isinstance(state, InProgress):
        print(
            f"\r{state.kind.value.capitalize()}: {state.progress_percent:3d}% "
            f"({format_bytes(state.bytes_transferred)})",
            end="",
            file=sys.stderr,
            flush=True,
        )
    elif isinstance(state, (Success, Error)):
        print(file=sys.stderr)


# ============================================================================
# TRANSFER COMMANDS
# ============================================================================

def cmd_run(service: SyncService) -> int:
    service.run_forever()
    return 0


def cmd_backup(service: SyncService) -> int:
    service.ensure_session()
    service.orchestrator.add_listener(_print_progress)
    metadata = service.orchestrator.backup()
    print(f"Backup created: {metadata.name} ({format_bytes(metadata.size_bytes)})")
    return 0


def cmd_restore(service: SyncService, backup_id: Optional[str] = None) -> int:
    service.ensure_session()
    service.orchestrator.add_listener(_print_progress)
    service.orchestrator.restore_and_reopen(backup_id)
    print("Restore complete")
    return 0


def cmd_list(service: SyncService, format: str = "table") -> int:
    service.ensure_session()
    backups = service.orchestrator.list_backups()

    if format == "json":
        output = [
            {
                "id": b.id,
                "name": b.name,
                "created_time": b.created_time.isoformat(),
                "size_bytes": b.size_bytes,
            }
            for b in backups
        ]
        print(json.dumps(output, indent=2))
        return 0

    if not backups:
        print("No backups found")
        return 0

    print(f"\n{'Name':<40} {'ID':<36} {'Created':<20} {'Size':>10}")
    print("-" * 109)
    for b in backups:
        created = b.created_time.strftime("%Y-%m-%d %H:%M:%S")
        print(f"{b.name:<40} {b.id:<36} {created:<20} {format_bytes(b.size_bytes):>10}")
    print(f"\nTotal: {len(backups)} backups")
    return 0


def cmd_delete(service: SyncService, backup_id: str) -> int:
    service.ensure_session()
    service.orchestrator.delete_backup(backup_id)
    print(f"Backup '{backup_id}' deleted")
    return 0


# ============================================================================
# SETTINGS COMMANDS
# ============================================================================

def cmd_settings_show(store: SettingsStore) -> int:
    settings = store.get()
    interval = reminder_interval(settings.model_copy(update={"reminder_enabled": True}))

    print(f"Automatic backup:  {settings.automatic_backup_frequency.value}")
    reminders = "on" if settings.reminder_enabled else "off"
    print(f"Reminders:         {reminders}, every {format_minutes(interval.total_seconds() / 60)}")
    print(f"Mobile data:       {'allowed' if settings.use_mobile_data else 'not allowed'}")
    if settings.last_backup_at is None:
        print("Last backup:       never")
    else:
        print(
            f"Last backup:       {settings.last_backup_at.isoformat(timespec='seconds')} "
            f"(version {settings.last_backup_version})"
        )
    return 0


def cmd_settings_set(store: SettingsStore, args: argparse.Namespace) -> int:
    changes = {}
    if args.frequency is not None:
        changes["automatic_backup_frequency"] = AutomaticBackupFrequency(args.frequency)
    if args.reminder_interval is not None:
        changes["reminder_interval_minutes"] = args.reminder_interval
    if args.reminder is not None:
        changes["reminder_enabled"] = args.reminder
    if args.mobile_data is not None:
        changes["use_mobile_data"] = args.mobile_data

    if not changes:
        print("ERROR: nothing to change", file=sys.stderr)
        return 1
    store.update(**changes)
    return cmd_settings_show(store)


def cmd_settings_reset(store: SettingsStore) -> int:
    store.reset()
    print("Settings reset to defaults")
    return 0


# ============================================================================
# MAIN
# ============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="qamus-sync",
        description="Back up and restore the Qamus dictionary database with Google Drive",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
EXAMPLES:
  Back up now:
    %(prog)s backup

  Restore the most recent backup:
    %(prog)s restore

  Back up weekly, remind every 45 minutes:
    %(prog)s settings set --frequency weekly --reminder-interval 45 --reminder
        """,
    )
    parser.add_argument("--env-file", help="Path to a .env file with QAMUS_SYNC_* settings")
    parser.add_argument("--data-dir", help="Override QAMUS_SYNC_DATA_DIR")
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command", required=True)

    subparsers.add_parser("run", help="Run the backup and reminder schedulers until stopped")
    subparsers.add_parser("backup", help="Back up the local database now")

    restore = subparsers.add_parser("restore", help="Replace the local database with a backup")
    restore.add_argument("--backup-id", help="Backup to restore (default: most recent)")

    list_parser = subparsers.add_parser("list", help="List backups in the Drive folder")
    list_parser.add_argument(
        "--format",
        choices=["table", "json"],
        default="table",
        help="Output format. Default: %(default)s",
    )

    delete = subparsers.add_parser("delete", help="Delete a backup")
    delete.add_argument("backup_id", help="Backup id as shown by 'list'")

    settings_parser = subparsers.add_parser("settings", help="Show or change backup settings")
    settings_sub = settings_parser.add_subparsers(dest="subcommand", required=True)
    settings_sub.add_parser("show", help="Show current settings")
    settings_sub.add_parser("reset", help="Restore default settings")

    settings_set = settings_sub.add_parser("set", help="Change settings")
    settings_set.add_argument(
        "--frequency",
        choices=[f.value for f in AutomaticBackupFrequency],
        help="Automatic backup frequency",
    )
    settings_set.add_argument(
        "--reminder-interval",
        type=int,
        metavar="MINUTES",
        help="Minutes between reminders (scheduled within 15..180)",
    )
    settings_set.add_argument(
        "--reminder",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Enable or disable word reminders",
    )
    settings_set.add_argument(
        "--mobile-data",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Allow automatic backups over mobile data",
    )
    return parser


def load_config(args: argparse.Namespace) -> SyncConfig:
    overrides = {"DATA_DIR": args.data_dir} if args.data_dir else None
    return SyncConfig.from_env(env_file=args.env_file, overrides=overrides)


def dispatch(args: argparse.Namespace, config: SyncConfig) -> int:
    if args.command == "settings":
        store = JsonSettingsStore(config.settings_path)
        if args.subcommand == "show":
            return cmd_settings_show(store)
        if args.subcommand == "set":
            return cmd_settings_set(store, args)
        return cmd_settings_reset(store)

    service = SyncService(config)
    if args.command == "run":
        return cmd_run(service)
    try:
        if args.command == "backup":
            return cmd_backup(service)
        if args.command == "restore":
            return cmd_restore(service, args.backup_id)
        if args.command == "list":
            return cmd_list(service, args.format)
        return cmd_delete(service, args.backup_id)
    finally:
        service.local_store.close()


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    if args.verbose:
        os.environ["QAMUS_SYNC_LOG_LEVEL"] = "DEBUG"

    try:
        return dispatch(args, load_config(args))
    except SyncError as e:
        print(f"\nERROR: {e.message}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
