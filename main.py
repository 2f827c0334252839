#!/usr/bin/env python3
"""
PCM5 Android Auto Device State Repair Tool v1.0

Repairs the paired device list of Porsche PCM5 (MH2P) head units. A firmware bug
stores userAcceptState as NATIVE_SELECTED instead of DISCLAIMER_ACCEPTED; the
head unit then rejects the device list and Android Auto stops connecting.

The device list lives in partition 1008, key 1 of the persistence database.
This tool finds the affected devices, rewrites their state, recalculates the
CRC32 header and writes the list back (after backing up the database file).

Exit status is 0 on success, including list and dry-run runs and runs where no
devices needed fixing, and 1 on any storage, structural or backup error.
Usage errors exit with 2.
"""

import argparse
import sys
import time
import traceback

from rich.markup import escape

from pcm5_aa_fix import __version__
from pcm5_aa_fix.config import DEFAULT_DB_PATH
from pcm5_aa_fix.console import console, print_error, print_warning
from pcm5_aa_fix.errors import BackupFailed, InvalidArguments, RepairToolError
from pcm5_aa_fix.repairer import DeviceListRepairer, Mode
from pcm5_aa_fix.storage import PersistenceStore


def print_banner():
    """Display tool banner with version info."""
    banner_text = f"""
================================================================
       Android Auto Device State Repair Tool v{__version__}
================================================================
    """
    console.print(banner_text, style="bold cyan")
    console.print("Porsche PCM5 (MH2P) - Partition 1008 Fix", style="dim")
    console.print("NATIVE_SELECTED -> DISCLAIMER_ACCEPTED, CRC32 header repair\n", style="dim")


def print_footer(mode: Mode, exit_code: int):
    """Print the run summary."""
    console.print()
    console.print("[dim]" + "═" * 70 + "[/dim]")
    console.print("[bold]SUMMARY[/bold]")
    console.print("[dim]" + "═" * 70 + "[/dim]")
    if exit_code == 0:
        console.print("Errors encountered: 0")
        if mode is Mode.FIX:
            console.print("Database changes: see above")
        else:
            console.print("Database changes: none")
    else:
        console.print(f"Exit code: {exit_code}")
    console.print("[dim]" + "═" * 70 + "[/dim]")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Android Auto Device State Repair Tool for Porsche PCM5 (MH2P)',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog='''
Examples:
  # Show paired devices and which ones are stuck in NATIVE_SELECTED
  %(prog)s --list

  # Preview the repair without touching the database
  %(prog)s --dry-run --db-path ./persistence.sqlite

  # Repair the device list (a timestamped backup is created first)
  %(prog)s --fix

Exit status: 0 on success (list and dry-run included), 1 on errors.
        '''
    )

    modes = parser.add_mutually_exclusive_group(required=True)
    modes.add_argument('--list', dest='mode', action='store_const', const=Mode.LIST,
                       help='List device states (no changes)')
    modes.add_argument('--dry-run', dest='mode', action='store_const', const=Mode.DRY_RUN,
                       help='Preview what would be changed (no changes)')
    modes.add_argument('--fix', dest='mode', action='store_const', const=Mode.FIX,
                       help='Apply the fix (modifies database)')

    parser.add_argument('--db-path', metavar='PATH', default=DEFAULT_DB_PATH,
                        help=f'Path to persistence database (default: {DEFAULT_DB_PATH})')
    parser.add_argument('--no-backup', action='store_true',
                        help='Skip backup creation in --fix mode')
    return parser


def validate_args(args) -> None:
    """Reject argument combinations argparse cannot express"""
    if not args.db_path:
        raise InvalidArguments("--db-path must not be empty")
    if args.no_backup and args.mode is not Mode.FIX:
        print_warning("--no-backup only applies to --fix, ignoring")


def run(args) -> int:
    """Run the selected mode and map errors to an exit status"""
    try:
        validate_args(args)
        with PersistenceStore.open(args.db_path) as store:
            repairer = DeviceListRepairer(store, args.db_path)
            repairer.run(args.mode, no_backup=args.no_backup)
        return 0

    except BackupFailed as e:
        print_error(escape(str(e)))
        print_error("Aborting for safety, database not modified")
        return 1
    except RepairToolError as e:
        print_error(escape(str(e)))
        return 1
    except Exception as e:
        print_error(f"Unexpected error: {escape(str(e))}")
        traceback.print_exc()
        return 1


def main(argv=None) -> int:
    """Main entry point"""
    # Display banner
    print_banner()

    args = build_parser().parse_args(argv)

    console.print(f"Database: [cyan]{escape(str(args.db_path))}[/cyan]")
    console.print(f"Mode: {args.mode.description}")
    console.print()

    start_time = time.time()
    exit_code = run(args)

    print_footer(args.mode, exit_code)

    # Print elapsed time
    elapsed = time.time() - start_time
    console.print(f"[dim]Completed in {elapsed:.2f}s[/dim]")

    return exit_code


if __name__ == "__main__":
    sys.exit(main())
