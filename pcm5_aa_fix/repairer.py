"""
List / dry-run / fix driver for the partition 1008 device list.

Ties the storage adapter, codec, repair transform and backup together and prints
the reports. Errors from those layers propagate to the caller, which maps them
to an exit status.
"""

from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional

from rich import box
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .backup import create_backup
from .config import DEVICE_LIST_KEY, DEVICE_LIST_PARTITION, EXPECTED_SCHEMA_VERSION
from .console import console, print_info, print_success, print_warning
from .devicelist import (
    DISCLAIMER_ACCEPTED, NATIVE_SELECTED, Occurrence, Summary,
    locate_native_selected, parse,
)
from .errors import MissingEntry, StructuralError
from .repair import RepairResult, repair_blob


class Mode(Enum):
    LIST = "list"
    DRY_RUN = "dry-run"
    FIX = "fix"

    @property
    def description(self) -> str:
        return {
            Mode.LIST: "LIST (show corrupted devices)",
            Mode.DRY_RUN: "DRY-RUN (preview changes)",
            Mode.FIX: "FIX (will modify database)",
        }[self]


class DeviceListRepairer:
    """Runs one mode against the device list row of a persistence store"""

    def __init__(self, store, db_path, partition_name: str = DEVICE_LIST_PARTITION,
                 key: int = DEVICE_LIST_KEY,
                 backup: Optional[Callable[[Path], Path]] = None):
        """
        Args:
            store: Storage adapter (resolve_partition / load_entry / store_entry)
            db_path: Database file path, handed to the backup function
            partition_name: Logical name of the partition holding the device list
            key: Key of the device list row
            backup: Called with db_path before the database is modified
                (defaults to create_backup)
        """
        self.store = store
        self.db_path = Path(db_path)
        self.partition_name = partition_name
        self.key = key
        self.backup = backup or create_backup

        self.partition_id: Optional[int] = None
        self.blob: Optional[bytes] = None
        self.summary: Optional[Summary] = None
        self.occurrences: List[Occurrence] = []

    def load(self) -> bool:
        """
        Read and parse the device list.

        Returns:
            False if no device list is stored (nothing has been paired yet)
        """
        self.partition_id = self.store.resolve_partition(self.partition_name)
        print_info(f"Found partition {self.partition_name} with ID: {self.partition_id}")

        try:
            self.blob = self.store.load_entry(self.partition_id, self.key)
        except MissingEntry:
            print_info(f"No device list found (Key {self.key} not present)")
            print_info("This is normal if no devices have been paired yet")
            return False

        print_info(f"Found device list (Key {self.key}): {len(self.blob)} bytes")

        self.summary = parse(self.blob)
        self.occurrences = locate_native_selected(self.blob, self.summary)
        self.print_header()
        return True

    def print_header(self) -> None:
        """Print checksum and header state of the loaded blob"""
        summary = self.summary

        print_info(f"Stored CRC32:     0x{summary.stored_checksum & 0xFFFFFFFF:08X}")
        print_info(f"Calculated CRC32: 0x{summary.computed_checksum:08X}")

        if summary.is_valid_checksum:
            print_success("CRC32 valid")
        else:
            print_warning(
                f"CRC32 mismatch detected (stored 0x{summary.stored_checksum:016X})! "
                "This blob may have been corrupted."
            )
            print_warning("System will reject this data on next boot.")

        if summary.version != EXPECTED_SCHEMA_VERSION:
            print_warning(
                f"Unexpected schema version {summary.version} "
                f"(expected {EXPECTED_SCHEMA_VERSION})"
            )

        if not summary.is_complete:
            print_warning(f"Parsing stopped early: {escape(summary.error)}")

    def print_devices(self) -> None:
        """Print a table of every parsed device"""
        summary = self.summary
        console.print()

        table = Table(title=f"Paired Devices ({len(summary.devices)}/{summary.device_count} parsed)",
                      box=box.ROUNDED)
        table.add_column("#", style="dim", width=3)
        table.add_column("Name")
        table.add_column("Unique ID", overflow="fold")
        table.add_column("Type")
        table.add_column("Accept State")
        table.add_column("Connection")

        for device in summary.devices:
            if device.needs_fix:
                state = Text(device.accept_state, style="bold red")
            elif device.accept_state == DISCLAIMER_ACCEPTED:
                state = Text(device.accept_state, style="green")
            else:
                state = Text(device.accept_state)

            table.add_row(
                str(device.index + 1),
                Text(device.name),
                Text(device.device_unique_id),
                Text(device.smartphone_type),
                state,
                Text(device.last_connection_type),
            )

        console.print(table)
        console.print()

    def print_occurrences(self) -> None:
        """Print where the NATIVE_SELECTED states are"""
        if not self.occurrences:
            print_success(f"No {NATIVE_SELECTED} states found - all devices are OK!")
            return

        print_info(f"Found {len(self.occurrences)} device(s) with {NATIVE_SELECTED} state")
        for occurrence in self.occurrences:
            console.print(f"  - Position {occurrence.offset}: {escape(occurrence.device_name)}")

        parsed = set(self.summary.native_selected_offsets)
        unmatched = [o for o in self.occurrences if o.offset not in parsed]
        if unmatched:
            print_warning(
                f"{len(unmatched)} occurrence(s) do not line up with a parsed "
                f"userAcceptState field; the repair will be refused"
            )

    def print_changes(self, occurrences: List[Occurrence]) -> None:
        for occurrence in occurrences:
            console.print(
                f"  - {escape(occurrence.device_name)}: {NATIVE_SELECTED} -> {DISCLAIMER_ACCEPTED}"
            )

    def list_devices(self) -> int:
        """
        List mode: report the header, devices and affected devices without changes.

        Returns:
            Number of NATIVE_SELECTED occurrences
        """
        if not self.load():
            return 0

        self.print_devices()
        self.print_occurrences()

        if not self.summary.is_complete:
            raise StructuralError(f"Device list is malformed: {self.summary.error}")

        if self.occurrences:
            console.print()
            console.print("[bold]Devices that need fixing:[/bold]")
            self.print_changes(self.occurrences)

        return len(self.occurrences)

    def dry_run(self) -> Optional[RepairResult]:
        """Dry-run mode: repair an in-memory copy and report what would change"""
        if not self.load():
            return None

        self.print_occurrences()
        result = repair_blob(self.blob)

        if not result.changed:
            return result

        console.print()
        console.print("[bold yellow]DRY-RUN:[/bold yellow] Would fix the following:")
        self.print_changes(result.occurrences)
        console.print()
        print_info(
            f"Blob size: {result.original_size} -> {result.new_size} bytes "
            f"({result.size_delta:+d} bytes)"
        )
        print_info(f"New CRC32 would be: 0x{result.new_checksum:08X}")
        return result

    def fix(self, no_backup: bool = False) -> Optional[RepairResult]:
        """
        Fix mode: repair the blob, back up the database and write the blob back.

        Backup happens before the write and the write before the success report.
        A failed backup aborts before anything is written.

        Args:
            no_backup: Skip creating the backup copy

        Returns:
            RepairResult, or None if no device list is stored
        """
        if not self.load():
            return None

        self.print_occurrences()
        result = repair_blob(self.blob)

        if not result.changed:
            return result

        if no_backup:
            print_warning("Skipping backup (--no-backup)")
        else:
            backup_path = self.backup(self.db_path)
            console.print()
            print_info(f"Created backup: {escape(str(backup_path))}")

        self.store.store_entry(self.partition_id, self.key, result.blob)

        console.print()
        console.print(Panel(
            f"[green]✓[/green] Fixed {len(result.occurrences)} device(s) in device list\n\n"
            + "\n".join(
                f"  - {escape(o.device_name)}: {NATIVE_SELECTED} -> {DISCLAIMER_ACCEPTED}"
                for o in result.occurrences
            ),
            title="Success",
            border_style="green",
        ))
        print_info(
            f"Blob size: {result.original_size} -> {result.new_size} bytes "
            f"({result.size_delta:+d} bytes)"
        )
        print_info(
            f"Updated CRC32: 0x{result.old_checksum & 0xFFFFFFFF:08X} -> 0x{result.new_checksum:08X}"
        )
        print_info("Database changes committed")
        print_info("Android Auto should now work after reconnecting affected phones")

        return result

    def run(self, mode: Mode, no_backup: bool = False):
        """Dispatch to the selected mode"""
        if mode is Mode.LIST:
            return self.list_devices()
        if mode is Mode.DRY_RUN:
            return self.dry_run()
        return self.fix(no_backup=no_backup)
