"""
The ``pak-tool`` command: inspect and extract PAK archives from the command line.
"""

import logging
import sys

from argparse import ArgumentParser, Namespace
from fnmatch import fnmatchcase
from pathlib import Path
from typing import Optional, List, Iterable

import colorama

from termcolor import cprint

from . import PakFile, PakFileEntry, PakError
from .lsf import tally_lsf_versions


LOG = logging.getLogger(__name__)


def main(argv: Optional[List[str]] = None) -> int:
    colorama.just_fix_windows_console()

    args = _build_parser().parse_args(argv)

    _setup_logging(args)

    try:
        return args.handler(args)
    except KeyboardInterrupt:
        _print_message("Stopped by user", 'yellow', args)
        return 1
    except (PakError, OSError) as e:
        _print_message(f"{args.archive}: {e}", 'red', args)
        return 1


def _build_parser() -> ArgumentParser:
    parser = ArgumentParser(prog='pak-tool', description="Inspect and extract PAK archives")

    parser.add_argument('-v', '--verbose', action='store_true', help="Show debug messages")
    parser.add_argument('-q', '--quiet', action='store_true', help="Only show errors")
    parser.add_argument('--no-color', action='store_true', help="Do not use colors in messages")

    subparsers = parser.add_subparsers(dest='command', metavar='COMMAND', required=True)

    info_parser = subparsers.add_parser('info', help="Show the archive header")
    info_parser.add_argument('archive', help="Path to the PAK archive")
    info_parser.set_defaults(handler=_cmd_info)

    list_parser = subparsers.add_parser('list', help="List the entries in the archive")
    list_parser.add_argument('archive', help="Path to the PAK archive")
    list_parser.add_argument('-f', '--filter', help="Only show entries whose name matches this glob pattern")
    list_parser.set_defaults(handler=_cmd_list)

    extract_parser = subparsers.add_parser('extract', help="Extract entries from the archive")
    extract_parser.add_argument('archive', help="Path to the PAK archive")
    extract_parser.add_argument('-o', '--output', required=True, help="Directory to extract the entries to")
    extract_parser.add_argument('-f', '--filter', help="Only extract entries whose name matches this glob pattern")
    extract_parser.set_defaults(handler=_cmd_extract)

    lsf_parser = subparsers.add_parser('lsf-versions', help="Count the LSF documents in the archive by version")
    lsf_parser.add_argument('archive', help="Path to the PAK archive")
    lsf_parser.set_defaults(handler=_cmd_lsf_versions)

    return parser


def _setup_logging(args: Namespace):
    level = logging.DEBUG if args.verbose else logging.ERROR if args.quiet else logging.INFO

    logging.basicConfig(
        level=level,
        style='{',
        format='[{asctime}] {levelname}: {message}',
        datefmt='%Y-%m-%d %H:%M:%S'
    )


def _cmd_info(args: Namespace) -> int:
    with PakFile(args.archive) as pak:
        header = pak.header

        print(f"Version:          {header.version}")
        print(f"File list offset: {header.file_list_offset}")
        print(f"File list size:   {header.file_list_size}")
        print(f"Flags:            0x{header.flags:02x}")
        print(f"Priority:         {header.priority}")
        print(f"Checksum:         {header.checksum.hex()}")
        print(f"Parts:            {header.num_parts}")
        print(f"Entries:          {len(pak)}")

    return 0


def _cmd_list(args: Namespace) -> int:
    with PakFile(args.archive) as pak:
        for entry in _filter_entries(pak.entries, args.filter):
            print(
                f"{entry.archive_part:>3} {entry.offset_in_file:>12} {entry.compression_method.name:<4} "
                f"{entry.size_on_disk:>10} {entry.uncompressed_size:>10}  {entry.name}"
            )

    return 0


def _cmd_extract(args: Namespace) -> int:
    output_dir = Path(args.output).resolve()
    n_extracted = 0
    n_failed = 0

    with PakFile(args.archive) as pak:
        for entry in _filter_entries(pak.entries, args.filter):
            dest_path = (output_dir / entry.name).resolve()

            if output_dir not in dest_path.parents:
                LOG.warning(f"Skipping '{entry.name}': the name points outside the output directory")
                n_failed += 1
                continue

            try:
                data = pak.read(entry)
            except PakError as e:
                LOG.error(f"Could not extract '{entry.name}': {e}")
                n_failed += 1
                continue

            dest_path.parent.mkdir(parents=True, exist_ok=True)
            dest_path.write_bytes(data)

            LOG.debug(f"Extracted '{entry.name}' ({len(data)} bytes)")
            n_extracted += 1

    if n_failed > 0:
        _print_message(f"Extracted {n_extracted} entries, {n_failed} failed", 'yellow', args)
        return 1

    _print_message(f"Extracted {n_extracted} entries", 'green', args)

    return 0


def _cmd_lsf_versions(args: Namespace) -> int:
    failures = []

    with PakFile(args.archive) as pak:
        tally = tally_lsf_versions(pak, mut_failures=failures)

    for version, count in sorted(tally.items()):
        print(f"v{version}: {count}")

    if len(failures) > 0:
        _print_message(f"{len(failures)} LSF entries could not be read", 'yellow', args)
        return 1

    return 0


def _filter_entries(entries: Iterable[PakFileEntry], pattern: Optional[str]) -> Iterable[PakFileEntry]:
    if pattern is None:
        return entries

    return (entry for entry in entries if fnmatchcase(entry.name, pattern))


def _print_message(message: str, color: str, args: Namespace):
    if args.no_color:
        print(message, file=sys.stderr)
    else:
        cprint(message, color, attrs=['bold'], file=sys.stderr)


if __name__ == '__main__':
    sys.exit(main())
