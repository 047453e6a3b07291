import logging
import sys
from argparse import ArgumentParser
from pathlib import Path

from wlsave import *


def main(argv=None) -> int:
    parser = ArgumentParser(prog="wlsave")
    parser.add_argument('--savefile', '-s', type=Path, required=True,
                        help='Path to the GVAS save file')
    parser.add_argument('--compression', '-c', default='auto',
                        choices=COMPRESSION_METHODS,
                        help='Compression method of the whole file (default: auto)')
    parser.add_argument('--verbose', '-v', action='store_true',
                        help='Log every header field while decoding')
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING,
                        format="%(levelname)s %(name)s: %(message)s")

    try:
        save_file = read_savefile(args.savefile, compression=args.compression)
    except (NotGVASError, DecompressionError, ShortReadError) as e:
        print(f"{args.savefile}: {e}", file=sys.stderr)
        return 1

    header = save_file.header
    print("Header:")
    print("Magic:", MAGIC.decode('ascii'))
    print("Save Game Version:", header.save_game_version)
    print("Package Version:", header.package_version)
    print("Engine Version:", header.engine_version)
    print("Build ID:", header.build_id)
    print("Custom Format Version:", header.custom_format_version)
    print("Custom Format Data Count:", header.custom_format_count)
    for entry in header.custom_format_data:
        print(f"  {entry}")
    print("Save Game Type:", header.save_game_type)
    print("Payload:", f"{len(save_file.payload)} bytes")
    return 0


if __name__ == '__main__':
    sys.exit(main())
