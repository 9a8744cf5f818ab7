"""
PatchSync Client - Main Entry Point

This is the main entry point for the patchsync command.
Handles host (server) mode, rebuild mode and the default patch-up mode
depending on command-line arguments.

Author: PatchSync Project
"""

import sys
import argparse


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='patchsync',
        description='PatchSync - Incremental text file synchronization via patches',
        epilog='Without --host or --rebuild, uploads the changes of the file given with -f'
    )

    parser.add_argument('--port', type=int, default=8002, help='port to run server (default 8002)')
    parser.add_argument('-f', dest='file', help='path to the file to patch')
    parser.add_argument('-u', dest='username', help='username on the server')
    parser.add_argument('-p', dest='passphrase', help='passphrase to use')
    parser.add_argument('-s', dest='server', help='server address (default from config)')
    parser.add_argument('--data', help='data folder (default ~/.patchsync/client or ~/.patchsync/server)')
    parser.add_argument('--debug', action='store_true', help='enable debugging')

    mode = parser.add_mutually_exclusive_group()
    mode.add_argument('--host', action='store_true', help='enable hosting')
    mode.add_argument('--rebuild', action='store_true', help='rebuild file')

    return parser


def main(argv=None):
    """
    Main entry point for PatchSync.

    Parses command-line arguments and launches either:
    - Server mode (--host)
    - Rebuild mode (--rebuild): pull patches and print the rebuilt file
    - Patch-up mode (default): register and upload local changes
    """
    args = build_parser().parse_args(argv)

    if args.host:
        from patchsync.server.server import RunServer
        RunServer(port=args.port, data_folder=args.data, debug=args.debug)
        return 0

    from patchsync.client.cli import run_cli_operation
    return run_cli_operation(
        "rebuild" if args.rebuild else "patch-up",
        args.file,
        username=args.username,
        passphrase=args.passphrase,
        server=args.server,
        data_folder=args.data,
        debug=args.debug
    )


if __name__ == '__main__':
    sys.exit(main())
