# python
"""
doorway.__main__
Entry point for python -m doorway
"""
import argparse
import sys

from .server import add_serve_arguments, serve


def main(argv=None):
    argv = list(sys.argv[1:] if argv is None else argv)
    # serve is the only subcommand and the default one
    if not argv or (argv[0].startswith("-") and argv[0] not in ("-h", "--help")):
        argv.insert(0, "serve")

    parser = argparse.ArgumentParser(prog="doorway", description="Telnet gateway menu")
    commands = parser.add_subparsers(dest="command", required=True)
    serve_parser = commands.add_parser("serve", help="run the telnet gateway")
    add_serve_arguments(serve_parser)
    serve_parser.set_defaults(func=serve)

    args = parser.parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
