#!/usr/bin/env python3
import argparse
import sys
import webbrowser
from pathlib import Path

from .config.routing_table import RoutingTable
from .config.settings import Settings, load_settings
from .core.errors import RoutingStoreCorrupt
from .ctl import controller
from .utils.logging_helper import setup_logging


def print_status(settings: Settings):
    """Display the runtime status of the proxy."""
    print("=== portproxy status ===\n")

    running = controller.is_running()
    pid = controller.get_pid() if running else None
    status_text = "Running" if running else "Stopped"
    pid_text = f" (PID: {pid})" if pid else ""

    print(f"  Status: {status_text}{pid_text}")
    print(f"  Proxy port: {settings.proxy_port}")
    print(f"  GUI port: {settings.gui_port}")
    print(f"  Mappings: {settings.mappings_file}")

    try:
        routes = RoutingTable(settings.mappings_file).load()
        print(f"  Routes: {len(routes)}")
    except RoutingStoreCorrupt as e:
        print(f"  Routes: unreadable ({e})")


def list_routes(settings: Settings) -> int:
    """Print every stored route."""
    try:
        routes = RoutingTable(settings.mappings_file).load()
    except RoutingStoreCorrupt as e:
        print(f"Error: {e}")
        return 1

    if not routes:
        print("No routes configured")
        return 0

    print("Routes:")
    width = max(len(endpoint) for endpoint in routes)
    for endpoint, port in sorted(routes.items()):
        print(f"  {endpoint.ljust(width)}  -> :{port}")
    return 0


def run_foreground(settings: Settings) -> int:
    from .server import serve

    setup_logging(settings.verbose)
    try:
        serve(settings)
    except RoutingStoreCorrupt as e:
        print(f"Refusing to start: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        pass
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='portproxy - path-prefix reverse proxy for local services',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""Examples:
  pxp run                       Serve in the foreground
  pxp start                     Start in the background
  pxp stop                      Stop the background process
  pxp status                    Show status
  pxp list                      List configured routes""",
        prog='pxp'
    )

    # Options shared by every command that needs settings
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument('--port', type=int, help='Proxy port (env PORT, default 3003)')
    common.add_argument('--gui-port', type=int, help='Admin port (env GUI_PORT, default 3004)')
    common.add_argument('--mappings-file', help='Routing store (env MAPPINGS_FILE)')
    common.add_argument('-v', '--verbose', action='store_true', default=None,
                        help='Log every request (env VERBOSE=1)')

    subparsers = parser.add_subparsers(
        dest='command',
        title='Commands',
        description='Use pxp <command> --help for detailed help',
        help='Command description'
    )
    subparsers.add_parser('run', parents=[common], help='Serve both ports in the foreground')
    subparsers.add_parser('start', parents=[common], help='Start portproxy in the background')
    subparsers.add_parser('stop', help='Stop the background process')
    subparsers.add_parser('restart', parents=[common], help='Restart the background process')
    subparsers.add_parser('status', parents=[common], help='Show runtime status')
    subparsers.add_parser('list', parents=[common], help='List configured routes')
    subparsers.add_parser('ui', parents=[common], help='Open the admin page in a browser')
    return parser


def resolve_settings(args: argparse.Namespace) -> Settings:
    """Environment settings with any command-line flags applied on top."""
    mappings_file = getattr(args, 'mappings_file', None)
    return load_settings().override(
        proxy_port=getattr(args, 'port', None),
        gui_port=getattr(args, 'gui_port', None),
        mappings_file=None if mappings_file is None else Path(mappings_file).expanduser(),
        verbose=getattr(args, 'verbose', None),
    )


def main(argv=None) -> int:
    """Main entry point that processes CLI arguments."""
    parser = build_parser()
    args = parser.parse_args(argv)
    settings = resolve_settings(args)

    if args.command == 'run':
        return run_foreground(settings)
    elif args.command == 'start':
        return 0 if controller.start(settings) else 1
    elif args.command == 'stop':
        controller.stop()
    elif args.command == 'restart':
        return 0 if controller.restart(settings) else 1
    elif args.command == 'status':
        print_status(settings)
    elif args.command == 'list':
        return list_routes(settings)
    elif args.command == 'ui':
        webbrowser.open(f"http://localhost:{settings.gui_port}/gui")
    else:
        parser.print_help()
    return 0


if __name__ == '__main__':
    sys.exit(main())
