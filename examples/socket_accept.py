#!/usr/bin/env python3
import argparse
import logging
import socket
import sys
import os

# Add project root directory to Python path
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from src.socket_accept.accept_config import AcceptConfig, TimeoutSpec, parse_port
from src.socket_accept.acceptor import accept, exit_status, EXECUTION_FAILURE
from src.socket_accept.bindings import OutputBindings

logger = logging.getLogger('src.socket_accept')


def configure_logging(verbose: bool):
    formatter = logging.Formatter('%(asctime)s [%(levelname)s] %(message)s', datefmt='%Y-%m-%d %H:%M:%S')
    handler = logging.StreamHandler()
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)


def listen(config: AcceptConfig, port: int) -> socket.socket:
    server_socket = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    server_socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    try:
        server_socket.bind((config.bind_address, port))
        server_socket.listen(config.backlog)
    except OSError:
        server_socket.close()
        raise
    print(f"Listening on {config.bind_address}:{server_socket.getsockname()[1]}...")
    return server_socket


def main():
    parser = argparse.ArgumentParser(prog='socket_accept', description='Accept one network connection on a port')
    parser.add_argument('-b', dest='address', default=None, help='IP address to listen on (default: INADDR_ANY)')
    parser.add_argument('-t', dest='timeout', default=None, help='Seconds to wait for a connection, may be fractional')
    parser.add_argument('-v', dest='varname', default=None, help='Variable receiving the connected fd (default: ACCEPT_FD)')
    parser.add_argument('-r', dest='rhost', default=None, help='Variable receiving the remote IPv4 address')
    parser.add_argument('--verbose', action='store_true', help='Log the wait and the accept')
    parser.add_argument('port', help='Port number to listen on')

    args = parser.parse_args()
    configure_logging(args.verbose)

    config = AcceptConfig(peer_name=args.rhost)
    if args.varname:
        config.fd_name = args.varname
    if args.address:
        config.bind_address = args.address

    try:
        if args.timeout is not None:
            config.timeout = TimeoutSpec.parse(args.timeout)
        port = parse_port(args.port)
        server_socket = listen(config, port)
    except (ValueError, OSError) as e:
        print(f"socket_accept: {e}", file=sys.stderr)
        sys.exit(EXECUTION_FAILURE)

    variables = {}
    bindings = OutputBindings(variables, fd_name=config.fd_name, peer_name=config.peer_name)
    result = accept(server_socket, config.timeout)
    bindings.apply(result)

    if result.ok:
        for name, value in variables.items():
            print(f"{name}={value}")
        result.sock.close()
    else:
        print(f"socket_accept: {result.message}", file=sys.stderr)

    sys.exit(exit_status(result))


if __name__ == "__main__":
    main()
