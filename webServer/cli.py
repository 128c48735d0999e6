from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path
from typing import Optional

from .config import ServerConfig, parse_address
from .server import webServer

LOG = logging.getLogger("webServer.cli")

LOG_FORMAT = "%(asctime)s %(levelname)s [%(filename)s:%(lineno)d] %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


class _Formatter(logging.Formatter):
    """Timestamps as ``2006-01-02 15:04:05.000-0700``: milliseconds before the zone offset."""

    def formatTime(self, record: logging.LogRecord, datefmt: Optional[str] = None) -> str:
        ct = self.converter(record.created)
        return "%s.%03d%s" % (time.strftime(datefmt or LOG_DATEFMT, ct), record.msecs, time.strftime("%z", ct))


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="webserver", description="Serve a document root over HTTP and HTTPS", add_help=False)
    p.add_argument("-h", dest="help", action="store_true", help="Print help")
    p.add_argument("-l", dest="listen", default="0.0.0.0:80", help="Listen address for http (blank for none)")
    p.add_argument("-t", dest="listen_tls", default="0.0.0.0:443", help="Listen address for https (blank for none)")
    p.add_argument("-c", dest="certfile", default="cert.pem", help="Path to cert.pem file")
    p.add_argument("-k", dest="keyfile", default="key.pem", help="Path to key.pem file")
    p.add_argument("-r", dest="document_root", default="/var/www/html", help="Document root to serve from")
    p.add_argument("-H", dest="hold_time", type=int, default=0, help="Hold time on requests - ie. wait before responding")
    p.add_argument("-d", dest="debug", action="store_true", help="Enable debug logging")
    p.add_argument("--log-level", default="INFO", help="Logging level")
    return p


def main(argv: Optional[list[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.help:
        parser.print_help(sys.stderr)
        return 1

    level = logging.DEBUG if args.debug else getattr(logging, args.log_level.upper(), logging.INFO)
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(_Formatter(LOG_FORMAT, LOG_DATEFMT))
    logging.basicConfig(level=level, handlers=[handler])

    root = Path(args.document_root).resolve()
    if not root.is_dir():
        LOG.error("document root does not exist: %s", root)
        return 2

    try:
        config = ServerConfig(
            listen=parse_address(args.listen),
            listen_tls=parse_address(args.listen_tls),
            certfile=args.certfile,
            keyfile=args.keyfile,
            document_root=str(root),
            hold_time=args.hold_time,
        )
    except ValueError as exc:
        LOG.error("invalid configuration: %s", exc)
        parser.print_usage(sys.stderr)
        return 2

    server = webServer(config, logger=LOG)
    LOG.info("Serving %s on %s", root, server.describe())
    try:
        server.run()
    except KeyboardInterrupt:
        LOG.info("Keyboard interrupt received, stopping servers")
        return 0
    except Exception:
        LOG.exception("Server failed")
        return 1
    finally:
        server.stop()
        LOG.info("Servers stopped")

    return 1 if server.failed else 0


if __name__ == "__main__":
    sys.exit(main())
