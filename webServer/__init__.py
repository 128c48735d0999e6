from .config import ServerConfig, parse_address
from .http_server import HttpFileServer, HttpsFileServer, serve_file
from .middleware import StatusResponseWriter, log_requests
from .server import build_app, webServer

__all__ = [
    "webServer",
    "ServerConfig",
    "parse_address",
    "HttpFileServer",
    "HttpsFileServer",
    "StatusResponseWriter",
    "build_app",
    "log_requests",
    "serve_file",
]
