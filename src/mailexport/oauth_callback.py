from __future__ import annotations

import errno
import http.server
import logging
from dataclasses import dataclass
from typing import Optional
from urllib.parse import parse_qs, urlparse

logger = logging.getLogger(__name__)

CALLBACK_PATH = "/oauth2callback"

SUCCESS_HTML = "<h1>Authorization successful!</h1><p>You can close this window.</p>"
FAILURE_HTML = "<h1>Authorization failed</h1><p>No authorization code was received.</p>"


class AuthError(RuntimeError):
    pass


class AuthorizationDenied(AuthError):
    pass


class CallbackPortInUse(AuthError):
    pass


@dataclass(frozen=True)
class CallbackResult:
    code: Optional[str] = None
    error: Optional[str] = None


class _CallbackHTTPServer(http.server.HTTPServer):
    result: Optional[CallbackResult] = None


class _CallbackHandler(http.server.BaseHTTPRequestHandler):
    server: _CallbackHTTPServer

    def do_GET(self):
        url = urlparse(self.path)
        if url.path != CALLBACK_PATH:
            self.send_error(404)
            return

        params = parse_qs(url.query)
        code = (params.get("code") or [""])[0]
        if code:
            self.server.result = CallbackResult(code=code)
            self._send_html(200, SUCCESS_HTML)
        else:
            error = (params.get("error") or ["no authorization code received"])[0]
            self.server.result = CallbackResult(error=error)
            self._send_html(400, FAILURE_HTML)

    def _send_html(self, status: int, body: str) -> None:
        data = body.encode("utf-8")
        self.send_response(status)
        self.send_header("Content-type", "text/html; charset=utf-8")
        self.send_header("Content-Length", str(len(data)))
        self.end_headers()
        self.wfile.write(data)

    def log_message(self, format, *args):
        logger.debug(f"callback {self.address_string()} {format % args}")


class OAuthCallbackServer:
    """
    Short-lived local listener for a single OAuth2 redirect.

    Use as a context manager: the port is bound on enter and always released
    on exit, whether the callback succeeded, was denied, or never arrived.

        with OAuthCallbackServer(8849) as server:
            open_browser(url_with(server.redirect_uri))
            code = server.wait_for_code()
    """

    def __init__(self, port: int, host: str = "localhost") -> None:
        self._host = host
        self._port = port
        self._httpd: Optional[_CallbackHTTPServer] = None

    def __enter__(self) -> "OAuthCallbackServer":
        try:
            self._httpd = _CallbackHTTPServer((self._host, self._port), _CallbackHandler)
        except OSError as e:
            if e.errno == errno.EADDRINUSE:
                raise CallbackPortInUse(
                    f"Port {self._port} is already in use. Stop the process holding it "
                    "or set MAILEXPORT_OAUTH_PORT to a port registered for this OAuth client."
                ) from e
            raise CallbackPortInUse(f"Could not listen on {self._host}:{self._port}: {e}") from e
        logger.info(f"Listening on {self.redirect_uri}")
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if self._httpd is not None:
            self._httpd.server_close()
            self._httpd = None

    @property
    def port(self) -> int:
        if self._httpd is not None:
            return self._httpd.server_address[1]
        return self._port

    @property
    def redirect_uri(self) -> str:
        return f"http://localhost:{self.port}{CALLBACK_PATH}"

    def wait_for_code(self) -> str:
        """
        Block until the provider redirects back to the callback path.
        Requests to any other path (favicon, health checks) are answered with 404 and ignored.
        """
        if self._httpd is None:
            raise RuntimeError("OAuthCallbackServer must be entered before waiting for a code.")

        while self._httpd.result is None:
            self._httpd.handle_request()

        result = self._httpd.result
        if result.code:
            return result.code
        raise AuthorizationDenied(f"Authorization denied: {result.error}")
