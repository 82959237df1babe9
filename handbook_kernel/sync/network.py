"""Network probes — answer "should the client try the server right now?"."""

import socket
from urllib.parse import urlparse


class HostReachability:
    """
    Online when a TCP connection to the API host can be opened.
    Cheap stand-in for a platform "online" flag; it does not issue a request.
    """

    def __init__(self, api_url: str, timeout_seconds: float = 2.0):
        parsed = urlparse(api_url)
        self.host = parsed.hostname or "localhost"
        self.port = parsed.port or (443 if parsed.scheme == "https" else 80)
        self.timeout_seconds = timeout_seconds

    def __call__(self) -> bool:
        try:
            with socket.create_connection((self.host, self.port), timeout=self.timeout_seconds):
                return True
        except OSError:
            return False


class StaticNetwork:
    """Fixed answer. For tests and for hosts that know their own connectivity."""

    def __init__(self, online: bool = True):
        self.online = online

    def __call__(self) -> bool:
        return self.online
