import socket
import socketserver
import threading

import pytest

from trojanfork.redirector import Redirection, Redirector

_RESPONSE = b"HTTP/1.1 200 OK\r\nContent-Length: 2\r\nConnection: close\r\n\r\nok"


class _HTTPHandler(socketserver.BaseRequestHandler):
    def handle(self):
        self.request.recv(4096)
        self.request.sendall(_RESPONSE)


@pytest.fixture
def http_server():
    server = socketserver.ThreadingTCPServer(("127.0.0.1", 0), _HTTPHandler)
    server.daemon_threads = True
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield server.server_address
    server.shutdown()
    server.server_close()


@pytest.fixture
def conn_pair():
    listener = socket.create_server(("127.0.0.1", 0))
    client = socket.create_connection(listener.getsockname())
    inbound, _ = listener.accept()
    client.settimeout(5)
    yield client, inbound
    client.close()
    inbound.close()
    listener.close()


def _read_all(sock):
    chunks = []
    while True:
        chunk = sock.recv(4096)
        if not chunk:
            return b"".join(chunks)
        chunks.append(chunk)


def test_redirects_to_http_server(http_server, conn_pair):
    client, inbound = conn_pair
    with Redirector() as redir:
        results = [
            redir.redirect(Redirection()),
            redir.redirect(Redirection(redirect_to=None, inbound_conn=None)),
            redir.redirect(Redirection(redirect_to=http_server, inbound_conn=None)),
            redir.redirect(Redirection(redirect_to=http_server, inbound_conn=inbound)),
        ]
        client.sendall(b"GET / HTTP/1.1\r\nHost: localhost\r\n\r\n")
        data = _read_all(client)
    assert results == [None, None, None, None]
    assert data.startswith(b"HTTP/1.1 200 OK")


def test_string_address_is_accepted(http_server, conn_pair):
    client, inbound = conn_pair
    host, port = http_server
    with Redirector() as redir:
        result = redir.redirect(Redirection(redirect_to=f"{host}:{port}", inbound_conn=inbound))
        client.sendall(b"GET / HTTP/1.1\r\n\r\n")
        data = _read_all(client)
    assert result is None
    assert data == _RESPONSE


def test_custom_dial_is_used(http_server, conn_pair):
    client, inbound = conn_pair
    seen = []

    def dial(addr):
        seen.append(addr)
        return socket.create_connection(addr)

    with Redirector() as redir:
        redir.redirect(Redirection(dial=dial, redirect_to=http_server, inbound_conn=inbound))
        client.sendall(b"GET / HTTP/1.1\r\n\r\n")
        data = _read_all(client)
    assert seen == [http_server]
    assert data.startswith(b"HTTP/1.1 200 OK")


def test_missing_target_closes_inbound(conn_pair):
    client, inbound = conn_pair
    with Redirector() as redir:
        result = redir.redirect(Redirection(redirect_to=None, inbound_conn=inbound))
        data = client.recv(10)
    assert result is None
    assert data == b""


def test_failed_dial_closes_inbound(conn_pair):
    client, inbound = conn_pair

    def dial(addr):
        raise OSError("refused")

    with Redirector() as redir:
        result = redir.redirect(
            Redirection(dial=dial, redirect_to=("127.0.0.1", 9), inbound_conn=inbound)
        )
        data = client.recv(10)
    assert result is None
    assert data == b""


def test_redirect_after_close_is_ignored(http_server, conn_pair):
    client, inbound = conn_pair
    redir = Redirector()
    redir.close()
    result = redir.redirect(Redirection(redirect_to=http_server, inbound_conn=inbound))
    assert result is None
    client.settimeout(0.5)
    with pytest.raises(TimeoutError):
        client.recv(10)