"""In-process transport: hands client strings straight to a ServerSession."""

from collections import deque


class LoopbackTransport:
    """
    send() delivers to server.respond(); receive() pops the reply.
    A server-side failure is raised from send().
    """

    def __init__(self, server):
        self.server = server
        self._replies = deque()
        self.sent = []

    def send(self, message: str) -> None:
        self.sent.append(message)
        self._replies.append(self.server.respond(message))

    def receive(self) -> str:
        if not self._replies:
            raise ConnectionError("no message waiting from server")
        return self._replies.popleft()
