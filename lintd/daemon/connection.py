"""One request/response exchange over one TCP socket.

The exchange is half-duplex: the client writes its request and ends its
write-half, then the daemon writes its response on the same socket and ends
its own write-half, which completes the close. A Connection is created per
opened or accepted socket and is never reused.

Usage:
    conn = await Connection.open("127.0.0.1", 48126)
    await conn.send(request)
    response = await conn.receive()
"""

import asyncio
import contextlib
from enum import Enum
from typing import Any, List, Optional

from lintd.daemon.errors import DaemonConnectionError, DecodeError
from lintd.daemon.protocol import DEFAULT_CHUNK_SIZE, decode, encode, split_into_chunks

READ_SIZE = 65536


class Role(str, Enum):
    CLIENT = "client"
    DAEMON = "daemon"


class Connection:
    """
    Role-aware wrapper over an asyncio stream pair.

    A daemon-side connection resolves `receive()` when the client ends its
    write-half; a client-side connection resolves it when the socket is fully
    closed after the daemon's response.
    """

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        role: Role,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ):
        self._reader = reader
        self._writer = writer
        self.role = Role(role)
        self.chunk_size = chunk_size

        # Remote finished writing
        self.ended = False
        # Socket fully closed
        self.closed = False

        self._write_ended = False
        self._buffers: List[bytes] = []

    @classmethod
    async def open(
        cls,
        host: str,
        port: int,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> "Connection":
        """
        Connect to the daemon.

        Raises:
            DaemonConnectionError: If nothing accepts connections at host:port
        """
        try:
            reader, writer = await asyncio.open_connection(host, port)
        except OSError as e:
            raise DaemonConnectionError(f"Could not connect to daemon at {host}:{port}: {e}") from e
        return cls(reader, writer, Role.CLIENT, chunk_size=chunk_size)

    @classmethod
    def accept(
        cls,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> "Connection":
        """Wrap a socket accepted by the daemon's listener."""
        return cls(reader, writer, Role.DAEMON, chunk_size=chunk_size)

    @property
    def writable(self) -> bool:
        if self.role is Role.DAEMON:
            # The daemon may only answer once the client ended its request,
            # and only until the socket is gone
            return self.ended and not self.closed
        return not self._write_ended

    async def send(self, message: Any) -> None:
        """
        Write an encoded message in chunks, then end this side's write-half.

        For the daemon this is the second and last write on the connection,
        so the socket is fully closed afterwards.

        Raises:
            DaemonConnectionError: If the socket fails while writing
        """
        encoded = encode(message)

        try:
            for chunk in split_into_chunks(encoded, self.chunk_size):
                self._writer.write(chunk.encode("ascii"))
            await self._writer.drain()
            if self._writer.can_write_eof():
                self._writer.write_eof()
        except OSError as e:
            raise DaemonConnectionError(f"Could not write to socket: {e}") from e
        finally:
            self._write_ended = True

        if self.role is Role.DAEMON:
            await self.close()

    async def receive(self) -> Optional[Any]:
        """
        Wait for the peer's turn to finish and decode what it wrote.

        Returns:
            The decoded message, or None if the peer sent nothing

        Raises:
            DecodeError: If the received bytes are not a valid message
            DaemonConnectionError: If the socket fails while reading
        """
        try:
            while True:
                chunk = await self._reader.read(READ_SIZE)
                if not chunk:
                    break
                self._buffers.append(chunk)
        except OSError as e:
            await self.close()
            raise DaemonConnectionError(f"Could not read from socket: {e}") from e

        self.ended = True

        if self.role is Role.CLIENT:
            # The daemon has ended its write-half and ours ended with the
            # request, so nothing remains open
            await self.close()

        if not self._buffers:
            await self.close()
            return None

        try:
            return decode(b"".join(self._buffers))
        except DecodeError as e:
            raise DecodeError("Could not parse socket data") from e

    async def close(self) -> None:
        """Fully close the socket. Safe to call more than once."""
        if self.closed:
            return
        self.closed = True
        self._writer.close()
        with contextlib.suppress(OSError):
            await self._writer.wait_closed()
