#!/usr/bin/env python3
"""
STChat Relay Server

Accepts TCP connections carrying newline-delimited JSON frames and feeds
every frame to the room relay.
"""

import asyncio
from typing import Optional

from common.protocol_definitions import ProtocolError, decode_frame
from server.chat.room_relay import RoomRelay
from server.chat.session_registry import Connection
from server.utils.config import ServerConfig
from server.utils.logger import logger


class RelayServer:
    """Main server class that owns the listener and the room relay."""

    def __init__(self, config: Optional[ServerConfig] = None, relay: Optional[RoomRelay] = None):
        self.config = config or ServerConfig()
        self.relay = relay or RoomRelay(max_write_buffer=self.config.max_write_buffer)
        self.server: Optional[asyncio.AbstractServer] = None

    async def handle_client(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
        """Handle individual client connection."""
        addr = writer.get_extra_info('peername')
        conn = self.relay.open_connection(writer, addr)

        try:
            while True:
                try:
                    data = await reader.readline()
                except ValueError as e:
                    # Line longer than the stream limit; the reader has already discarded it
                    logger.warning(f"Frame too large from {addr}: {e}")
                    continue

                if not data:
                    break

                line = data.strip()
                if not line:
                    continue

                self.process_line(conn, line)
                await self.flush(conn)

        except asyncio.CancelledError:
            logger.info(f"Connection cancelled for {addr}")
            raise
        except (ConnectionError, OSError) as e:
            logger.error(f"Socket error for {addr}: {e}")
        finally:
            self.relay.close_connection(conn)
            try:
                writer.close()
                await writer.wait_closed()
            except (ConnectionError, OSError):
                pass

    def process_line(self, conn: Connection, line: bytes):
        """Decode one frame and hand it to the relay. Malformed frames are logged and dropped."""
        if len(line) > self.config.max_frame_size:
            logger.warning(f"Message too large from {conn.addr}: {len(line)} bytes")
            return

        try:
            message = decode_frame(line)
            self.relay.handle_frame(conn, message)
        except ProtocolError as e:
            logger.log_protocol_error(conn.addr, e)
        except Exception as e:
            logger.log_error(f"processing frame from {conn.addr}", e)

    async def flush(self, conn: Connection):
        """Apply backpressure from the sender's own socket once the event has been handled."""
        if not conn.is_open:
            return
        try:
            await conn.writer.drain()
        except (ConnectionError, OSError) as e:
            logger.debug(f"Drain failed for {conn.addr}: {e}")

    async def start(self):
        """Bind the listener."""
        self.server = await asyncio.start_server(
            self.handle_client,
            self.config.host,
            self.config.port,
            limit=self.config.max_frame_size
        )

        addr = ', '.join(str(sock.getsockname()) for sock in self.server.sockets)
        logger.info(f"Server listening on {addr}")
        return self.server

    async def serve_forever(self):
        """Start the server and run until cancelled."""
        server = await self.start()
        async with server:
            await server.serve_forever()

    async def stop(self):
        """Stop accepting connections and close the listener."""
        if self.server is not None:
            self.server.close()
            await self.server.wait_closed()
            logger.info(f"Server stopped ({self.relay.get_status()})")
            self.server = None
