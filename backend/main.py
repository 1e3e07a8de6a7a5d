import json
import os
import sys
import signal
import logging
import asyncio
from typing import Dict, Any, Optional
import websockets
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

from canvas import Canvas
from config import EngineConfig
from node_repository import NodeRepository
import use_cases

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format='[%(asctime)s] [translator] [%(levelname)s] %(message)s',
    datefmt='%Y-%m-%dT%H:%M:%S'
)
logger = logging.getLogger(__name__)

# Message type constants to avoid stringly-typed conditionals
MESSAGE_TYPE_JOIN = "join"
MESSAGE_TYPE_PING = "ping"
MESSAGE_TYPE_PONG = "pong"
MESSAGE_TYPE_SYSTEM = "system"
MESSAGE_TYPE_ERROR = "error"
MESSAGE_TYPE_IMPORT_DESIGN = "import_design"
MESSAGE_TYPE_IMPORT_RESULT = "import_result"
MESSAGE_TYPE_EXPORT_SELECTION = "export_selection"
MESSAGE_TYPE_EXPORT_ALL = "export_all"
MESSAGE_TYPE_EXPORT_NODE = "export_node"
MESSAGE_TYPE_EXPORT_RESULT = "export_result"
MESSAGE_TYPE_CLEAR_IMAGE_CACHE = "clear_image_cache"
MESSAGE_TYPE_IMAGE_CACHE_CLEARED = "image_cache_cleared"


class DesignTranslator:
    """Bridge client that serves import/export requests against one canvas."""

    def __init__(self, bridge_url: str, channel: str, repository: Optional[NodeRepository] = None):
        self.bridge_url = bridge_url
        self.channel = channel
        self.websocket = None
        self.running = True
        self.reconnect_delay = 1  # Start with 1 second
        self.max_reconnect_delay = 30  # Max 30 seconds
        self._keep_alive_task = None
        self.repository = repository or NodeRepository(Canvas(), EngineConfig.from_env())

    async def _send_json(self, payload: Dict[str, Any]) -> None:
        """Safely send a JSON-serializable payload over the websocket if connected."""
        if not self.websocket:
            raise RuntimeError("WebSocket not connected")
        await self.websocket.send(json.dumps(payload))

    async def connect(self) -> bool:
        """Connect to the bridge and join as translator"""
        try:
            logger.info(f"Connecting to bridge at {self.bridge_url}")
            # Design payloads with embedded images can be large
            self.websocket = await websockets.connect(self.bridge_url, max_size=None)

            await self._send_json({
                "type": MESSAGE_TYPE_JOIN,
                "role": "translator",
                "channel": self.channel
            })
            logger.info(f"Sent join message for channel: {self.channel}")

            await self._send_json({"type": MESSAGE_TYPE_PING})
            logger.info("🏓 Sent ping message")

            self._keep_alive_task = asyncio.create_task(self._websocket_keep_alive())
            logger.info("💓 Started WebSocket keep-alive mechanism")

            # Reset reconnect delay on successful connection
            self.reconnect_delay = 1
            return True

        except Exception as e:
            logger.error(f"Failed to connect: {e}")
            return False

    async def handle_message(self, message: Dict[str, Any]) -> None:
        """Dispatch an incoming bridge message to its handler."""
        msg_type = message.get("type")
        logger.debug(f"🔍 Message received - Type: '{msg_type}', Keys: {list(message.keys())}")

        handlers = {
            MESSAGE_TYPE_SYSTEM: self._handle_system,
            MESSAGE_TYPE_PING: self._handle_ping,
            MESSAGE_TYPE_PONG: self._handle_pong,
            MESSAGE_TYPE_ERROR: self._handle_bridge_error,
            MESSAGE_TYPE_IMPORT_DESIGN: self._handle_import_design,
            MESSAGE_TYPE_EXPORT_SELECTION: self._handle_export_selection,
            MESSAGE_TYPE_EXPORT_ALL: self._handle_export_all,
            MESSAGE_TYPE_EXPORT_NODE: self._handle_export_node,
            MESSAGE_TYPE_CLEAR_IMAGE_CACHE: self._handle_clear_image_cache,
        }

        handler = handlers.get(msg_type, self._handle_unknown)
        await handler(message)

    async def _handle_system(self, message: Dict[str, Any]) -> None:
        logger.info(f"🔧 System message: {message.get('message')}")

    async def _handle_ping(self, _: Dict[str, Any]) -> None:
        await self._send_json({"type": MESSAGE_TYPE_PONG})

    async def _handle_pong(self, _: Dict[str, Any]) -> None:
        logger.info("🏓 Received pong response")

    async def _handle_bridge_error(self, message: Dict[str, Any]) -> None:
        error_msg = message.get("message", "Unknown error")
        logger.error(f"Bridge error: {error_msg}")

    async def _handle_unknown(self, message: Dict[str, Any]) -> None:
        logger.debug(f"Ignoring unknown message type: {message.get('type')}")

    async def _handle_import_design(self, message: Dict[str, Any]) -> None:
        result = await use_cases.import_design(self.repository, message.get("payload"))
        logger.info(f"Import {message.get('id', 'no-id')}: {result.nodes_created} node(s) created")
        await self._send_json({
            "type": MESSAGE_TYPE_IMPORT_RESULT,
            "id": message.get("id"),
            "result": result.to_message(),
        })

    async def _send_export(self, message: Dict[str, Any], result: use_cases.ExportResult) -> None:
        logger.info(f"Export {message.get('id', 'no-id')}: {result.node_count} node(s)")
        await self._send_json({
            "type": MESSAGE_TYPE_EXPORT_RESULT,
            "id": message.get("id"),
            "result": result.to_message(),
        })

    async def _handle_export_selection(self, message: Dict[str, Any]) -> None:
        await self._send_export(message, await use_cases.export_selection(self.repository))

    async def _handle_export_all(self, message: Dict[str, Any]) -> None:
        await self._send_export(message, await use_cases.export_all(self.repository))

    async def _handle_export_node(self, message: Dict[str, Any]) -> None:
        result = await use_cases.export_node(self.repository, message.get("nodeId"))
        await self._send_export(message, result)

    async def _handle_clear_image_cache(self, message: Dict[str, Any]) -> None:
        cleared = self.repository.image_cache.clear_urls()
        logger.info(f"Cleared {cleared} cached image URL(s)")
        await self._send_json({
            "type": MESSAGE_TYPE_IMAGE_CACHE_CLEARED,
            "id": message.get("id"),
            "cleared": cleared,
        })

    async def listen(self) -> None:
        """Listen for messages from the bridge"""
        try:
            logger.info("🎧 Starting to listen for messages from bridge")
            while self.running and self.websocket:
                try:
                    raw_message = await self.websocket.recv()
                except asyncio.CancelledError:
                    logger.info("🛑 Listen loop cancelled")
                    break
                except Exception as e:
                    logger.error(f"❌ Error receiving message: {e}")
                    break

                if not raw_message:
                    logger.warning("📡 Received empty WebSocket message")
                    continue

                try:
                    message = json.loads(raw_message)
                    await self.handle_message(message)
                except json.JSONDecodeError as e:
                    logger.error(f"❌ Failed to decode message: {e}")
                except Exception as e:
                    logger.error(f"❌ Error handling message: {e}")
        except Exception as e:
            logger.error(f"❌ Error in listen loop: {e}")

    async def _websocket_keep_alive(self, interval: int = 30) -> None:
        """Keep WebSocket connection alive with periodic pings"""
        try:
            while self.running and self.websocket:
                await asyncio.sleep(interval)
                if not self.websocket:
                    break
                try:
                    pong_waiter = await self.websocket.ping()
                    await asyncio.wait_for(pong_waiter, timeout=10)
                    logger.debug("💓 WebSocket keep-alive ping successful")
                except asyncio.TimeoutError:
                    logger.warning("💔 WebSocket keep-alive ping timed out")
                    break
                except Exception as e:
                    logger.error(f"💔 WebSocket keep-alive ping failed: {e}")
                    break
        except asyncio.CancelledError:
            logger.debug("💓 WebSocket keep-alive task cancelled")

    async def run_with_reconnect(self) -> None:
        """Main loop with reconnection logic"""
        while self.running:
            try:
                if await self.connect():
                    logger.info("🌉 Connected to bridge successfully")
                    await self.listen()
                else:
                    logger.warning("Failed to connect to bridge")
            except Exception as e:
                logger.error(f"Unexpected error: {e}")

            if self.running:
                logger.info(f"Reconnecting in {self.reconnect_delay} seconds...")
                await asyncio.sleep(self.reconnect_delay)

                # Exponential backoff up to max delay
                self.reconnect_delay = min(self.reconnect_delay * 2, self.max_reconnect_delay)

    def shutdown(self) -> None:
        """Graceful shutdown"""
        logger.info("Shutting down translator")
        self.running = False

        if self._keep_alive_task and not self._keep_alive_task.done():
            self._keep_alive_task.cancel()
            logger.debug("💓 Cancelled WebSocket keep-alive task")

        self.websocket = None


def get_config(argv=None):
    """Get configuration from environment variables or CLI args"""
    bridge_url = os.getenv("BRIDGE_URL", "ws://localhost:3055")
    channel = os.getenv("FIGMA_CHANNEL")

    for arg in (sys.argv[1:] if argv is None else argv):
        if arg.startswith("--channel="):
            channel = arg.split("=", 1)[1]
        elif arg.startswith("--bridge-url="):
            bridge_url = arg.split("=", 1)[1]

    if not channel:
        channel = "design-translator-default"
        logger.info(f"No channel specified, using default: {channel}")

    return bridge_url, channel


def main():
    bridge_url, channel = get_config()

    logger.info("Starting design translator")
    logger.info(f"Bridge URL: {bridge_url}")
    logger.info(f"Channel: {channel}")

    translator = DesignTranslator(bridge_url, channel)

    def signal_handler(signum, frame):
        logger.info("Received shutdown signal")
        translator.shutdown()
        sys.exit(0)

    signal.signal(signal.SIGTERM, signal_handler)
    signal.signal(signal.SIGINT, signal_handler)

    try:
        asyncio.run(translator.run_with_reconnect())
    except KeyboardInterrupt:
        logger.info("Translator interrupted")
    finally:
        translator.shutdown()


if __name__ == "__main__":
    main()
