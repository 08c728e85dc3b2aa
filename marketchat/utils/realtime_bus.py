import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Dict

import redis.asyncio as redis

from marketchat.config.settings import Config
from marketchat.utils.websocket_manager import manager


logger = logging.getLogger(__name__)


def participant_channel(participant_id: str) -> str:
    return f"participant:{participant_id}"


class NoopBus:

    enabled = False

    async def publish(self, channel: str, message: str) -> None:
        return

    async def subscribe(self, channel: str, on_message: Callable[[str], Awaitable[None]]):
        class _Sub:
            async def run(self):
                await asyncio.Future()

            async def cancel(self):
                return

        return _Sub()


class RedisBus:

    enabled = True

    def __init__(self, url: str) -> None:
        self._redis = redis.from_url(url)

    async def publish(self, channel: str, message: str) -> None:
        await self._redis.publish(channel, message)

    async def subscribe(self, channel: str, on_message: Callable[[str], Awaitable[None]]):
        pubsub = self._redis.pubsub()
        await pubsub.subscribe(channel)

        class _Sub:
            _running = True

            async def run(self_inner):
                while self_inner._running:
                    try:
                        msg = await pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
                    except redis.RedisError:
                        logger.warning("Redis subscription on %s failed, retrying", channel, exc_info=True)
                        await asyncio.sleep(0.5)
                        continue
                    if msg and msg.get("type") == "message":
                        data = msg.get("data")
                        if isinstance(data, bytes):
                            data = data.decode("utf-8")
                        try:
                            await on_message(data)
                        except Exception:
                            # receiver is gone; stop reading for it
                            logger.info("Dropping subscription on %s after failed delivery", channel, exc_info=True)
                            self_inner._running = False

            async def cancel(self_inner):
                self_inner._running = False
                await pubsub.unsubscribe(channel)
                await pubsub.aclose()

        return _Sub()


_bus = None


async def get_bus():
    global _bus
    if _bus is not None:
        return _bus
    _bus = RedisBus(Config.REDIS_URL) if Config.REDIS_URL else NoopBus()
    return _bus


async def notify_participant(participant_id: str, event: Dict[str, Any]) -> None:
    """Push ``event`` to every live connection of ``participant_id``.

    Goes through Redis when configured so that all workers see it, otherwise
    straight to the sockets held by this process. Delivery is best effort: a
    failure is logged and never propagates to the write that triggered it.
    """
    payload = json.dumps(event, default=str)
    try:
        bus = await get_bus()
        if bus.enabled:
            await bus.publish(participant_channel(participant_id), payload)
        else:
            await manager.send_personal_message(participant_id, payload)
    except Exception:
        logger.warning("Could not deliver %s event to %s", event.get("type"), participant_id, exc_info=True)
