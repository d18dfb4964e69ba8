# src/deadline_bot/connectors/matrix_notifier.py

from __future__ import annotations

"""
Matrix implementation of the Notifier port.

- send_direct: reuse a two-member room shared with the user, or create a
  direct (is_direct) room and invite them
- send_channel: post into the configured channel room

Owner ids in the sheet are Matrix user ids (@name:server).
"""

import logging

from nio import AsyncClient, RoomCreateError, RoomSendError, exceptions
from nio.api import RoomPreset

from ..core.errors import DeliveryError

logger = logging.getLogger(__name__)


def _looks_like_user_id(user_id: str) -> bool:
    return user_id.startswith("@") and ":" in user_id


class MatrixNotifier:
    def __init__(self, client: AsyncClient, channel_room_id: str) -> None:
        self._client = client
        self.channel_room_id = channel_room_id
        self._direct_rooms: dict[str, str] = {}

    async def send_direct(self, user_id: str, text: str) -> None:
        user_id = (user_id or "").strip()
        room_id = await self._direct_room(user_id)
        try:
            await self._send(room_id, text, recipient=user_id)
        except DeliveryError:
            # The room may have been left since; look it up again next time.
            self._direct_rooms.pop(user_id, None)
            raise
        logger.debug("DM sent to %s in %s", user_id, room_id)

    async def send_channel(self, text: str) -> None:
        if not self.channel_room_id:
            raise DeliveryError("channel", "no channel room configured")
        await self._send(self.channel_room_id, text, recipient=self.channel_room_id)

    async def _direct_room(self, user_id: str) -> str:
        if not _looks_like_user_id(user_id):
            raise DeliveryError(user_id or "?", "not a Matrix user id")

        # A room we just created is not in client.rooms until the next sync.
        cached = self._direct_rooms.get(user_id)
        if cached:
            return cached

        for room_id, room in self._client.rooms.items():
            if room_id == self.channel_room_id:
                continue
            if room.member_count == 2 and user_id in room.users:
                self._direct_rooms[user_id] = room_id
                return room_id

        resp = await self._client.room_create(
            is_direct=True,
            invite=[user_id],
            preset=RoomPreset.trusted_private_chat,
        )
        if isinstance(resp, RoomCreateError):
            raise DeliveryError(user_id, f"cannot open direct room: {resp.message}")

        logger.info("Created direct room %s for %s", resp.room_id, user_id)
        self._direct_rooms[user_id] = resp.room_id
        return resp.room_id

    async def _send(self, room_id: str, text: str, *, recipient: str) -> None:
        try:
            resp = await self._client.room_send(
                room_id=room_id,
                message_type="m.room.message",
                content={"msgtype": "m.text", "body": text},
                ignore_unverified_devices=True,
            )
        except (exceptions.OlmUnverifiedDeviceError, exceptions.LocalProtocolError) as e:
            raise DeliveryError(recipient, str(e)) from e

        if isinstance(resp, RoomSendError):
            raise DeliveryError(recipient, resp.message)
