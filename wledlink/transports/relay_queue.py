"""
Relay queue transport - store-and-forward control through Firestore.

Used when the device is not reachable directly. Command flow:
1. App writes a command to users/{uid}/commands with status='pending'
2. The executing side (ESP32 bridge on the home network, or a Cloud
   Function forwarding to a webhook) picks it up and runs it locally
3. The executing side writes status='completed'/'failed' plus result/error
4. App polls the document until a terminal status or the timeout

The queue record is the single source of truth for completion. This side
only ever writes status='timeout', and only when it gives up waiting.
"""

import asyncio
import logging
import time
from typing import Any, Dict, Mapping, Optional, Sequence

from google.cloud import firestore
from google.cloud.firestore_v1 import AsyncClient

from .. import config
from ..models import Command, CommandStatus, CommandType, TERMINAL_STATUSES
from ..utils.payload import (
    normalize_payload,
    build_state_payload,
    build_segments_payload,
    build_segment_config_payload,
    build_rename_payload,
    build_preset_payload,
    build_sync_receiver_payload,
    build_sync_sender_payloads,
    is_valid_preset_id,
)
from .base import DeviceTransport

logger = logging.getLogger(__name__)


class RelayQueueTransport(DeviceTransport):
    """
    Queues commands to Firestore and polls for their completion.

    Every operation is one enqueue followed by a bounded poll. Reads are
    commands too: get_state() queues a 'getState' command with an empty
    payload. A failed enqueue is a hard failure and is never retried.
    """

    kind = "relay"

    def __init__(
        self,
        user_id: str,
        controller_id: str,
        controller_ip: str = "",
        webhook_url: str = "",
        firestore_client: Optional[AsyncClient] = None,
        poll_interval: Optional[float] = None,
        command_timeout: Optional[float] = None,
    ):
        if not user_id or not controller_id:
            raise ValueError("RelayQueueTransport requires user_id and controller_id")

        self.user_id = user_id
        self.controller_id = controller_id
        self.controller_ip = controller_ip
        self.webhook_url = webhook_url
        self.firestore = firestore_client or firestore.AsyncClient(project=config.FIREBASE_PROJECT_ID)
        self.poll_interval = poll_interval or config.RELAY_POLL_INTERVAL_S
        self.command_timeout = command_timeout or config.RELAY_COMMAND_TIMEOUT_S
        self._supports_rgbw_cache: Optional[bool] = None

        mode = "webhook" if webhook_url else "ESP32 bridge"
        logger.info(f"Relay transport initialized (user: {user_id}, controller: {controller_id}, mode: {mode})")

    @property
    def _commands_ref(self):
        return self.firestore.collection('users').document(self.user_id).collection('commands')

    async def _execute_command(self, command_type: CommandType, payload: Mapping) -> Optional[Any]:
        """Queue a command and wait for its result. None means no result."""
        command = Command.create(
            type=command_type,
            payload=dict(payload),
            controller_id=self.controller_id,
            controller_ip=self.controller_ip,
            webhook_url=self.webhook_url,
        )

        logger.info(f"Queueing relay command: {command.type}")
        logger.debug(f"Relay payload: {command.payload}")

        try:
            _, doc_ref = await asyncio.wait_for(
                self._commands_ref.add(command.to_firestore()),
                timeout=self.command_timeout,
            )
        except asyncio.TimeoutError:
            logger.error(
                f"Queueing relay command {command.type} timed out after {self.command_timeout}s"
            )
            return None
        except Exception as e:
            logger.error(f"Failed to queue relay command {command.type}: {e}")
            return None

        logger.info(f"Relay command queued with ID: {doc_ref.id}")
        give_up_by = time.monotonic() + self.command_timeout + self.poll_interval

        try:
            completed = await self._wait_for_completion(doc_ref)
        except asyncio.CancelledError:
            # The queued command stays in place; only our polling stops
            logger.info(f"Stopped waiting for relay command {doc_ref.id} (cancelled)")
            raise

        if completed is None:
            logger.warning(f"Relay command {doc_ref.id} timed out after {self.command_timeout}s")
            await self._mark_timeout(doc_ref, give_up_by - time.monotonic())
            return None

        if completed.status == CommandStatus.COMPLETED:
            logger.info(f"Relay command {doc_ref.id} completed")
            return completed.result if completed.result is not None else {}

        if completed.status == CommandStatus.FAILED:
            logger.error(f"Relay command {doc_ref.id} failed: {completed.error}")
        else:
            logger.warning(f"Relay command {doc_ref.id} ended with status {completed.status.value}")
        return None

    async def _wait_for_completion(self, doc_ref) -> Optional[Command]:
        """
        Poll the command document until it reaches a terminal status.

        Returns None once the timeout has elapsed. The loop checks a
        monotonic deadline, so it returns no earlier than command_timeout
        and no later than command_timeout + poll_interval.
        """
        deadline = time.monotonic() + self.command_timeout

        while True:
            remaining = deadline - time.monotonic()
            try:
                snapshot = await asyncio.wait_for(
                    doc_ref.get(),
                    timeout=max(self.poll_interval, remaining),
                )
                if snapshot.exists:
                    data = snapshot.to_dict() or {}
                    status = CommandStatus.parse(data.get("status"))
                    if status in TERMINAL_STATUSES:
                        return self._read_terminal(snapshot, status)
            except asyncio.TimeoutError:
                logger.debug(f"Relay poll read timed out for {doc_ref.id}")
            except Exception as e:
                logger.warning(f"Error polling relay command {doc_ref.id}: {e}")

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return None
            await asyncio.sleep(min(self.poll_interval, remaining))

    @staticmethod
    def _read_terminal(snapshot, status: CommandStatus) -> Command:
        try:
            return Command.from_firestore(snapshot)
        except Exception as e:
            logger.warning(f"Malformed relay record {snapshot.id}: {e}")
            return Command(id=snapshot.id, type="unknown", status=status)

    async def _mark_timeout(self, doc_ref, budget: float):
        """Best effort; a failure or a slow store is only logged."""
        try:
            await asyncio.wait_for(
                doc_ref.update({'status': CommandStatus.TIMEOUT.value}),
                timeout=max(0.0, min(self.poll_interval, budget)),
            )
        except asyncio.TimeoutError:
            logger.warning(f"Marking relay command {doc_ref.id} as timeout took too long")
        except Exception as e:
            logger.warning(f"Could not mark relay command {doc_ref.id} as timeout: {e}")

    async def _execute_bool(self, command_type: CommandType, payload: Mapping) -> bool:
        return await self._execute_command(command_type, payload) is not None

    # ------------------------------------------------------------------
    # Contract
    # ------------------------------------------------------------------

    async def get_state(self) -> Optional[Dict[str, Any]]:
        result = await self._execute_command(CommandType.GET_STATE, {})
        if result is not None and not isinstance(result, dict):
            logger.error(f"Malformed getState result: {type(result).__name__}")
            return None
        return result

    async def set_state(
        self,
        on: Optional[bool] = None,
        brightness: Optional[int] = None,
        speed: Optional[int] = None,
        color: Optional[Sequence[int]] = None,
        white: Optional[int] = None,
        force_zero_white: bool = False,
    ) -> bool:
        payload = build_state_payload(
            on=on,
            brightness=brightness,
            speed=speed,
            color=color,
            white=white,
            force_zero_white=force_zero_white,
        )
        return await self._execute_bool(CommandType.SET_STATE, normalize_payload(payload))

    async def apply_json(self, payload: Mapping) -> bool:
        return await self._execute_bool(CommandType.APPLY_JSON, normalize_payload(payload))

    async def apply_config(self, cfg: Mapping) -> bool:
        return await self._execute_bool(CommandType.APPLY_CONFIG, cfg)

    async def _get_info(self) -> Optional[Dict[str, Any]]:
        result = await self._execute_command(CommandType.GET_INFO, {})
        return result if isinstance(result, dict) else None

    async def supports_rgbw(self) -> bool:
        if self._supports_rgbw_cache is not None:
            return self._supports_rgbw_cache
        info = await self._get_info()
        if info is None:
            return False
        leds = info.get('leds')
        rgbw = isinstance(leds, dict) and leds.get('rgbw') is True
        self._supports_rgbw_cache = rgbw
        return rgbw

    async def get_total_led_count(self) -> Optional[int]:
        info = await self._get_info()
        if info is None:
            return None
        leds = info.get('leds')
        if isinstance(leds, dict):
            count = leds.get('count')
            if isinstance(count, (int, float)) and not isinstance(count, bool):
                return int(count)
        return None

    async def rename_segment(self, segment_id: int, name: str) -> bool:
        return await self._execute_bool(CommandType.RENAME_SEGMENT, build_rename_payload(segment_id, name))

    async def apply_to_segments(
        self,
        ids: Sequence[int],
        color: Optional[Sequence[int]] = None,
        white: Optional[int] = None,
        fx: Optional[int] = None,
        speed: Optional[int] = None,
        intensity: Optional[int] = None,
    ) -> bool:
        if not ids:
            return True
        payload = build_segments_payload(ids, color=color, white=white, fx=fx, speed=speed, intensity=intensity)
        return await self._execute_bool(CommandType.APPLY_TO_SEGMENTS, payload)

    async def update_segment_config(
        self,
        segment_id: int,
        start: Optional[int] = None,
        stop: Optional[int] = None,
    ) -> bool:
        payload = build_segment_config_payload(segment_id, start=start, stop=stop)
        if payload is None:
            return True
        return await self._execute_bool(CommandType.UPDATE_SEGMENT_CONFIG, payload)

    async def save_preset(self, preset_id: int, state: Mapping, preset_name: Optional[str] = None) -> bool:
        if not is_valid_preset_id(preset_id):
            logger.warning(f"Rejected preset id {preset_id} (must be 1-250)")
            return False
        return await self._execute_bool(CommandType.SAVE_PRESET, build_preset_payload(preset_id, state, preset_name))

    async def load_preset(self, preset_id: int) -> bool:
        if not is_valid_preset_id(preset_id):
            logger.warning(f"Rejected preset id {preset_id} (must be 1-250)")
            return False
        return await self._execute_bool(CommandType.LOAD_PRESET, {'ps': preset_id})

    async def upload_led_map(self, json_content: str) -> bool:
        # The bridge cannot receive file uploads
        logger.info("LED map upload is not supported over the relay queue")
        return False

    async def configure_sync_receiver(self) -> bool:
        return await self._execute_bool(CommandType.CONFIGURE_SYNC_RECEIVER, build_sync_receiver_payload())

    async def configure_sync_sender(self, targets: Sequence[str] = (), ddp_port: Optional[int] = None) -> bool:
        # Bridge applies both parts from one merged payload
        payload: Dict[str, Any] = {}
        for part in build_sync_sender_payloads(targets, ddp_port):
            payload.update(part)
        return await self._execute_bool(CommandType.CONFIGURE_SYNC_SENDER, payload)
