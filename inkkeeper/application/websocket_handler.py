import asyncio
import json
import logging

from pydantic import ValidationError
from starlette.websockets import WebSocket, WebSocketDisconnect

from ..domain.entities import OutboundMessage
from ..domain.entities.messages import (
    ConfirmDiscardMessage,
    ErrorOutMessage,
    NoticeMessage,
    SessionEndedMessage,
    SessionReadyMessage,
    SessionRecordedMessage,
    TimerUpdateMessage,
)
from ..domain.entities.websocket_messages import ErrorCode, SessionSubmit
from ..domain.services import TimerSessionService

logger = logging.getLogger(__name__)


class WebSocketHandler:
    """Pumps frames between one WebSocket and one timer session service."""

    def __init__(self, timer_service: TimerSessionService):
        self._timer_service = timer_service
        self._controls = {
            "timer.start": timer_service.start_timer,
            "timer.pause": timer_service.pause_timer,
            "app.suspend": timer_service.suspend,
            "app.resume": timer_service.resume,
            "session.finish": timer_service.finish,
            "session.back": timer_service.back,
            "session.discard": timer_service.discard,
        }

    async def handle_websocket(self, websocket: WebSocket) -> None:
        # Note: websocket.accept() is called by the API endpoint before this
        send_task = asyncio.create_task(self._send_loop(websocket))
        receive_task = asyncio.create_task(self._receive_loop(websocket))
        done, pending = await asyncio.wait(
            {send_task, receive_task},
            return_when=asyncio.FIRST_COMPLETED,
        )
        try:
            for task in done:
                exc = task.exception()
                if exc:
                    raise exc
        except WebSocketDisconnect:
            logger.info(f"WebSocket disconnected: {websocket.client}")
        except Exception as e:
            logger.error(f"WebSocket error: {e}", exc_info=True)
        finally:
            await self._timer_service.stop()
            for t in pending:
                t.cancel()
            await asyncio.gather(send_task, receive_task, return_exceptions=True)

            try:
                await websocket.close()
            except RuntimeError:
                # already closed by the client
                pass
            logger.info(f"WebSocket connection closed: {websocket.client}")

    async def _send_loop(self, websocket: WebSocket) -> None:
        service = self._timer_service
        while service._running or not service.outbound_queue.empty():
            item: OutboundMessage = await service.outbound_queue.get()

            match item:
                case SessionReadyMessage():
                    await websocket.send_text(item.ready.model_dump_json())

                case TimerUpdateMessage():
                    await websocket.send_text(item.update.model_dump_json())

                case ConfirmDiscardMessage():
                    await websocket.send_text(item.confirm.model_dump_json())

                case SessionRecordedMessage():
                    await websocket.send_text(item.recorded.model_dump_json())

                case NoticeMessage():
                    await websocket.send_text(item.notice.model_dump_json())

                case ErrorOutMessage():
                    await websocket.send_text(item.error.model_dump_json())

                case SessionEndedMessage():
                    await websocket.send_text(item.session_ended.model_dump_json())

                case _:
                    # Unknown message type
                    raise ValueError(f"Unknown OutboundMessage type: {type(item)}")

    async def _receive_loop(self, websocket: WebSocket) -> None:
        """Receive messages from client and forward to the timer service."""
        while True:
            data = await websocket.receive()

            if data.get("type") == "websocket.receive" and data.get("text") is not None:
                try:
                    message = json.loads(data["text"])
                except json.JSONDecodeError as e:
                    logger.error(f"Invalid JSON message: {e}")
                    await self._reject("Messages must be JSON objects")
                    continue
                await self._handle_control_message(message)

            elif data.get("type") == "websocket.disconnect":
                logger.info(f"Client disconnected - received disconnect message: {data}")
                await self._timer_service.close()
                break

    async def _handle_control_message(self, message: dict) -> None:
        """Handle JSON control messages from client."""
        msg_type = message.get("type") if isinstance(message, dict) else None

        if msg_type in self._controls:
            await self._controls[msg_type]()

        elif msg_type == "session.submit":
            try:
                submit = SessionSubmit.model_validate(message)
            except ValidationError as e:
                await self._reject(f"Invalid session.submit: {e.errors()[0]['msg']}")
                return
            await self._timer_service.submit(
                reflection=submit.reflection,
                end_unit=submit.end_unit,
                start_unit=submit.start_unit,
                finished=submit.finished,
            )

        else:
            logger.warning(f"Unknown control message type: {msg_type}")
            await self._reject(f"Unknown message type: {msg_type}")

    async def _reject(self, text: str) -> None:
        await self._timer_service.outbound_queue.put(ErrorOutMessage(ErrorCode.INVALID_MESSAGE, text))
