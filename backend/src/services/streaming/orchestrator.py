"""
Relay Orchestrator.

Coordinates one chat turn: context assembly, upstream streaming, directive
extraction and persistence.
Single Responsibility: only coordination, delegates work to the upstream
client, the notifier and the collaborators.
"""
import asyncio
import inspect
import logging
from typing import Any, AsyncIterator, Optional, Protocol

from statemachine import State, StateMachine

from src.ai.directives import extract_directive, strip_directives
from src.models.chat import ChatTrigger, SessionData

from .errors import ErrorCode, classify_error
from .notifier import FrameSink, StreamNotifier
from .types import AccumulatedResponse, ConversationTurn, RelayRequest, Role, UpstreamRequest

logger = logging.getLogger(__name__)


class TokenSource(Protocol):
    """Protocol for the upstream streaming client."""

    def build_request(self, messages: ConversationTurn) -> UpstreamRequest: ...
    def stream_chat(self, request: UpstreamRequest) -> AsyncIterator[str]: ...


class MessageRecorder(Protocol):
    """Protocol for persisting conversation messages. May be sync or async."""

    def record_message(
        self, role: Role, text: str, session_id: Optional[str] = None
    ) -> Any: ...


class ContextProvider(Protocol):
    """Protocol for building the conversation sent upstream. May be sync or async."""

    def assemble_context(
        self,
        trigger: Optional[ChatTrigger],
        session_data: Optional[SessionData] = None,
    ) -> Any: ...


async def _resolve(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class RelayStateMachine(StateMachine):
    """Lifecycle of one relay invocation."""

    idle = State(initial=True)
    assembling = State()
    streaming = State()
    finalizing = State()
    terminated = State(final=True)

    begin = idle.to(assembling)
    start_streaming = assembling.to(streaming)
    finalize = streaming.to(finalizing)
    finish = finalizing.to(terminated)
    fail = (
        idle.to(terminated)
        | assembling.to(terminated)
        | streaming.to(terminated)
        | finalizing.to(terminated)
    )


class RelayOrchestrator:
    """
    Orchestrates relay invocations.

    Workflow:
    1. Record the user message and assemble context
    2. Stream tokens upstream, one text frame per token
    3. Extract the directive and persist the stripped reply
    4. Emit exactly one terminal frame (action, done or error)

    Invocations share no state except the collaborators.
    """

    def __init__(
        self,
        upstream: TokenSource,
        store: MessageRecorder,
        context: ContextProvider,
    ):
        self._upstream = upstream
        self._store = store
        self._context = context
        self._active_streams: dict[str, asyncio.Task] = {}

    def start_stream(self, request: RelayRequest, sink: FrameSink) -> asyncio.Task:
        """
        Run one invocation in a background task.

        Frames are written to ``sink``; the task removes itself from the
        active set when it ends.
        """
        if request.request_id in self._active_streams:
            raise ValueError(f"Stream {request.request_id} already active")

        notifier = StreamNotifier(sink, request.request_id)
        task = asyncio.create_task(
            self.relay(request, notifier),
            name=f"relay-{request.request_id}",
        )
        self._active_streams[request.request_id] = task
        task.add_done_callback(
            lambda _: self._active_streams.pop(request.request_id, None)
        )
        logger.info("Started relay: %s", request.request_id)
        return task

    def cancel_stream(self, request_id: str) -> bool:
        """
        Cancel an active invocation.

        Returns True if it was cancelled, False if not found.
        """
        task = self._active_streams.pop(request_id, None)
        if task and not task.done():
            task.cancel()
            logger.info("Cancelled relay: %s", request_id)
            return True
        return False

    def is_active(self, request_id: str) -> bool:
        """Check if an invocation is currently running."""
        return request_id in self._active_streams

    @property
    def active_count(self) -> int:
        """Number of currently running invocations."""
        return len(self._active_streams)

    async def relay(
        self,
        request: RelayRequest,
        notifier: StreamNotifier,
    ) -> RelayStateMachine:
        """
        Execute one relay invocation.

        Never raises except on cancellation; every failure ends with a
        single error frame.

        Returns:
            The state machine, in its final state
        """
        machine = RelayStateMachine()
        response = AccumulatedResponse(request_id=request.request_id)

        try:
            machine.begin()
            if request.message:
                await _resolve(
                    self._store.record_message(Role.USER, request.message, None)
                )
            turn = await _resolve(
                self._context.assemble_context(request.trigger, request.session_data)
            )

            machine.start_streaming()
            upstream_request = self._upstream.build_request(tuple(turn))
            async for token in self._upstream.stream_chat(upstream_request):
                await notifier.notify_text(token)
                response.append(token)
                if response.token_count == 1:
                    logger.info("Relay %s first token", request.request_id)

            machine.finalize()
            text = response.text
            directive = extract_directive(text)
            await _resolve(
                self._store.record_message(
                    Role.ASSISTANT, strip_directives(text), request.session_id
                )
            )

            if directive:
                await notifier.notify_action(directive)
            else:
                await notifier.notify_done()
            machine.finish()

            logger.info(
                "Relay %s completed: %d tokens, directive=%s",
                request.request_id,
                response.token_count,
                directive is not None,
            )

        except asyncio.CancelledError:
            logger.info(
                "Relay %s cancelled in state %s",
                request.request_id,
                machine.current_state.id,
            )
            self._fail(machine)
            raise

        except Exception as e:
            code, message = classify_error(e)
            if code is ErrorCode.UNKNOWN:
                logger.exception("Relay %s failed: %s", request.request_id, e)
            else:
                logger.warning(
                    "Relay %s failed in state %s: %s (%s)",
                    request.request_id,
                    machine.current_state.id,
                    e,
                    code.value,
                )
            self._fail(machine)
            await notifier.notify_error(message, code.value)

        return machine

    @staticmethod
    def _fail(machine: RelayStateMachine) -> None:
        if not machine.current_state.final:
            machine.fail()
