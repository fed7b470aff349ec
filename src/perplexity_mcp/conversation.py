"""ConversationService: the stateful chat exchange over a durable session store."""

from __future__ import annotations

import uuid

import structlog

from perplexity_mcp.backend.client import AIBackendClient
from perplexity_mcp.context.policy import ContextPolicy, FullHistoryPolicy
from perplexity_mcp.errors import BackendError
from perplexity_mcp.events.bus import EventBus, ServerEvent
from perplexity_mcp.models.conversation import ChatMessage, ChatResult, Turn
from perplexity_mcp.store.sessions import SessionStore


def make_session_id() -> str:
    """Mint a fresh, globally unique session id."""
    return str(uuid.uuid4())


class ConversationService:
    """
    Runs chat exchanges against a :class:`SessionStore` and a backend.

    One ``send_message()`` call is one exchange:

    1. resolve the session (create it if needed, mint an id if none given)
    2. persist the user turn
    3. read back the session history and select the context via the policy
    4. call the backend
    5. persist the assistant turn
    6. return ``ChatResult``

    Steps 2 and 5 are not transactional with step 4. When the backend fails
    the user turn stays stored with no reply, and a retry on the same session
    replays it as part of the context. Nothing is cached between calls; every
    exchange re-reads the store.

    Usage::

        service = ConversationService(store, backend)
        result = await service.send_message("Hello")
        again = await service.send_message("And then?", session_id=result.session_id)
    """

    def __init__(
        self,
        store: SessionStore,
        backend: AIBackendClient,
        *,
        policy: ContextPolicy | None = None,
        event_bus: EventBus | None = None,
    ) -> None:
        self._store = store
        self._backend = backend
        self._policy = policy or FullHistoryPolicy()
        self._event_bus = event_bus or EventBus()
        self._logger = structlog.get_logger("perplexity_mcp.conversation")

    @property
    def policy(self) -> ContextPolicy:
        return self._policy

    async def create_session(self, session_id: str | None = None) -> str:
        """
        Create a session (idempotently) and return its id.

        Args:
            session_id: Caller-chosen id. A new UUID is minted when omitted.
        """
        sid = session_id or make_session_id()
        await self._resolve_session(sid)
        return sid

    async def send_message(self, message: str, session_id: str | None = None) -> ChatResult:
        """
        Send one user message within a session and return the backend's reply.

        Args:
            message: Non-empty user text.
            session_id: Existing or caller-chosen session id. A new session is
                created when omitted.

        Raises:
            ValueError: If *message* is empty.
            BackendError: If the backend call fails. The user turn remains stored.
            StorageError: If persistence fails.
        """
        if not message:
            raise ValueError("message must be non-empty")

        sid = session_id or make_session_id()
        log = self._logger.bind(session_id=sid)

        await self._resolve_session(sid)

        user_turn = await self._store.append_turn(sid, "user", message)
        self._publish_turn(user_turn)

        context = await self.assemble_context(sid)
        log.debug("context_assembled", message_count=len(context))

        try:
            reply = await self._backend.generate(context)
        except BackendError as exc:
            log.warning("exchange_failed", error=exc.reason, user_turn_id=user_turn.id)
            self._event_bus.publish(
                ServerEvent.EXCHANGE_FAILED, {"session_id": sid, "error": exc.reason}
            )
            raise

        assistant_turn = await self._store.append_turn(sid, "assistant", reply.content)
        self._publish_turn(assistant_turn)

        log.info(
            "exchange_completed",
            user_turn_id=user_turn.id,
            assistant_turn_id=assistant_turn.id,
        )
        return ChatResult(session_id=sid, response_text=reply.content)

    async def assemble_context(self, session_id: str) -> list[ChatMessage]:
        """Return the ``{role, content}`` messages replayed for the next backend call."""
        turns = await self._store.list_turns(session_id)
        return [t.to_chat_message() for t in self._policy.select(turns)]

    async def get_history(self, session_id: str) -> list[Turn]:
        """All turns of a session in replay order; empty for unknown sessions."""
        return await self._store.list_turns(session_id)

    async def _resolve_session(self, session_id: str) -> None:
        if await self._store.get_session(session_id) is not None:
            return
        await self._store.create_session(session_id)
        self._logger.info("session_created", session_id=session_id)
        self._event_bus.publish(ServerEvent.SESSION_CREATED, {"session_id": session_id})

    def _publish_turn(self, turn: Turn) -> None:
        self._event_bus.publish(
            ServerEvent.TURN_APPENDED,
            {"session_id": turn.session_id, "turn_id": turn.id, "role": turn.role},
        )
