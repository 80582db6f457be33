"""
Widget state container.

Every mutation of :class:`WidgetState` goes through :func:`widget_reducer`;
:class:`WidgetStore` owns the single current snapshot, exposes it through
``get_state()`` for synchronous reads inside async flows, and mirrors
``{messages, session}`` into session storage after each change.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Sequence, Union

from pydantic import ValidationError

from ..config import Settings, get_settings
from ..models import Message, PersistedSnapshot, Session, WidgetState, now_ms
from .storage import KeyValueStorage

logger = logging.getLogger(__name__)

StateListener = Callable[[WidgetState], None]


@dataclass(frozen=True)
class OpenWidget:
    pass


@dataclass(frozen=True)
class CloseWidget:
    pass


@dataclass(frozen=True)
class ToggleWidget:
    pass


@dataclass(frozen=True)
class AppendMessages:
    messages: Sequence[Message]


@dataclass(frozen=True)
class ReplaceMessages:
    messages: Sequence[Message]


@dataclass(frozen=True)
class UpdateSession:
    patch: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class SetProcessing:
    value: bool


@dataclass(frozen=True)
class ResetWidget:
    state: WidgetState


WidgetAction = Union[
    OpenWidget,
    CloseWidget,
    ToggleWidget,
    AppendMessages,
    ReplaceMessages,
    UpdateSession,
    SetProcessing,
    ResetWidget,
]


def _session_field_lookup() -> Dict[str, str]:
    lookup: Dict[str, str] = {}
    for name, info in Session.model_fields.items():
        lookup[name] = name
        if info.serialization_alias:
            lookup[info.serialization_alias] = name
    return lookup


_SESSION_FIELDS = _session_field_lookup()


def apply_session_patch(session: Session, patch: Dict[str, Any]) -> Session:
    """Merge a partial session (snake_case or camelCase keys) into a validated copy."""

    data = session.model_dump()
    for key, value in patch.items():
        field_name = _SESSION_FIELDS.get(key)
        if field_name is None:
            logger.debug("Ignoring unknown session field in patch: %s", key)
            continue
        data[field_name] = value
    data["last_active"] = now_ms()
    return Session.model_validate(data)


def build_initial_state(session: Session | None = None) -> WidgetState:
    return WidgetState(session=session or Session())


def widget_reducer(state: WidgetState, action: WidgetAction) -> WidgetState:
    if isinstance(action, OpenWidget):
        return state.model_copy(update={"is_open": True})
    if isinstance(action, CloseWidget):
        return state.model_copy(update={"is_open": False})
    if isinstance(action, ToggleWidget):
        return state.model_copy(update={"is_open": not state.is_open})
    if isinstance(action, AppendMessages):
        session = state.session.model_copy(update={"last_active": now_ms()})
        return state.model_copy(
            update={"messages": [*state.messages, *action.messages], "session": session}
        )
    if isinstance(action, ReplaceMessages):
        return state.model_copy(update={"messages": list(action.messages)})
    if isinstance(action, UpdateSession):
        return state.model_copy(update={"session": apply_session_patch(state.session, action.patch)})
    if isinstance(action, SetProcessing):
        return state.model_copy(update={"is_processing": action.value})
    if isinstance(action, ResetWidget):
        return action.state
    raise TypeError(f"Unsupported widget action: {action!r}")


class WidgetStore:
    """Single source of truth for one concierge widget instance."""

    def __init__(
        self,
        *,
        session_storage: KeyValueStorage | None = None,
        local_storage: KeyValueStorage | None = None,
        settings: Settings | None = None,
        initial_state: WidgetState | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._session_storage = session_storage
        self._local_storage = local_storage
        self._state = initial_state or build_initial_state()
        self._listeners: List[StateListener] = []

    def get_state(self) -> WidgetState:
        return self._state

    @property
    def session(self) -> Session:
        return self._state.session

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def dispatch(self, action: WidgetAction) -> WidgetState:
        previous = self._state
        self._state = widget_reducer(previous, action)
        if (
            self._state.messages is not previous.messages
            or self._state.session is not previous.session
        ):
            self._persist()
        for listener in list(self._listeners):
            listener(self._state)
        return self._state

    def open(self) -> None:
        self.dispatch(OpenWidget())

    def close(self) -> None:
        self.dispatch(CloseWidget())

    def toggle(self) -> None:
        self.dispatch(ToggleWidget())

    def append_messages(self, messages: Sequence[Message]) -> None:
        if not messages:
            return
        self.dispatch(AppendMessages(tuple(messages)))

    def replace_messages(self, messages: Sequence[Message]) -> None:
        self.dispatch(ReplaceMessages(tuple(messages)))

    def update_session(self, patch: Dict[str, Any] | None = None, **fields: Any) -> None:
        self.dispatch(UpdateSession({**(patch or {}), **fields}))

    def set_processing(self, value: bool) -> None:
        self.dispatch(SetProcessing(value))

    def reset(self) -> None:
        self.dispatch(ResetWidget(build_initial_state()))

    def dismiss_intro(self) -> None:
        """Record that the intro banner was dismissed, in both storage areas."""

        dismissed_at = now_ms()
        if self._local_storage is not None:
            try:
                self._local_storage.set_item(self._settings.intro_storage_key, str(dismissed_at))
            except Exception:
                logger.warning("Failed to persist intro dismissal flag", exc_info=True)
        self.update_session(intro_dismissed_at=dismissed_at)

    def hydrate(self) -> bool:
        """
        Restore ``{messages, session}`` from session storage.

        Stored fields are merged over a fresh base state so that sessions
        written by older releases pick up defaults for newer fields. Returns
        True when a stored snapshot was applied; never raises.
        """

        snapshot = self._load_snapshot()
        if snapshot is not None:
            self._state = WidgetState(
                is_open=self._state.is_open,
                messages=snapshot.messages,
                session=snapshot.session,
            )
            logger.info(
                "Hydrated concierge session session_id=%s messages=%d",
                snapshot.session.id,
                len(snapshot.messages),
            )
            return True

        intro_dismissed_at = self._load_intro_flag()
        base = build_initial_state(Session(intro_dismissed_at=intro_dismissed_at))
        self._state = base.model_copy(update={"is_open": self._state.is_open})
        logger.info("Started fresh concierge session session_id=%s", base.session.id)
        return False

    def _load_snapshot(self) -> PersistedSnapshot | None:
        if self._session_storage is None:
            return None
        try:
            raw = self._session_storage.get_item(self._settings.session_storage_key)
        except Exception:
            logger.warning("Failed to read concierge state from session storage", exc_info=True)
            return None
        if not raw:
            return None
        try:
            data = json.loads(raw)
        except (TypeError, ValueError):
            logger.warning("Stored concierge state is not valid JSON; starting fresh")
            return None
        if not isinstance(data, dict) or "messages" not in data or "session" not in data:
            logger.warning("Stored concierge state is missing messages/session; starting fresh")
            return None
        stored_session = data.get("session")
        if not isinstance(stored_session, dict):
            return None
        base_session = Session().model_dump(by_alias=True, mode="json")
        try:
            return PersistedSnapshot(
                messages=[Message.model_validate(item) for item in data.get("messages") or []],
                session=Session.model_validate({**base_session, **stored_session}),
            )
        except ValidationError:
            logger.warning("Stored concierge state failed validation; starting fresh", exc_info=True)
            return None

    def _load_intro_flag(self) -> int | None:
        if self._local_storage is None:
            return None
        try:
            raw = self._local_storage.get_item(self._settings.intro_storage_key)
        except Exception:
            logger.warning("Failed to read intro dismissal flag", exc_info=True)
            return None
        if not raw:
            return None
        try:
            return int(raw)
        except ValueError:
            return None

    def _persist(self) -> None:
        if self._session_storage is None:
            return
        snapshot = PersistedSnapshot(messages=self._state.messages, session=self._state.session)
        try:
            self._session_storage.set_item(
                self._settings.session_storage_key,
                json.dumps(snapshot.model_dump(mode="json", by_alias=True)),
            )
        except Exception:
            logger.warning("Failed to persist concierge state", exc_info=True)
