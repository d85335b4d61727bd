"""Face activation: making resolved font faces usable, once per FaceKey.

State machine per FaceKey::

    not-attempted -> pending -> active
                             -> failed

All state lives in a FontSession owned by the ActivationController. Only the
controller writes to it, and the whole session is replaced when the set of
stored fonts changes.

Loads are single-flight: while a FaceKey is pending, later callers await the
shared future of the in-flight load instead of starting another one. A load
that exceeds the timeout marks the key failed; failed keys are not retried
automatically, but an explicit activate() call tries again.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

from fontshelf.config import DEFAULT_ACTIVATION_TIMEOUT
from fontshelf.errors import ActivationError, ActivationTimeoutError, FaceLoadError
from fontshelf.loader import FaceLoader, FaceLoadRequest
from fontshelf.matcher import find_match
from fontshelf.resolver import ByteSource, CharacteristicResolver
from fontshelf.schema import ActivationState, FaceKey, FontCharacteristics, FontRecord
from fontshelf.utils import normalize_identity

logger = logging.getLogger(__name__)


@dataclass
class FontSession:
    """Per-session activation state. Discarded and rebuilt, never patched, on font-set change."""

    record_ids: set[str] = field(default_factory=set)
    states: dict[FaceKey, ActivationState] = field(default_factory=dict)
    characteristics: dict[FaceKey, FontCharacteristics] = field(default_factory=dict)
    faces: dict[FaceKey, Any] = field(default_factory=dict)
    failures: dict[FaceKey, ActivationError] = field(default_factory=dict)
    pending: dict[FaceKey, asyncio.Future] = field(default_factory=dict)
    record_characteristics: dict[str, FontCharacteristics] = field(default_factory=dict)
    record_keys: dict[str, FaceKey] = field(default_factory=dict)
    identities: dict[tuple[str, int, str], FaceKey] = field(default_factory=dict)

    def active_keys(self) -> list[FaceKey]:
        return [key for key, state in self.states.items() if state is ActivationState.ACTIVE]

    def live_keys(self) -> list[FaceKey]:
        """Keys that are active or have a load in flight."""
        live = (ActivationState.ACTIVE, ActivationState.PENDING)
        return [key for key, state in self.states.items() if state in live]

    def canonical_key(self, key: FaceKey) -> FaceKey:
        """The first key seen this session with the same normalized identity."""
        identity = (normalize_identity(key.family_name), key.weight, key.style.value)
        return self.identities.setdefault(identity, key)

    def forget(self, key: FaceKey) -> None:
        self.states.pop(key, None)
        self.characteristics.pop(key, None)
        self.faces.pop(key, None)
        self.failures.pop(key, None)
        self.pending.pop(key, None)
        for identity in [i for i, k in self.identities.items() if k == key]:
            del self.identities[identity]
        for record_id in [rid for rid, k in self.record_keys.items() if k == key]:
            del self.record_keys[record_id]


def _fresh_error(error: ActivationError) -> ActivationError:
    return type(error)(error.face_key, error.reason)


class ActivationController:
    """Resolves, dedupes and loads font faces for one browsing session."""

    def __init__(
        self,
        loader: FaceLoader,
        *,
        byte_source: ByteSource | None = None,
        timeout: float = DEFAULT_ACTIVATION_TIMEOUT,
    ):
        self.loader = loader
        self.timeout = timeout
        self.resolver = CharacteristicResolver(byte_source)
        self.session = FontSession()

    # -- queries -------------------------------------------------------------

    def current_state(self, key: FaceKey) -> ActivationState:
        return self.session.states.get(key, ActivationState.NOT_ATTEMPTED)

    def failure_reason(self, key: FaceKey) -> str | None:
        error = self.session.failures.get(key)
        return error.reason if error else None

    def face_for(self, key: FaceKey) -> Any | None:
        return self.session.faces.get(key)

    def key_for(self, record: FontRecord) -> FaceKey | None:
        return self.session.record_keys.get(record.id)

    # -- resolution ----------------------------------------------------------

    async def resolve_characteristics(self, record: FontRecord) -> FontCharacteristics:
        """Resolve (and cache for the session) the characteristics of a record."""
        session = self.session
        cached = session.record_characteristics.get(record.id)
        if cached is not None:
            return cached
        characteristics = await self.resolver.resolve(record)
        session.record_characteristics[record.id] = characteristics
        return characteristics

    # -- activation ----------------------------------------------------------

    async def activate(self, record: FontRecord, *, retry_failed: bool = True) -> FaceKey:
        """Make the record's face usable and return its FaceKey.

        Returns an active or in-flight FaceKey without starting another load
        when the identity matcher finds one for the same weight and style. Raises
        ActivationTimeoutError or ActivationError when the load fails, and for
        a previously failed key when retry_failed is False.
        """
        session = self.session
        session.record_ids.add(record.id)

        characteristics = await self.resolve_characteristics(record)
        key = session.canonical_key(characteristics.face_key)

        # No awaits from here until _load registers the pending future, so
        # concurrent activations see each other's in-flight keys.
        peers = [
            k
            for k in session.live_keys()
            if k.weight == key.weight and k.style == key.style
        ]
        match = find_match(key.family_name, peers, filename=record.filename)
        if match is not None and match.key != key:
            logger.debug(
                "%s matches face %s (%s)", record.filename, match.key, match.strategy.value
            )
            key = match.key

        session.record_keys[record.id] = key
        if self.current_state(key) is ActivationState.ACTIVE:
            return key

        pending = session.pending.get(key)
        if pending is not None:
            logger.debug("Waiting for in-flight load of %s", key)
            error = await asyncio.shield(pending)
            if error is not None:
                raise _fresh_error(error)
            return key

        if self.current_state(key) is ActivationState.FAILED and not retry_failed:
            raise _fresh_error(session.failures[key])

        return await self._load(session, key, characteristics, record)

    async def _load(
        self,
        session: FontSession,
        key: FaceKey,
        characteristics: FontCharacteristics,
        record: FontRecord,
    ) -> FaceKey:
        future: asyncio.Future = asyncio.get_running_loop().create_future()
        session.pending[key] = future
        session.states[key] = ActivationState.PENDING
        session.failures.pop(key, None)

        request = FaceLoadRequest(
            family_name=key.family_name,
            source_url=record.storage_path,
            weight=key.weight,
            style=key.style,
        )

        face = None
        error: ActivationError | None = None
        try:
            face = await asyncio.wait_for(self.loader.load(request), timeout=self.timeout)
        except asyncio.TimeoutError:
            error = ActivationTimeoutError(key, f"Font load timeout after {self.timeout:g} seconds")
        except asyncio.CancelledError:
            if session.pending.get(key) is future:
                del session.pending[key]
                session.states.pop(key, None)
            future.set_result(ActivationError(key, "activation cancelled"))
            raise
        except FaceLoadError as e:
            error = ActivationError(key, str(e))
        except Exception as e:
            logger.exception("Unexpected error while loading %s", key)
            error = ActivationError(key, f"{type(e).__name__}: {e}")

        # The slot is gone if the record was removed or the session rebuilt
        # while loading; the late result is dropped.
        if session.pending.get(key) is future:
            del session.pending[key]
            if error is None:
                session.states[key] = ActivationState.ACTIVE
                session.characteristics[key] = characteristics
                session.faces[key] = face
            else:
                session.states[key] = ActivationState.FAILED
                session.failures[key] = error
        else:
            logger.debug("Discarding result for invalidated face %s", key)

        future.set_result(error)

        if error is not None:
            logger.warning("Could not activate %s from %s: %s", key, record.filename, error.reason)
            raise error
        logger.info("Activated face %s from %s", key, record.filename)
        return key

    # -- invalidation --------------------------------------------------------

    def on_record_removed(self, record: FontRecord) -> None:
        """Drop everything derived from a deleted record, whatever its state."""
        session = self.session
        session.record_ids.discard(record.id)
        characteristics = session.record_characteristics.pop(record.id, None)
        key = session.record_keys.pop(record.id, None)
        if key is None and characteristics is not None:
            key = characteristics.face_key
        if key is not None:
            session.forget(key)
            logger.debug("Invalidated face %s after removing %s", key, record.filename)

    def sync_records(self, records: list[FontRecord]) -> bool:
        """Rebuild the session when the stored font set differs from the known one."""
        ids = {record.id for record in records}
        if ids == self.session.record_ids:
            return False
        logger.info(
            "Font set changed (%d -> %d fonts), rebuilding session",
            len(self.session.record_ids),
            len(ids),
        )
        self.session = FontSession(record_ids=ids)
        return True

    def reset(self) -> None:
        self.session = FontSession()
