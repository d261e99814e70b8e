"""Resume a user's action across an interrupting login redirect."""

from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
import logging
from typing import Any, Protocol

from mywish.client.api import RegistryClient
from mywish.client.drafts import DraftStore, publish_draft
from mywish.client.intents import Intent, IntentStore


logger = logging.getLogger("mywish.client.coordinator")

Handler = Callable[[Intent], Awaitable[Any]]


class Identity(Protocol):
    async def current_user_id(self) -> int | None:
        ...

    async def begin_login(self, return_path: str) -> str:
        ...


@dataclass
class Outcome:
    """Result of ``request``/``resume``.

    ``executed`` is False when the action was staged for after login; in that
    case ``redirect_url`` holds the identity provider URL to send the user to.
    """

    executed: bool
    intent: Intent
    result: Any = None
    redirect_url: str | None = None


class DeferredActionCoordinator:
    def __init__(self, store: IntentStore, identity: Identity, handlers: Mapping[str, Handler]) -> None:
        self.store = store
        self.identity = identity
        self.handlers = dict(handlers)

    async def _dispatch(self, intent: Intent) -> Any:
        handler = self.handlers.get(intent.kind)
        if handler is None:
            raise LookupError(f"No handler registered for intent {intent.kind!r}")
        return await handler(intent)

    async def request(self, intent: Intent, return_path: str) -> Outcome:
        """Run ``intent`` now if signed in, otherwise stage it and start the login."""
        if await self.identity.current_user_id() is not None:
            return Outcome(executed=True, intent=intent, result=await self._dispatch(intent))

        self.store.save(intent)
        logger.info("Intent staged kind=%s return_path=%s", intent.kind, return_path)
        redirect_url = await self.identity.begin_login(return_path)
        return Outcome(executed=False, intent=intent, redirect_url=redirect_url)

    async def resume(self) -> Outcome | None:
        """Handle the return from the login redirect.

        The marker is cleared before anything else, so a failing replay is not
        retried and a second ``resume`` call finds nothing to do. When the
        login did not produce a session the staged intent is dropped and the
        outcome reports it as not executed.
        """
        intent = self.store.load()
        if intent is None:
            return None
        self.store.clear()
        if await self.identity.current_user_id() is None:
            logger.info("Login returned without a session, dropping intent kind=%s", intent.kind)
            return Outcome(executed=False, intent=intent)
        logger.info("Replaying intent kind=%s", intent.kind)
        return Outcome(executed=True, intent=intent, result=await self._dispatch(intent))

    def cancel(self) -> None:
        """Drop the staged intent, e.g. when the login was refused."""
        self.store.clear()

    def pending(self) -> Intent | None:
        return self.store.load()


def registry_handlers(api: RegistryClient, drafts: DraftStore) -> dict[str, Handler]:
    """Handlers for the two staged actions: reserving a gift and publishing a draft."""

    async def reserve(intent: Intent) -> None:
        await api.reserve_gift(intent.gift_id)

    async def publish(intent: Intent) -> dict[str, object]:
        return await publish_draft(api, drafts)

    return {"reserve_gift": reserve, "publish_draft": publish}
