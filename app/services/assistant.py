"""Wishlist-aware chat assistant."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Sequence

from ..config import Settings
from ..errors import NotFound, UpstreamUnavailable
from ..models import AssistantReply, ResolvedItem
from .openrouter import OpenRouterClient
from .tmdb import CatalogGateway
from .wishlist import WishlistStore

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a friendly movie and TV assistant. Answer the user's question based "
    "on the titles in their wishlist. If the wishlist does not contain enough "
    "information, say so briefly instead of inventing details."
)

PROMPT_TEMPLATE = """The user's wishlist contains:

{context}

Question: {question}"""

EMPTY_WISHLIST_ANSWER = (
    "Your wishlist is empty or could not be loaded. Add some movies or shows first!"
)


@dataclass(slots=True)
class AssistantContext:
    """Rendered wishlist context and the ids that made it in."""

    question: str
    lines: list[str] = field(default_factory=list)
    used_item_ids: list[int] = field(default_factory=list)
    skipped_item_ids: list[int] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.lines

    def render_prompt(self) -> str:
        return PROMPT_TEMPLATE.format(
            context="\n\n".join(self.lines), question=self.question
        )


class AssistantContextBuilder:
    """Resolve wishlist entries into a bounded prompt and ask the model."""

    def __init__(
        self,
        settings: Settings,
        gateway: CatalogGateway,
        wishlist: WishlistStore,
        completion_client: OpenRouterClient,
    ):
        self._settings = settings
        self._gateway = gateway
        self._wishlist = wishlist
        self._completion = completion_client
        self._semaphore = asyncio.Semaphore(8)

    async def answer(self, user_id: int, question: str) -> AssistantReply:
        item_ids = await self._wishlist.list(user_id)
        context = await self.build_context(item_ids, question)
        if context.is_empty:
            logger.info(
                "No resolvable wishlist items for user %s, skipping model call",
                user_id,
            )
            return AssistantReply(
                answer=EMPTY_WISHLIST_ANSWER,
                short_circuited=True,
                skipped_item_ids=context.skipped_item_ids,
            )

        answer = await self._completion.complete(
            context.render_prompt(), system_prompt=SYSTEM_PROMPT
        )
        return AssistantReply(
            answer=answer,
            used_item_ids=context.used_item_ids,
            skipped_item_ids=context.skipped_item_ids,
        )

    async def build_context(
        self, item_ids: Sequence[int], question: str
    ) -> AssistantContext:
        """Resolve the most recent entries, dropping any that fail to resolve."""

        recent = list(item_ids)[-self._settings.assistant_context_limit :]
        resolved = await asyncio.gather(*(self._resolve(item_id) for item_id in recent))

        context = AssistantContext(question=question)
        for item_id, item in zip(recent, resolved):
            if item is None:
                context.skipped_item_ids.append(item_id)
                continue
            context.lines.append(
                item.item.context_line(
                    overview_limit=self._settings.assistant_overview_chars
                )
            )
            context.used_item_ids.append(item_id)
        return context

    async def _resolve(self, item_id: int) -> ResolvedItem | None:
        try:
            async with self._semaphore:
                return await self._gateway.resolve_item(item_id)
        except NotFound:
            logger.info("Wishlist item %s not found upstream, omitting it", item_id)
        except UpstreamUnavailable as exc:
            logger.warning(
                "Could not resolve wishlist item %s: %s", item_id, exc.message
            )
        return None
