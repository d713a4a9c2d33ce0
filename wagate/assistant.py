"""Persona assistant: generation with per-chat conversation memory."""

import logging
from typing import Optional

from .llm.provider import GenerationProvider
from .memory.store import ROLE_ASSISTANT, ROLE_USER, ConversationKey, ConversationMemory, MemoryEntry

logger = logging.getLogger("wagate.assistant")

DEFAULT_HISTORY_LIMIT = 6


def build_persona_instruction(name: str) -> str:
    """System instruction that gives the model a persona."""
    name = name.strip() or "Asisten"
    return (
        f"Kamu adalah {name}, asisten pribadi yang cerdas, membantu, dan ramah.\n"
        "Kamu dibuat untuk membantu pengguna dengan berbagai hal sehari-hari.\n"
        "Selalu jawab dalam bahasa Indonesia yang sopan dan mudah dipahami.\n"
        f"Jika ditanya tentang identitasmu, katakan bahwa kamu adalah {name}, "
        "asisten pribadi yang dibuat untuk membantu.\n"
        "Jangan sebutkan bahwa kamu adalah AI atau bot kecuali ditanya secara spesifik."
    )


def build_contextual_prompt(persona: str, history: list[MemoryEntry], question: str) -> str:
    """Prefix ``question`` with a short transcript of earlier turns.

    Without usable history the question is returned unchanged.
    """
    lines = []
    for entry in history:
        if entry.role == ROLE_USER:
            lines.append(f"Pengguna: {entry.text}")
        elif entry.role == ROLE_ASSISTANT:
            lines.append(f"{persona}: {entry.text}")
    if not lines:
        return question
    transcript = "\n".join(lines)
    return (
        "Riwayat percakapan singkat (konteks):\n"
        f"{transcript}\n\n"
        f"Pertanyaan baru pengguna: {question}"
    )


class PersonaAssistant:
    """Answer questions as a named persona, remembering recent turns.

    Memory is only touched after a successful generation: a failed call
    leaves the conversation history exactly as it was.
    """

    def __init__(
        self,
        provider: GenerationProvider,
        memory: Optional[ConversationMemory] = None,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
    ):
        self.provider = provider
        self.memory = memory
        self.history_limit = history_limit

    async def ask(self, chat_id: str, persona: str, question: str) -> str:
        key = ConversationKey(chat_id, persona)
        history = self.memory.history(key, self.history_limit) if self.memory else []
        prompt = build_contextual_prompt(persona, history, question)

        reply = await self.provider.generate(prompt, context=build_persona_instruction(persona))

        if self.memory:
            await self.memory.append_and_persist(key, ROLE_USER, question)
            await self.memory.append_and_persist(key, ROLE_ASSISTANT, reply)
        logger.info(f"{persona} answered in {chat_id} ({len(history)} turn(s) of context)")
        return reply
