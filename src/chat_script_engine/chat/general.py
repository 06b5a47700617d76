from typing import Any, Optional

from chat_script_engine.chat.handler import ChatHandler
from chat_script_engine.collaborators.contracts import Responder
from chat_script_engine.execution.steps import maybe_await
from chat_script_engine.models.base import Translator, identity_translator
from chat_script_engine.models.chat import ChatContext, ChatMessage
from chat_script_engine.models.enums import ChatFeature

HISTORY_LIMIT = 20


class GeneralChatHandler(ChatHandler):
    """
    Free-form assistant without a script.

    Answers with the Responder when one is configured, otherwise with a
    help text pointing at the guided features. The last exchanges are kept
    in `context.data["history"]` for the responder.
    """

    feature = ChatFeature.GENERAL.value
    name = "general"

    def __init__(
        self,
        responder: Optional[Responder] = None,
        *,
        translate: Translator = identity_translator,
    ) -> None:
        self.responder = responder
        self.t = translate

    def help_text(self) -> str:
        return self.t(
            "chat.general.help",
            "I can help you with:\n"
            "- matching: find candidates for a job\n"
            "- create-candidate: add a candidate from text or a CV\n"
            "- create-job: add a job posting",
        )

    async def handle_message(
        self, text: str, context: ChatContext
    ) -> Optional[ChatMessage]:
        history: list[dict[str, Any]] = context.data.setdefault("history", [])
        if self.responder is None:
            answer = self.help_text()
        else:
            answer = await maybe_await(self.responder.reply(text, list(history)))
        history.append({"role": "user", "content": text})
        history.append({"role": "assistant", "content": answer})
        del history[:-HISTORY_LIMIT]
        return ChatMessage.assistant(answer)

    def get_initial_message(self) -> str:
        return self.t("chat.general.welcome", "Hello! How can I help you today?")

    def get_step_message(self, step_index: int) -> str:
        return ""

    def can_go_back(self, step_index: int) -> bool:
        return False

    def get_total_steps(self) -> int:
        return 0
