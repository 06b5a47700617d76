from dataclasses import dataclass, field
from typing import Any, Optional

from chat_script_engine.chat.dispatcher import ChatHandlerDispatcher
from chat_script_engine.chat.features import (
    CreateCandidateChatHandler,
    CreateJobChatHandler,
    MatchingChatHandler,
)
from chat_script_engine.chat.general import GeneralChatHandler
from chat_script_engine.chat.script_handler import ScriptChatHandler
from chat_script_engine.chat.session import ChatSession
from chat_script_engine.collaborators.in_memory import (
    InMemoryCandidateRepository,
    InMemoryJobRepository,
    KeyValueTextParser,
    SkillOverlapAnalyzer,
)
from chat_script_engine.config import EngineConfig
from chat_script_engine.execution.runner import ScriptRunner
from chat_script_engine.models.base import Translator, identity_translator
from chat_script_engine.models.script import ScriptDefinition
from chat_script_engine.observability.logging import get_logger
from chat_script_engine.registry.components import ComponentRegistry
from chat_script_engine.registry.defaults import register_default_components
from chat_script_engine.registry.scripts import ScriptDefinitionStore
from chat_script_engine.scripts.create_candidate import (
    build_create_candidate_script,
)
from chat_script_engine.scripts.create_job import build_create_job_script
from chat_script_engine.scripts.matching import build_matching_script

logger = get_logger(__name__)


@dataclass(frozen=True)
class Collaborators:
    """External services reached from script hooks.

    Defaults are the in-memory implementations.
    """

    candidate_parser: Any = field(default_factory=KeyValueTextParser)
    job_parser: Any = field(default_factory=KeyValueTextParser)
    candidates: Any = field(default_factory=InMemoryCandidateRepository)
    jobs: Any = field(default_factory=InMemoryJobRepository)
    analyzer: Any = field(default_factory=SkillOverlapAnalyzer)
    responder: Any = None


class ChatScriptApp:
    """
    The wired engine: registries, definition store, runner, handlers and
    dispatcher, built once and shared by every session.
    """

    def __init__(
        self,
        *,
        config: Optional[EngineConfig] = None,
        collaborators: Optional[Collaborators] = None,
        translate: Translator = identity_translator,
    ) -> None:
        self.config = config or EngineConfig()
        self.collaborators = collaborators or Collaborators()
        self.translate = translate

        self.components = register_default_components(ComponentRegistry())
        self.scripts = ScriptDefinitionStore()
        self.runner = ScriptRunner(self.components, config=self.config)
        self.dispatcher = ChatHandlerDispatcher()

        self._register_builtin_features()

    def _register_builtin_features(self) -> None:
        c = self.collaborators
        options = {"config": self.config, "translate": self.translate}

        candidate_script = build_create_candidate_script(
            c.candidate_parser, c.candidates, **options
        )
        job_script = build_create_job_script(c.job_parser, c.jobs, **options)
        matching_script = build_matching_script(
            c.job_parser, c.candidate_parser, c.jobs, c.candidates, c.analyzer, **options
        )
        for definition in (candidate_script, job_script, matching_script):
            self.scripts.register(definition)

        self.dispatcher.register(
            CreateCandidateChatHandler(candidate_script, self.runner, **options)
        )
        self.dispatcher.register(
            CreateJobChatHandler(job_script, self.runner, **options)
        )
        self.dispatcher.register(
            MatchingChatHandler(matching_script, self.runner, **options)
        )
        self.dispatcher.register(
            GeneralChatHandler(c.responder, translate=self.translate)
        )

    def add_script(
        self, definition: ScriptDefinition, **handler_options: Any
    ) -> ScriptChatHandler:
        """Registers a definition and a generic handler serving its feature.

        Replaces the built-in handler when the feature is already served.
        """
        self.scripts.register(definition)
        handler = ScriptChatHandler(
            definition,
            self.runner,
            config=self.config,
            translate=self.translate,
            **handler_options,
        )
        self.dispatcher.register(handler)
        logger.info(
            f"Script {definition.id} serves feature {definition.feature}",
            extra={
                "extra_fields": {
                    "script_id": definition.id,
                    "feature": definition.feature,
                }
            },
        )
        return handler

    def new_session(self) -> ChatSession:
        return ChatSession(self.dispatcher, config=self.config)


def build_application(
    config: Optional[EngineConfig] = None,
    collaborators: Optional[Collaborators] = None,
    *,
    translate: Translator = identity_translator,
) -> ChatScriptApp:
    return ChatScriptApp(
        config=config, collaborators=collaborators, translate=translate
    )
