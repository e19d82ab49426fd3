# session.py
# AgentSession: the explicit owner of everything one conversation needs.
#
# Settings, backend, active page, history, registry, shortcuts, solver,
# catalog providers and listeners all hang off the session object; nothing
# is kept in module globals. One converse() at a time per session.

from page_agent import display
from page_agent.activity import ActivityLog, EventListener, ListenerGroup
from page_agent.automation_tools import create_automation_tools
from page_agent.backend import ModelBackend, create_backend
from page_agent.challenge import ChallengeSolver
from page_agent.challenge_tools import create_challenge_tools
from page_agent.config import Settings
from page_agent.context import build_system_prompt, capture_page_context
from page_agent.controller import StepController
from page_agent.conversation import ConversationStore
from page_agent.dispatcher import StreamingDispatcher
from page_agent.errors import UNAVAILABLE_MESSAGE
from page_agent.models import ContentPart, ImagePart, Message, Shortcut, TextPart, TurnResult
from page_agent.page import PageAutomationSurface
from page_agent.registry import ORIGIN_ORDER, ToolRegistry
from page_agent.remote_tools import HttpToolCatalog, ToolCatalogProvider, load_remote_tools
from page_agent.shortcut_tools import create_shortcut_tools
from page_agent.shortcuts import ShortcutManager


class AgentSession:
    """
    One browser-assistant conversation.

    Example:
        session = AgentSession(load_settings(), page=tab)
        await session.start()
        reply = await session.converse("Log me in")
    """

    def __init__(
        self,
        settings: Settings,
        backend: ModelBackend | None = None,
        page: PageAutomationSurface | None = None,
        listeners: list[EventListener] | None = None,
        catalog_providers: list[ToolCatalogProvider] | None = None,
        shortcuts: ShortcutManager | None = None,
        solver: ChallengeSolver | None = None,
    ) -> None:
        self.settings = settings
        self.backend = backend if backend is not None else create_backend(settings)
        self._page = page

        self.store = ConversationStore()
        self.registry = ToolRegistry()
        self.shortcuts = shortcuts or ShortcutManager()
        self.solver = solver or ChallengeSolver(
            self.backend,
            max_iterations=settings.challenge_max_iterations,
            settle_delay=settings.challenge_settle_delay,
        )

        if catalog_providers is None:
            catalog_providers = [HttpToolCatalog(url) for url in settings.tool_server_urls]
        self.catalog_providers: list[ToolCatalogProvider] = list(catalog_providers)

        self.activity = ActivityLog()
        self.listeners = ListenerGroup([self.activity, *(listeners or [])])

    # ------------------------------------------------------------------
    # Page
    # ------------------------------------------------------------------

    @property
    def page(self) -> PageAutomationSurface | None:
        return self._page

    def set_page(self, page: PageAutomationSurface | None) -> None:
        """Point tools, context capture and the solver at another page."""
        self._page = page

    def _get_page(self) -> PageAutomationSurface | None:
        return self._page

    # ------------------------------------------------------------------
    # Tools
    # ------------------------------------------------------------------

    async def reload_tools(self) -> ToolRegistry:
        sources = {
            "automation": create_automation_tools(self._get_page),
            "shortcuts": create_shortcut_tools(self.shortcuts),
            "challenge": create_challenge_tools(self._get_page, self.solver),
            "remote": await load_remote_tools(self.catalog_providers),
        }
        self.registry.build([(origin, sources[origin]) for origin in ORIGIN_ORDER])
        return self.registry

    async def start(self) -> "AgentSession":
        if self.backend is None:
            display.backend_unavailable(self.settings.api_key_name)
        await self.reload_tools()
        return self

    async def close(self) -> None:
        for provider in self.catalog_providers:
            aclose = getattr(provider, "aclose", None)
            if aclose is not None:
                await aclose()

    # ------------------------------------------------------------------
    # Conversation
    # ------------------------------------------------------------------

    @property
    def messages(self) -> list[Message]:
        return self.store.snapshot()

    def clear(self) -> None:
        self.store.clear()
        self.activity.clear()

    async def converse(self, text: str) -> str:
        """Run one user turn and return the assistant's final text."""
        result = await self.converse_turn(text)
        return result.text

    async def converse_turn(self, text: str) -> TurnResult:
        display.prompt_received(text)

        if self.backend is None:
            self.listeners.on_error("unavailable", UNAVAILABLE_MESSAGE)
            self.listeners.on_turn_complete(UNAVAILABLE_MESSAGE)
            return TurnResult(text=UNAVAILABLE_MESSAGE, steps=0, error=UNAVAILABLE_MESSAGE)

        if not len(self.registry):
            await self.reload_tools()

        context = await capture_page_context(self._page)
        system_prompt = build_system_prompt(context.url, context.text, self.settings.max_context_chars)

        content: str | list[ContentPart] = text
        if context.screenshot:
            content = [ImagePart(image=context.screenshot), TextPart(text=text)]
        self.store.append(Message(role="user", content=content))

        controller = StepController(
            StreamingDispatcher(self.backend, self.registry, self.store),
            self.registry,
            self.store,
            self.listeners,
            max_steps=self.settings.max_steps,
        )
        result = await controller.converse(system_prompt)
        self.listeners.on_turn_complete(result.text)
        return result

    # ------------------------------------------------------------------
    # Shortcuts
    # ------------------------------------------------------------------

    async def trigger_shortcut(self, identifier: str) -> Shortcut | None:
        """
        Run a shortcut as if its accelerator had been pressed.

        Code runs on the active page (failures are reported, not raised);
        a prompt is sent through converse().
        """
        shortcut = self.shortcuts.find(identifier)
        if shortcut is None:
            return None

        display.shortcut_triggered(shortcut.name, shortcut.accelerator)
        action = shortcut.action

        if action.type in ("code", "both") and action.code:
            if self._page is None:
                display.no_active_page(f"shortcut {shortcut.name!r}")
            else:
                try:
                    await self._page.run_script(action.code)
                except Exception as exc:
                    display.shortcut_code_failed(shortcut.name, exc)

        if action.type in ("prompt", "both") and action.prompt:
            await self.converse(f"[Keyboard Shortcut: {shortcut.name}]\n\n{action.prompt}")

        return shortcut
