# page.py
# Boundary to the tab/page component. The agent never renders or drives a
# browser itself; it talks to whatever implements this protocol.

from typing import Any, Callable, Protocol


class PageImage(Protocol):
    def to_data_url(self) -> str: ...


class PageAutomationSurface(Protocol):
    """The active page as seen by tools, the context enricher and the solver."""

    @property
    def current_url(self) -> str: ...

    @property
    def current_title(self) -> str: ...

    async def run_script(self, code: str) -> Any:
        """Evaluate JavaScript in the page and return the last expression's value."""
        ...

    async def navigate(self, url: str) -> None: ...

    async def screenshot(self) -> PageImage: ...

    async def extract_plain_text(self) -> str: ...


PageGetter = Callable[[], "PageAutomationSurface | None"]
