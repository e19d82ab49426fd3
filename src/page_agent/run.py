# run.py
# Entry point. Config and wiring only, no logic lives here.
#
# The page agent normally runs inside a browser host that supplies the
# active tab. From the terminal there is no page, so page tools report
# "No active tab available" and the model answers from conversation alone.
#
# Commands:  /tools  list registered tools
#            /clear  forget the conversation
#            /exit   quit

import asyncio

from page_agent import display
from page_agent.config import load_settings
from page_agent.session import AgentSession


async def _repl(session: AgentSession) -> None:
    while True:
        try:
            line = await asyncio.to_thread(display.console.input, "[bold cyan]you ›[/bold cyan] ")
        except (EOFError, KeyboardInterrupt):
            break

        prompt = line.strip()
        if not prompt:
            continue
        if prompt == "/exit":
            break
        if prompt == "/clear":
            session.clear()
            display.console.print("[dim]Conversation cleared.[/dim]")
            continue
        if prompt == "/tools":
            display.tool_table(session.registry.descriptors())
            continue

        await session.converse(prompt)


async def _main() -> None:
    settings = load_settings()
    display.banner(settings.provider, settings.model, settings.has_credentials)

    session = AgentSession(settings, listeners=[display.ConsoleListener()])
    await session.start()
    try:
        await _repl(session)
    finally:
        await session.close()


def main() -> None:
    asyncio.run(_main())


if __name__ == "__main__":
    main()
