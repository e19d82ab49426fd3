# challenge_tools.py
# Tools exposing the Challenge Solver to the model.
# Only the outcome crosses this boundary; solver state stays inside.

from typing import Any

from pydantic import Field

from page_agent.challenge import ChallengeSolver
from page_agent.models import ToolArgs, ToolDescriptor
from page_agent.page import PageAutomationSurface, PageGetter
from page_agent.registry import tool, with_active_page


class DetectChallengeArgs(ToolArgs):
    pass


class SolveChallengeArgs(ToolArgs):
    force_retry: bool = Field(
        False,
        description="Attempt to solve even if nothing was detected at first (the challenge may appear late).",
    )


class SolveTextChallengeArgs(ToolArgs):
    question: str = Field(..., description="The challenge question, e.g. 'What is 5 + 3?'.")
    selector: str | None = Field(None, description="Input to fill with the answer. Omit to only return it.")


class SolveImageChallengeArgs(ToolArgs):
    question: str = Field(..., description="The instruction, e.g. 'Enter the characters shown in the image'.")
    image_selector: str | None = Field(None, description="CSS selector of the challenge image.")
    answer_selector: str | None = Field(None, description="Input to fill with the answer.")


class FillChallengeAnswerArgs(ToolArgs):
    selector: str = Field(..., description="CSS selector of the answer input, e.g. '#captcha-input'.")
    answer: str = Field(..., description="Answer to write into the field.")


def create_challenge_tools(get_page: PageGetter, solver: ChallengeSolver) -> list[ToolDescriptor]:
    async def _answer_payload(
        page: PageAutomationSurface, answer: str, selector: str | None, label: str
    ) -> dict[str, Any]:
        if not answer:
            return {"success": False, "error": f"Failed to solve {label}"}
        if not selector:
            return {"success": True, "message": f"{label} solved: {answer}", "answer": answer}
        if await solver.fill_answer(page, selector, answer):
            return {"success": True, "message": f"Solved and filled {label} with answer: {answer}", "answer": answer}
        return {
            "success": True,
            "message": f"Solved {label} but couldn't auto-fill. Answer: {answer}",
            "answer": answer,
            "warning": "Could not find or fill the input field",
        }

    async def detect_challenge(args: DetectChallengeArgs) -> dict[str, Any]:
        async def body(page: PageAutomationSurface) -> dict[str, Any]:
            detection = await solver.detect(page)
            if not detection.found:
                return {"success": True, "found": False, "message": "No challenge detected on this page"}
            return {
                "success": True,
                "found": True,
                "type": detection.type,
                "provider": detection.provider,
                "message": f"Found {detection.type} challenge",
                "selector": detection.selector,
                "question": detection.question,
                "imageUrl": detection.image_url,
            }

        return await with_active_page(get_page, body)

    async def solve_challenge(args: SolveChallengeArgs) -> dict[str, Any]:
        async def body(page: PageAutomationSurface) -> dict[str, Any]:
            if args.force_retry and not (await solver.detect(page)).found:
                # A late challenge may still be mounting.
                await solver.settle()
            outcome = await solver.solve(page)
            payload: dict[str, Any] = {
                "success": outcome.success,
                "status": outcome.status,
                "message": outcome.message,
                "iterations": outcome.iterations,
            }
            if outcome.answer is not None:
                payload["answer"] = outcome.answer
            if not outcome.success:
                payload["error"] = outcome.message
            return payload

        return await with_active_page(get_page, body)

    async def solve_text_challenge(args: SolveTextChallengeArgs) -> dict[str, Any]:
        async def body(page: PageAutomationSurface) -> dict[str, Any]:
            answer = await solver.solve_text(page, args.question)
            return await _answer_payload(page, answer, args.selector, "CAPTCHA")

        return await with_active_page(get_page, body)

    async def solve_image_challenge(args: SolveImageChallengeArgs) -> dict[str, Any]:
        async def body(page: PageAutomationSurface) -> dict[str, Any]:
            answer = await solver.solve_image(page, args.question)
            return await _answer_payload(page, answer, args.answer_selector, "image CAPTCHA")

        return await with_active_page(get_page, body)

    async def fill_challenge_answer(args: FillChallengeAnswerArgs) -> dict[str, Any]:
        async def body(page: PageAutomationSurface) -> dict[str, Any]:
            if await solver.fill_answer(page, args.selector, args.answer):
                return {"success": True, "message": f"Successfully filled CAPTCHA answer: {args.answer}"}
            return {"success": False, "error": f"Could not find or fill input field with selector: {args.selector}"}

        return await with_active_page(get_page, body)

    return [
        tool(
            "detectChallenge",
            "Check the current page for a verification challenge (CAPTCHA). Returns its type "
            "(checkbox-grid, text, image) plus the selector and question when available.",
            DetectChallengeArgs,
            detect_challenge,
        ),
        tool(
            "solveChallenge",
            "Detect and solve the verification challenge on the current page using vision. Grid challenges "
            "are worked round by round until they disappear or a round limit is hit; text and image "
            "challenges are answered and filled in.",
            SolveChallengeArgs,
            solve_challenge,
        ),
        tool(
            "solveTextChallenge",
            "Answer a text challenge (math problem, distorted text) from a screenshot, optionally filling the answer.",
            SolveTextChallengeArgs,
            solve_text_challenge,
        ),
        tool(
            "solveImageChallenge",
            "Read an image challenge from a screenshot, optionally filling the answer.",
            SolveImageChallengeArgs,
            solve_image_challenge,
        ),
        tool(
            "fillChallengeAnswer",
            "Write a known challenge answer into an input field on the page.",
            FillChallengeAnswerArgs,
            fill_challenge_answer,
        ),
    ]
