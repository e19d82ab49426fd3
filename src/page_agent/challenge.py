# challenge.py
# Challenge Solver: detects an interactive verification challenge on the
# active page and works through it with vision model queries.
#
# Control flow (grid path):
#   detect → acknowledge checkbox → settle
#   → (present? → screenshot → GridJudgment → click cells → verify → wait)*
#   → resolved | exhausted | unsolvable | failed
#
# Every page interaction is a separate run_script call driven from here, so
# the jitter between clicks lives in Python and can be replaced in tests.

import asyncio
import json
import random
import re
from typing import Awaitable, Callable

from page_agent import display
from page_agent.backend import ModelBackend
from page_agent.errors import BackendUnavailableError
from page_agent.models import (
    ChallengeDetection,
    ChallengeOutcome,
    ChallengeSession,
    GridJudgment,
    ImagePart,
    Message,
    TextPart,
)
from page_agent.page import PageAutomationSurface

Sleep = Callable[[float], Awaitable[None]]

NOT_CONFIGURED = "LLM model not initialized. Please configure your API key in .env file."

TEXT_INPUT_SELECTOR = 'input[name*="captcha" i], input[id*="captcha" i]'
IMAGE_SELECTOR = 'img[alt*="captcha" i], img[src*="captcha" i]'

# Jitter ranges, seconds.
INITIAL_CLICK_DELAY = (0.2, 0.5)
BETWEEN_CLICK_DELAY = (0.3, 0.8)
BEFORE_VERIFY_DELAY = (0.5, 1.0)
ROUND_DELAY = (2.0, 4.0)


# ---------------------------------------------------------------------------
# Page scripts
# ---------------------------------------------------------------------------

DETECT_SCRIPT = """
(function() {
  const recaptcha = document.querySelector('.g-recaptcha, #recaptcha, iframe[src*="recaptcha"]')
    || document.querySelector('.recaptcha-checkbox, iframe[title*="recaptcha"]');
  if (recaptcha) {
    return { found: true, kind: 'recaptcha', selector: '.g-recaptcha' };
  }
  if (document.querySelector('.h-captcha, #hcaptcha, iframe[src*="hcaptcha"]')) {
    return { found: true, kind: 'hcaptcha', selector: '.h-captcha' };
  }
  const label = document.querySelector('label[for*="captcha" i]');
  const img = document.querySelector('img[alt*="captcha" i], img[src*="captcha" i]');
  if (img) {
    const question = (img.parentElement && img.parentElement.textContent || '').trim()
      || (label && label.textContent || '').trim()
      || 'What is shown in this image?';
    return { found: true, kind: 'image', selector: 'img[alt*="captcha" i], img[src*="captcha" i]', imageUrl: img.src, question };
  }
  const input = document.querySelector('input[name*="captcha" i], input[id*="captcha" i]');
  if (input) {
    const question = (label && label.textContent || '').trim()
      || (input.parentElement && input.parentElement.textContent || '').trim()
      || 'Solve the CAPTCHA';
    return { found: true, kind: 'text', selector: 'input[name*="captcha" i], input[id*="captcha" i]', question };
  }
  return { found: false };
})()
"""

PRESENCE_SCRIPT = """
(function() {
  const frames = document.querySelectorAll('iframe[src*="recaptcha"], iframe[src*="hcaptcha"]');
  for (const frame of frames) {
    const rect = frame.getBoundingClientRect();
    if (rect.width > 300 && rect.height > 300) return true;
  }
  return false;
})()
"""

CHECKBOX_SCRIPT = """
(function() {
  const frames = document.querySelectorAll('iframe[src*="recaptcha"], iframe[title*="recaptcha"]');
  for (const frame of frames) {
    try {
      const rect = frame.getBoundingClientRect();
      if (rect.width < 400 && rect.height < 100) {
        const doc = frame.contentDocument || frame.contentWindow.document;
        const checkbox = doc.querySelector('.recaptcha-checkbox-border, #recaptcha-anchor');
        if (checkbox) {
          checkbox.click();
          return true;
        }
      }
    } catch (e) {
      frame.click();
      return true;
    }
  }
  return false;
})()
"""

# Shared prologue: resolves `cells` and `doc` inside the challenge frame.
_FRAME_PROLOGUE = """
  const frames = Array.from(document.querySelectorAll('iframe[src*="recaptcha"], iframe[src*="hcaptcha"]'));
  let frame = frames.find(f => {
    const rect = f.getBoundingClientRect();
    return rect.width > 300 && rect.height > 300;
  });
  if (!frame) {
    frame = frames.find(f => /challenge/i.test(f.title || '') || /challenge/i.test(f.name || ''));
  }
  if (!frame) return null;
  let doc;
  try {
    doc = frame.contentDocument || frame.contentWindow.document;
  } catch (e) {
    return null;
  }
  if (!doc) return null;
  const cells = doc.querySelectorAll('td.rc-imageselect-tile, .task-image, .challenge-container .image');
"""

CELL_COUNT_SCRIPT = f"""
(function() {{
{_FRAME_PROLOGUE}
  return cells.length;
}})()
"""

VERIFY_SCRIPT = f"""
(function() {{
{_FRAME_PROLOGUE}
  const button = doc.querySelector('#recaptcha-verify-button, .button-submit, [type="submit"]');
  if (!button) return false;
  button.click();
  return true;
}})()
"""


def _cell_click_script(cell_index: int) -> str:
    return f"""
(function() {{
{_FRAME_PROLOGUE}
  const cell = cells[{int(cell_index)}];
  if (!cell) return false;
  cell.click();
  return true;
}})()
"""


def _fill_script(selector: str, answer: str) -> str:
    return f"""
(function() {{
  const element = document.querySelector({json.dumps(selector)});
  if (!element) return false;
  if (element.tagName !== 'INPUT' && element.tagName !== 'TEXTAREA') return false;
  element.value = {json.dumps(answer)};
  element.dispatchEvent(new Event('input', {{ bubbles: true }}));
  element.dispatchEvent(new Event('change', {{ bubbles: true }}));
  return true;
}})()
"""


# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------

GRID_PROMPT = """\
This is a {provider} challenge. Analyze the image grid and the prompt to determine which images should be selected.

Analyze this challenge and identify which images match the prompt.

Rules:
- Count images from 1, starting top-left, going left-to-right, top-to-bottom
- Only include image numbers that match the prompt criteria
- Be accurate and conservative - only select images that clearly match"""

TEXT_PROMPT = """\
You are a CAPTCHA solver. Look at the screenshot and answer the CAPTCHA question.

Question: {question}

Instructions:
- Look carefully at the CAPTCHA image in the screenshot
- Provide ONLY the answer, nothing else
- For math problems, provide just the number
- For text recognition, provide the exact text you see
- Be concise and accurate

Answer:"""

IMAGE_PROMPT = """\
You are a CAPTCHA solver. Look at the CAPTCHA image and answer the question.

Question: {question}

The CAPTCHA image is visible in the screenshot. Please analyze it carefully.

Instructions:
- Identify the text, numbers, or pattern in the CAPTCHA
- Provide ONLY the answer, nothing else
- For distorted text, try your best to read it
- Be accurate and concise

Answer:"""


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_NON_ALNUM = re.compile(r"[^a-zA-Z0-9\s]")


def normalize_answer(raw: str) -> str:
    """First line only, with everything but letters, digits and whitespace removed."""
    lines = raw.strip().split("\n")
    return _NON_ALNUM.sub("", lines[0])


def select_cells(indices: list[int], cell_count: int) -> list[int]:
    """
    Convert 1-based image numbers into 0-based cell indices.

    Out-of-range numbers are dropped. Order is kept, duplicates are not.
    """
    cells: list[int] = []
    for index in indices:
        cell = index - 1
        if 0 <= cell < cell_count and cell not in cells:
            cells.append(cell)
    return cells


def _plural(n: int, word: str) -> str:
    return f"{n} {word}" if n == 1 else f"{n} {word}s"


# ---------------------------------------------------------------------------
# Solver
# ---------------------------------------------------------------------------


class ChallengeSolver:
    """
    Detect-and-solve procedure for verification challenges.

    The grid loop checks its bound at loop entry: with max_iterations=20 a
    challenge that never goes away is reported exhausted after exactly 20
    rounds. sleep and rng are injectable so tests run instantly.
    """

    def __init__(
        self,
        backend: ModelBackend | None,
        max_iterations: int = 20,
        settle_delay: float = 2.0,
        round_delay: tuple[float, float] = ROUND_DELAY,
        sleep: Sleep = asyncio.sleep,
        rng: random.Random | None = None,
    ) -> None:
        if max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")
        self._backend = backend
        self.max_iterations = max_iterations
        self.settle_delay = settle_delay
        self.round_delay = round_delay
        self._sleep = sleep
        self._rng = rng or random.Random()

    async def settle(self) -> None:
        await self._sleep(self.settle_delay)

    async def _jitter(self, bounds: tuple[float, float]) -> None:
        await self._sleep(self._rng.uniform(*bounds))

    def _require_backend(self) -> ModelBackend:
        if self._backend is None:
            raise BackendUnavailableError(NOT_CONFIGURED)
        return self._backend

    # ------------------------------------------------------------------
    # Detection
    # ------------------------------------------------------------------

    async def detect(self, page: PageAutomationSurface) -> ChallengeDetection:
        try:
            raw = await page.run_script(DETECT_SCRIPT)
        except Exception as exc:
            display.challenge_error("detection", exc)
            return ChallengeDetection(found=False)

        if not isinstance(raw, dict) or not raw.get("found"):
            return ChallengeDetection(found=False)

        kind = raw.get("kind")
        if kind in ("recaptcha", "hcaptcha"):
            return ChallengeDetection(found=True, type="checkbox-grid", provider=kind, selector=raw.get("selector"))
        if kind in ("image", "text"):
            return ChallengeDetection(
                found=True,
                type=kind,
                selector=raw.get("selector"),
                image_url=raw.get("imageUrl"),
                question=raw.get("question"),
            )
        return ChallengeDetection(found=True, type="unknown", selector=raw.get("selector"))

    async def is_present(self, page: PageAutomationSurface) -> bool:
        try:
            return bool(await page.run_script(PRESENCE_SCRIPT))
        except Exception:
            return False

    # ------------------------------------------------------------------
    # Text / image answers
    # ------------------------------------------------------------------

    async def _answer_from_screenshot(self, page: PageAutomationSurface, prompt: str) -> str:
        backend = self._require_backend()
        image = await page.screenshot()
        message = Message(role="user", content=[ImagePart(image=image.to_data_url()), TextPart(text=prompt)])
        return normalize_answer(await backend.text_query([message]))

    async def solve_text(self, page: PageAutomationSurface, question: str) -> str:
        """Ask the model for the answer to a text challenge. Raises on failure."""
        return await self._answer_from_screenshot(page, TEXT_PROMPT.format(question=question))

    async def solve_image(self, page: PageAutomationSurface, question: str) -> str:
        """Ask the model to read an image challenge. Raises on failure."""
        return await self._answer_from_screenshot(page, IMAGE_PROMPT.format(question=question))

    async def fill_answer(self, page: PageAutomationSurface, selector: str, answer: str) -> bool:
        try:
            return bool(await page.run_script(_fill_script(selector, answer)))
        except Exception as exc:
            display.challenge_error("fill", exc)
            return False

    # ------------------------------------------------------------------
    # Grid path
    # ------------------------------------------------------------------

    async def _acknowledge(self, page: PageAutomationSurface) -> bool:
        try:
            clicked = bool(await page.run_script(CHECKBOX_SCRIPT))
        except Exception as exc:
            display.challenge_error("checkbox click", exc)
            clicked = False
        display.challenge_acknowledge(clicked)
        return clicked

    async def _judge_grid(self, page: PageAutomationSurface, provider: str) -> GridJudgment:
        backend = self._require_backend()
        image = await page.screenshot()
        message = Message(
            role="user",
            content=[ImagePart(image=image.to_data_url()), TextPart(text=GRID_PROMPT.format(provider=provider))],
        )
        return await backend.structured_query([message], GridJudgment)

    async def _apply_selections(self, page: PageAutomationSurface, judgment: GridJudgment) -> int:
        """Click the selected cells, then verify. Returns the number of cells clicked."""
        cell_count = await page.run_script(CELL_COUNT_SCRIPT)
        cells = select_cells(judgment.selected_images, int(cell_count or 0))
        if not cells:
            return 0

        clicked = 0
        await self._jitter(INITIAL_CLICK_DELAY)
        for position, cell in enumerate(cells):
            if await page.run_script(_cell_click_script(cell)):
                clicked += 1
            if position < len(cells) - 1:
                await self._jitter(BETWEEN_CLICK_DELAY)

        if clicked:
            await self._jitter(BEFORE_VERIFY_DELAY)
            await page.run_script(VERIFY_SCRIPT)
        return clicked

    async def _solve_grid(self, page: PageAutomationSurface, detection: ChallengeDetection) -> ChallengeOutcome:
        session = ChallengeSession(
            type=detection.type,
            selector=detection.selector,
            max_iterations=self.max_iterations,
        )
        provider = detection.provider or "verification"

        await self._acknowledge(page)
        await self.settle()

        while True:
            if not await self.is_present(page):
                return ChallengeOutcome(
                    status="resolved",
                    success=True,
                    message=f"Challenge solved after {_plural(session.iteration, 'iteration')}.",
                    iterations=session.iteration,
                )
            if session.iteration >= session.max_iterations:
                return ChallengeOutcome(
                    status="exhausted",
                    success=False,
                    message=(
                        f"Attempted {_plural(session.iteration, 'iteration')} but the challenge is still present. "
                        "There may be an issue with the solver."
                    ),
                    iterations=session.iteration,
                )

            session.iteration += 1
            display.challenge_iteration(session.iteration, session.max_iterations)

            judgment = await self._judge_grid(page, provider)
            display.challenge_judgment(judgment)

            clicked = await self._apply_selections(page, judgment)
            if clicked == 0:
                detail = (
                    f"Identified images {judgment.selected_images} but none could be clicked."
                    if judgment.selected_images
                    else "No images identified for selection."
                )
                return ChallengeOutcome(
                    status="unsolvable",
                    success=False,
                    message=f"{detail} Prompt: {judgment.prompt}",
                    iterations=session.iteration,
                )

            await self._jitter(self.round_delay)

    # ------------------------------------------------------------------
    # Text / image path
    # ------------------------------------------------------------------

    async def _solve_answer(self, page: PageAutomationSurface, detection: ChallengeDetection) -> ChallengeOutcome:
        question = detection.question or ("What is shown in this image?" if detection.type == "image" else "Solve the CAPTCHA")
        if detection.type == "image":
            answer = await self.solve_image(page, question)
            target = TEXT_INPUT_SELECTOR
        else:
            answer = await self.solve_text(page, question)
            target = detection.selector or TEXT_INPUT_SELECTOR

        if not answer:
            return ChallengeOutcome(status="failed", success=False, message="Failed to solve CAPTCHA", iterations=1)

        if await self.fill_answer(page, target, answer):
            return ChallengeOutcome(
                status="resolved", success=True, message=f"CAPTCHA solved: {answer}", answer=answer, iterations=1
            )
        return ChallengeOutcome(
            status="failed",
            success=False,
            message=f'Solved as "{answer}" but couldn\'t fill automatically',
            answer=answer,
            iterations=1,
        )

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    async def solve(self, page: PageAutomationSurface) -> ChallengeOutcome:
        """
        Detect and work through whatever challenge the page shows.

        Never raises. Model or page failures come back as a failed outcome.
        """
        detection = await self.detect(page)
        if not detection.found:
            outcome = ChallengeOutcome(status="not_detected", success=True, message="No challenge detected on this page")
            display.challenge_outcome(outcome)
            return outcome

        display.challenge_detected(detection)

        if self._backend is None:
            outcome = ChallengeOutcome(status="failed", success=False, message=NOT_CONFIGURED)
            display.challenge_outcome(outcome)
            return outcome

        try:
            if detection.type == "checkbox-grid":
                outcome = await self._solve_grid(page, detection)
            elif detection.type in ("text", "image"):
                outcome = await self._solve_answer(page, detection)
            else:
                outcome = ChallengeOutcome(status="unsolvable", success=False, message="Unknown challenge type")
        except Exception as exc:
            display.challenge_error("solve", exc)
            outcome = ChallengeOutcome(status="failed", success=False, message=f"Failed to analyze challenge: {exc}")

        display.challenge_outcome(outcome)
        return outcome
