"""Vision-guided agent loop.

Each step: screenshot -> model decision -> decoded action -> browser action
-> (after click/type) contact scan. The loop ends when the model answers
DONE, the step budget runs out, or a gateway/browser error occurs; every
outcome is reported as an AgentResult carrying whatever was collected.
"""

import asyncio
import time
import uuid
from typing import Callable, Optional

from loguru import logger

from contact_scout.agent.decoder import ActionDecoder
from contact_scout.agent.models import (
    Action,
    AgentResult,
    ClickAction,
    DoneAction,
    ProgressEvent,
    RunState,
    RunStatus,
    ScrollAction,
    ScrollDirection,
    TypeAction,
    Viewport,
)
from contact_scout.agent.search import (
    ContactSearchParams,
    build_search_url,
    build_task,
    preprocess_task,
)
from contact_scout.analytics.metrics import MetricsTracker
from contact_scout.browser.port import BrowserControl
from contact_scout.config import AgentSettings
from contact_scout.errors import BrowserError, GatewayError, InvalidCoordinates, RunCancelled
from contact_scout.extraction.pipeline import ContactPipeline
from contact_scout.extraction.vision_extractor import VisionContactExtractor


ProgressCallback = Callable[[ProgressEvent], None]


class VisionAgent:
    """Drives one browser with model decisions until DONE or the step budget runs out"""

    def __init__(
        self,
        browser: BrowserControl,
        gateway,
        pipeline: Optional[ContactPipeline] = None,
        settings: Optional[AgentSettings] = None,
        decoder: Optional[ActionDecoder] = None,
        metrics: Optional[MetricsTracker] = None,
        correlation_id: Optional[str] = None,
    ):
        """
        Args:
            browser: Browser control port
            gateway: Model gateway (anything with async decide() and generate())
            pipeline: Contact pipeline; built with text and vision extractors if omitted
            settings: Step budget and pacing delays
            decoder: Action decoder; fallbacks are counted in metrics if omitted
            metrics: Run metrics tracker
            correlation_id: Prefix for log lines; a short uuid if omitted
        """
        self.browser = browser
        self.gateway = gateway
        self.settings = settings or AgentSettings()
        self.correlation_id = correlation_id or str(uuid.uuid4())[:8]
        self.metrics = metrics or MetricsTracker()
        self.decoder = decoder or ActionDecoder(on_fallback=self.metrics.record_parse_fallback)
        self.pipeline = pipeline or ContactPipeline(
            vision_extractor=VisionContactExtractor(gateway, correlation_id=self.correlation_id),
            metrics=self.metrics,
            correlation_id=self.correlation_id,
        )

    async def run(
        self,
        task: Optional[str] = None,
        max_steps: Optional[int] = None,
        start_url: Optional[str] = None,
        params: Optional[ContactSearchParams] = None,
        cancel_event: Optional[asyncio.Event] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> AgentResult:
        """
        Execute one task to a terminal status.

        Args:
            task: Natural-language task; built from params when omitted
            max_steps: Step budget (defaults to settings.max_steps)
            start_url: Page to open before the first step; the search URL for params when omitted
            params: Structured contact search (target, location, depth, max results)
            cancel_event: Set it to stop the run before the next step
            on_progress: Receives step messages and every captured screenshot

        Returns:
            AgentResult (never raises for gateway, browser or unexpected errors)
        """
        if not task:
            if params is None:
                raise ValueError("task or params is required")
            task = build_task(params)
        if params is not None and not start_url:
            start_url = build_search_url(params)

        state = RunState(
            task=task,
            max_steps=self.settings.max_steps if max_steps is None else max_steps,
            run_id=self.correlation_id,
            action_log_limit=self.settings.action_log_limit,
            max_candidates=self.pipeline.scoring.max_candidates,
        )
        scope = _ScanScope(params, self.settings.vision_extraction)
        instruction = preprocess_task(task)

        registration = None
        if on_progress:
            registration = self.browser.register_screenshot_callback(
                lambda shot: self._emit(on_progress, ProgressEvent(state.step_index, "Screenshot captured", shot))
            )

        state.start()
        logger.info(f"[{self.correlation_id}] Starting vision agent: {task} (max {state.max_steps} steps)")
        self._emit(on_progress, ProgressEvent(0, f"Starting task: {task}"))

        try:
            if start_url:
                await self.browser.navigate(start_url)
                if self.settings.page_load_delay:
                    await asyncio.sleep(self.settings.page_load_delay)

            while state.step_index < state.max_steps:
                self._check_cancelled(cancel_event, state)
                if await self._step(state, instruction, scope, on_progress):
                    break

            if not state.is_terminal:
                state.finish(
                    RunStatus.STOPPED_AT_LIMIT,
                    summary=f"Reached step limit ({state.max_steps}) with {len(state.contacts)} contacts",
                )
                logger.warning(f"[{self.correlation_id}] Step budget exhausted after {state.step_index} steps")

        except RunCancelled as e:
            state.cancelled = True
            state.finish(RunStatus.FAILED, error=str(e))
            self.metrics.record_failure("cancelled", "vision_agent", str(e), {"step": e.step})
            logger.warning(f"[{self.correlation_id}] Run cancelled at step {e.step}")
        except GatewayError as e:
            state.finish(RunStatus.FAILED, error=str(e))
            self.metrics.record_failure("gateway", "model_gateway", str(e), {"step": state.step_index})
            logger.error(f"[{self.correlation_id}] Gateway error at step {state.step_index + 1}: {e}")
        except BrowserError as e:
            state.finish(RunStatus.FAILED, error=str(e))
            self.metrics.record_failure("browser", "browser_control", str(e), {"step": state.step_index})
            logger.error(f"[{self.correlation_id}] Browser error at step {state.step_index + 1}: {e}")
        except Exception as e:
            state.finish(RunStatus.FAILED, error=f"Unexpected error: {e}")
            self.metrics.record_failure("unexpected", "vision_agent", str(e), {"step": state.step_index})
            logger.exception(f"[{self.correlation_id}] Unexpected error in agent loop: {e}")
        finally:
            if registration:
                registration.remove()

        final_url = await self._final_url()
        result = AgentResult.from_state(state, final_url)

        if result.success:
            logger.success(f"[{self.correlation_id}] Task completed in {result.steps} steps: {result.summary}")
        logger.info(f"[{self.correlation_id}] Run finished ({result.status.value}), {len(result.contacts)} contacts")
        logger.debug(f"[{self.correlation_id}] Metrics: {self.metrics.get_summary()}")
        self._emit(on_progress, ProgressEvent(result.steps, f"Finished: {result.status.value}"))
        return result

    async def _step(self, state: RunState, instruction: str, scope: "_ScanScope", on_progress) -> bool:
        """Run one step; returns True when the model declared the task done"""
        step = state.step_index + 1
        logger.info(f"[{self.correlation_id}] Step {step}/{state.max_steps}")

        screenshot = await self.browser.screenshot()
        viewport = await self._viewport()
        started = time.monotonic()
        raw = await self.gateway.decide(screenshot, instruction, viewport)
        self.metrics.record_gateway_call(time.monotonic() - started)
        screenshot = None

        action = self.decoder.parse(raw)
        logger.info(f"[{self.correlation_id}] Model action: {action.describe()}")

        if isinstance(action, DoneAction):
            await self.pipeline.scan(self.browser, state, **scope.kwargs())
            state.log_action(f"Step {step}: {action.describe()}")
            self.metrics.record_action(action.kind)
            self.metrics.record_step()
            state.step_index = step
            state.finish(RunStatus.SUCCEEDED, summary=action.summary)
            self._emit(on_progress, ProgressEvent(step, action.describe()))
            return True

        executed = await self._dispatch(action, state, step)
        self._emit(on_progress, ProgressEvent(step, executed.describe()))

        if isinstance(executed, (ClickAction, TypeAction)):
            await self.pipeline.scan(self.browser, state, **scope.kwargs())

        if self.settings.step_delay:
            await asyncio.sleep(self.settings.step_delay)

        state.step_index = step
        self.metrics.record_step()
        return False

    async def _dispatch(self, action: Action, state: RunState, step: int) -> Action:
        """Execute a non-terminal action; returns the action actually performed"""
        if isinstance(action, ClickAction):
            try:
                x, y = await self.browser.click(action.x, action.y)
                executed = ClickAction(x=x, y=y)
                state.log_action(f"Step {step}: {executed.describe()}")
                self.metrics.record_action(executed.kind)
                return executed
            except InvalidCoordinates as e:
                logger.warning(f"[{self.correlation_id}] {e}, scrolling down instead")
                self.metrics.record_invalid_click()
                action = ScrollAction(direction=ScrollDirection.DOWN)

        if isinstance(action, TypeAction):
            await self.browser.type(action.text, action.submit)
        elif isinstance(action, ScrollAction):
            await self.browser.scroll(action.direction)

        state.log_action(f"Step {step}: {action.describe()}")
        self.metrics.record_action(action.kind)
        return action

    def _check_cancelled(self, cancel_event: Optional[asyncio.Event], state: RunState):
        if cancel_event is not None and cancel_event.is_set():
            raise RunCancelled(state.step_index)

    async def _viewport(self) -> Optional[Viewport]:
        try:
            return await self.browser.viewport()
        except BrowserError as e:
            logger.debug(f"[{self.correlation_id}] Viewport unavailable: {e}")
            return None

    async def _final_url(self) -> str:
        try:
            return await self.browser.current_url()
        except BrowserError as e:
            logger.debug(f"[{self.correlation_id}] Could not read final URL: {e}")
            return ""

    def _emit(self, on_progress: Optional[ProgressCallback], event: ProgressEvent):
        if not on_progress:
            return
        try:
            on_progress(event)
        except Exception as e:
            logger.debug(f"[{self.correlation_id}] Progress callback error: {e}")


class _ScanScope:
    """Per-run extraction options derived from the search parameters"""

    def __init__(self, params: Optional[ContactSearchParams], vision_extraction: bool):
        self.target = params.target if params else None
        self.location = params.location if params else None
        self.max_results = params.max_results if params else None
        self.use_vision = vision_extraction or bool(params and params.thorough)

    def kwargs(self) -> dict:
        return {
            "target": self.target,
            "location": self.location,
            "use_vision": self.use_vision,
            "max_results": self.max_results,
        }
