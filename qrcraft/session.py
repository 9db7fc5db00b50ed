"""Render coordination: the composition pipeline and a debounced, single-threaded render session."""

import asyncio
from dataclasses import dataclass, field

from PIL import Image

from qrcraft.config import DEFAULT_DARK_THRESHOLD, DEFAULT_DEBOUNCE_MS, Settings
from qrcraft.content import ContentRecord
from qrcraft.errors import GenerationError, IncompleteContentError, InvalidOptionsError, LogoLoadError
from qrcraft.formatter import format_payload
from qrcraft.generator import render
from qrcraft.history import HistoryStore
from qrcraft.logging import audit, get_logger, trace
from qrcraft.logo import load_logo_async, try_load_logo
from qrcraft.options import RenderOptions
from qrcraft.postprocess import apply_styles, finder_regions_for, overlay_logo
from qrcraft.validator import ScanWarning, is_complete, scan_warnings

log = get_logger("session")

GENERATION_FAILED_MESSAGE = "Error generating QR code. Please try again with different settings."


@dataclass
class Composition:
    """Output of the synchronous pipeline half, before the logo is composited."""
    payload: str
    warnings: list[ScanWarning]
    styled: Image.Image


@dataclass
class RenderOutcome:
    status: str  # ok | incomplete | invalid | failed | stale
    generation: int = 0
    payload: str = ""
    image: Image.Image | None = None
    warnings: list[ScanWarning] = field(default_factory=list)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == "ok"


@trace
def prepare(
    record: ContentRecord,
    options: RenderOptions,
    threshold: int = DEFAULT_DARK_THRESHOLD,
) -> Composition:
    """Format, validate, render and style *record*; everything except the logo.

    Raises:
        InvalidOptionsError: options violate a precondition.
        IncompleteContentError: required fields are missing.
        GenerationError: the encoder rejected the payload.
    """
    options.validate()
    payload = format_payload(record)
    if not payload or not is_complete(record):
        raise IncompleteContentError(record.content_type.value)

    warnings = scan_warnings(payload, options)
    base = render(payload, options)
    regions = finder_regions_for(payload, options) if options.eye_shape != "square" else None
    styled = apply_styles(base, options, regions, threshold)
    return Composition(payload=payload, warnings=warnings, styled=styled)


@trace
def compose(
    record: ContentRecord,
    options: RenderOptions,
    logo: Image.Image | None = None,
    threshold: int = DEFAULT_DARK_THRESHOLD,
) -> tuple[Image.Image, Composition]:
    """Full synchronous pipeline. A logo is taken from *logo*, else loaded from options.logo_url."""
    composition = prepare(record, options, threshold)
    if logo is None and options.logo_url:
        logo = try_load_logo(options.logo_url)
    return overlay_logo(composition.styled, logo), composition


class RenderSession:
    """Debounced renderer for an interactively edited record.

    Every update() restarts the debounce timer, so a burst of edits produces a
    single render of the latest state. Each render takes a generation number;
    a render whose logo load finishes after a newer render started is
    discarded as stale.
    """

    def __init__(
        self,
        history: HistoryStore | None = None,
        debounce_ms: int = DEFAULT_DEBOUNCE_MS,
        threshold: int = DEFAULT_DARK_THRESHOLD,
        logo_loader=load_logo_async,
        on_render=None,
    ):
        self.history = history
        self.debounce = debounce_ms / 1000
        self.threshold = threshold
        self.record: ContentRecord | None = None
        self.options = RenderOptions()
        self.latest: RenderOutcome | None = None
        self._logo_loader = logo_loader
        self._on_render = on_render
        self._generation = 0
        self._timer: asyncio.TimerHandle | None = None
        self._tasks: set[asyncio.Task] = set()

    @classmethod
    def from_settings(cls, settings: Settings, history: HistoryStore | None = None, **kwargs) -> "RenderSession":
        """Session tuned by QRCRAFT_DEBOUNCE_MS and QRCRAFT_DARK_THRESHOLD."""
        return cls(
            history=history,
            debounce_ms=settings.debounce_ms,
            threshold=settings.dark_threshold,
            **kwargs,
        )

    @property
    def generation(self) -> int:
        return self._generation

    def update(self, record: ContentRecord | None = None, options: RenderOptions | None = None) -> None:
        """Apply an edit and (re)start the debounce timer. Must run inside the event loop."""
        if record is not None:
            self.record = record
        if options is not None:
            self.options = options
        loop = asyncio.get_running_loop()
        if self._timer is not None:
            self._timer.cancel()
        self._timer = loop.call_later(self.debounce, self._fire)

    def _fire(self) -> None:
        self._timer = None
        task = asyncio.get_running_loop().create_task(self.render_now())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def cancel(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    async def wait_idle(self) -> RenderOutcome | None:
        """Wait until no timer is pending and no render is in flight; return the latest outcome."""
        while self._timer is not None or self._tasks:
            if self._tasks:
                await asyncio.gather(*list(self._tasks))
            else:
                await asyncio.sleep(max(self.debounce / 4, 0.001))
        return self.latest

    def _finish(self, outcome: RenderOutcome) -> RenderOutcome:
        if outcome.status != "stale":
            self.latest = outcome
            if self._on_render is not None:
                self._on_render(outcome)
        audit("session.render", logger=log,
              generation=outcome.generation, status=outcome.status,
              payload=outcome.payload[:80], warnings=len(outcome.warnings))
        return outcome

    async def render_now(self) -> RenderOutcome:
        """Run the pipeline for the current record and options immediately."""
        self._generation += 1
        generation = self._generation
        record, options = self.record, self.options

        if record is None:
            return self._finish(RenderOutcome("incomplete", generation,
                                              error="Please enter the required information"))
        try:
            composition = prepare(record, options, self.threshold)
        except IncompleteContentError as e:
            return self._finish(RenderOutcome("incomplete", generation, error=str(e)))
        except InvalidOptionsError as e:
            return self._finish(RenderOutcome("invalid", generation, error=str(e)))
        except GenerationError as e:
            log.error("Error generating QR code: %s", e)
            return self._finish(RenderOutcome("failed", generation, error=GENERATION_FAILED_MESSAGE))

        logo = None
        if options.logo_url:
            try:
                logo = await self._logo_loader(options.logo_url)
            except (LogoLoadError, OSError) as e:
                log.warning("logo skipped: %s", e)
        if generation != self._generation:
            return self._finish(RenderOutcome("stale", generation, payload=composition.payload))

        image = overlay_logo(composition.styled, logo)
        if self.history is not None:
            self.history.record(record, composition.payload, options)
        return self._finish(RenderOutcome(
            "ok", generation,
            payload=composition.payload,
            image=image,
            warnings=composition.warnings,
        ))
