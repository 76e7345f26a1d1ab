"""
Renderers for blockflow experiments.

The experiment hands each step's content to a Renderer and never looks
inside it. A renderer must call on_displayed() once the content has actually
reached the screen; the experiment stamps the step's startTime at that moment.

Available renderers:
- WindowRenderer: draws content in a pyglet window
- NullRenderer: headless, remembers what it was asked to show
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, List, Optional
import logging

import pyglet

logger = logging.getLogger(__name__)

DisplayedCallback = Callable[[], None]


class Renderer(ABC):
    """Presents step content."""

    @abstractmethod
    def show(self, content: Any, experiment, on_displayed: DisplayedCallback):
        """
        Present a step's content.

        Args:
            content: The step's content handle
            experiment: Running Experiment (content may need it to call
                        experiment.complete_current_step())
            on_displayed: Call once when the content is first on screen
        """
        pass

    @abstractmethod
    def clear(self):
        """Remove whatever is displayed (blank screen)."""
        pass


class NullRenderer(Renderer):
    """
    Renderer without a display.

    Reports content as displayed immediately. Keeps the history of shown
    content so scripted runs can inspect it.
    """

    def __init__(self):
        self.current: Optional[Any] = None
        self.shown: List[Any] = []
        self.clear_count = 0

    def show(self, content: Any, experiment, on_displayed: DisplayedCallback):
        self.current = content
        self.shown.append(content)
        on_displayed()

    def clear(self):
        self.current = None
        self.clear_count += 1


class WindowRenderer(Renderer):
    """
    Renderer that draws step content in a pyglet window.

    Content can be:
    - a string: drawn as a centered multiline label
    - a callable content(experiment): must return a drawable (anything with a
      draw() method) or a string
    - a drawable that is not callable

    Any callable is treated as a content builder, including a drawable that
    happens to define __call__. If the screen is cleared or replaced while the
    builder runs (e.g. it completed its own step and the next step starts
    with a blank delay), its result is dropped.

    Example:
        def stimulus(experiment):
            return pyglet.shapes.Circle(640, 360, 50, color=(255, 0, 0))

        Step(content=stimulus)
    """

    def __init__(self, window, font_name: str = 'Arial', font_size: Optional[int] = None,
                 text_color=(255, 255, 255, 255)):
        """
        Initialize renderer and attach its draw handler to the window.

        Args:
            window: pyglet Window
            font_name: Font used for string content
            font_size: Font size for string content (None = 1/20 of the smaller window side)
            text_color: RGBA color for string content
        """
        self.window = window
        self.font_name = font_name
        self.font_size = font_size
        self.text_color = text_color

        self._drawable = None
        self._on_displayed: Optional[DisplayedCallback] = None
        # Bumped by every show/clear
        self._generation = 0

        window.push_handlers(on_draw=self.on_draw)

    def show(self, content: Any, experiment, on_displayed: DisplayedCallback):
        self._generation += 1
        generation = self._generation

        drawable = self._resolve(content, experiment)
        if generation != self._generation:
            logger.debug("Content was cleared or replaced while it was being built")
            return

        self._drawable = drawable
        self._on_displayed = on_displayed

    def clear(self):
        self._generation += 1
        self._drawable = None
        self._on_displayed = None

    def on_draw(self):
        """Window draw handler: redraw the current content."""
        self.window.clear()
        if self._drawable is not None:
            self._drawable.draw()

        # First frame with this content: report it as displayed
        if self._on_displayed is not None:
            callback = self._on_displayed
            self._on_displayed = None
            callback()

    def _resolve(self, content: Any, experiment):
        if callable(content):
            content = content(experiment)
        if isinstance(content, str):
            return self._create_label(content)
        return content

    def _create_label(self, text: str):
        width = self.window.width
        height = self.window.height
        font_size = self.font_size or max(int(min(width, height) / 20), 1)

        return pyglet.text.Label(
            text,
            font_name=self.font_name,
            font_size=font_size,
            color=self.text_color,
            x=width // 2,
            y=height // 2,
            anchor_x='center',
            anchor_y='center',
            multiline=True,
            width=int(width * 0.8),
            align='center'
        )


def create_window(settings) -> 'pyglet.window.Window':
    """
    Create the experiment window from ExperimentSettings.

    Args:
        settings: ExperimentSettings instance

    Returns:
        pyglet Window
    """
    if settings.fullscreen:
        window = pyglet.window.Window(fullscreen=True, caption=settings.name)
    else:
        window = pyglet.window.Window(
            width=settings.window_width,
            height=settings.window_height,
            caption=settings.name
        )
    logger.info(f"Window created ({window.width}x{window.height}, fullscreen={settings.fullscreen})")
    return window
