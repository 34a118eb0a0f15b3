"""
host.py

The surface a heatmap layer attaches to.

A host surface knows its pixel size and notifies listeners when that size
changes. Map engines and windows provide their own; `OffscreenSurface`
renders into a moderngl framebuffer for headless use and tests.
"""

from typing import Callable, List, Optional, Tuple
import logging

import numpy as np

logger = logging.getLogger(__name__)

ResizeListener = Callable[[int, int], None]


class HostSurface:
    """Pixel size plus resize notifications."""

    def __init__(self, width: int, height: int):
        self.width = int(width)
        self.height = int(height)
        self._listeners: List[ResizeListener] = []

    @property
    def size(self) -> Tuple[int, int]:
        return self.width, self.height

    def add_resize_listener(self, listener: ResizeListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_resize_listener(self, listener: ResizeListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def resize(self, width: int, height: int) -> None:
        self.width = int(width)
        self.height = int(height)
        for listener in list(self._listeners):
            listener(self.width, self.height)


class OffscreenSurface(HostSurface):
    """RGBA8 framebuffer owned by the caller's context."""

    def __init__(self, ctx, width: int, height: int):
        super().__init__(width, height)
        self.ctx = ctx
        self.framebuffer = None
        self._allocate()

    def _unbind(self) -> bool:
        # a bound framebuffer must not be released
        if self.framebuffer is not None and self.ctx.fbo is self.framebuffer:
            screen = self.ctx.screen if self.ctx.screen is not None else self.ctx.detect_framebuffer(0)
            screen.use()
            return True
        return False

    def _allocate(self):
        was_bound = self._unbind()
        if self.framebuffer is not None:
            self.framebuffer.release()
        self.framebuffer = self.ctx.simple_framebuffer((self.width, self.height), components=4)
        if was_bound:
            self.framebuffer.use()

    def resize(self, width: int, height: int) -> None:
        if (int(width), int(height)) != self.size:
            self.width = int(width)
            self.height = int(height)
            self._allocate()
        super().resize(width, height)

    def use(self, clear: Optional[Tuple[float, float, float, float]] = (0.0, 0.0, 0.0, 0.0)) -> None:
        self.framebuffer.use()
        if clear is not None:
            self.framebuffer.clear(*clear)

    def read_rgba(self) -> np.ndarray:
        """Framebuffer contents as ``(h, w, 4)`` uint8, row 0 at the bottom."""
        raw = self.framebuffer.read(components=4, dtype='f1')
        return np.frombuffer(raw, dtype=np.uint8).reshape(self.height, self.width, 4)

    def release(self) -> None:
        self._unbind()
        if self.framebuffer is not None:
            self.framebuffer.release()
            self.framebuffer = None
