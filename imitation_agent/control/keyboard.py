"""
Keyboard tracking module using pynput.

Arrow keys update a shared DirectionState while the operator plays; a few
letter keys trigger session commands. pynput runs its listener on its own
thread, so hotkeys are handed to the asyncio loop thread-safely.
"""

import asyncio
import logging
import threading
from typing import Callable

from .directions import DirectionState

logger = logging.getLogger(__name__)


class KeyStateTracker:
    """
    Mirror held arrow keys into a DirectionState.

    press()/release() are the only places the state is written. Hotkeys fire
    on release so a held key does not repeat the command.
    """

    # Key names as pynput reports them
    KEYS = {
        'up': 'up',
        'right': 'right',
        'down': 'down',
        'left': 'left',
    }

    def __init__(
        self,
        state: DirectionState,
        hotkeys: dict[str, Callable[[], None]] | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
    ):
        """
        Args:
            state: Shared direction state, also read by the sampler
            hotkeys: Key name -> callback, e.g. {'t': session_train}
            loop: Event loop to run hotkey callbacks on. Callbacks run
                  directly when None.
        """
        self.state = state
        self.hotkeys = dict(hotkeys or {})
        self.loop = loop
        self._listener = None
        self._lock = threading.Lock()

    def press(self, name: str | None):
        direction = self.KEYS.get(name)
        if direction is not None:
            with self._lock:
                self.state.set(direction, True)

    def release(self, name: str | None):
        direction = self.KEYS.get(name)
        if direction is not None:
            with self._lock:
                self.state.set(direction, False)
            return

        callback = self.hotkeys.get(name)
        if callback is None:
            return
        if self.loop is not None:
            self.loop.call_soon_threadsafe(callback)
        else:
            callback()

    @staticmethod
    def key_name(key) -> str | None:
        """Name of a pynput Key or KeyCode ('up', 'esc', 't', ...)."""
        name = getattr(key, 'name', None)
        if name:
            return name
        char = getattr(key, 'char', None)
        return char.lower() if char else None

    def _on_press(self, key):
        self.press(self.key_name(key))

    def _on_release(self, key):
        self.release(self.key_name(key))

    def start(self):
        """Start listening for keys system-wide."""
        # Imported here, pynput needs a display at import time on Linux
        from pynput import keyboard

        self._listener = keyboard.Listener(on_press=self._on_press, on_release=self._on_release)
        self._listener.daemon = True
        self._listener.start()
        logger.info("Keyboard listener started (hotkeys: %s)", ", ".join(sorted(self.hotkeys)) or "none")

    def stop(self):
        """Stop the listener and release every direction."""
        if self._listener:
            self._listener.stop()
            self._listener = None
        with self._lock:
            self.state.clear()
