"""
Game launching and playtime tracking.

GameLauncher starts a game process and publishes a SessionEndedEvent when
it exits; PlaytimeRecorder listens for those events and stores the session.
"""

import asyncio
import logging
import os
import subprocess
import sys
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, Optional, Union

from galshelf.library.models import LibraryEntry
from galshelf.workflow.event_bus import EventBus
from galshelf.workflow.events import NoticeEvent, SessionEndedEvent

logger = logging.getLogger(__name__)


class LaunchError(Exception):
    """Game process could not be started."""
    pass


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec='seconds')


class GameLauncher:
    """
    Starts games and reports their sessions.

    Example:
        launcher = GameLauncher(bus)
        task = await launcher.launch(entry)
        await task   # resolves with the SessionEndedEvent once the game exits
    """

    def __init__(
        self,
        event_bus: EventBus,
        clock: Callable[[], float] = time.monotonic,
        now: Callable[[], str] = _utc_now
    ):
        """
        Initialize launcher.

        Args:
            event_bus: Bus receiving SessionEndedEvent
            clock: Monotonic clock used for durations
            now: Wall clock returning ISO timestamps
        """
        self.event_bus = event_bus
        self._clock = clock
        self._now = now
        self._running: Dict[str, asyncio.Task] = {}

    def is_running(self, game_id: str) -> bool:
        task = self._running.get(game_id)
        return task is not None and not task.done()

    async def launch(self, entry: LibraryEntry) -> asyncio.Task:
        """
        Start the entry's executable with its folder as working directory.

        Args:
            entry: Library entry to launch

        Returns:
            Task that waits for the process and publishes the session

        Raises:
            LaunchError: If the executable is missing, already running or
                cannot be started
        """
        exe_path = Path(entry.exe_path) if entry.exe_path else None
        if exe_path is None or not exe_path.is_file():
            raise LaunchError(f"Executable not found for '{entry.title}': {entry.exe_path or '(none)'}")

        if self.is_running(entry.id):
            raise LaunchError(f"'{entry.title}' is already running")

        try:
            process = await asyncio.create_subprocess_exec(
                str(exe_path),
                cwd=str(exe_path.parent),
            )
        except OSError as e:
            raise LaunchError(f"Failed to launch '{entry.title}': {e}")

        start_time = self._now()
        started = self._clock()
        logger.info(f"Launched '{entry.title}' (pid {process.pid})")

        task = asyncio.create_task(self._watch(entry, process, start_time, started))
        self._running[entry.id] = task
        return task

    async def _watch(
        self,
        entry: LibraryEntry,
        process: asyncio.subprocess.Process,
        start_time: str,
        started: float
    ) -> SessionEndedEvent:
        try:
            returncode = await process.wait()
        finally:
            self._running.pop(entry.id, None)

        event = SessionEndedEvent(
            game_id=entry.id,
            start_time=start_time,
            end_time=self._now(),
            duration=int(self._clock() - started),
        )
        logger.info(
            f"'{entry.title}' exited with code {returncode} after {event.duration}s"
        )
        await self.event_bus.publish(event)
        return event


class PlaytimeRecorder:
    """Persists play sessions published on the event bus."""

    def __init__(self, store, event_bus: EventBus):
        """
        Args:
            store: LibraryDatabase receiving the sessions
            event_bus: Bus to listen on
        """
        self.store = store
        self.event_bus = event_bus
        event_bus.subscribe(SessionEndedEvent, self.on_session_ended)

    def close(self) -> None:
        self.event_bus.unsubscribe(SessionEndedEvent, self.on_session_ended)

    async def on_session_ended(self, event: SessionEndedEvent) -> None:
        try:
            await self.store.add_play_session(
                event.game_id,
                event.start_time,
                event.end_time,
                event.duration,
            )
        except Exception as e:
            logger.error(f"Failed to record play session for {event.game_id}: {e}")
            await self.event_bus.publish(NoticeEvent(
                level='error',
                message=f"Play session could not be saved: {e}",
            ))


def open_folder(path: Union[Path, str]) -> None:
    """
    Open a folder in the system file manager.

    Raises:
        LaunchError: If the folder does not exist or no file manager could be started
    """
    folder = Path(path)
    if not folder.is_dir():
        raise LaunchError(f"Folder not found: {folder}")

    try:
        if sys.platform == 'win32':
            os.startfile(str(folder))
        elif sys.platform == 'darwin':
            subprocess.Popen(['open', str(folder)])
        else:
            subprocess.Popen(['xdg-open', str(folder)])
    except OSError as e:
        raise LaunchError(f"Failed to open folder {folder}: {e}")
