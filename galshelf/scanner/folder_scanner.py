"""Game folder scanner.

Each selected folder is one game. The scanner looks for executables and
engine marker files up to two levels deep, picks the most likely game
executable and names the game after the folder.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Tuple, Union

logger = logging.getLogger(__name__)


class ScannerError(Exception):
    """Folder scanning errors."""
    pass


# Marker file name (case-insensitive) -> engine name
ENGINE_SIGNATURES: Tuple[Tuple[str, str], ...] = (
    ("data.xp3", "KiriKiri"),
    ("data.xp4", "KiriKiri"),
    ("arc.nsa", "NScripter"),
    ("arc1.nsa", "NScripter"),
    ("nscript.dat", "NScripter"),
    ("BGI.exe", "BGI/Ethornell"),
    ("Majiro.arc", "Majiro"),
    ("rio.arc", "Liar-soft"),
    ("UnityPlayer.dll", "Unity"),
    ("GameAssembly.dll", "Unity/IL2CPP"),
    ("AdvHD.exe", "WillPlus AdvHD"),
    ("SiglusEngine.exe", "SiglusEngine"),
    ("RealLive.exe", "RealLive"),
    ("AGERC.DLL", "AGE"),
    ("CatSystem2.exe", "CatSystem2"),
    ("cg.mpk", "Malie"),
    ("start.meg", "Artemis"),
)

_ENGINE_BY_NAME = {marker.lower(): engine for marker, engine in ENGINE_SIGNATURES}

# Executable stems containing any of these are installers, tools or redistributables
EXE_BLACKLIST: Tuple[str, ...] = (
    "unins000", "uninstall", "setup", "install", "config",
    "setting", "updater", "launcher", "crash", "vc_redist",
    "dxsetup", "dxwebsetup", "dotnetfx",
)

BLACKLIST_SCORE = -1_000_000
CHS_SCORE = 100_000
CHINESE_HINT_SCORE = 50_000
NAME_MATCH_SCORE = 10_000
MAX_SIZE_SCORE = 9999

CHINESE_HINTS = ("_cn", "chinese", "\\zh\\", "/zh/")

SAVE_DIR_CANDIDATES = ("save", "savedata", "Save", "SaveData", "saves", "Saves", "data")

MAX_SCAN_DEPTH = 2


@dataclass
class DetectedGame:
    """A game folder found on disk."""
    title: str                      # Folder name
    exe_path: str                   # Best-scoring executable
    install_path: str               # The folder itself
    engine: Optional[str] = None    # Detected engine, if any marker matched


def score_exe(exe: Path, dir_name: str) -> int:
    """
    Score an executable as the likely game entry point. Higher is better.

    Order of preference:
        1. path contains 'chs' (Simplified Chinese build)
        2. path contains another Chinese hint ('_cn', 'chinese', a 'zh' directory)
        3. executable name contains the folder name
        4. larger files (capped, in KiB)

    Blacklisted names score far below everything else.
    """
    full_lower = str(exe).lower()
    stem = exe.stem.lower()

    if any(word in stem for word in EXE_BLACKLIST):
        return BLACKLIST_SCORE

    score = 0
    if "chs" in full_lower:
        score += CHS_SCORE
    if any(hint in full_lower for hint in CHINESE_HINTS):
        score += CHINESE_HINT_SCORE

    dir_lower = dir_name.lower()
    if dir_lower and dir_lower in stem:
        score += NAME_MATCH_SCORE

    try:
        size = exe.stat().st_size
    except OSError:
        size = 0
    score += min(size // 1024, MAX_SIZE_SCORE)

    return score


def _walk(folder: Path, depth: int = 1):
    """Yield entries below ``folder`` down to MAX_SCAN_DEPTH, in name order."""
    try:
        entries = sorted(folder.iterdir(), key=lambda p: p.name.lower())
    except OSError as e:
        logger.debug(f"Cannot read {folder}: {e}")
        return

    for entry in entries:
        yield entry
        if depth < MAX_SCAN_DEPTH and entry.is_dir():
            yield from _walk(entry, depth + 1)


def detect_game_from_folder(folder: Union[Path, str]) -> Optional[DetectedGame]:
    """
    Detect the game in one folder.

    Args:
        folder: Game folder

    Returns:
        DetectedGame, or None if the path is not a directory or holds no executable
    """
    folder = Path(folder)
    if not folder.is_dir():
        return None

    exe_files: List[Path] = []
    engine = None

    for item in _walk(folder):
        name_lower = item.name.lower()
        if engine is None and name_lower in _ENGINE_BY_NAME:
            engine = _ENGINE_BY_NAME[name_lower]
        if item.suffix.lower() == ".exe" and item.is_file():
            exe_files.append(item)

    if not exe_files:
        logger.debug(f"No executable found in {folder}")
        return None

    # max() keeps the first of equal scores, so walk order breaks ties
    best_exe = max(exe_files, key=lambda p: score_exe(p, folder.name))

    return DetectedGame(
        title=folder.name,
        exe_path=str(best_exe),
        install_path=str(folder),
        engine=engine,
    )


def scan_folders(paths: Iterable[Union[Path, str]]) -> List[DetectedGame]:
    """
    Detect one game per folder.

    Missing paths and folders without executables are skipped.

    Returns:
        Detected games in input order
    """
    games = []
    for path in paths:
        path = Path(path)
        if not path.exists():
            logger.info(f"Folder not found, skipping: {path}")
            continue

        game = detect_game_from_folder(path)
        if game:
            logger.debug(f"Detected '{game.title}' ({game.engine or 'unknown engine'}): {game.exe_path}")
            games.append(game)
        else:
            logger.info(f"No game detected in {path}")

    logger.info(f"Detected {len(games)} games")
    return games


def list_game_folders(root: Union[Path, str]) -> List[Path]:
    """
    Subdirectories of a library root, each a game folder candidate.

    Raises:
        ScannerError: If ``root`` is not a readable directory
    """
    root = Path(root)
    if not root.is_dir():
        raise ScannerError(f"Library root is not a directory: {root}")

    try:
        return sorted(
            (p for p in root.iterdir() if p.is_dir() and not p.name.startswith('.')),
            key=lambda p: p.name.lower()
        )
    except PermissionError:
        raise ScannerError(f"Permission denied accessing library root: {root}")


def find_save_directories(install_path: Union[Path, str]) -> List[str]:
    """Common save-data directories that exist directly inside the install folder."""
    root = Path(install_path)
    found: List[Path] = []
    for name in SAVE_DIR_CANDIDATES:
        candidate = root / name
        if not candidate.is_dir():
            continue
        # 'save' and 'Save' are the same directory on case-insensitive filesystems
        if any(candidate.samefile(existing) for existing in found):
            continue
        found.append(candidate)
    return [str(p) for p in found]
