from pathlib import Path

import pytest

from galshelf.scanner.folder_scanner import (
    BLACKLIST_SCORE,
    ScannerError,
    detect_game_from_folder,
    find_save_directories,
    list_game_folders,
    scan_folders,
    score_exe,
)


def _touch(path: Path, size: int = 0) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"\0" * size)
    return path


@pytest.mark.unit
def test_chinese_build_beats_larger_executable(tmp_path):
    game = tmp_path / "Ever17"
    _touch(game / "data.xp3")
    _touch(game / "Ever17.exe", 200 * 1024)
    _touch(game / "Ever17_chs.exe", 1024)
    _touch(game / "unins000.exe", 500 * 1024)

    detected = detect_game_from_folder(game)

    assert detected.title == "Ever17"
    assert detected.exe_path == str(game / "Ever17_chs.exe")
    assert detected.install_path == str(game)
    assert detected.engine == "KiriKiri"


@pytest.mark.unit
def test_folder_name_match_beats_file_size(tmp_path):
    game = tmp_path / "Kanon"
    _touch(game / "kanon.exe", 1024)
    _touch(game / "tool.exe", 300 * 1024)

    assert detect_game_from_folder(game).exe_path == str(game / "kanon.exe")


@pytest.mark.unit
def test_equal_scores_keep_walk_order(tmp_path):
    game = tmp_path / "Game"
    _touch(game / "b.exe", 10)
    _touch(game / "A.exe", 10)

    assert detect_game_from_folder(game).exe_path == str(game / "A.exe")


@pytest.mark.unit
def test_scan_depth_is_two_levels(tmp_path):
    shallow = tmp_path / "Shallow"
    _touch(shallow / "bin" / "game.exe")
    deep = tmp_path / "Deep"
    _touch(deep / "a" / "b" / "game.exe")

    assert detect_game_from_folder(shallow).exe_path == str(shallow / "bin" / "game.exe")
    assert detect_game_from_folder(deep) is None


@pytest.mark.unit
def test_engine_marker_is_case_insensitive(tmp_path):
    game = tmp_path / "Unity Game"
    _touch(game / "unityplayer.DLL")
    _touch(game / "Game.exe")

    assert detect_game_from_folder(game).engine == "Unity"


@pytest.mark.unit
def test_blacklisted_names_score_lowest(tmp_path):
    setup = _touch(tmp_path / "Setup.exe", 1024)
    assert score_exe(setup, "Game") == BLACKLIST_SCORE


@pytest.mark.unit
def test_scan_folders_skips_missing_and_empty(tmp_path):
    good = tmp_path / "Good"
    _touch(good / "good.exe")
    empty = tmp_path / "Empty"
    empty.mkdir()

    games = scan_folders([good, tmp_path / "Missing", empty, str(good / "good.exe")])

    assert [g.title for g in games] == ["Good"]


@pytest.mark.unit
def test_list_game_folders_sorted_without_hidden(tmp_path):
    for name in ("b-game", "A-game", ".cache"):
        (tmp_path / name).mkdir()
    _touch(tmp_path / "readme.txt")

    assert [p.name for p in list_game_folders(tmp_path)] == ["A-game", "b-game"]

    with pytest.raises(ScannerError):
        list_game_folders(tmp_path / "readme.txt")


@pytest.mark.unit
def test_find_save_directories(tmp_path):
    (tmp_path / "SaveData").mkdir()
    (tmp_path / "data").mkdir()
    _touch(tmp_path / "save")

    found = find_save_directories(tmp_path)

    assert len(found) == 2
    assert {Path(p).name.lower() for p in found} == {"savedata", "data"}
    assert find_save_directories(tmp_path / "missing") == []
