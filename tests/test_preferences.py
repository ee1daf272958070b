from workspace_hub.preferences import load_preferences, save_preferences


def test_defaults_when_missing(tmp_path):
    prefs = load_preferences(tmp_path / "preferences.toml")
    assert prefs == {"last_category": "all", "check_shortcuts_on_start": True}


def test_save_and_load(tmp_path):
    path = tmp_path / "nested" / "preferences.toml"
    assert save_preferences({"last_category": 'jour"nal', "check_shortcuts_on_start": False}, path)

    prefs = load_preferences(path)
    assert prefs["last_category"] == 'jour"nal'
    assert prefs["check_shortcuts_on_start"] is False
    assert [p.name for p in path.parent.iterdir()] == ["preferences.toml"]


def test_corrupt_file_falls_back(tmp_path):
    path = tmp_path / "preferences.toml"
    path.write_text("last_category = \n")
    assert load_preferences(path)["last_category"] == "all"


def test_save_failure_returns_false(tmp_path):
    blocker = tmp_path / "file"
    blocker.write_text("")
    assert save_preferences({"last_category": "tasks"}, blocker / "preferences.toml") is False
