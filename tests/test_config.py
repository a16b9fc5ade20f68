import json

import pytest

from omc.config import (
    Config,
    Context,
    MustGatherError,
    find_must_gather,
    load_config,
    random_id,
    save_config,
    set_project,
    use_context,
)


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "omc.json"
    config = Config(
        id="abc",
        contexts=[
            Context(id="abc", path="/mg/one", current="*", project="default"),
            Context(id="def", path="/mg/two", current="", project="openshift"),
        ],
    )
    save_config(config, path)
    return path


def _must_gather(root):
    (root / "namespaces").mkdir(parents=True)
    return root


def test_load_missing_file_gives_empty_config(tmp_path):
    config = load_config(tmp_path / "nope.json")
    assert config == Config()
    assert config.current() is None


def test_empty_config_omits_fields():
    assert Config().to_dict() == {}


def test_save_and_load_round_trip(config_file):
    config = load_config(config_file)
    assert config.id == "abc"
    assert [c.path for c in config.contexts] == ["/mg/one", "/mg/two"]
    assert config.current().id == "abc"


def test_saved_file_uses_one_space_indent(config_file):
    text = config_file.read_text()
    assert text.startswith('{\n "id": "abc",\n "contexts": [\n  {')
    assert json.loads(text)["contexts"][1]["project"] == "openshift"


def test_set_project_changes_current(config_file):
    message = set_project(config_file, "kube-system")
    assert message == 'Now using project "kube-system" on must-gather "/mg/one".'
    config = load_config(config_file)
    assert config.current().project == "kube-system"
    assert config.contexts[1].project == "openshift"
    assert config.id == ""


def test_set_project_empty_reports_current(config_file):
    message = set_project(config_file, "")
    assert message == 'Using project "default" on must-gather "/mg/one".'
    assert load_config(config_file).current().project == "default"


def test_set_project_without_current(tmp_path):
    path = tmp_path / "omc.json"
    save_config(Config(contexts=[Context("x", "/p", "", "default")]), path)
    assert set_project(path, "foo") is None
    assert load_config(path).contexts[0].project == "default"


def test_find_must_gather_direct(tmp_path):
    root = _must_gather(tmp_path / "mg")
    assert find_must_gather(str(root)) == str(root) + "/"
    assert find_must_gather(str(root) + "/") == str(root) + "/"


def test_find_must_gather_nested(tmp_path):
    inner = _must_gather(tmp_path / "mg" / "quay-image")
    assert find_must_gather(str(tmp_path / "mg")) == str(inner) + "/"


def test_find_must_gather_timestamp_with_two_dirs(tmp_path):
    root = tmp_path / "mg"
    (root / "a").mkdir(parents=True)
    (root / "b").mkdir()
    (root / "timestamp").write_text("")
    with pytest.raises(MustGatherError, match="Expected one directory"):
        find_must_gather(str(root))


def test_find_must_gather_missing_dir(tmp_path):
    with pytest.raises(MustGatherError):
        find_must_gather(str(tmp_path / "absent"))


def test_use_context_adds_new_path(tmp_path, config_file):
    root = _must_gather(tmp_path / "mg3")
    config = use_context(config_file, str(root), "")
    new = config.contexts[-1]
    assert new.path == str(root)
    assert new.project == "default"
    assert new.current == "*"
    assert len(new.id) == 8
    assert config.id == new.id
    assert [c.current for c in config.contexts[:2]] == ["", ""]
    assert load_config(config_file) == config


def test_use_context_switches_by_id(config_file):
    config = use_context(config_file, "", "def")
    assert config.current().id == "def"
    assert len(config.contexts) == 2
    assert config.id == "def"


def test_use_context_unknown_id_is_added(tmp_path, config_file):
    root = _must_gather(tmp_path / "mg4")
    config = use_context(config_file, str(root), "mine")
    assert config.contexts[-1] == Context("mine", str(root), "*", "default")
    assert config.current().id == "mine"


def test_random_id_shape():
    value = random_id(8)
    assert len(value) == 8
    assert value.isalnum() and value == value.lower()
    assert random_id(0) == ""