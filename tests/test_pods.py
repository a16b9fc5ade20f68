import io

import pytest
import yaml

from omc.pods import (
    LogsError,
    container_log_paths,
    print_pod_logs,
    resolve_logs_target,
    resolve_must_gather_root,
)

NS = "openshift-etcd"
INFO = "2022-03-01T10:00:00.123Z I0301 ready"
ERR = "2022-03-01T10:00:01Z E0301 failed"


def _pod(name, containers, inits=()):
    spec = {"containers": [{"name": c} for c in containers]}
    if inits:
        spec["initContainers"] = [{"name": c} for c in inits]
    return {"metadata": {"name": name}, "spec": spec}


@pytest.fixture
def root(tmp_path):
    ns = tmp_path / "namespaces" / NS
    (ns / "core").mkdir(parents=True)
    pods = {
        "apiVersion": "v1",
        "kind": "PodList",
        "items": [
            _pod("single", ["etcd"]),
            _pod("multi", ["a", "b"], ["setup"]),
        ],
    }
    (ns / "core" / "pods.yaml").write_text(yaml.safe_dump(pods), encoding="utf-8")
    for pod, name in [("single", "etcd"), ("multi", "a"), ("multi", "b"), ("multi", "setup")]:
        logs = ns / "pods" / pod / name / name / "logs"
        logs.mkdir(parents=True)
        (logs / "current.log").write_text(f"{INFO}\n{ERR}\n", encoding="utf-8")
    return str(tmp_path)


def _path(root, pod, name, log="current.log"):
    return f"{root}/namespaces/{NS}/pods/{pod}/{name}/{name}/logs/{log}"


def test_root_with_namespaces(root):
    assert resolve_must_gather_root(root) == root


def test_root_with_quay_directory(tmp_path):
    (tmp_path / "other").mkdir()
    (tmp_path / "quay-io-image").mkdir()
    assert resolve_must_gather_root(str(tmp_path)) == f"{tmp_path}/quay-io-image"


def test_root_without_quay(tmp_path):
    (tmp_path / "other").mkdir()
    with pytest.raises(LogsError, match="wrong must-gather file composition"):
        resolve_must_gather_root(str(tmp_path))


def test_root_undefined():
    with pytest.raises(LogsError, match="There are no must-gather resources defined."):
        resolve_must_gather_root("")


@pytest.mark.parametrize(
    "args,container,expected",
    [
        (["mypod"], "", ("mypod", "")),
        (["mypod"], "c1", ("mypod", "c1")),
        (["pod/mypod"], "", ("mypod", "")),
        (["po/mypod"], "c1", ("mypod", "c1")),
        (["pods/mypod", "c2"], "", ("mypod", "c2")),
        (["mypod", "c2"], "", ("mypod", "c2")),
        (["svc/mypod", "c2"], "", ("svc/mypod", "c2")),
        (["svc/mypod"], "", ("svc", "")),
    ],
)
def test_resolve_logs_target(args, container, expected):
    assert resolve_logs_target(args, container) == expected


@pytest.mark.parametrize("args", [[], ["a", "b", "c"]])
def test_resolve_logs_target_wrong_count(args):
    with pytest.raises(LogsError, match="POD or TYPE/NAME is a required argument"):
        resolve_logs_target(args, "")


def test_resolve_logs_target_empty_name():
    with pytest.raises(LogsError, match="must have a single resource and name"):
        resolve_logs_target(["pod/"], "")


@pytest.mark.parametrize("args", [["mypod", "c2"], ["pod/mypod", "c2"]])
def test_resolve_logs_target_conflict(args):
    with pytest.raises(LogsError, match="only one of -c or an inline"):
        resolve_logs_target(args, "c1")


def test_single_container_needs_no_name(root):
    assert container_log_paths(root, NS, "single") == [_path(root, "single", "etcd")]


def test_previous_log(root):
    paths = container_log_paths(root, NS, "single", previous=True)
    assert paths == [_path(root, "single", "etcd", "previous.log")]


def test_named_container_and_init_container(root):
    assert container_log_paths(root, NS, "multi", "b") == [_path(root, "multi", "b")]
    assert container_log_paths(root, NS, "multi", "setup") == [_path(root, "multi", "setup")]


def test_all_containers_skips_init(root):
    paths = container_log_paths(root, NS, "multi", all_containers=True)
    assert paths == [_path(root, "multi", "a"), _path(root, "multi", "b")]


def test_container_required(root):
    with pytest.raises(LogsError) as info:
        container_log_paths(root, NS, "multi")
    assert str(info.value) == (
        "error: a container name must be specified for pod multi, choose one of: [a b setup]"
    )


def test_invalid_container(root):
    with pytest.raises(LogsError, match="error: container zzz is not valid for pod single"):
        container_log_paths(root, NS, "single", "zzz")


def test_pod_not_found(root):
    with pytest.raises(LogsError, match="error: pods ghost not found"):
        container_log_paths(root, NS, "ghost")


def test_namespace_not_found(root):
    with pytest.raises(LogsError, match="error: namespace nowhere not found."):
        container_log_paths(root, "nowhere", "single")


def test_unreadable_pods_file(tmp_path):
    core = tmp_path / "namespaces" / NS / "core"
    core.mkdir(parents=True)
    (core / "pods.yaml").write_text("items: [\n", encoding="utf-8")
    with pytest.raises(LogsError, match="Error when trying to unmarshal file"):
        container_log_paths(str(tmp_path), NS, "single")


def test_print_whole_log(root):
    out = io.StringIO()
    print_pod_logs(root, NS, "single", out=out)
    assert out.getvalue() == f"{INFO}\n{ERR}\n"


def test_print_filtered_log(root):
    out = io.StringIO()
    print_pod_logs(root, NS, "multi", all_containers=True, levels=["error"], out=out)
    assert out.getvalue() == f"{ERR}\n{ERR}\n"


def test_print_missing_log(root):
    with pytest.raises(LogsError) as info:
        print_pod_logs(root, NS, "single", previous=True, out=io.StringIO())
    assert str(info.value) == f"error: file {_path(root, 'single', 'etcd', 'previous.log')} does not exist"


def test_print_bad_log_line(root):
    bad = _path(root, "single", "etcd")
    with open(bad, "w", encoding="utf-8") as handle:
        handle.write("not a log line\n")
    with pytest.raises(LogsError, match="unexpected timestamp format"):
        print_pod_logs(root, NS, "single", levels=["info"], out=io.StringIO())