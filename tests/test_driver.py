import io
import json

from balancer.driver import FileRoundDriver, StreamRoundDriver, iter_payloads
from balancer.reconciler import Reconciler

from conftest import DATA_DIR


ROUND = {
    "hosts": {"h1": {"cpu": 8, "ram": 16}},
    "virtual_machines": {"vm1": {"cpu": 2, "ram": 4}},
}


def test_file_driver_processes_new_payload_once(tmp_path, reconciler):
    src = tmp_path / "input.json"
    dst = tmp_path / "output.json"
    src.write_text(json.dumps(ROUND))
    driver = FileRoundDriver(reconciler, str(src), str(dst), interval_sec=0.01)

    report = driver.tick()
    assert report["allocations"] == {"h1": ["vm1"]}
    assert json.loads(dst.read_text()) == report

    assert driver.tick() is None
    assert reconciler.round == 1


def test_file_driver_skips_missing_and_broken_input(tmp_path, reconciler):
    src = tmp_path / "input.json"
    driver = FileRoundDriver(reconciler, str(src), str(tmp_path / "out.json"))
    assert driver.tick() is None

    src.write_text("{not json")
    assert driver.tick() is None

    src.write_text(json.dumps({"virtual_machines": {"vm1": {"cpu": 1, "ram": 1}}}))
    assert driver.tick() is None  # no hosts on the first round
    assert not reconciler.initialized


def test_file_driver_run_uses_injected_sleep(tmp_path, reconciler):
    src = tmp_path / "input.json"
    src.write_text(json.dumps(ROUND))
    sleeps = []
    driver = FileRoundDriver(reconciler, str(src), str(tmp_path / "out.json"),
                             interval_sec=5.0, sleep=sleeps.append)

    rounds = driver.run(max_ticks=3)

    assert rounds == 1
    assert sleeps == [5.0, 5.0]


def test_file_driver_stop_event(tmp_path, reconciler):
    driver = FileRoundDriver(reconciler, str(tmp_path / "in.json"), str(tmp_path / "out.json"))
    driver.stop()
    assert driver.run() == 0


def test_iter_payloads_splits_glued_objects():
    assert list(iter_payloads('{"a": 1}{"b": 2}  {"c": 3}')) == [{"a": 1}, {"b": 2}, {"c": 3}]


def test_stream_driver_replays_recorded_rounds(reconciler):
    lines = [
        (DATA_DIR / "basic" / "round_1.json").read_text().replace("\n", " "),
        "",
        "# comment",
        "{broken",
        json.dumps({"virtual_machines": {"x": {"cpu": -1, "ram": 1}}}),
        (DATA_DIR / "basic" / "round_2.json").read_text().replace("\n", " "),
    ]
    out = io.StringIO()

    rounds = StreamRoundDriver(reconciler, io.StringIO("\n".join(lines) + "\n"), out).run()

    emitted = [json.loads(line) for line in out.getvalue().splitlines()]
    assert rounds == 2
    assert len(emitted) == 4
    assert "error" in emitted[1] and "error" in emitted[2]
    final = emitted[3]
    placed = sorted(v for vms in final["allocations"].values() for v in vms)
    assert placed == ["vm1", "vm3", "vm4"]


def test_stream_driver_runs_objects_before_a_broken_tail(reconciler):
    first = json.dumps({"hosts": {"h1": {"cpu": 10, "ram": 10}}, "virtual_machines": {"v": {"cpu": 1, "ram": 1}}})
    second = json.dumps({"virtual_machines": {"v": {"cpu": 1, "ram": 1}}})
    out = io.StringIO()

    rounds = StreamRoundDriver(reconciler, io.StringIO(first + second + '{"broken\n'), out).run()

    emitted = [json.loads(line) for line in out.getvalue().splitlines()]
    assert rounds == 2
    assert [report.get("round") for report in emitted[:2]] == [1, 2]
    assert "invalid JSON" in emitted[2]["error"]
    assert len(emitted) == 3
    assert reconciler.round == 2
