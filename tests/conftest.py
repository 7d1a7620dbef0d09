"""Shared fixtures: a recording stand-in for subprocess.run and chart source trees."""

import subprocess

import pytest

import commands


class FakeRunner:
    """Records every command and answers from registered handlers, succeeding by default."""

    def __init__(self):
        self.calls = []
        self.handlers = []

    def on(self, *prefix, returncode=0, stdout="", stderr="", action=None):
        self.handlers.append((list(prefix), returncode, stdout, stderr, action))

    def __call__(self, command, cwd=None, input=None, capture_output=True, text=True):
        self.calls.append((list(command), cwd))
        for prefix, returncode, stdout, stderr, action in reversed(self.handlers):
            if list(command[:len(prefix)]) == prefix:
                if action is not None:
                    action(command, cwd)
                return subprocess.CompletedProcess(command, returncode, stdout=stdout, stderr=stderr)
        return subprocess.CompletedProcess(command, 0, stdout="", stderr="")

    def commands(self, *prefix):
        return [cmd for cmd, _ in self.calls if cmd[:len(prefix)] == list(prefix)]


@pytest.fixture
def fake_run(monkeypatch):
    runner = FakeRunner()
    monkeypatch.setattr(commands.subprocess, "run", runner)
    return runner


def write_chart(root, name, version="0.1.0", dependencies=None):
    chart_dir = root / name
    chart_dir.mkdir(parents=True)
    lines = ["apiVersion: v2", f"name: {name}", f"version: {version}"]
    if dependencies:
        lines.append("dependencies:")
        for dep in dependencies:
            lines.append(f"  - name: {dep['name']}")
            lines.append(f"    version: \"{dep['version']}\"")
            lines.append(f"    repository: {dep['repository']}")
    (chart_dir / "Chart.yaml").write_text("\n".join(lines) + "\n", encoding="utf-8")
    return chart_dir


@pytest.fixture
def charts_dir(tmp_path):
    root = tmp_path / "charts"
    root.mkdir()
    write_chart(root, "api", "1.2.0", dependencies=[
        {"name": "redis", "version": "17.0.0", "repository": "https://charts.bitnami.com/bitnami"},
        {"name": "common", "version": "1.0.0", "repository": "file://../common"},
    ])
    write_chart(root, "web", "0.3.1")
    return root
