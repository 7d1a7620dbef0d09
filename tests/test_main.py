import os
from dataclasses import replace

import pytest

import main
from deploy_config import DeployConfig
from main import deploy


@pytest.fixture
def workspace(tmp_path, monkeypatch, charts_dir):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(main, "check_dependencies", lambda tools: None)
    return tmp_path


@pytest.fixture
def config(workspace):
    return DeployConfig(
        access_token="tok3n",
        repository="acme/helm-repo",
        source_repository="acme/charts",
        ref="refs/tags/v1.2.0",
        sha="abc123",
        actor="octocat",
        deploy_branch="gh-pages",
        charts_dir="charts",
        readme_header="# Helm charts",
    )


def _clone_creates(path_readme=None):
    def action(command, cwd):
        target = command[-1]
        os.makedirs(target, exist_ok=True)
        if path_readme is not None:
            with open(os.path.join(target, "README.md"), "w", encoding="utf-8") as f:
                f.write(path_readme)
    return action


def test_self_deploy_does_nothing(fake_run):
    guarded = DeployConfig(access_token="t", repository="a/b", source_repository="a/b",
                           ref="refs/heads/gh-pages", deploy_branch="gh-pages")
    assert deploy(guarded) is False
    assert fake_run.calls == []


def test_full_deploy(fake_run, config, workspace):
    fake_run.on("git", "clone", action=_clone_creates("# Helm charts\n* [v1.1.0](old)\n"))
    fake_run.on("git", "status", stdout=" M README.md\n")
    (workspace / "CNAME").write_text("charts.example.com\n", encoding="utf-8")

    assert deploy(config, cname_source="CNAME") is True

    executed = [cmd[:3] for cmd, _ in fake_run.calls]
    assert executed[0] == ["git", "clone", "-b"]
    assert fake_run.calls[0][0][3:] == ["gh-pages", "https://tok3n@github.com/acme/helm-repo.git", "output"]
    assert executed.index(["helm", "repo", "index"]) < executed.index(["git", "add", "."])
    assert executed[-3:] == [["git", "add", "."], ["git", "commit", "-m"], ["git", "push", "-u"]]
    assert fake_run.commands("git", "commit") == [
        ["git", "commit", "-m", "Upload refs/tags/v1.2.0 ⎈\n\nDerived from upstream commit abc123"],
    ]

    readme = (workspace / "output" / "README.md").read_text(encoding="utf-8")
    assert readme.splitlines() == [
        "# Helm charts",
        "* [v1.2.0](https://github.com/acme/charts/releases/tag/v1.2.0)",
        "* [v1.1.0](old)",
    ]
    assert (workspace / "output" / "CNAME").exists()


def test_new_ledger_is_seeded_with_header(fake_run, config, workspace):
    fake_run.on("git", "clone", action=_clone_creates())
    fake_run.on("git", "status", stdout="?? README.md\n")
    deploy(config)
    readme = (workspace / "output" / "README.md").read_text(encoding="utf-8")
    assert readme == "# Helm charts\n* [v1.2.0](https://github.com/acme/charts/releases/tag/v1.2.0)\n"


def test_clean_tree_skips_commit(fake_run, config):
    fake_run.on("git", "clone", action=_clone_creates())
    assert deploy(config) is True
    assert fake_run.commands("git", "commit") == []
    assert fake_run.commands("git", "push") == []


def test_no_push_and_no_readme(fake_run, config, workspace):
    fake_run.on("git", "clone", action=_clone_creates())
    fake_run.on("git", "status", stdout="?? web-0.3.1.tgz\n")
    local = replace(config, push=False, update_readme=False)
    deploy(local)
    assert len(fake_run.commands("git", "commit")) == 1
    assert fake_run.commands("git", "push") == []
    assert not (workspace / "output" / "README.md").exists()


def test_main_reports_missing_token(monkeypatch, caplog):
    for var in ("INPUT_ACCESS-TOKEN", "INPUT_ACCESS_TOKEN", "GITHUB_TOKEN"):
        monkeypatch.delenv(var, raising=False)
    assert main.main(["--repo", "acme/charts", "--ref", "refs/tags/v1"]) == 1
    assert "No personal access token found" in caplog.text


def test_main_reports_failed_command(fake_run, workspace, monkeypatch, caplog):
    fake_run.on("git", "clone", returncode=128, stderr="fatal: Remote branch gh-pages not found")
    status = main.main(["--access-token", "tok3n", "--repo", "acme/charts", "--ref", "refs/tags/v1",
                        "--deploy-branch", "gh-pages", "--charts-folder", "charts"])
    assert status == 1
    assert "Remote branch gh-pages not found" in caplog.text
    assert "tok3n" not in caplog.text
    assert fake_run.commands("helm") == []


def test_main_self_deploy_exits_cleanly(fake_run, workspace):
    status = main.main(["--access-token", "t", "--repo", "acme/charts", "--ref", "refs/heads/master"])
    assert status == 0
    assert fake_run.calls == []
