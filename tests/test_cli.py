from __future__ import annotations

import json

import pytest
import yaml

from issuemirror import cli
from issuemirror.core import IssueMirror


@pytest.fixture
def workdir(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("ISSUEMIRROR_QUIET", raising=False)
    monkeypatch.setenv("GITHUB_TOKEN", "test-token")
    return tmp_path


@pytest.fixture
def use_source(monkeypatch):
    def install(source):
        monkeypatch.setattr(IssueMirror, "_build_source", lambda self: source)
        return source

    return install


def test_sync_writes_issues_and_saves_config(workdir, use_source, fake_source, make_issue, capsys):
    source = use_source(fake_source([[make_issue(1), make_issue(2, state="CLOSED")]]))

    rc = cli.main(["-r", "octo/widgets", "--all", "--utc", "-c", "10"])

    assert rc == 0
    assert (workdir / "issues" / "open" / "1.md").exists()
    assert (workdir / "issues" / "closed" / "2.md").exists()
    assert source.filters[0].page_size == 10
    out = capsys.readouterr().out
    assert "wrote 2 issue(s)" in out
    saved = yaml.safe_load((workdir / ".issuemirror.yaml").read_text())
    assert saved["repo"] == "octo/widgets"
    assert saved["all"] is True
    assert saved["count"] == 10
    assert saved["last_sync"].endswith("Z")
    assert "token" not in saved


def test_second_run_uses_saved_settings(workdir, use_source, fake_source, make_issue):
    use_source(fake_source([[make_issue(1)]]))
    assert cli.main(["-r", "octo/widgets", "--utc"]) == 0
    saved_since = yaml.safe_load((workdir / ".issuemirror.yaml").read_text())["last_sync"]

    second = use_source(fake_source([]))
    assert cli.main([]) == 0
    used = second.filters[0]
    assert used.since.strftime("%Y-%m-%dT%H:%M:%SZ") == saved_since
    assert used.states == ("OPEN",)


def test_quiescent_run_exits_zero(workdir, use_source, fake_source, capsys):
    use_source(fake_source([]))
    rc = cli.main(["-r", "octo/widgets"])
    assert rc == 0
    assert "no new or updated issues found" in capsys.readouterr().out
    assert (workdir / ".issuemirror.yaml").exists()


@pytest.mark.parametrize("argv", [["-r", "octo"], ["-r", "octo/widgets", "-c", "0"], []])
def test_config_errors_exit_two(workdir, use_source, fake_source, argv, capsys):
    source = use_source(fake_source([]))
    rc = cli.main(argv)
    assert rc == 2
    assert source.issue_calls == []
    assert "[issuemirror]" in capsys.readouterr().err
    assert not (workdir / ".issuemirror.yaml").exists()


def test_source_failure_exits_one_and_keeps_last_sync(workdir, use_source, fake_source, make_issue, capsys):
    use_source(fake_source([[make_issue(1)], [make_issue(2)]], fail_issue_page=1))
    rc = cli.main(["-r", "octo/widgets"])
    assert rc == 1
    assert "Unable to fetch issues" in capsys.readouterr().err
    assert not (workdir / ".issuemirror.yaml").exists()


def test_missing_token_exits_two(workdir, monkeypatch):
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)
    for var in ("GH_TOKEN", "GITHUB_ACCESS_TOKEN", "GH_ACCESS_TOKEN", "GITHUB_PAT"):
        monkeypatch.delenv(var, raising=False)
    assert cli.main(["-r", "octo/widgets"]) == 2


def test_summary_json_and_no_save(workdir, use_source, fake_source, make_issue):
    use_source(fake_source([[make_issue(5, milestone="v1")]]))
    rc = cli.main(
        ["-r", "octo/widgets", "--milestones", "--summary-json", "out/summary.json", "--no-save"]
    )
    assert rc == 0
    summary = json.loads((workdir / "out" / "summary.json").read_text())
    assert summary["repo"] == "octo/widgets"
    assert summary["totals"]["written"] == 1
    assert summary["quiescent"] is False
    assert summary["written"][0].endswith("5.md")
    assert (workdir / "issues" / "milestones" / "v1" / "open" / "5.md").is_symlink()
    assert not (workdir / ".issuemirror.yaml").exists()


def test_quiet_env_suppresses_report(workdir, use_source, fake_source, make_issue, monkeypatch, capsys):
    monkeypatch.setenv("ISSUEMIRROR_QUIET", "1")
    use_source(fake_source([[make_issue(1)]]))
    assert cli.main(["-r", "octo/widgets", "--no-save"]) == 0
    out = capsys.readouterr().out
    assert "wrote" not in out
    assert "Operation:" not in out


def test_help_mentions_token(capsys):
    with pytest.raises(SystemExit):
        cli.main(["--help"])
    assert "GITHUB_TOKEN" in capsys.readouterr().out
