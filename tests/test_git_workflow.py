"""Tests for the git/gh branch and pull-request workflow."""

from conftest import failed, ok

from media_workflow.services.git_workflow import GitWorkflow


def test_start_feature_runs_steps_in_order(tmp_path, recorded_commands):
    workflow = GitWorkflow(tmp_path)

    assert workflow.start_feature("feature/chapters", base="develop")

    assert recorded_commands == [
        ["git", "fetch", "origin"],
        ["git", "checkout", "develop"],
        ["git", "pull", "--ff-only", "origin", "develop"],
        ["git", "checkout", "-b", "feature/chapters"],
    ]


def test_start_feature_stops_at_first_failure(tmp_path, recorded_commands, log_messages):
    recorded_commands.handler = lambda cmd, cwd: failed(1, "local changes would be overwritten") \
        if cmd[1] == "checkout" else None

    assert not GitWorkflow(tmp_path).start_feature("feature/x")

    assert [c[1] for c in recorded_commands] == ["fetch", "checkout"]
    assert any("local changes would be overwritten" in m for m in log_messages)


def test_commands_run_in_repo_dir(tmp_path, recorded_commands):
    seen = []
    recorded_commands.handler = lambda cmd, cwd: seen.append(cwd)

    GitWorkflow(tmp_path).create_branch("topic", base="main")

    assert seen == [str(tmp_path)]
    assert recorded_commands[0] == ["git", "checkout", "-b", "topic", "main"]


def test_push_uses_current_branch(tmp_path, recorded_commands):
    recorded_commands.handler = lambda cmd, cwd: ok("feature/x\n") if cmd[1] == "rev-parse" else None

    assert GitWorkflow(tmp_path, remote="upstream").push_branch()

    assert recorded_commands[-1] == ["git", "push", "--set-upstream", "upstream", "feature/x"]


def test_push_without_branch_fails(tmp_path, recorded_commands):
    recorded_commands.handler = lambda cmd, cwd: failed(128, "not a git repository")

    assert not GitWorkflow(tmp_path).push_branch()
    assert len(recorded_commands) == 1


def test_create_pull_request_returns_url(tmp_path, recorded_commands):
    recorded_commands.handler = lambda cmd, cwd: ok(
        "Creating pull request for feature/x into main\n\nhttps://github.com/acme/media/pull/42\n"
    )

    url = GitWorkflow(tmp_path, gh_cmd="/usr/bin/gh").create_pull_request(
        "Add chapter export", "Exports chapters.", base="main", draft=True
    )

    assert url == "https://github.com/acme/media/pull/42"
    assert recorded_commands[0] == [
        "/usr/bin/gh", "pr", "create", "--title", "Add chapter export", "--body", "Exports chapters.",
        "--base", "main", "--draft",
    ]


def test_create_pull_request_failure(tmp_path, recorded_commands):
    recorded_commands.handler = lambda cmd, cwd: failed(1, "a pull request already exists")

    assert GitWorkflow(tmp_path).create_pull_request("Title") is None
