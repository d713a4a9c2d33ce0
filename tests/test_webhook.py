"""Tests for GitHub webhook formatting and relay."""

import pytest

from wagate.delivery import DeliveryEngine
from wagate.webhook import GitHubPayload, WebhookRelay, format_event

REPO = {"full_name": "acme/widgets", "html_url": "https://github.com/acme/widgets"}


def _payload(**kwargs) -> GitHubPayload:
    data = {"repository": REPO, "sender": {"login": "octocat"}}
    data.update(kwargs)
    return GitHubPayload.model_validate(data)


def _commit(i: int, message: str = "fix bug", **files) -> dict:
    return {"id": f"{i:07d}deadbeef", "message": message, **files}


class TestFormatPush:
    def test_no_commits(self):
        text = format_event("push", _payload(ref="refs/heads/main", pusher={"name": "budi"}))
        assert text == (
            "🔄 *Push Event*\n"
            "📁 *Repository:* acme/widgets\n"
            "👤 *Pusher:* budi\n"
            "🌿 *Branch:* main\n\n"
            "_No commits in this push_"
        )

    def test_commits_listed_and_truncated(self):
        commits = [
            _commit(1, "x" * 100, added=["a"], modified=["b", "c"]),
            _commit(2, "second"),
            _commit(3, "third", removed=["d"]),
            _commit(4, "fourth"),
            _commit(5, "fifth"),
        ]
        text = format_event("push", _payload(ref="refs/heads/dev", pusher={"name": "budi"}, commits=commits))

        assert "📝 *Commits:* 5\n\n" in text
        assert f"🔹 `0000001` {'x' * 77}... (➕ 1 added, 📝 2 modified)\n" in text
        assert "🔹 `0000002` second\n" in text
        assert "🔹 `0000003` third (➖ 1 removed)\n" in text
        assert "fourth" not in text
        assert "_... and 2 more commits_\n" in text
        assert text.endswith("\n🔗 *View Repository:* https://github.com/acme/widgets")

    @pytest.mark.parametrize("pusher, sender, expected", [
        ({"name": "Budi", "login": "budi"}, {"login": "octo"}, "Budi"),
        ({"login": "budi"}, {"login": "octo"}, "budi"),
        ({}, {"login": "octo"}, "octo"),
        ({}, {}, "Unknown"),
    ])
    def test_pusher_fallback(self, pusher, sender, expected):
        payload = GitHubPayload.model_validate({"repository": REPO, "pusher": pusher, "sender": sender})
        assert f"👤 *Pusher:* {expected}\n" in format_event("push", payload)


class TestFormatOthers:
    @pytest.mark.parametrize("action, emoji", [
        ("opened", "🆕"), ("closed", "✅"), ("reopened", "🔄"), ("labeled", "🐛"),
    ])
    def test_issue(self, action, emoji):
        issue = {"number": 7, "title": "Crash", "html_url": "https://github.com/acme/widgets/issues/7"}
        text = format_event("issues", _payload(action=action, issue=issue))
        assert text.startswith(f"{emoji} *Issue {action.title()}*\n")
        assert "📋 *Issue #7:* Crash\n" in text
        assert "👤 *User:* octocat\n" in text

    @pytest.mark.parametrize("action, merged, header", [
        ("opened", False, "🆕 *Pull Request Opened*"),
        ("closed", True, "✅ *Pull Request Merged*"),
        ("closed", False, "❌ *Pull Request Closed*"),
        ("reopened", False, "🔄 *Pull Request Reopened*"),
        ("synchronize", False, "🔀 *Pull Request Synchronize*"),
    ])
    def test_pull_request(self, action, merged, header):
        pr = {"number": 3, "title": "Add x", "html_url": "https://github.com/acme/widgets/pull/3", "merged": merged}
        text = format_event("pull_request", _payload(action=action, pull_request=pr))
        assert text.startswith(header + "\n")
        assert "📋 *PR #3:* Add x\n" in text

    def test_release(self):
        text = format_event("release", _payload(action="published"))
        assert text == (
            "🚀 *Release Published*\n"
            "📁 *Repository:* acme/widgets\n"
            "👤 *User:* octocat\n"
            "🔗 *Link:* https://github.com/acme/widgets"
        )

    def test_unknown_event_is_generic(self):
        text = format_event("star", _payload(action="created"))
        assert text.startswith("📢 *GitHub Event: star*\n")

    def test_extra_fields_ignored(self):
        payload = GitHubPayload.model_validate({"repository": {**REPO, "stargazers_count": 3}, "zen": "hi"})
        assert payload.repository.full_name == "acme/widgets"


def _relay(transport, sleeper, targets=()):
    delivery = DeliveryEngine(transport, sleep=sleeper)
    return WebhookRelay(transport, delivery, list(targets), pacing=0.5)


PUSH = {"ref": "refs/heads/main", "repository": REPO, "pusher": {"name": "budi"}, "commits": []}


class TestRelay:
    @pytest.mark.asyncio
    async def test_missing_event(self, transport, sleeper):
        result = await _relay(transport, sleeper, ["0811"]).handle(None, PUSH)
        assert result.status_code == 400
        assert result.body == {"error": "Missing X-GitHub-Event header"}

    @pytest.mark.asyncio
    async def test_bad_payload(self, transport, sleeper):
        result = await _relay(transport, sleeper, ["0811"]).handle("push", None)
        assert result.status_code == 400
        assert result.body == {"error": "Failed to parse JSON payload"}

    @pytest.mark.asyncio
    async def test_disconnected(self, transport, sleeper):
        transport.connected = False
        result = await _relay(transport, sleeper, ["0811"]).handle("push", PUSH)
        assert result.status_code == 503
        assert transport.send_calls == 0

    @pytest.mark.asyncio
    async def test_no_targets_is_a_no_op(self, transport, sleeper):
        result = await _relay(transport, sleeper).handle("push", PUSH)
        assert result.status_code == 200
        assert result.body == {
            "status": "Webhook received but no notification targets configured",
            "event": "push",
        }
        assert transport.send_calls == 0

    @pytest.mark.asyncio
    async def test_environment_targets(self, transport, sleeper):
        relay = _relay(transport, sleeper, ["0811", "bad@g.us", "120363025246125486@g.us"])
        result = await relay.handle("push", PUSH)

        body = result.body
        assert result.status_code == 200
        assert body["status"] == "Webhook processed"
        assert body["repository"] == "acme/widgets"
        assert body["targets_sent"] == 2
        assert body["total_targets"] == 3
        assert body["custom_jid"] is False
        assert body["target_source"] == "environment"
        assert body["results"] == [
            {"target": "62811", "target_type": "individual", "success": True},
            {"target": "bad@g.us", "success": False, "error": "Invalid JID format"},
            {"target": "120363025246125486@g.us", "target_type": "group", "success": True},
        ]
        assert sleeper.delays == [0.5]

    @pytest.mark.asyncio
    async def test_override_replaces_configured_targets(self, transport, sleeper):
        relay = _relay(transport, sleeper, ["0811", "0812"])
        result = await relay.handle("push", PUSH, target_override="120363025246125486@g.us")

        assert result.body["target_source"] == "query_parameter"
        assert result.body["custom_jid"] is True
        assert result.body["total_targets"] == 1
        assert [jid for jid, _ in transport.sent] == ["120363025246125486@g.us"]

    @pytest.mark.asyncio
    async def test_failed_delivery_reported(self, transport, sleeper):
        transport.always_fail = True
        result = await _relay(transport, sleeper, ["0811"]).handle("push", PUSH)

        assert result.status_code == 200
        assert result.body["targets_sent"] == 0
        assert result.body["results"][0]["error"] == "network down"
        assert transport.send_calls == 2
