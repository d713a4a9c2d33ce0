"""GitHub webhook relay.

Formats a GitHub event as one WhatsApp message and fans it out to the
configured notification targets (or a single per-request override).
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, ValidationError

from .delivery import DeliveryEngine
from .transport.base import Transport

logger = logging.getLogger("wagate.webhook")

WEBHOOK_ATTEMPTS = 2
MAX_LISTED_COMMITS = 3
MAX_COMMIT_MESSAGE = 80

SOURCE_QUERY = "query_parameter"
SOURCE_ENVIRONMENT = "environment"


# ── Payload models ─────────────────────────────────────────────

class _Lenient(BaseModel):
    model_config = ConfigDict(extra="ignore")


class Repository(_Lenient):
    full_name: str = ""
    html_url: str = ""


class GitHubUser(_Lenient):
    login: str = ""
    name: str = ""


class Commit(_Lenient):
    id: str = ""
    message: str = ""
    added: list[str] = []
    modified: list[str] = []
    removed: list[str] = []


class Issue(_Lenient):
    number: int = 0
    title: str = ""
    html_url: str = ""


class PullRequest(_Lenient):
    number: int = 0
    title: str = ""
    html_url: str = ""
    merged: bool = False


class GitHubPayload(_Lenient):
    ref: str = ""
    action: str = ""
    repository: Repository = Repository()
    sender: GitHubUser = GitHubUser()
    pusher: GitHubUser = GitHubUser()
    commits: list[Commit] = []
    issue: Optional[Issue] = None
    pull_request: Optional[PullRequest] = None


# ── Formatting ─────────────────────────────────────────────────

def _branch(ref: str) -> str:
    return ref.removeprefix("refs/heads/")


def _pusher(payload: GitHubPayload) -> str:
    return payload.pusher.name or payload.pusher.login or payload.sender.login or "Unknown"


def _file_summary(commit: Commit) -> str:
    parts = []
    if commit.added:
        parts.append(f"➕ {len(commit.added)} added")
    if commit.modified:
        parts.append(f"📝 {len(commit.modified)} modified")
    if commit.removed:
        parts.append(f"➖ {len(commit.removed)} removed")
    return f" ({', '.join(parts)})" if parts else ""


def _format_push(payload: GitHubPayload) -> str:
    repo = payload.repository
    header = (
        "🔄 *Push Event*\n"
        f"📁 *Repository:* {repo.full_name}\n"
        f"👤 *Pusher:* {_pusher(payload)}\n"
        f"🌿 *Branch:* {_branch(payload.ref)}\n"
    )
    if not payload.commits:
        return header + "\n_No commits in this push_"

    text = header + f"📝 *Commits:* {len(payload.commits)}\n\n"
    for commit in payload.commits[:MAX_LISTED_COMMITS]:
        message = commit.message
        if len(message) > MAX_COMMIT_MESSAGE:
            message = message[:MAX_COMMIT_MESSAGE - 3] + "..."
        text += f"🔹 `{commit.id[:7]}` {message}{_file_summary(commit)}\n"

    remaining = len(payload.commits) - MAX_LISTED_COMMITS
    if remaining > 0:
        text += f"_... and {remaining} more commits_\n"

    text += f"\n🔗 *View Repository:* {repo.html_url}"
    return text


def _format_issue(payload: GitHubPayload) -> str:
    issue = payload.issue or Issue()
    emoji = {"opened": "🆕", "closed": "✅", "reopened": "🔄"}.get(payload.action, "🐛")
    return (
        f"{emoji} *Issue {payload.action.title()}*\n"
        f"📁 *Repository:* {payload.repository.full_name}\n"
        f"👤 *User:* {payload.sender.login}\n"
        f"📋 *Issue #{issue.number}:* {issue.title}\n"
        f"🔗 *Link:* {issue.html_url}"
    )


def _format_pull_request(payload: GitHubPayload) -> str:
    pr = payload.pull_request or PullRequest()
    action = payload.action
    if action == "opened":
        emoji = "🆕"
    elif action == "closed" and pr.merged:
        emoji, action = "✅", "merged"
    elif action == "closed":
        emoji = "❌"
    elif action == "reopened":
        emoji = "🔄"
    else:
        emoji = "🔀"
    return (
        f"{emoji} *Pull Request {action.title()}*\n"
        f"📁 *Repository:* {payload.repository.full_name}\n"
        f"👤 *User:* {payload.sender.login}\n"
        f"📋 *PR #{pr.number}:* {pr.title}\n"
        f"🔗 *Link:* {pr.html_url}"
    )


def _format_release(payload: GitHubPayload) -> str:
    return (
        f"🚀 *Release {payload.action.title()}*\n"
        f"📁 *Repository:* {payload.repository.full_name}\n"
        f"👤 *User:* {payload.sender.login}\n"
        f"🔗 *Link:* {payload.repository.html_url}"
    )


def _format_generic(event_type: str, payload: GitHubPayload) -> str:
    return (
        f"📢 *GitHub Event: {event_type}*\n"
        f"📁 *Repository:* {payload.repository.full_name}\n"
        f"👤 *User:* {payload.sender.login}\n"
        f"🔗 *Link:* {payload.repository.html_url}"
    )


def format_event(event_type: str, payload: GitHubPayload) -> str:
    """Render a GitHub event as a WhatsApp message. Unknown types get a summary."""
    if event_type == "push":
        return _format_push(payload)
    if event_type == "issues":
        return _format_issue(payload)
    if event_type == "pull_request":
        return _format_pull_request(payload)
    if event_type == "release":
        return _format_release(payload)
    return _format_generic(event_type, payload)


# ── Relay ──────────────────────────────────────────────────────

@dataclass
class RelayResult:
    status_code: int
    body: dict = field(default_factory=dict)


class WebhookRelay:
    """Turn webhook deliveries into paced WhatsApp fan-outs."""

    def __init__(
        self,
        transport: Transport,
        delivery: DeliveryEngine,
        default_targets: list[str],
        pacing: float = 0.5,
    ):
        self.transport = transport
        self.delivery = delivery
        self.default_targets = default_targets
        self.pacing = pacing

    async def handle(
        self,
        event_type: Optional[str],
        raw_payload: Any,
        target_override: Optional[str] = None,
    ) -> RelayResult:
        if not event_type:
            return RelayResult(400, {"error": "Missing X-GitHub-Event header"})

        try:
            payload = GitHubPayload.model_validate(raw_payload)
        except ValidationError as e:
            logger.warning(f"Unparseable {event_type} payload: {e}")
            return RelayResult(400, {"error": "Failed to parse JSON payload"})

        if not self.transport.is_connected():
            return RelayResult(503, {"error": "WhatsApp client not connected"})

        override = (target_override or "").strip()
        if override:
            targets = [override]
            source = SOURCE_QUERY
        else:
            targets = list(self.default_targets)
            source = SOURCE_ENVIRONMENT

        if not targets:
            logger.info(f"Webhook {event_type} received with no notification targets")
            return RelayResult(200, {
                "status": "Webhook received but no notification targets configured",
                "event": event_type,
            })

        message = format_event(event_type, payload)
        logger.info(f"Relaying {event_type} for {payload.repository.full_name} to {len(targets)} target(s)")
        report = await self.delivery.fan_out(
            [(t, message) for t in targets],
            max_attempts=WEBHOOK_ATTEMPTS,
            pacing=self.pacing,
        )

        return RelayResult(200, {
            "status": "Webhook processed",
            "event": event_type,
            "repository": payload.repository.full_name,
            "targets_sent": report.succeeded,
            "total_targets": report.total,
            "custom_jid": bool(override),
            "target_source": source,
            "results": [r.to_dict(include_original=False) for r in report.results],
        })
