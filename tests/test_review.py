"""Tests for per-file review and feedback suppression."""

from __future__ import annotations

from dataclasses import dataclass, field

import pytest
from conftest import FakeBackend, FakeGit, make_config
from gpt_pr_review.observability import RunStats
from gpt_pr_review.review import DEFAULT_INSTRUCTIONS, ReviewEngine, build_review_request
from gpt_pr_review.schema import ReviewResult, is_no_feedback

PATCH_A = "diff --git a/src/a.ts b/src/a.ts\n@@ -1 +1 @@\n-let a = 1\n+let a = b.c"
PATCH_B = "diff --git a/src/b.ts b/src/b.ts\n@@ -1 +1 @@\n-old\n+new"


@dataclass
class RecordingReconciler:
    created: list[tuple[str, str]] = field(default_factory=list)
    posts: bool = True

    def create(self, file_path: str, text: str) -> bool:
        self.created.append((file_path, text))
        return self.posts


@pytest.mark.unit
@pytest.mark.parametrize(
    "response",
    [
        "No feedback.",
        "No feedback",
        "- No feedback, looks good",
        "  * no FEEDBACK",
        "\n\n- No feedback.",
        "• No feedback",
        "",
        "   ",
        None,
    ],
)
def test_is_no_feedback_suppresses(response: str | None) -> None:
    assert is_no_feedback(response)


@pytest.mark.unit
@pytest.mark.parametrize(
    "response",
    [
        "No bugs found but consider renaming X",
        "- Consider adding a null check on line 12.",
        "Looks fine. No feedback.",
        "No. Feedback: rename x",
    ],
)
def test_is_no_feedback_keeps_real_feedback(response: str) -> None:
    assert not is_no_feedback(response)


@pytest.mark.unit
def test_review_result_is_empty_follows_suppression_rule() -> None:
    assert ReviewResult(file_path="src/a.ts", feedback_text="No feedback.").is_empty
    assert not ReviewResult(file_path="src/a.ts", feedback_text="- Fix it").is_empty


@pytest.mark.unit
def test_build_review_request_embeds_rules_and_patch_verbatim() -> None:
    request = build_review_request("src/a.ts", PATCH_A)

    assert request.instructions == DEFAULT_INSTRUCTIONS
    assert "Review only added, edited or deleted lines." in request.prompt
    assert "write 'No feedback'" in request.prompt
    assert "Use bullet points" in request.prompt
    assert request.prompt.endswith(PATCH_A)


@pytest.mark.unit
def test_build_review_request_puts_configured_instructions_before_rules() -> None:
    request = build_review_request("src/a.ts", PATCH_A, "Focus on security issues.")

    assert request.instructions == DEFAULT_INSTRUCTIONS
    assert request.prompt.startswith("Focus on security issues.\n\nAs a code reviewer")
    assert request.prompt.endswith(PATCH_A)


@pytest.mark.unit
def test_build_review_request_keeps_empty_patch() -> None:
    request = build_review_request("src/mode_only.sh", "")

    assert request.patch_text == ""
    assert request.prompt.endswith("Patch of the Pull Request to review:\n")


@pytest.mark.unit
def test_review_file_fetches_patch_for_single_path() -> None:
    git = FakeGit(patches={"src/a.ts": PATCH_A})
    backend = FakeBackend()
    engine = ReviewEngine(git, backend, RecordingReconciler(), make_config(max_tokens=123))

    engine.review_file("src/a.ts", "origin/main")

    assert git.calls == [("diff", "origin/main", "--", "src/a.ts")]
    assert PATCH_A in backend.prompts[0]
    assert backend.instructions == [DEFAULT_INSTRUCTIONS]


@pytest.mark.unit
def test_review_all_creates_comments_only_for_feedback() -> None:
    git = FakeGit(patches={"src/a.ts": PATCH_A, "src/b.ts": PATCH_B})
    backend = FakeBackend(responses={"src/a.ts": "- Consider adding a null check on line 12."})
    reconciler = RecordingReconciler()
    stats = RunStats()

    results = ReviewEngine(git, backend, reconciler, make_config()).review_all(
        ["src/a.ts", "src/b.ts"], "origin/main", stats
    )

    assert [result.file_path for result in results] == ["src/a.ts", "src/b.ts"]
    assert reconciler.created == [("src/a.ts", "- Consider adding a null check on line 12.")]
    assert stats.files_reviewed == 2
    assert stats.files_suppressed == 1
    assert stats.threads_created == 1


@pytest.mark.unit
def test_review_all_treats_missing_completion_as_no_feedback() -> None:
    git = FakeGit(patches={"src/a.ts": PATCH_A})
    reconciler = RecordingReconciler()

    results = ReviewEngine(git, FakeBackend(default=None), reconciler, make_config()).review_all(
        ["src/a.ts"], "origin/main"
    )

    assert results[0].is_empty
    assert reconciler.created == []


@pytest.mark.unit
def test_review_all_continues_after_file_failure(caplog: pytest.LogCaptureFixture) -> None:
    git = FakeGit(patches={"src/a.ts": PATCH_A, "src/b.ts": PATCH_B}, fail_on="src/a.ts")
    backend = FakeBackend(default="- Rename variable.")
    reconciler = RecordingReconciler()
    stats = RunStats()

    results = ReviewEngine(git, backend, reconciler, make_config()).review_all(
        ["src/a.ts", "src/b.ts"], "origin/main", stats
    )

    assert [result.file_path for result in results] == ["src/b.ts"]
    assert reconciler.created == [("src/b.ts", "- Rename variable.")]
    assert stats.files_failed == 1
    assert "Review of src/a.ts failed." in caplog.text


@pytest.mark.unit
def test_review_all_continues_after_comment_creation_failure() -> None:
    class FailingReconciler(RecordingReconciler):
        def create(self, file_path: str, text: str) -> bool:
            if file_path == "src/a.ts":
                raise RuntimeError("host rejected thread")
            return super().create(file_path, text)

    git = FakeGit(patches={"src/a.ts": PATCH_A, "src/b.ts": PATCH_B})
    reconciler = FailingReconciler()
    stats = RunStats()

    ReviewEngine(git, FakeBackend(default="- Fix."), reconciler, make_config()).review_all(
        ["src/a.ts", "src/b.ts"], "origin/main", stats
    )

    assert reconciler.created == [("src/b.ts", "- Fix.")]
    assert stats.files_failed == 1
    assert stats.threads_created == 1


@pytest.mark.unit
def test_review_all_counts_only_posted_threads() -> None:
    git = FakeGit(patches={"src/a.ts": PATCH_A})
    reconciler = RecordingReconciler(posts=False)
    stats = RunStats()
    engine = ReviewEngine(git, FakeBackend(default="- Fix."), reconciler, make_config())

    results = engine.review_all(["src/a.ts"], "origin/main", stats)

    assert reconciler.created == [("src/a.ts", "- Fix.")]
    assert not results[0].comment_posted
    assert stats.files_reviewed == 1
    assert stats.files_suppressed == 0
    assert stats.threads_created == 0


@pytest.mark.unit
def test_review_file_passes_configured_instructions_in_prompt() -> None:
    backend = FakeBackend()
    config = make_config(prompt_instructions="Focus on security issues.")
    git = FakeGit(patches={"src/a.ts": PATCH_A})

    ReviewEngine(git, backend, RecordingReconciler(), config).review_file("src/a.ts", "origin/main")

    assert backend.instructions == [DEFAULT_INSTRUCTIONS]
    assert backend.prompts[0].startswith("Focus on security issues.")
