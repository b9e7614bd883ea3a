# Copyright 2026 Firefly Software Solutions Inc.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""Auto-fix saga — draft a patch for a vulnerability and open it as a pull request.

Steps, each memoized in the step ledger:

1. ``find-similar-issues`` -- nearest previously applied fixes.
2. ``generate-fix`` -- language-model patch; an empty patch is terminal.
3. ``create-branch`` -- ``fix/<cve>-<run timestamp ms>`` off the base commit.
   A branch left behind by an earlier attempt of the same run counts as
   created; one owned by another run is a terminal conflict.
4. ``create-pr`` -- pull request from the fix branch. When it gives up the
   run fails with ``PARTIAL_REMEDIATION`` and the branch is left in place.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping, Sequence
from typing import Any

from remediflow.kernel.exceptions import (
    BranchAlreadyExistsException,
    BranchConflictException,
    PartialRemediationException,
    TerminalStepFailure,
)
from remediflow.remediation.models import AutoFixEvent, FixProposal, SimilarFix
from remediflow.remediation.ports import (
    CodeGenerationPort,
    HandleProvider,
    SimilarityIndexPort,
    SourceControlPort,
)
from remediflow.transactional.saga import SagaBuilder, SagaContext, SagaDefinition
from remediflow.transactional.shared.types import ErrorKind

logger = logging.getLogger(__name__)

FIND_SIMILAR_ISSUES = "find-similar-issues"
GENERATE_FIX = "generate-fix"
CREATE_BRANCH = "create-branch"
CREATE_PR = "create-pr"

SYSTEM_PROMPT = "You are a security expert. Fix this vulnerability: {description}"
USER_PROMPT = "Vulnerable code: {snippet}\n\nSimilar fixes: {similar_fixes}"
PR_TITLE = "[Security] Fix {cve_id} - {vulnerability_name}"
PR_BODY = (
    "### \N{LOCK} Security Fix\n\n"
    "**Vulnerability:** {vulnerability_name}\n\n"
    "**Fix:**\n```diff\n{patch}\n```"
)


def branch_name(cve_id: str, run_timestamp_ms: int) -> str:
    return f"fix/{cve_id}-{run_timestamp_ms}"


def rank_similar_fixes(
    matches: Sequence[SimilarFix | Mapping[str, Any]],
    top_k: int,
) -> list[SimilarFix]:
    """Normalise index matches and order them most relevant first."""
    fixes = [m if isinstance(m, SimilarFix) else SimilarFix.model_validate(m) for m in matches]
    return sorted(fixes, key=lambda fix: fix.score, reverse=True)[:top_k]


def autofix_event(trigger: Any) -> AutoFixEvent:
    if isinstance(trigger, AutoFixEvent):
        return trigger
    return AutoFixEvent.model_validate(trigger)


class AutoFixSaga:
    """Builds the auto-fix saga definition around its external ports.

    Args:
        similarity: Provider of a :class:`SimilarityIndexPort` client.
        codegen: Provider of a :class:`CodeGenerationPort` client.
        source_control: Provider of a :class:`SourceControlPort` client.
        top_k: Number of similar fixes passed to the code generator.
        anonymous_key: Admission key for triggers without a ``user_id``.
    """

    def __init__(
        self,
        similarity: HandleProvider[SimilarityIndexPort],
        codegen: HandleProvider[CodeGenerationPort],
        source_control: HandleProvider[SourceControlPort],
        *,
        top_k: int = 5,
        anonymous_key: str = "anonymous",
    ) -> None:
        if top_k < 1:
            raise ValueError(f"top_k must be >= 1, got {top_k}")
        self._similarity = similarity
        self._codegen = codegen
        self._source_control = source_control
        self._top_k = top_k
        self._anonymous_key = anonymous_key

    def build(self) -> SagaDefinition:
        return (
            SagaBuilder("github-auto-fix")
            .step(FIND_SIMILAR_ISSUES).handler(self.find_similar_issues).add()
            .step(GENERATE_FIX).handler(self.generate_fix).add()
            .step(CREATE_BRANCH).handler(self.create_branch).add()
            .step(CREATE_PR)
                .handler(self.create_pr)
                .on_exhausted(ErrorKind.PARTIAL_REMEDIATION)
                .add()
            .admission_key(self.admission_key)
            .output(self.output)
            .build()
        )

    def admission_key(self, trigger: Any) -> str:
        return autofix_event(trigger).user_id or self._anonymous_key

    # ── Steps ─────────────────────────────────────────────────

    async def find_similar_issues(self, ctx: SagaContext) -> list[dict[str, Any]]:
        event = autofix_event(ctx.trigger)
        async with self._similarity() as index:
            matches = await index.query(event.vulnerability_signature, self._top_k)
        return [fix.model_dump(mode="json") for fix in rank_similar_fixes(matches, self._top_k)]

    async def generate_fix(self, ctx: SagaContext) -> str:
        event = autofix_event(ctx.trigger)
        system_prompt = SYSTEM_PROMPT.format(description=event.vulnerability_description)
        user_prompt = USER_PROMPT.format(
            snippet=event.vulnerable_code_snippet,
            similar_fixes=json.dumps(ctx.result(FIND_SIMILAR_ISSUES)),
        )
        async with self._codegen() as llm:
            patch = await llm.complete(system_prompt, user_prompt)

        if not patch or not patch.strip():
            raise TerminalStepFailure(
                f"Code generation returned an empty patch for {event.cve_id}",
                code="EMPTY_PATCH",
                context={"cve_id": event.cve_id},
            )
        return patch

    async def create_branch(self, ctx: SagaContext) -> dict[str, Any]:
        event = autofix_event(ctx.trigger)
        name = branch_name(event.cve_id, ctx.run.run_timestamp_ms)
        ref = f"refs/heads/{name}"
        async with self._source_control() as scm:
            try:
                await scm.create_ref(event.repo_owner, event.repo_name, ref, event.base_sha)
            except BranchAlreadyExistsException as exc:
                if not await ctx.attempted_before(CREATE_BRANCH):
                    raise BranchConflictException(
                        f"Branch {name} already exists in {event.repo_owner}/{event.repo_name} "
                        f"and was not created by run {ctx.run_id}",
                        code="BRANCH_CONFLICT",
                        context={"branch_name": name, "run_id": ctx.run_id},
                    ) from exc
                logger.info("Branch %s was created by an earlier attempt of run %s", name, ctx.run_id)
        return {"branch_name": name, "ref": ref, "sha": event.base_sha}

    async def create_pr(self, ctx: SagaContext) -> str:
        event = autofix_event(ctx.trigger)
        head = ctx.result(CREATE_BRANCH)["branch_name"]
        title = PR_TITLE.format(cve_id=event.cve_id, vulnerability_name=event.vulnerability_name)
        body = PR_BODY.format(
            vulnerability_name=event.vulnerability_name,
            patch=ctx.result(GENERATE_FIX),
        )
        async with self._source_control() as scm:
            url = await scm.create_pull_request(
                event.repo_owner, event.repo_name, title, head, event.base_branch, body,
            )

        if not url:
            raise PartialRemediationException(
                f"Pull request for {head} was not created",
                code="PARTIAL_REMEDIATION",
                context={"branch_name": head},
            )
        return url

    # ── Output ────────────────────────────────────────────────

    @staticmethod
    def output(ctx: SagaContext) -> dict[str, Any]:
        event = autofix_event(ctx.trigger)
        pr_url = ctx.result(CREATE_PR)
        proposal = FixProposal(
            cve_id=event.cve_id,
            branch_name=ctx.result(CREATE_BRANCH)["branch_name"],
            patch_text=ctx.result(GENERATE_FIX),
            similar_fixes=[SimilarFix.model_validate(f) for f in ctx.result(FIND_SIMILAR_ISSUES)],
            pull_request_url=pr_url,
        )
        return {"pr_url": pr_url, "proposal": proposal.model_dump(mode="json")}
