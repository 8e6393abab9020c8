# ABOUTME: Decides whether a stored manifest can be reused for the page as fetched now
# ABOUTME: Compares structural and prompt hashes against the manifest's recorded hashes

from typing import Literal

from pydantic import BaseModel

from civic_scraper.core.models import StructuralManifest

ComparisonReason = Literal["reusable", "no_manifest", "structure_changed", "prompt_changed", "both_changed"]


class ComparisonResult(BaseModel):
    can_reuse: bool
    reason: ComparisonReason
    structure_changed: bool = False
    prompt_changed: bool = False


class ManifestComparator:
    def compare(
        self, existing: StructuralManifest | None, structure_hash: str, prompt_hash: str | None
    ) -> ComparisonResult:
        """Compare a manifest with the current page and prompt.

        A ``prompt_hash`` of None means the current prompt identity is unknown
        (remote prompts) and never invalidates the manifest on its own.
        """
        if existing is None:
            return ComparisonResult(can_reuse=False, reason="no_manifest")

        structure_changed = existing.structure_hash != structure_hash
        prompt_changed = prompt_hash is not None and existing.prompt_hash != prompt_hash

        if structure_changed and prompt_changed:
            reason: ComparisonReason = "both_changed"
        elif structure_changed:
            reason = "structure_changed"
        elif prompt_changed:
            reason = "prompt_changed"
        else:
            reason = "reusable"

        return ComparisonResult(
            can_reuse=reason == "reusable",
            reason=reason,
            structure_changed=structure_changed,
            prompt_changed=prompt_changed,
        )
