"""Step outputs for the CI runner."""

import logging
import os
import uuid
from collections.abc import Mapping
from dataclasses import dataclass

from git_tag_action.platforms.base import PlatformKind, TagOutcome

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ActionOutputs:
    """Result of a run as reported to the workflow."""

    tag_name: str
    tag_sha: str
    tag_exists: bool
    tag_updated: bool
    tag_created: bool
    platform: PlatformKind

    @classmethod
    def from_outcome(cls, outcome: TagOutcome, platform: PlatformKind) -> "ActionOutputs":
        return cls(
            tag_name=outcome.tag_name,
            tag_sha=outcome.sha,
            tag_exists=outcome.existed,
            tag_updated=outcome.updated,
            tag_created=outcome.created,
            platform=platform,
        )

    def as_dict(self) -> dict[str, str]:
        """Render every output as the string the runner expects."""

        def flag(value: bool) -> str:
            return "true" if value else "false"

        return {
            "tag_name": self.tag_name,
            "tag_sha": self.tag_sha,
            "tag_exists": flag(self.tag_exists),
            "tag_updated": flag(self.tag_updated),
            "tag_created": flag(self.tag_created),
            "platform": self.platform.value,
        }


def _format_output(name: str, value: str) -> str:
    if "\n" not in value:
        return f"{name}={value}\n"
    delimiter = f"ghadelimiter_{uuid.uuid4()}"
    return f"{name}<<{delimiter}\n{value}\n{delimiter}\n"


def write_outputs(outputs: ActionOutputs, env: Mapping[str, str] | None = None) -> None:
    """Write outputs to the runner's output file, or stdout outside CI."""
    env = os.environ if env is None else env
    rendered = outputs.as_dict()
    output_file = env.get("GITHUB_OUTPUT")

    if output_file:
        with open(output_file, "a", encoding="utf-8") as f:
            for name, value in rendered.items():
                f.write(_format_output(name, value))
        logger.debug(f"Wrote {len(rendered)} outputs to {output_file}")
        return

    for name, value in rendered.items():
        print(f"{name}={value}", flush=True)
