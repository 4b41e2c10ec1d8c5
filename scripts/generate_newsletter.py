"""Generate a per-audience newsletter from a YAML or JSON request file."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Any

import yaml

from newsdesk.config import settings
from newsdesk.core.exceptions import NewsdeskError
from newsdesk.core.logging import setup_logging
from newsdesk.integrations.sources import AggregatedSourceFetcher, DevToClient, GitHubClient, HackerNewsClient
from newsdesk.schemas.audience import WriterPersona
from newsdesk.schemas.pipeline import NewsletterRequest, OrchestratorConfig
from newsdesk.services.audiences import AudienceDirectory, default_audience_directory
from newsdesk.services.collaborators import AgentSectionWriter, AgentTopicGenerator, InMemoryPersonaStore
from newsdesk.services.pipelines.newsletter.orchestrator import NewsletterOrchestrator
from newsdesk.services.topic_suggestions import TopicSuggestionService, estimate_tradeoffs

logger = logging.getLogger("newsdesk.cli")


def parse_args() -> argparse.Namespace:
    """Build CLI parser."""
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("request", help="Path to the request file (YAML or JSON)")
    parser.add_argument(
        "--mode",
        choices=["per-audience", "per-category", "hybrid"],
        help="Override the topic generation mode",
    )
    parser.add_argument(
        "--suggest-only",
        action="store_true",
        help="Only suggest topics for the audiences; do not write sections",
    )
    parser.add_argument(
        "--tradeoffs",
        action="store_true",
        help="Print the agent count and latency estimate for the request and exit",
    )
    parser.add_argument(
        "--with-github",
        action="store_true",
        help="Also search GitHub for trending repositories",
    )
    parser.add_argument("--output", help="Write the JSON result here instead of stdout")
    parser.add_argument("--log-level", default=None, help="Logging level (default: INFO)")
    return parser.parse_args()


def load_request_payload(path: Path) -> dict[str, Any]:
    """Load the request mapping; YAML is a superset of JSON so one loader covers both."""
    payload = yaml.safe_load(path.read_text(encoding="utf-8"))
    if not isinstance(payload, dict):
        raise ValueError("request file must contain a mapping")
    return payload


def resolve_audiences(raw: list[Any], directory: AudienceDirectory) -> list[dict[str, Any]]:
    """Expand built-in, category and legacy ids; pass custom audience mappings through."""
    resolved: list[dict[str, Any]] = []
    for item in raw:
        if isinstance(item, str):
            resolved.extend(a.model_dump() for a in directory.audience_configs([item]))
        elif isinstance(item, dict):
            entry = dict(item)
            if directory.get(entry.get("id", "")) is None:
                entry.setdefault("is_custom", True)
            resolved.append(entry)
        else:
            raise ValueError(f"unsupported audience entry: {item!r}")
    return resolved


def build_request(payload: dict[str, Any], directory: AudienceDirectory, mode: str | None) -> NewsletterRequest:
    data = dict(payload)
    data.pop("personas", None)
    data["audiences"] = resolve_audiences(data.get("audiences") or [], directory)
    if mode:
        data["config"] = {**(data.get("config") or {}), "generation_mode": mode}
    return NewsletterRequest.model_validate(data)


async def run(args: argparse.Namespace) -> dict[str, Any]:
    directory = default_audience_directory()
    payload = load_request_payload(Path(args.request))
    request = build_request(payload, directory, args.mode)
    config = request.config or OrchestratorConfig()

    if args.tradeoffs:
        return asdict(
            estimate_tradeoffs(
                request.audiences,
                config.generation_mode,
                config.topics_per_audience,
                directory,
                config.max_parallel_agents,
            )
        )

    topic_generator = AgentTopicGenerator(directory)
    if args.suggest_only:
        service = TopicSuggestionService(
            topic_generator,
            directory,
            mode=config.generation_mode,
            max_parallel_agents=config.max_parallel_agents,
        )
        suggestion = await service.suggest(request.audiences, config.topics_per_audience)
        return suggestion.to_dict()

    providers = [HackerNewsClient(), DevToClient()]
    if args.with_github:
        providers.append(GitHubClient())
    personas = [WriterPersona.model_validate(p) for p in payload.get("personas") or []]

    orchestrator = NewsletterOrchestrator(
        AgentSectionWriter(),
        topic_generator,
        AggregatedSourceFetcher(providers),
        directory=directory,
        persona_store=InMemoryPersonaStore(personas),
    )
    result = await orchestrator.run(request, config)
    return result.to_dict()


def main() -> int:
    args = parse_args()
    setup_logging(args.log_level)
    logger.info("Generating newsletter", extra={"request": args.request, "environment": settings.environment})

    try:
        output = asyncio.run(run(args))
    except (OSError, ValueError) as exc:
        logger.error("Invalid request", extra={"error": str(exc)})
        return 2
    except NewsdeskError as exc:
        logger.error("Newsletter generation failed", extra={"error": exc.message, **exc.details})
        return 1

    text = json.dumps(output, indent=2, default=str)
    if args.output:
        Path(args.output).write_text(text + "\n", encoding="utf-8")
    else:
        sys.stdout.write(text + "\n")
    return 0 if output.get("success", True) else 1


if __name__ == "__main__":
    raise SystemExit(main())
