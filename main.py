"""CLI entrypoint for the article producer."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import List, Optional

from config import get_settings
from core import ProducerRequest, QualityContext, QualityPolicy, RunMode
from orchestrator import build_pipeline_service
from producer import build_fallback, build_signature, evaluate, normalize_draft
from utils.logger import configure_pipeline_logging


def _load_dataset(path: str) -> List[ProducerRequest]:
    rows = json.loads(Path(path).read_text(encoding="utf-8"))
    if isinstance(rows, dict):
        rows = rows.get("items", [])
    return [ProducerRequest.model_validate(row) for row in rows]


def _request_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--topic", required=True)
    parser.add_argument("--city", required=True)
    parser.add_argument("--keyword", required=True)
    parser.add_argument("--language", default="")


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Location article producer CLI")
    parser.add_argument("--log-level", default="INFO")
    sub = parser.add_subparsers(dest="command", required=True)

    produce = sub.add_parser("produce", help="produce and publish one article")
    _request_args(produce)

    ev = sub.add_parser("eval", help="run the producer over a JSON dataset")
    ev.add_argument("--dataset", required=True)

    preview = sub.add_parser("fallback-preview", help="build and score the fallback article offline")
    _request_args(preview)

    sub.add_parser("stats", help="article store statistics")

    args = parser.parse_args(argv)
    configure_pipeline_logging(level=getattr(logging, str(args.log_level).upper(), logging.INFO))
    settings = get_settings()

    def _request() -> ProducerRequest:
        return ProducerRequest(
            topic=args.topic,
            city=args.city,
            keyword=args.keyword,
            language=args.language or settings.producer.default_language,
        )

    if args.command == "fallback-preview":
        draft = normalize_draft(build_fallback(_request()))
        report = evaluate(draft, QualityContext(policy=QualityPolicy.from_settings(settings.quality)))
        print(
            json.dumps(
                {
                    "draft": draft.model_dump(mode="json"),
                    "structure_signature": build_signature(draft.content),
                    "report": report.model_dump(mode="json"),
                },
                ensure_ascii=False,
                indent=2,
            )
        )
        return 0 if report.passed else 1

    if args.command == "stats":
        from storage import JsonFileArticleStore

        store = JsonFileArticleStore(settings.storage.articles_path)
        print(json.dumps(store.stats(), ensure_ascii=False))
        return 0

    service = build_pipeline_service(settings=settings)

    if args.command == "produce":
        summary = service.run_once(_request(), mode=RunMode.ONDEMAND)
        print(json.dumps(summary.to_dict(), ensure_ascii=False, default=str))
        return 0 if summary.results else 1

    if args.command == "eval":
        for request in _load_dataset(args.dataset):
            service.enqueue(request)
        summary = service.run_queued(mode=RunMode.EVAL)
        scores = [item.report.score_total for item in summary.results]
        payload = summary.to_dict()
        payload["totals"] = {
            "published": len(summary.results),
            "failed": len(summary.failures),
            "fallback": sum(1 for item in summary.results if item.origin.value == "fallback"),
            "avg_score": round(sum(scores) / len(scores), 2) if scores else 0.0,
        }
        print(json.dumps(payload, ensure_ascii=False, default=str))
        return 0 if not summary.failures and not summary.skipped else 1

    return 2


if __name__ == "__main__":
    raise SystemExit(main())
