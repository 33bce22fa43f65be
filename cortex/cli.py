"""
Cortex CLI

Usage:
    cortex sync [--vault PATH]
    cortex search QUERY [--limit N] [--source S] [--threshold T]
    cortex classify FILE
    cortex chat QUERY [--session ID]

The knowledge store is in-memory and lives for one invocation, so search
and chat sync the configured sources first.
"""

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from .classifier import HybridMemoryClassifier, build_default_classifier
from .common.config import CortexConfig, ensure_directories, load_config
from .common.embedding_service import EmbeddingService
from .common.llm_client import LLMClient
from .common.retry import RetryPolicy
from .dispatch import (
    AgentDispatcher,
    AssistantAgent,
    ChatService,
    KnowledgeAgent,
    LLMAgentMatcher,
    VaultAgent,
)
from .knowledge import InMemoryVectorIndex, KnowledgeService, KnowledgeStore, MarkdownParser
from .knowledge.sources import ObsidianSource
from .knowledge.vault import ObsidianVaultManager

logger = logging.getLogger("cortex.cli")


@dataclass
class Runtime:
    """Components wired from one CortexConfig"""
    config: CortexConfig
    embedding: EmbeddingService
    classifier: HybridMemoryClassifier
    service: KnowledgeService
    chat: ChatService


def build_runtime(config: CortexConfig, vault_path: Optional[str] = None) -> Runtime:
    embedding = EmbeddingService.from_config(config.embedding)
    retry = RetryPolicy.from_config(config.retry)
    classifier = build_default_classifier(
        embedding,
        weights=config.classification,
        timeout=config.embedding.timeout,
        retry=retry,
    )

    store = KnowledgeStore(
        index=InMemoryVectorIndex(),
        embedding_service=embedding,
        classifier=classifier,
        dimension=config.embedding.dimension,
        retry=retry,
        embedding_timeout=config.embedding.timeout,
        default_limit=config.store.default_limit,
        distance_threshold=config.store.distance_threshold,
    )
    vault = ObsidianSource(vault_path or config.sources.vault_path)
    service = KnowledgeService(
        store,
        embedding,
        sources=[vault],
        retry=retry,
        embedding_timeout=config.embedding.timeout,
    )

    llm = LLMClient.from_config(config.llm)
    dispatcher = AgentDispatcher(
        [
            KnowledgeAgent(service, llm),
            VaultAgent(ObsidianVaultManager(vault.vault_path), llm),
            AssistantAgent(llm),
        ],
        LLMAgentMatcher(llm, timeout=config.dispatch.matcher_timeout),
        config=config.dispatch,
        retry=config.retry,
    )
    chat = ChatService(dispatcher, max_history_size=config.chat.max_history_size)

    return Runtime(config, embedding, classifier, service, chat)


async def _sync(runtime: Runtime) -> int:
    reports = await runtime.service.sync_all_sources()
    if not reports:
        print("No available knowledge sources. Set CORTEX_VAULT_PATH or pass --vault.")
        return 1
    for report in reports.values():
        print(report.summary())
        for item_id, error in report.failed:
            print(f"  failed {item_id}: {error}")
    return 0 if all(r.error is None for r in reports.values()) else 1


async def cmd_sync(runtime: Runtime, args) -> int:
    return await _sync(runtime)


async def cmd_search(runtime: Runtime, args) -> int:
    status = await _sync(runtime)
    if status:
        return status

    hits = await runtime.service.search_knowledge(
        args.query, limit=args.limit, source=args.source, threshold=args.threshold
    )
    if not hits:
        print("No results.")
        return 0

    for rank, hit in enumerate(hits, 1):
        item = hit.item
        label = item.classification.primary if item.classification else "unclassified"
        print(f"{rank}. [{hit.distance:.4f}] {item.path} ({label})")
    return 0


async def cmd_classify(runtime: Runtime, args) -> int:
    path = Path(args.file)
    if not path.is_file():
        print(f"File not found: {path}", file=sys.stderr)
        return 1

    parser = MarkdownParser()
    stat = path.stat()
    parsed = parser.parse(path.read_text(encoding="utf-8"), path)
    metadata = parser.to_metadata(parsed, path.resolve().as_posix(), stat.st_mtime)
    metadata["source"] = ObsidianSource.source_id
    content = parser.clean(parsed.content)

    candidates = await runtime.classifier.collect(content, metadata)
    result = runtime.classifier.combine(candidates)

    print(f"{parsed.title or path.name}: {result.primary} ({result.confidence:.3f})")
    for strategy_id, candidate in candidates:
        print(f"  {strategy_id:<11} {candidate.primary:<14} {candidate.confidence:.3f}")
    if args.json:
        print(json.dumps(result.model_dump(), indent=2, default=str))
    return 0


async def cmd_chat(runtime: Runtime, args) -> int:
    await runtime.service.sync_all_sources()
    reply = await runtime.chat.chat(args.query, session_id=args.session)
    if reply.agent:
        print(f"[{reply.agent} | {reply.reason} | {reply.confidence:.1f}]")
    print(reply.content)
    return 0


COMMANDS = {
    "sync": cmd_sync,
    "search": cmd_search,
    "classify": cmd_classify,
    "chat": cmd_chat,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cortex",
        description="Classify, index and search notes; route questions to agents.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")
    parser.add_argument("--vault", default=None, help="Obsidian vault path (overrides config).")

    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("sync", help="Sync all available sources.")

    search = sub.add_parser("search", help="Similarity search over synced notes.")
    search.add_argument("query")
    search.add_argument("--limit", type=int, default=None, help="Maximum results.")
    search.add_argument("--source", default=None, help="Restrict to one source.")
    search.add_argument(
        "--threshold", type=float, default=None,
        help="Keep only results with cosine distance below this value.",
    )

    classify = sub.add_parser("classify", help="Classify one markdown file.")
    classify.add_argument("file")
    classify.add_argument("--json", action="store_true", help="Also print the full result.")

    chat = sub.add_parser("chat", help="Ask a question routed through the dispatcher.")
    chat.add_argument("query")
    chat.add_argument("--session", default="cli", help="Chat session id.")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    ensure_directories()
    runtime = build_runtime(load_config(), vault_path=args.vault)
    return asyncio.run(COMMANDS[args.command](runtime, args))


if __name__ == "__main__":
    sys.exit(main())
