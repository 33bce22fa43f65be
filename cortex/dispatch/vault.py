"""
Vault Agent

Natural-language management of an Obsidian vault. The LLM turns a request
into a JSON action ({"action": ..., "parameters": {...}}) which is then
executed against ObsidianVaultManager.
"""

import asyncio
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from ..common.llm_client import LLMClient
from ..common.llm_utils import normalize_llm_answer, parse_llm_json
from ..common.retry import with_retry
from ..knowledge.vault import ObsidianVaultManager
from .base import ChatMessage, SubAgent

logger = logging.getLogger("cortex.dispatch.vault")


class VaultAction(str, Enum):
    READ_NOTE = "read_note"
    SEARCH_VAULT = "search_vault"
    LIST_NOTES = "list_notes"
    GET_TAGS = "get_tags"
    GET_BACKLINKS = "get_backlinks"
    CREATE_NOTE = "create_note"
    UPDATE_NOTE = "update_note"
    DELETE_NOTE = "delete_note"
    MOVE_NOTE = "move_note"
    CREATE_FOLDER = "create_folder"
    LIST_FOLDERS = "list_folders"
    ASK_USER = "ask_user"


@dataclass
class ParsedVaultQuery:
    action: VaultAction
    parameters: Dict[str, Any] = field(default_factory=dict)


VAULT_POLICY = """You translate requests about an Obsidian vault into one operation.

Operations and their parameters:
- read_note: path
- search_vault: query, folder (optional), tags (optional list)
- list_notes: folder (optional)
- get_tags: none
- get_backlinks: path
- create_note: path or title, content, tags (optional list)
- update_note: path, content (optional), title (optional), tags (optional list)
- delete_note: path
- move_note: old_path, new_path
- create_folder: folder
- list_folders: none
- ask_user: question (when required information is missing)

Paths are relative to the vault root; the .md extension is optional.

Respond with ONLY a JSON object:
{"action": "<operation>", "parameters": {...}}"""

CAN_HANDLE_PROMPT = """Is this request about reading, searching, creating, editing, moving or
organizing notes in an Obsidian vault? Answer only "true" or "false".

Request: {query}"""

FAST_PATH_WORDS = ("obsidian", "vault")

COMMAND_WORDS = (
    "note", "notes", "tag", "tags", "folder", "folders", "backlink", "backlinks",
    "create", "read", "open", "show", "list", "update", "edit", "append",
    "delete", "remove", "move", "rename",
)

HISTORY_WINDOW = 5
MAX_LISTED = 20


def _word_pattern(words) -> "re.Pattern":
    return re.compile(r"\b(" + "|".join(re.escape(w) for w in words) + r")\b", re.IGNORECASE)


class VaultQueryParser:
    """Maps a request (and recent conversation) to a ParsedVaultQuery"""

    def __init__(self, llm_client: Optional[LLMClient], max_tokens: int = 300, timeout: float = 15.0):
        self._llm = llm_client
        self._max_tokens = max_tokens
        self._timeout = timeout

    def _fallback(self, query: str) -> ParsedVaultQuery:
        return ParsedVaultQuery(VaultAction.SEARCH_VAULT, {"query": query})

    def _build_prompt(self, query: str, history: Optional[List[ChatMessage]]) -> str:
        recent = (history or [])[-HISTORY_WINDOW:]
        parts = []
        if recent:
            parts.append("Conversation so far:")
            parts.extend(f"{m.role}: {m.content}" for m in recent)
            last = recent[-1]
            text = last.content.lower()
            if last.role == "assistant" and ("?" in text or "please" in text):
                parts.append("The request below answers the assistant's last question.")
            parts.append("")
        parts.append(f"Request: {query}")
        return "\n".join(parts)

    async def parse(self, query: str, history: Optional[List[ChatMessage]] = None) -> ParsedVaultQuery:
        if self._llm is None or not self._llm.is_available:
            return self._fallback(query)

        try:
            raw = await self._llm.agenerate(
                self._build_prompt(query, history),
                system=VAULT_POLICY,
                max_tokens=self._max_tokens,
                timeout=self._timeout,
            )
        except Exception as e:
            logger.warning("Vault query parsing failed, falling back to search: %s", e)
            return self._fallback(query)

        data = parse_llm_json(raw)
        try:
            action = VaultAction(str(data.get("action", "")).strip().lower())
        except ValueError:
            logger.debug("Unrecognized vault action in %r", raw)
            return self._fallback(query)

        parameters = data.get("parameters")
        return ParsedVaultQuery(action, parameters if isinstance(parameters, dict) else {})


class VaultOperations:
    """Executes ParsedVaultQuery actions and formats the result as text"""

    def __init__(self, manager: ObsidianVaultManager):
        self._manager = manager
        self._handlers = {
            VaultAction.READ_NOTE: self._read_note,
            VaultAction.SEARCH_VAULT: self._search,
            VaultAction.LIST_NOTES: self._list_notes,
            VaultAction.GET_TAGS: self._get_tags,
            VaultAction.GET_BACKLINKS: self._get_backlinks,
            VaultAction.CREATE_NOTE: self._create_note,
            VaultAction.UPDATE_NOTE: self._update_note,
            VaultAction.DELETE_NOTE: self._delete_note,
            VaultAction.MOVE_NOTE: self._move_note,
            VaultAction.CREATE_FOLDER: self._create_folder,
            VaultAction.LIST_FOLDERS: self._list_folders,
            VaultAction.ASK_USER: self._ask_user,
        }

    async def execute(self, parsed: ParsedVaultQuery) -> str:
        handler = self._handlers[parsed.action]
        try:
            return await asyncio.to_thread(handler, parsed.parameters)
        except KeyError as e:
            return f"Missing parameter for {parsed.action.value}: {e.args[0]}"
        except (OSError, ValueError) as e:
            logger.warning("Vault operation %s failed: %s", parsed.action.value, e)
            return f"Could not {parsed.action.value.replace('_', ' ')}: {e}"

    # Handlers run in a worker thread

    def _read_note(self, params: Dict[str, Any]) -> str:
        note = self._manager.read_note(params["path"])
        tags = f"\nTags: {', '.join(note.tags)}" if note.tags else ""
        return f"# {note.title}\nPath: {note.path}{tags}\n\n{note.content.strip()}"

    def _search(self, params: Dict[str, Any]) -> str:
        query = str(params.get("query", ""))
        hits = self._manager.search_notes(
            query,
            folder=params.get("folder"),
            tags=params.get("tags"),
            limit=int(params.get("limit", 10)),
        )
        if not hits:
            return f"No notes found matching '{query}'."

        lines = [f"Found {len(hits)} note(s) matching '{query}':"]
        for hit in hits:
            lines.append(f"- {hit.note.title} ({hit.note.path})")
            lines.extend(f"  {fragment}" for fragment in hit.fragments[:1])
        return "\n".join(lines)

    def _list_notes(self, params: Dict[str, Any]) -> str:
        folder = params.get("folder") or None
        notes = self._manager.list_notes(folder)
        where = f" in {folder}" if folder else ""
        if not notes:
            return f"No notes{where}."

        lines = [f"{len(notes)} note(s){where}:"]
        lines.extend(f"- {n.title} ({n.path})" for n in notes[:MAX_LISTED])
        if len(notes) > MAX_LISTED:
            lines.append(f"... and {len(notes) - MAX_LISTED} more")
        return "\n".join(lines)

    def _get_tags(self, params: Dict[str, Any]) -> str:
        tags = self._manager.get_all_tags()
        if not tags:
            return "No tags in the vault."
        return "Tags: " + ", ".join(f"#{t}" for t in tags)

    def _get_backlinks(self, params: Dict[str, Any]) -> str:
        path = params["path"]
        links = self._manager.get_backlinks(path)
        if not links:
            return f"No notes link to {path}."
        return f"Notes linking to {path}:\n" + "\n".join(f"- {p}" for p in links)

    def _create_note(self, params: Dict[str, Any]) -> str:
        path = params.get("path")
        title = params.get("title")
        if not path and not title:
            raise KeyError("path")
        if not title:
            title = path.rstrip("/").rsplit("/", 1)[-1]
            if title.endswith(".md"):
                title = title[:-3]
        if not path:
            path = title

        note = self._manager.create_note(
            path,
            title,
            content=params.get("content", ""),
            tags=params.get("tags") or (),
        )
        return f"Created note '{note.title}' at {note.path}."

    def _update_note(self, params: Dict[str, Any]) -> str:
        note = self._manager.update_note(
            params["path"],
            content=params.get("content"),
            title=params.get("title"),
            tags=params.get("tags"),
        )
        return f"Updated note '{note.title}' at {note.path}."

    def _delete_note(self, params: Dict[str, Any]) -> str:
        path = self._manager.delete_note(params["path"])
        return f"Deleted note {path}."

    def _move_note(self, params: Dict[str, Any]) -> str:
        note = self._manager.move_note(params["old_path"], params["new_path"])
        return f"Moved note to {note.path}."

    def _create_folder(self, params: Dict[str, Any]) -> str:
        folder = self._manager.create_folder(params["folder"])
        return f"Created folder {folder}."

    def _list_folders(self, params: Dict[str, Any]) -> str:
        folders = self._manager.list_folders()
        if not folders:
            return "The vault has no folders."
        return "Folders:\n" + "\n".join(f"- {f}" for f in folders)

    def _ask_user(self, params: Dict[str, Any]) -> str:
        return str(params.get("question") or "Could you give me more details?")


class VaultAgent(SubAgent):
    """Reads and edits notes in the user's Obsidian vault"""

    name = "obsidian-manager"
    description = (
        "Manages the user's Obsidian vault: reads, searches, creates, updates, "
        "moves and deletes notes, and lists tags, backlinks and folders"
    )

    def __init__(self, manager: ObsidianVaultManager, llm_client: Optional[LLMClient] = None):
        self._manager = manager
        self._llm = llm_client
        self._parser = VaultQueryParser(llm_client)
        self._operations = VaultOperations(manager)
        self._fast_path_re = _word_pattern(FAST_PATH_WORDS)
        self._command_re = _word_pattern(COMMAND_WORDS)
        self._decisions: Dict[str, bool] = {}

    async def is_available(self) -> bool:
        return self._manager.is_available()

    async def can_handle(self, query: str, history: Optional[List[ChatMessage]] = None) -> bool:
        if not query:
            return False
        if self._fast_path_re.search(query):
            return True
        if not self._command_re.search(query):
            return False
        if self._llm is None or not self._llm.is_available:
            return False

        key = query.strip().lower()
        if key in self._decisions:
            return self._decisions[key]

        async def _ask():
            return await self._llm.agenerate(
                CAN_HANDLE_PROMPT.format(query=query), max_tokens=5, timeout=10.0,
            )

        try:
            answer = normalize_llm_answer(await with_retry(_ask, max_attempts=2))
        except Exception as e:
            logger.warning("Vault capability check failed: %s", e)
            return False

        decision = answer.lower() == "true"
        self._decisions[key] = decision
        return decision

    async def handle(self, query: str, history: Optional[List[ChatMessage]] = None) -> str:
        try:
            parsed = await self._parser.parse(query, history)
            logger.info("Vault action %s %s", parsed.action.value, parsed.parameters)
            return await self._operations.execute(parsed)
        except Exception as e:
            logger.error("Vault request failed: %s", e)
            return f"Error processing your vault request: {e}"
