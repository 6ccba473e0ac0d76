"""Summary generator backed by a chat completions model.

Always re-summarizes the full active history: the prompt has no notion of
a previous summary or of an incremental diff.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from datetime import UTC, datetime
import re
from typing import Protocol

import httpx
import structlog

from shared.clients.chat_completions import ChatCompletionsClient, ChatMessage
from shared.contracts.dto.entry import EntryDTO
from shared.models.entry import EntryType

from .metadata import GeneratedSummaries

logger = structlog.get_logger()

SUMMARY_TEMPERATURE = 0.2

SECTION_KEYS = ("ARTISAN_SHORT", "ARTISAN_DETAIL", "CLIENT_SHORT", "CLIENT_DETAIL")
SECTION_MARKER = re.compile(
    r"===\s*(ARTISAN_SHORT|ARTISAN_DETAIL|CLIENT_SHORT|CLIENT_DETAIL)\s*===", re.IGNORECASE
)

EMPTY_ARTISAN_SHORT = "Aucune synthèse disponible pour l'instant."
EMPTY_DETAIL = "Aucune activité enregistrée."
EMPTY_CLIENT_SHORT = "Rien à résumer pour le moment. Nous vous tenons informé."
CLIENT_FALLBACK_PREFIX = "Point rapide sur le chantier:\n"

TYPE_LABELS = {
    EntryType.TEXT: "NOTE",
    EntryType.PHOTO: "PHOTO",
    EntryType.AUDIO: "AUDIO",
}

SYSTEM_PROMPT = " ".join(
    [
        "Tu es un assistant chantier.",
        "Lis TOUT le journal chronologique fourni.",
        "Produis quatre sections textuelles complètes : "
        "ARTISAN_SHORT, ARTISAN_DETAIL, CLIENT_SHORT, CLIENT_DETAIL.",
        "ARTISAN_SHORT : résumé court (3 à 5 lignes) pour le pilotage, ton factuel.",
        "ARTISAN_DETAIL : journal chronologique avec date+heure par puce, inclure notes, "
        "transcriptions audio, photos, tâches, demandes client, changements de statut.",
        "CLIENT_SHORT : 1 à 2 paragraphes simples et rassurants, sans jargon ni heures, "
        "mentionne les demandes client.",
        "CLIENT_DETAIL : chronologie factuelle (date par ligne, heure optionnelle), "
        "sans labels techniques, sans jargon, sans justification.",
        "N'invente rien, n'ignore aucune entrée, pas de langage juridique ou défensif.",
        "Structure la réponse avec les délimiteurs fournis, "
        "aucune section vide si des entrées existent.",
    ]
)

USER_PROMPT_HEADER = " ".join(
    [
        "Synthèse ARTISAN_SHORT : 3 à 5 lignes, vue globale, avancement, points clés / risques.",
        "Synthèse ARTISAN_DETAIL : puces factuelles, chronologiques, date+heure, inclure tâches, "
        "demandes client, photos, transcriptions audio, changements de statut.",
        "Synthèse CLIENT_SHORT : 1 à 2 paragraphes calmes et positifs, sans jargon ni heures, "
        "mentionne les demandes client.",
        "Synthèse CLIENT_DETAIL : chronologie factuelle, date sur chaque ligne "
        "(heure optionnelle), aucun label technique, aucun jargon, aucune justification.",
        "Utilise uniquement le journal fourni.",
        "Structure la réponse EXACTEMENT avec les marqueurs :",
        "===ARTISAN_SHORT===",
        "(texte)",
        "===ARTISAN_DETAIL===",
        "(texte)",
        "===CLIENT_SHORT===",
        "(texte)",
        "===CLIENT_DETAIL===",
        "(texte)",
        "",
        "JOURNAL À ANALYSER :",
    ]
)

EMPTY_TIMELINE_PROMPT = (
    "Aucune entrée active pour ce chantier. "
    "Réponds en français en indiquant qu'il n'y a rien à résumer."
)


class SummaryGenerationError(Exception):
    """The model could not produce summaries."""


class SummaryGenerator(Protocol):
    """Produces the four summary variants from a project's active entries."""

    async def generate(self, entries: Sequence[EntryDTO]) -> GeneratedSummaries: ...


def placeholder_summaries(now: datetime | None = None) -> GeneratedSummaries:
    """Variants written when a project has no active entries at all."""
    return GeneratedSummaries(
        artisan_short=EMPTY_ARTISAN_SHORT,
        artisan_detail=EMPTY_DETAIL,
        client_short=EMPTY_CLIENT_SHORT,
        client_detail=EMPTY_DETAIL,
        updated_at=now or datetime.now(UTC),
    )


def _entry_content(entry: EntryDTO) -> str:
    if entry.text_content:
        return entry.text_content
    if entry.transcript_text:
        return entry.transcript_text
    if entry.photo_url:
        return "Photo ajoutée"
    if entry.entry_type == EntryType.AUDIO:
        return "Mémo audio ajouté"
    return "Note ajoutée"


def build_timeline(entries: Sequence[EntryDTO]) -> str:
    """Render active entries as one chronological bullet per line."""
    lines = []
    for entry in sorted((e for e in entries if e.is_active), key=lambda e: e.created_at):
        stamp = entry.created_at.astimezone(UTC).strftime("%Y-%m-%d %H:%M")
        subtype = f" [{entry.entry_subtype.value.upper()}]" if entry.entry_subtype else ""
        label = TYPE_LABELS[entry.entry_type]
        lines.append(f"- {stamp} [{label}]{subtype}: {_entry_content(entry)}")
    return "\n".join(lines)


def build_user_prompt(timeline: str) -> str:
    if not timeline.strip():
        return EMPTY_TIMELINE_PROMPT
    return f"{USER_PROMPT_HEADER} <<<TIMELINE>>> {timeline} <<<END>>>"


def parse_sections(raw: str) -> dict[str, str | None]:
    """Split a model answer on its ``===SECTION===`` markers.

    Without any marker the whole answer is used for every section. Sections
    that are missing or empty map to ``None``.
    """
    text = raw.strip()
    markers = list(SECTION_MARKER.finditer(text))
    if not markers:
        return {key.lower(): text for key in SECTION_KEYS}

    sections: dict[str, str | None] = {key.lower(): None for key in SECTION_KEYS}
    for index, marker in enumerate(markers):
        end = markers[index + 1].start() if index + 1 < len(markers) else len(text)
        body = text[marker.end() : end].strip()
        sections[marker.group(1).lower()] = body or None
    return sections


class OpenAISummaryGenerator:
    """Summary generator calling an OpenAI-compatible chat completions API."""

    def __init__(
        self,
        client: ChatCompletionsClient,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.client = client
        self._now = clock or (lambda: datetime.now(UTC))

    async def generate(self, entries: Sequence[EntryDTO]) -> GeneratedSummaries:
        """Generate the four variants from the full active history.

        Raises:
            SummaryGenerationError: On HTTP errors or unusable model output.
        """
        if not entries:
            return placeholder_summaries(self._now())

        timeline = build_timeline(entries)
        logger.debug(
            "summary_timeline_built",
            entry_count=len(entries),
            timeline_length=len(timeline),
        )

        messages = [
            ChatMessage(role="system", content=SYSTEM_PROMPT),
            ChatMessage(role="user", content=build_user_prompt(timeline)),
        ]
        try:
            completion = await self.client.complete(messages, temperature=SUMMARY_TEMPERATURE)
        except (httpx.HTTPError, ValueError) as exc:
            raise SummaryGenerationError(str(exc)) from exc

        logger.info(
            "summary_completion_received",
            model=completion.model,
            total_tokens=completion.total_tokens,
        )

        sections = parse_sections(completion.content)
        return GeneratedSummaries(
            artisan_short=sections["artisan_short"] or timeline,
            artisan_detail=sections["artisan_detail"] or timeline,
            client_short=sections["client_short"] or CLIENT_FALLBACK_PREFIX + timeline,
            client_detail=sections["client_detail"] or timeline,
            updated_at=self._now(),
        )
