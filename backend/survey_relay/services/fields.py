# survey_relay/services/fields.py
"""
Column layout of the responses sheet.

Column A is the server timestamp; columns B.. follow FIELD_ORDER. Changing
the label list moves data between columns in an existing sheet, so every
change must bump the version.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FieldOrder:
    version: int
    labels: Tuple[str, ...]

    def __len__(self) -> int:
        return len(self.labels)

    def __iter__(self):
        return iter(self.labels)


FIELD_ORDER = FieldOrder(
    version=1,
    labels=(
        "Будущее после войны",
        "Высказывания о Западе и союзниках",
        "Истории о военных и погибших",
        "Вопросы экономики",
        "Динамика разговоров о войне 2022-2025",
        "Сколько людей в окружении поддерживают войну",
        "Война, как обыденность",
        "Война и церковь",
        "Отношение к антивоенным оппозиционерам",
        "Мужчины или женщины?",
        "Возраст собеседников",
        "Источники о войне и событиях в России",
        "География",
        "Возраст респондента",
        "Частота разговоров о политике и войне",
        "Избегаю обсуждение войны с ближним кругом",
        "Как проходят регулярные вопросы о войне с ближним кругом",
        "Причины избегания обсуждений войны с широким кругом",
        "Как проходят регулярные обсуждения войны с широким кругом",
        "Причины избегания разговоров о войне с незнакомцами",
        "Как проходят регулярные разговоры о войне с незнакомцами",
    ),
)


# ---------- Row projection ----------

def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def serialize_cell(value: Any) -> Any:
    """Lists and records become compact JSON text; scalars pass through."""
    if value is None:
        return ""
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"))
    return value


def project(answers: Dict[str, Any],
            field_order: FieldOrder = FIELD_ORDER,
            timestamp: Optional[str] = None) -> List[Any]:
    """
    Build the sheet row for one submission:
      [timestamp, answers[label_1], ..., answers[label_n]]
    Missing labels leave an empty cell; labels outside field_order are dropped.
    """
    row: List[Any] = [timestamp or utc_now_iso()]
    for label in field_order:
        if label in answers:
            row.append(serialize_cell(answers[label]))
        else:
            row.append("")
    return row


# ---------- Survey definition reconciliation ----------

def _walk_elements(elements: Iterable[Dict[str, Any]]) -> Iterable[str]:
    for el in elements or []:
        if not isinstance(el, dict):
            continue
        # panels only group questions, their own name never reaches the data
        if el.get("type") == "panel":
            yield from _walk_elements(el.get("elements", []))
            continue
        if el.get("name"):
            yield el["name"]


def schema_labels(schema: Dict[str, Any]) -> List[str]:
    """Question names of a survey definition, in page order."""
    labels: List[str] = []
    for page in schema.get("pages", []):
        labels.extend(_walk_elements(page.get("elements", [])))
    labels.extend(_walk_elements(schema.get("elements", [])))
    return labels


def load_schema(path: str) -> Dict[str, Any]:
    return json.loads(Path(path).read_text(encoding="utf-8"))


def reconcile(field_order: FieldOrder, labels: Iterable[str]) -> Tuple[List[str], List[str]]:
    """
    Compare the column layout with the questions a survey actually asks.
    Returns (missing, unexpected):
      missing    - columns no question fills (always empty in the sheet)
      unexpected - questions that have no column (silently dropped on submit)
    """
    asked = list(labels)
    asked_set = set(asked)
    columns = set(field_order.labels)

    missing = [label for label in field_order.labels if label not in asked_set]
    unexpected = [label for label in asked if label not in columns]

    for label in missing:
        logger.warning("Field order v%d: column %r has no matching question", field_order.version, label)
    for label in unexpected:
        logger.warning("Field order v%d: question %r has no column and will be dropped", field_order.version, label)
    return missing, unexpected
