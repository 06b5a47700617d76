from typing import Any, Iterable

from chat_script_engine.models.base import Translator
from chat_script_engine.models.script import ComponentConfig

UPLOAD_ACCEPT = ".pdf,.doc,.docx,.txt"


def file_texts(files: Any) -> list[str]:
    """Extracts text from uploaded file entries.

    Entries are either strings or mappings carrying `content` or `text`;
    entries without text (e.g. binary uploads not yet extracted) are skipped.
    """
    if not files:
        return []
    texts: list[str] = []
    for entry in files if isinstance(files, list) else [files]:
        if isinstance(entry, str):
            text = entry
        elif isinstance(entry, dict):
            text = entry.get("content") or entry.get("text") or ""
        else:
            text = ""
        if text.strip():
            texts.append(text)
    return texts


def method_selector(
    t: Translator,
    kind: str,
    methods: Iterable[tuple[str, str, str, str]],
    *,
    multiple: bool,
) -> ComponentConfig:
    """Builds an `input-method-selector` config.

    Each method is (value, translation key, default label, icon).
    """
    return ComponentConfig(
        type_key="input-method-selector",
        params={
            "type": kind,
            "methods": [
                {"value": value, "label": t(key, label), "icon": icon}
                for value, key, label, icon in methods
            ],
            "multiple": multiple,
            "accept": UPLOAD_ACCEPT,
        },
    )
