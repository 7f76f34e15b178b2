import glob
import logging
import os
from typing import Any, Dict, List

import pandas as pd
from pydantic import ValidationError

from .models import VocabItem

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ("word", "translation")
KNOWN_COLUMNS = {"id", "word", "translation", "audio_text", "image_key"}

SAMPLE_TOPIC = "places_sample"
SAMPLE_WORDS = [
    {"id": "place_001", "word": "บ้าน", "translation": "house", "image_key": "house"},
    {"id": "place_002", "word": "โรงเรียน", "translation": "school", "image_key": "school"},
    {"id": "place_003", "word": "โรงพยาบาล", "translation": "hospital", "image_key": "hospital"},
    {"id": "place_004", "word": "วัด", "translation": "temple", "image_key": "temple"},
    {"id": "place_005", "word": "ตลาด", "translation": "market", "image_key": "market"},
    {"id": "place_006", "word": "ธนาคาร", "translation": "bank", "image_key": "bank"},
]


def _read_frame(file_path: str) -> pd.DataFrame:
    if file_path.endswith(".json"):
        return pd.read_json(file_path, encoding="utf-8")
    return pd.read_csv(file_path, encoding="utf-8")


def rows_to_items(topic: str, rows: List[Dict[str, Any]]) -> List[VocabItem]:
    """Normalize raw vocabulary rows into VocabItems, skipping bad rows."""
    items = []
    for index, row in enumerate(rows):
        if row.get("word") is None or row.get("translation") is None:
            logger.error(f"Skipping row {index} of {topic}: Missing word or translation.")
            continue
        try:
            items.append(
                VocabItem(
                    id=str(row.get("id") or f"{topic}_{index + 1}"),
                    primary_text=str(row["word"]).strip(),
                    translation=str(row["translation"]).strip(),
                    audio_text=str(row.get("audio_text") or "").strip(),
                    image_key=row.get("image_key") or None,
                    extra={k: v for k, v in row.items() if k not in KNOWN_COLUMNS},
                )
            )
        except ValidationError as e:
            logger.error(f"Skipping row {index} of {topic}: {e}")
    return items


# --- Service Layer: Vocabulary Management ---
class VocabularyManager:
    """Manages loading and accessing vocabulary pools."""

    def __init__(self, directory: str):
        self.directory = directory
        self.vocab_sets: Dict[str, List[VocabItem]] = {}
        self.load_all()

    def load_all(self):
        self.vocab_sets = {}
        if not os.path.exists(self.directory):
            os.makedirs(self.directory)
            logger.warning(f"Created directory {self.directory}. Please add CSV or JSON files.")

        files = sorted(
            glob.glob(os.path.join(self.directory, "*.csv"))
            + glob.glob(os.path.join(self.directory, "*.json"))
        )
        for file_path in files:
            try:
                topic = os.path.splitext(os.path.basename(file_path))[0]
                df = _read_frame(file_path)
                if all(column in df.columns for column in REQUIRED_COLUMNS):
                    df = df.astype(object).where(pd.notna(df), None)
                    self.vocab_sets[topic] = rows_to_items(topic, df.to_dict("records"))
                    logger.info(f"Loaded {len(self.vocab_sets[topic])} words from {topic}")
                else:
                    logger.error(f"Skipping {topic}: Missing columns.")
            except Exception as e:
                logger.error(f"Failed to load {file_path}: {e}")

        if not self.vocab_sets:
            logger.warning("No vocabulary files found. Loading sample data.")
            self.vocab_sets[SAMPLE_TOPIC] = rows_to_items(SAMPLE_TOPIC, SAMPLE_WORDS)

    def get_pool(self, topic: str) -> List[VocabItem]:
        return self.vocab_sets.get(topic, [])

    def get_topics(self) -> List[Dict[str, Any]]:
        topics = []
        for key, words in self.vocab_sets.items():
            display_name = key.replace("_", " ").title()
            topics.append({"id": key, "name": display_name, "count": len(words)})
        topics.sort(key=lambda x: x["name"])
        return topics
