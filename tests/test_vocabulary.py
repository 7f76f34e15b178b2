import json

from lessonplay.vocabulary import SAMPLE_TOPIC, VocabularyManager, rows_to_items


def write(path, text):
    path.write_text(text, encoding="utf-8")


class TestVocabularyManager:
    def test_empty_directory_loads_sample(self, tmp_path):
        manager = VocabularyManager(str(tmp_path / "vocab"))
        assert [t["id"] for t in manager.get_topics()] == [SAMPLE_TOPIC]
        assert len(manager.get_pool(SAMPLE_TOPIC)) == 6

    def test_csv_with_extra_columns(self, tmp_path):
        write(
            tmp_path / "directions.csv",
            "id,word,translation,image_key,example,order\n"
            "dir_1,ตรงไป,go straight,straight,ตรงไป แล้ว เลี้ยวซ้าย,1\n"
            "dir_2,เลี้ยวซ้าย,turn left,,,2\n",
        )
        manager = VocabularyManager(str(tmp_path))

        first, second = manager.get_pool("directions")
        assert first.id == "dir_1"
        assert first.primary_text == "ตรงไป"
        assert first.audio_text == "ตรงไป"
        assert first.image_key == "straight"
        assert first.extra["example"] == "ตรงไป แล้ว เลี้ยวซ้าย"
        assert first.extra["order"] == 1
        assert second.image_key is None
        assert second.extra["example"] is None

    def test_rows_missing_translation_are_skipped(self, tmp_path):
        write(tmp_path / "food.csv", "word,translation\nข้าว,rice\nน้ำ,\n")
        pool = VocabularyManager(str(tmp_path)).get_pool("food")
        assert [item.primary_text for item in pool] == ["ข้าว"]
        assert pool[0].id == "food_1"

    def test_file_missing_columns_is_skipped(self, tmp_path):
        write(tmp_path / "broken.csv", "thai,english\nบ้าน,house\n")
        write(tmp_path / "places.csv", "word,translation\nบ้าน,house\n")
        manager = VocabularyManager(str(tmp_path))
        assert [t["id"] for t in manager.get_topics()] == ["places"]

    def test_only_bad_files_fall_back_to_sample(self, tmp_path):
        write(tmp_path / "broken.csv", "thai,english\nบ้าน,house\n")
        manager = VocabularyManager(str(tmp_path))
        assert manager.get_pool("broken") == []
        assert manager.get_pool(SAMPLE_TOPIC)

    def test_json_files(self, tmp_path):
        rows = [
            {"word": "หนึ่ง", "translation": "one", "audio_text": "นึ่ง"},
            {"word": "สอง", "translation": "two"},
        ]
        write(tmp_path / "numbers.json", json.dumps(rows, ensure_ascii=False))
        pool = VocabularyManager(str(tmp_path)).get_pool("numbers")

        assert [item.translation for item in pool] == ["one", "two"]
        assert pool[0].audio_text == "นึ่ง"
        assert pool[1].audio_text == "สอง"

    def test_topics_are_sorted_by_display_name(self, tmp_path):
        write(tmp_path / "zoo_animals.csv", "word,translation\nช้าง,elephant\n")
        write(tmp_path / "body_parts.csv", "word,translation\nมือ,hand\nตา,eye\n")
        topics = VocabularyManager(str(tmp_path)).get_topics()
        assert topics == [
            {"id": "body_parts", "name": "Body Parts", "count": 2},
            {"id": "zoo_animals", "name": "Zoo Animals", "count": 1},
        ]

    def test_unknown_topic_is_empty(self, tmp_path):
        assert VocabularyManager(str(tmp_path)).get_pool("nope") == []


class TestRowsToItems:
    def test_skips_rows_without_word(self):
        items = rows_to_items("t", [{"word": None, "translation": "x"}, {"word": "ก", "translation": "a"}])
        assert [item.id for item in items] == ["t_2"]
