class Settings:
    PROJECT_NAME: str = "lessonplay"
    DEBUG: bool = False
    LOG_DIR: str = "log"
    LOG_FILE: str = "lessonplay.log"
    LOG_TO_DB: bool = True
    DB_DIR: str = "db"
    DB_FILE: str = "lessonplay.db"
    REDIS_URL: str = "redis://localhost:6379/0"
    VOCAB_DIR: str = "vocabulary"
    USER_COOKIE_NAME: str = "lessonplay_user"
    DEFAULT_USER_ID: str = "demo"
    SESSION_TIMEOUT_MINUTES: int = 60 * 24 * 7

    # Economy
    HEARTS_MAX: int = 5
    REWARD_XP: int = 15
    REWARD_DIAMONDS: int = 1
    PENALTY_HEARTS: int = 1
    UNLOCK_ACCURACY: int = 70

    # Leveling
    LEVEL_BASE_XP: int = 100
    LEVEL_GROWTH_RATE: float = 1.15
    LEVEL_ROUNDING_STEP: int = 5

    # Generation
    CHOICE_COUNT: int = 4
    DEFAULT_MIX = {
        "LISTEN_CHOOSE": 3,
        "PICTURE_MATCH": 2,
        "DRAG_MATCH": 2,
        "FILL_BLANK_DIALOG": 2,
        "ARRANGE_SENTENCE": 2,
        "TRUE_FALSE": 2,
        "TRANSFORM_PARAPHRASE": 1,
        "TIMELINE_ORDER": 1,
    }

    HISTORY_LIMIT: int = 50


settings = Settings()
