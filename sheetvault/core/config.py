from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str
    jwt_secret: str
    jwt_algorithm: str = "HS256"
    db_echo: bool = False

    # Размер пачки строк на один INSERT при загрузке книги
    cell_batch_size: int = 500
    # Очередь подписчика live-канала
    live_queue_size: int = 100
    log_level: str = "INFO"

    model_config = {"env_file": ".env", "extra": "ignore"}


settings = Settings()
