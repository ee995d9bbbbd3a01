from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file='.env', extra='ignore')

    app_name: str = 'EduConnect'
    app_env: str = 'local'
    app_timezone: str = 'Asia/Kolkata'
    database_url: str = 'sqlite:///./educonnect.db'
    cors_allowed_origins: str = 'http://localhost:3000,http://127.0.0.1:3000'
    auth_secret: str = 'change-me'
    auth_session_expiry_hours: int = 12
    auth_login_max_attempts: int = 5
    auth_login_window_seconds: int = 300
    admin_signup_token: str = ''
    bootstrap_admin_email: str = ''
    bootstrap_admin_password: str = ''
    bootstrap_admin_name: str = 'Administrator'
    db_slow_query_ms: int = 100
    metrics_slow_ms: int = 200

    @property
    def cors_origins(self) -> list[str]:
        return [origin.strip() for origin in self.cors_allowed_origins.split(',') if origin.strip()]


settings = Settings()
