"""
Profile and theme models.
"""

from typing import Any, Optional

from pydantic import BaseModel, field_validator

DEFAULT_THEME = "dark"


class Profile(BaseModel):
    id: str
    username: str
    email: Optional[str] = None
    theme: str = DEFAULT_THEME
    avatar_url: Optional[str] = None
    status: Optional[str] = None
    is_admin: bool = False

    @field_validator("theme", mode="before")
    @classmethod
    def _default_theme(cls, v: Any) -> Any:
        return v or DEFAULT_THEME

    @field_validator("is_admin", mode="before")
    @classmethod
    def _null_is_false(cls, v: Any) -> Any:
        return bool(v)


class ThemeColors(BaseModel):
    background: str
    foreground: str
    primary: str
    secondary: str
    accent: str


class Theme(BaseModel):
    key: str
    name: str
    colors: ThemeColors
