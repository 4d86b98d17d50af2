"""Stored per-user records kept in the key-value store."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class PlayRecord(BaseModel):
    """Play-history entry keyed by `source+id`."""

    model_config = ConfigDict(extra="allow")

    title: str = ""
    source_name: str = ""
    cover: str = ""
    year: str = ""
    index: int = 0
    total_episodes: int = 0
    play_time: int = 0
    total_time: int = 0
    save_time: int = 0
    search_title: str = ""


class Favorite(BaseModel):
    """Favorite entry keyed by `source+id`."""

    model_config = ConfigDict(extra="allow")

    title: str = ""
    source_name: str = ""
    cover: str = ""
    year: str = ""
    total_episodes: int = 0
    save_time: int = 0
    search_title: str = ""


class SkipConfig(BaseModel):
    enable: bool = False
    intro_time: int = 0
    outro_time: int = 0
