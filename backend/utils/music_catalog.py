from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

MUSIC_DIR = Path(os.getenv("MUSIC_DIR", Path(__file__).resolve().parents[1] / "music"))


@dataclass(frozen=True)
class MusicTrack:
    id: str
    title: str
    filename: str

    @property
    def path(self) -> Path:
        return MUSIC_DIR / self.filename


TRACKS: dict[str, MusicTrack] = {
    "1": MusicTrack(id="1", title="Yum", filename="Yum.mp3"),
    "2": MusicTrack(id="2", title="POP IT", filename="POP IT.mp3"),
    "3": MusicTrack(id="3", title="I'm lovin' it", filename="I'm lovin' it.mp3"),
}


def get_track(music_id: str | None) -> MusicTrack | None:
    if not music_id:
        return None
    return TRACKS.get(str(music_id))


def track_title(music_id: str | None) -> str:
    track = get_track(music_id)
    return track.title if track else "Unknown"
