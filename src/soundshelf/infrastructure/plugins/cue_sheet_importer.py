"""Cue sheet importer.

Hey future me - a cue sheet describes ONE album whose tracks are time regions inside one or
more audio files. The commands we care about:

    FILE "album.flac" WAVE      -> following tracks live in album.flac
    TRACK 01 AUDIO              -> start a new track
    INDEX 00 03:12:40           -> pregap start: closes the PREVIOUS track on this file
    INDEX 01 03:14:00           -> track start (also closes the previous track if still open)
    TITLE / PERFORMER / SONGWRITER / ISRC   -> album-level before the first TRACK, else track-level
    REM DATE|COMPOSER|GENRE|DISCNUMBER ...

The last track on each file has no explicit end - we probe the file duration with mutagen.
Tracks without INDEX 01 are dropped. FILE names in cue sheets are notoriously wrong (the
rip was re-encoded from WAV to FLAC, renamed, ...) so a missing FILE is fuzzy-matched
against sibling audio files by their words.
"""

import asyncio
import logging
import os
import re
from dataclasses import replace
from pathlib import Path

from soundshelf.domain.entities import Album, Track
from soundshelf.domain.exceptions import (
    AccessDeniedError,
    DecodingError,
    InvalidFormatError,
    MediaFileNotFoundError,
)
from soundshelf.domain.ports.plugin import IMediaImporter, ImportedMedia
from soundshelf.domain.ports.tracing import IRequestTracer, trace_request
from soundshelf.domain.value_objects import CueTime, Metadata, MetadataKey
from soundshelf.domain.value_objects.locators import normalize_url, to_url
from soundshelf.domain.value_objects.media_types import (
    AUDIO_EXTENSIONS,
    CUE_SHEET_EXTENSIONS,
)
from soundshelf.infrastructure.plugins.mutagen_support import local_path, probe_duration

logger = logging.getLogger(__name__)

_LINE_PART_PATTERN = re.compile(r'"[^"]*"|\S+')
_WORD_PATTERN = re.compile(r"[^\W\d_]+")

# Tried in order after BOM detection; cue sheets from Japanese and Chinese rips are common
_FALLBACK_ENCODINGS = ("utf-8", "shift_jis", "gb18030", "cp1252")

_REM_KEYS = {
    "DATE": MetadataKey.DATE,
    "COMPOSER": MetadataKey.COMPOSER,
    "GENRE": MetadataKey.GENRE,
}

_PLAIN_KEYS = {
    "SONGWRITER": MetadataKey.COMPOSER,
    "ISRC": MetadataKey.ISRC,
    "PERFORMER": MetadataKey.ARTIST,
    "TITLE": MetadataKey.TITLE,
}


def decode_sheet(raw: bytes, url: str) -> str:
    """Decode cue sheet bytes, honouring a BOM and falling back to legacy encodings.

    Raises:
        DecodingError: If no candidate encoding decodes the content
    """
    if raw.startswith(b"\xef\xbb\xbf"):
        candidates: tuple[str, ...] = ("utf-8-sig",)
    elif raw.startswith((b"\xff\xfe", b"\xfe\xff")):
        candidates = ("utf-16",)
    else:
        candidates = _FALLBACK_ENCODINGS
    for encoding in candidates:
        try:
            return raw.decode(encoding)
        except UnicodeDecodeError:
            continue
    raise DecodingError(url)


def split_line(line: str) -> list[str]:
    """Split a cue line into command and parameters, unquoting quoted parts."""
    parts = _LINE_PART_PATTERN.findall(line.strip())
    return [part[1:-1] if len(part) >= 2 and part.startswith('"') else part for part in parts]


def _words(name: str) -> list[str]:
    return _WORD_PATTERN.findall(name)


def fuzzy_match(expected: Path, candidates: list[Path]) -> Path | None:
    """Pick the candidate whose words best match the expected file stem.

    A candidate matches when its words are a subset of the expected words or the
    other way round (order preserved). Fewest differing words wins.

    Args:
        expected: The (missing) path named by the cue sheet
        candidates: Existing sibling audio files

    Returns:
        Best matching candidate or None
    """
    expected_words = _words(expected.stem)
    if not expected_words:
        return None
    scored: list[tuple[int, str, Path]] = []
    for candidate in candidates:
        candidate_words = _words(candidate.stem)
        if not candidate_words:
            continue
        if [w for w in expected_words if w in candidate_words] == candidate_words:
            scored.append((len(expected_words) - len(candidate_words), candidate.name, candidate))
        elif [w for w in candidate_words if w in expected_words] == expected_words:
            scored.append((len(candidate_words) - len(expected_words), candidate.name, candidate))
    if not scored:
        return None
    scored.sort(key=lambda entry: (entry[0], entry[1]))
    return scored[0][2]


class _SheetParser:
    """Stateful line-by-line cue sheet parser (sync, no I/O except FILE resolution)."""

    def __init__(self, url: str, sheet_path: Path) -> None:
        self.url = url
        self.sheet_dir = sheet_path.parent
        self.album = Album()
        self.album_metadata: dict[str, str] = {}
        self.tracks: list[dict] = []
        self.current: dict | None = None
        self.current_file: str | None = None
        self.disc_number: int | None = None

    def _set(self, key: str, value: str) -> None:
        if not value:
            return
        if self.current is not None:
            self.current["metadata"][key] = value
        else:
            self.album_metadata[key] = value

    def _resolve_file(self, name: str) -> str:
        path = Path(os.path.abspath(self.sheet_dir / name.replace("\\", "/")))
        if path.exists():
            return to_url(path)
        try:
            siblings = [
                p for p in path.parent.iterdir() if p.suffix.lower() in AUDIO_EXTENSIONS
            ]
        except OSError:
            siblings = []
        matched = fuzzy_match(path, siblings)
        if matched is None:
            raise MediaFileNotFoundError(to_url(path))
        logger.debug("Cue sheet %s: FILE '%s' matched to %s", self.url, name, matched.name)
        return to_url(matched)

    def _close_previous(self, end: CueTime, only_if_open: bool) -> None:
        if not self.tracks or self.current is None:
            return
        previous = self.tracks[-1]
        if previous["source"] != self.current["source"]:
            return
        if only_if_open and previous["end"].is_valid:
            return
        previous["end"] = end

    def feed(self, line: str) -> None:
        parts = split_line(line)
        if not parts:
            return
        command, params = parts[0].upper(), parts[1:]

        if command == "FILE" and len(params) == 2:
            self.current_file = self._resolve_file(params[0])
        elif command == "TRACK" and len(params) == 2:
            if self.current is not None:
                self.tracks.append(self.current)
            if self.current_file is None:
                raise InvalidFormatError(self.url)
            self.current = {
                "source": self.current_file,
                "start": CueTime.INVALID,
                "end": CueTime.INVALID,
                "metadata": {},
            }
        elif command == "INDEX" and len(params) == 2:
            timestamp = CueTime.parse(params[1])
            if self.current_file is None or self.current is None or timestamp is None:
                raise InvalidFormatError(self.url)
            try:
                number = int(params[0])
            except ValueError as e:
                raise InvalidFormatError(self.url) from e
            if number == 0:
                self._close_previous(timestamp, only_if_open=False)
            elif number == 1:
                self.current["source"] = self.current_file
                self.current["start"] = timestamp
                self._close_previous(timestamp, only_if_open=True)
        elif command in _PLAIN_KEYS and len(params) == 1:
            self._set(_PLAIN_KEYS[command], params[0])
        elif command == "REM" and len(params) == 2:
            key = params[0].upper()
            if key == "DISCNUMBER":
                try:
                    self.disc_number = int(params[1])
                except ValueError:
                    logger.debug("Cue sheet %s: ignoring DISCNUMBER '%s'", self.url, params[1])
            elif key in _REM_KEYS:
                self._set(_REM_KEYS[key], params[1])

    def finish(self) -> list[dict]:
        if self.current is not None:
            self.tracks.append(self.current)
            self.current = None
        return [t for t in self.tracks if t["start"].is_valid]


class CueSheetImporter(IMediaImporter):
    """Imports albums described by .cue files."""

    @property
    def name(self) -> str:
        return "cue_sheet"

    @property
    def supported_types(self) -> frozenset[str]:
        return CUE_SHEET_EXTENSIONS

    async def import_media(
        self, url: str, tracer: IRequestTracer | None = None
    ) -> ImportedMedia:
        """Parse the cue sheet at url into one album and its tracks.

        Raises:
            MediaFileNotFoundError: Sheet or a referenced FILE is missing
            InvalidFormatError: TRACK before FILE or malformed INDEX
            DecodingError: Sheet text cannot be decoded
        """
        path = local_path(url)
        with trace_request(tracer, url):
            raw = await asyncio.to_thread(self._read_bytes, url, path)
        content = decode_sheet(raw, url)

        parser = _SheetParser(url, path)
        # FILE resolution touches the disk, keep it off the event loop
        parsed = await asyncio.to_thread(self._parse, parser, content)

        durations = await self._probe_open_ends(parsed, tracer)

        album = replace(parser.album, metadata=Metadata(parser.album_metadata))
        tracks: list[Track] = []
        for position, entry in enumerate(parsed, start=1):
            end = entry["end"]
            if not end.is_valid:
                end = durations.get(normalize_url(entry["source"]), CueTime.INVALID)
            metadata = Metadata(entry["metadata"]).with_value(
                MetadataKey.TRACKNUMBER, str(position)
            )
            if parser.disc_number is not None:
                metadata = metadata.with_value(MetadataKey.DISCNUMBER, str(parser.disc_number))
            tracks.append(
                Track(
                    source=entry["source"],
                    start=entry["start"],
                    end=end,
                    album_id=album.id,
                    metadata=metadata,
                )
            )
        logger.debug("Imported %d tracks from cue sheet %s", len(tracks), url)
        return ImportedMedia(albums=[album], tracks=tracks)

    @staticmethod
    def _parse(parser: _SheetParser, content: str) -> list[dict]:
        for line in content.splitlines():
            parser.feed(line)
        return parser.finish()

    @staticmethod
    def _read_bytes(url: str, path: Path) -> bytes:
        try:
            return path.read_bytes()
        except FileNotFoundError as e:
            raise MediaFileNotFoundError(url) from e
        except PermissionError as e:
            raise AccessDeniedError(url) from e

    @staticmethod
    async def _probe_open_ends(
        parsed: list[dict], tracer: IRequestTracer | None
    ) -> dict[str, CueTime]:
        sources = sorted(
            {normalize_url(entry["source"]) for entry in parsed if not entry["end"].is_valid}
        )

        async def probe(source: str) -> CueTime:
            with trace_request(tracer, source):
                return await asyncio.to_thread(probe_duration, source)

        durations = await asyncio.gather(*(probe(source) for source in sources))
        return dict(zip(sources, durations, strict=True))
