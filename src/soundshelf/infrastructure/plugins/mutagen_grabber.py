"""Metadata grabber backed by mutagen.

Hey future me - tag containers differ wildly, this grabber flattens them all into canonical
uppercase keys:

- Vorbis comments (FLAC, Ogg, Opus): keys are free-form, we keep them verbatim (uppercased)
  and record the vendor string as ENCODER - that's what the album merge guard compares.
- ID3 (MP3, AIFF, WAV): frame ids map through _ID3_KEYS; TXXX frames use their description.
- MP4 atoms (M4A/ALAC): atom names map through _MP4_KEYS; trkn/disk are (number, total) pairs.
- APEv2 (APE, WavPack, Musepack): free-form keys like Vorbis.

Multi-valued tags are joined with "; " since Metadata holds one string per key.
"""

import asyncio
import logging
from typing import Any

from mutagen.apev2 import APEv2
from mutagen.id3 import ID3
from mutagen.mp4 import MP4Tags

from soundshelf.domain.ports.plugin import IMetadataGrabber
from soundshelf.domain.ports.tracing import IRequestTracer, trace_request
from soundshelf.domain.value_objects import Metadata, MetadataKey
from soundshelf.domain.value_objects.media_types import AUDIO_EXTENSIONS
from soundshelf.infrastructure.plugins.mutagen_support import open_audio

logger = logging.getLogger(__name__)

_MULTI_VALUE_SEPARATOR = "; "

_ID3_KEYS = {
    "TIT2": MetadataKey.TITLE,
    "TIT3": MetadataKey.VERSION,
    "TALB": MetadataKey.ALBUM,
    "TRCK": MetadataKey.TRACKNUMBER,
    "TPOS": MetadataKey.DISCNUMBER,
    "TPE1": MetadataKey.ARTIST,
    "TPE2": MetadataKey.ALBUMARTIST,
    "TPE3": MetadataKey.PERFORMER,
    "TCOM": MetadataKey.COMPOSER,
    "TEXT": MetadataKey.AUTHOR,
    "TPUB": MetadataKey.PUBLISHER,
    "TCOP": MetadataKey.COPYRIGHT,
    "TCON": MetadataKey.GENRE,
    "TDRC": MetadataKey.DATE,
    "TYER": MetadataKey.YEAR,
    "TLAN": MetadataKey.LANGUAGE,
    "TSRC": MetadataKey.ISRC,
    "TSSE": MetadataKey.ENCODER,
    "TENC": MetadataKey.CREATOR,
}

_MP4_KEYS = {
    "\xa9nam": MetadataKey.TITLE,
    "\xa9alb": MetadataKey.ALBUM,
    "\xa9ART": MetadataKey.ARTIST,
    "aART": MetadataKey.ALBUMARTIST,
    "\xa9wrt": MetadataKey.COMPOSER,
    "\xa9gen": MetadataKey.GENRE,
    "\xa9day": MetadataKey.DATE,
    "\xa9too": MetadataKey.ENCODER,
    "\xa9cmt": MetadataKey.COMMENT,
    "cprt": MetadataKey.COPYRIGHT,
    "desc": MetadataKey.DESCRIPTION,
}

_MP4_PAIR_KEYS = {
    "trkn": (MetadataKey.TRACKNUMBER, MetadataKey.TOTALTRACKS),
    "disk": (MetadataKey.DISCNUMBER, MetadataKey.TOTALDISCS),
}


def _join(values: Any) -> str:
    if isinstance(values, (list, tuple)):
        return _MULTI_VALUE_SEPARATOR.join(str(v) for v in values if str(v).strip())
    return str(values)


def _from_vorbis(tags: Any) -> dict[str, str]:
    result: dict[str, str] = {}
    vendor = getattr(tags, "vendor", None)
    if vendor:
        result[MetadataKey.ENCODER] = vendor
    for key, values in tags.as_dict().items():
        value = _join(values)
        if value.strip():
            result[key.upper()] = value
    return result


def _from_id3(tags: ID3) -> dict[str, str]:
    result: dict[str, str] = {}
    for frame in tags.values():
        frame_id = frame.FrameID
        text = getattr(frame, "text", None)
        if not text:
            continue
        value = _join(text)
        if not value.strip():
            continue
        if frame_id == "TXXX" and frame.desc:
            result.setdefault(frame.desc.upper(), value)
        elif frame_id in _ID3_KEYS:
            result.setdefault(_ID3_KEYS[frame_id], value)
    return result


def _from_mp4(tags: MP4Tags) -> dict[str, str]:
    result: dict[str, str] = {}
    for atom, values in tags.items():
        if atom in _MP4_KEYS:
            value = _join(values)
            if value.strip():
                result[_MP4_KEYS[atom]] = value
        elif atom in _MP4_PAIR_KEYS and values:
            number, total = values[0]
            number_key, total_key = _MP4_PAIR_KEYS[atom]
            if number:
                result[number_key] = str(number)
            if total:
                result[total_key] = str(total)
        elif atom.startswith("----:"):
            # Freeform iTunes atoms: ----:com.apple.iTunes:NAME
            name = atom.rsplit(":", 1)[-1]
            decoded = [v.decode("utf-8", "replace") if isinstance(v, bytes) else v for v in values]
            value = _join(decoded)
            if name and value.strip():
                result.setdefault(name.upper(), value)
    return result


def _from_ape(tags: APEv2) -> dict[str, str]:
    result: dict[str, str] = {}
    for key, value in tags.items():
        # kind 0 is text, binary and external items carry no tag value
        if getattr(value, "kind", 0) != 0:
            continue
        text = str(value)
        if text.strip():
            result[key.upper()] = text.replace("\x00", _MULTI_VALUE_SEPARATOR)
    # APE uses TRACK/YEAR where the rest of the world says TRACKNUMBER/DATE
    if "TRACK" in result:
        result.setdefault(MetadataKey.TRACKNUMBER, result.pop("TRACK"))
    if "YEAR" in result:
        result.setdefault(MetadataKey.DATE, result["YEAR"])
    return result


def extract_tags(audio: Any) -> Metadata:
    """Flatten the tags of a mutagen FileType into Metadata."""
    tags = getattr(audio, "tags", None)
    if tags is None:
        return Metadata()
    if isinstance(tags, ID3):
        values = _from_id3(tags)
    elif isinstance(tags, MP4Tags):
        values = _from_mp4(tags)
    elif isinstance(tags, APEv2):
        values = _from_ape(tags)
    elif hasattr(tags, "as_dict"):
        values = _from_vorbis(tags)
    else:
        logger.debug("Unsupported tag container %s", type(tags).__name__)
        values = {}
    return Metadata(values)


def read_metadata(url: str) -> Metadata:
    """Open url and read its tags (sync)."""
    return extract_tags(open_audio(url))


class MutagenMetadataGrabber(IMetadataGrabber):
    """Reads tags from any audio container mutagen understands."""

    @property
    def name(self) -> str:
        return "mutagen"

    @property
    def supported_types(self) -> frozenset[str]:
        return AUDIO_EXTENSIONS

    async def grab_metadata(
        self, url: str, tracer: IRequestTracer | None = None
    ) -> Metadata:
        """Read url's tags in a worker thread.

        Raises:
            MediaFileError: If mutagen cannot open the file
        """
        with trace_request(tracer, url):
            metadata = await asyncio.to_thread(read_metadata, url)
        logger.debug("Grabbed %d tags from %s", len(metadata), url)
        return metadata
