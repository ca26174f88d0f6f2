"""Unit tests for track/album merging and metadata consolidation.

Hey future me - these are the rules that decide whether two imports describe the same
recording or release. Ids are fixed small UUIDs so tie-breaks are predictable.
"""

import uuid

from soundshelf.domain.entities import Album, Playlist, PlaylistItem, Shelf, Track
from soundshelf.domain.services.consolidation import (
    ConsolidationPolicy,
    common_metadata,
    consolidate_metadata,
    merge_albums,
    merge_shelves,
    merge_track_pool,
    merge_tracks,
    resolve_id,
)
from soundshelf.domain.value_objects import CueTime, Metadata

SOURCE = "file:///music/album.flac"
OTHER_SOURCE = "file:///music/other.flac"


def uid(n: int) -> uuid.UUID:
    return uuid.UUID(int=n)


def make_track(
    n: int,
    album_id: uuid.UUID,
    start: int = 0,
    end: int = 13500,
    source: str = SOURCE,
    **tags: str,
) -> Track:
    return Track(
        id=uid(n),
        source=source,
        start=CueTime(start),
        end=CueTime(end),
        album_id=album_id,
        metadata=Metadata(tags),
    )


def make_album(n: int, **tags: str) -> Album:
    return Album(id=uid(n), metadata=Metadata(tags))


class TestMergeTracks:
    """Tests for merge_tracks."""

    def test_bounds_within_tolerance_merge(self) -> None:
        """Test that bounds 499 frames apart count as equal."""
        a = make_track(1, uid(100), start=0, end=10000)
        b = make_track(2, uid(100), start=499, end=10000)
        assert merge_tracks(a, b) is not None

    def test_bounds_at_tolerance_do_not_merge(self) -> None:
        """Test that bounds exactly 500 frames apart are different."""
        a = make_track(1, uid(100), start=0, end=10000)
        b = make_track(2, uid(100), start=500, end=10000)
        assert merge_tracks(a, b) is None

    def test_custom_tolerance(self) -> None:
        """Test that the policy tolerance is honoured."""
        a = make_track(1, uid(100), start=0)
        b = make_track(2, uid(100), start=50)
        assert merge_tracks(a, b, ConsolidationPolicy(time_tolerance=10)) is None

    def test_different_sources_never_merge(self) -> None:
        """Test that bounds alone do not identify a recording."""
        a = make_track(1, uid(100))
        b = make_track(2, uid(100), source=OTHER_SOURCE)
        assert merge_tracks(a, b) is None

    def test_unset_bound_matches_anything(self) -> None:
        """Test that an INVALID end matches any end."""
        a = Track(id=uid(1), source=SOURCE, start=CueTime(0), end=CueTime.INVALID, album_id=uid(100))
        b = make_track(2, uid(100), start=0, end=99999)
        merged = merge_tracks(a, b)
        assert merged is not None
        # The bounded track is finer than the unbounded one
        assert merged.id == b.id

    def test_finer_track_wins_and_metadata_is_unioned(self) -> None:
        """Test that the shorter track wins and the loser fills missing keys."""
        whole = make_track(1, uid(100), end=13500, TITLE="Whole", GENRE="Rock")
        cut = make_track(2, uid(200), end=13485, TITLE="Cut")
        merged = merge_tracks(whole, cut)
        assert merged is not None
        assert merged.id == cut.id
        assert merged.end == CueTime(13485)
        assert merged.album_id == uid(200)
        assert merged.metadata == {"TITLE": "Cut", "GENRE": "Rock"}

    def test_equal_durations_tie_break_on_album_then_track_id(self) -> None:
        """Test deterministic tie-breaks."""
        a = make_track(9, uid(100))
        b = make_track(1, uid(200))
        assert merge_tracks(a, b).id == uid(9)
        assert merge_tracks(b, a).id == uid(9)

        c = make_track(5, uid(100))
        d = make_track(3, uid(100))
        assert merge_tracks(c, d).id == uid(3)

    def test_merge_track_pool_reaches_fixed_point(self) -> None:
        """Test that a chain of overlapping tracks collapses to one."""
        tracks = [
            make_track(1, uid(100), end=13500),
            make_track(2, uid(100), source=OTHER_SOURCE),
            make_track(3, uid(100), end=13400),
            make_track(4, uid(100), end=13300),
        ]
        pool, remap = merge_track_pool(tracks)
        assert sorted(t.id for t in pool) == [uid(2), uid(4)]
        assert resolve_id(remap, uid(1)) == uid(4)
        assert resolve_id(remap, uid(3)) == uid(4)


class TestMergeAlbums:
    """Tests for merge_albums."""

    def test_different_artist_never_merges(self) -> None:
        """Test that equal titles by different artists stay apart."""
        a = make_album(1, TITLE="Greatest Hits", ARTIST="Queen")
        b = make_album(2, TITLE="Greatest Hits", ARTIST="ABBA")
        assert merge_albums(a, [], b, []) is None

    def test_missing_title_never_merges(self) -> None:
        """Test that untitled albums are not merged."""
        assert merge_albums(make_album(1), [], make_album(2), []) is None

    def test_disjoint_tracks_merge_into_older_album(self) -> None:
        """Test that the smaller id wins and the cover is backfilled."""
        a = make_album(1, TITLE="Album", ARTIST="Band")
        b = Album(id=uid(2), metadata=Metadata(TITLE="Album", ARTIST="Band", DATE="2001"), cover=b"img")
        tracks_a = [make_track(10, a.id, TRACKNUMBER="1")]
        tracks_b = [make_track(11, b.id, source=OTHER_SOURCE, TRACKNUMBER="2")]
        merged = merge_albums(a, tracks_a, b, tracks_b)
        assert merged is not None
        assert merged.id == uid(1)
        assert merged.cover == b"img"
        assert merged.metadata["DATE"] == "2001"

    def test_artist_falls_back_to_common_track_artist(self) -> None:
        """Test that an album without ARTIST uses its tracks' common ARTIST."""
        a = make_album(1, TITLE="Album")
        b = make_album(2, TITLE="Album", ARTIST="Band")
        tracks_a = [make_track(10, a.id, TRACKNUMBER="1", ARTIST="Band")]
        tracks_b = [make_track(11, b.id, source=OTHER_SOURCE, TRACKNUMBER="2")]
        assert merge_albums(a, tracks_a, b, tracks_b) is not None

    def test_colliding_track_numbers_block_merge(self) -> None:
        """Test that two track 1s on the same disc mean two releases."""
        a = make_album(1, TITLE="Album", ARTIST="Band")
        b = make_album(2, TITLE="Album", ARTIST="Band")
        tracks_a = [make_track(10, a.id, TRACKNUMBER="1", DISCNUMBER="1")]
        tracks_b = [make_track(11, b.id, source=OTHER_SOURCE, TRACKNUMBER="1", DISCNUMBER="1")]
        assert merge_albums(a, tracks_a, b, tracks_b) is None

    def test_same_track_number_on_other_disc_merges(self) -> None:
        """Test that disc numbers separate equal track numbers."""
        a = make_album(1, TITLE="Album", ARTIST="Band")
        b = make_album(2, TITLE="Album", ARTIST="Band")
        tracks_a = [make_track(10, a.id, TRACKNUMBER="1", DISCNUMBER="1")]
        tracks_b = [make_track(11, b.id, source=OTHER_SOURCE, TRACKNUMBER="1", DISCNUMBER="2")]
        assert merge_albums(a, tracks_a, b, tracks_b) is not None

    def test_equal_titles_without_numbers_collide(self) -> None:
        """Test title collision when track numbers are unknown."""
        a = make_album(1, TITLE="Album", ARTIST="Band")
        b = make_album(2, TITLE="Album", ARTIST="Band")
        tracks_a = [make_track(10, a.id, TITLE="Intro")]
        tracks_b = [make_track(11, b.id, source=OTHER_SOURCE, TITLE="Intro")]
        assert merge_albums(a, tracks_a, b, tracks_b) is None

    def test_conflict_key_blocks_merge(self) -> None:
        """Test that different encoders mean different pressings."""
        a = make_album(1, TITLE="Album", ARTIST="Band")
        b = make_album(2, TITLE="Album", ARTIST="Band")
        tracks_a = [make_track(10, a.id, TRACKNUMBER="1", ENCODER="LAME")]
        tracks_b = [make_track(11, b.id, source=OTHER_SOURCE, TRACKNUMBER="2", ENCODER="flac 1.4")]
        assert merge_albums(a, tracks_a, b, tracks_b) is None
        lenient = ConsolidationPolicy(conflict_keys=frozenset())
        assert merge_albums(a, tracks_a, b, tracks_b, lenient) is not None

    def test_conflict_key_hoisted_to_album_is_compared(self) -> None:
        """Test that a track without DATE uses its album's DATE."""
        a = make_album(1, TITLE="Album", ARTIST="Band", DATE="2001")
        b = make_album(2, TITLE="Album", ARTIST="Band")
        tracks_a = [make_track(10, a.id, TRACKNUMBER="1")]
        same_year = [make_track(11, b.id, source=OTHER_SOURCE, TRACKNUMBER="2", DATE="2001")]
        reissue = [make_track(11, b.id, source=OTHER_SOURCE, TRACKNUMBER="2", DATE="2011")]
        assert merge_albums(a, tracks_a, b, same_year) is not None
        assert merge_albums(a, tracks_a, b, reissue) is None


class TestConsolidateMetadata:
    """Tests for consolidate_metadata and common_metadata."""

    def test_common_metadata_requires_all_tracks(self) -> None:
        """Test that a key missing on one track has no common value."""
        tracks = [
            make_track(1, uid(100), GENRE="Jazz", DATE="1959"),
            make_track(2, uid(100), GENRE="Jazz"),
        ]
        assert common_metadata(tracks, "GENRE") == "Jazz"
        assert common_metadata(tracks, "DATE") is None
        assert common_metadata([], "GENRE") is None

    def test_common_values_are_hoisted(self) -> None:
        """Test hoisting to the album and stripping from the tracks."""
        album = make_album(100, TITLE="Kind of Blue")
        tracks = [
            make_track(1, album.id, GENRE="Jazz", ARTIST="Miles", TRACKNUMBER="1"),
            make_track(2, album.id, source=OTHER_SOURCE, GENRE="Jazz", ARTIST="Miles", TRACKNUMBER="2"),
        ]
        albums, tracks = consolidate_metadata([album], tracks)
        assert albums[0].metadata == {"TITLE": "Kind of Blue", "GENRE": "Jazz", "ARTIST": "Miles"}
        assert [t.metadata for t in tracks] == [{"TRACKNUMBER": "1"}, {"TRACKNUMBER": "2"}]

    def test_album_value_is_not_overwritten(self) -> None:
        """Test that a differing album value keeps the track values."""
        album = make_album(100, GENRE="Bebop")
        tracks = [
            make_track(1, album.id, GENRE="Jazz"),
            make_track(2, album.id, source=OTHER_SOURCE, GENRE="Jazz"),
        ]
        albums, tracks = consolidate_metadata([album], tracks)
        assert albums[0].metadata["GENRE"] == "Bebop"
        assert all(t.metadata["GENRE"] == "Jazz" for t in tracks)

    def test_unhoistable_keys_stay_on_tracks(self) -> None:
        """Test that a shared DISCNUMBER is never hoisted."""
        album = make_album(100)
        tracks = [
            make_track(1, album.id, DISCNUMBER="1"),
            make_track(2, album.id, source=OTHER_SOURCE, DISCNUMBER="1"),
        ]
        albums, tracks = consolidate_metadata([album], tracks)
        assert "DISCNUMBER" not in albums[0].metadata
        assert all(t.metadata["DISCNUMBER"] == "1" for t in tracks)

    def test_single_track_albums_are_untouched(self) -> None:
        """Test that one track has nothing to consolidate."""
        album = make_album(100)
        track = make_track(1, album.id, GENRE="Jazz")
        albums, tracks = consolidate_metadata([album], [track])
        assert albums == [album]
        assert tracks == [track]

    def test_unreferenced_albums_are_pruned(self) -> None:
        """Test that albums without tracks disappear."""
        used = make_album(100)
        unused = make_album(200)
        albums, _ = consolidate_metadata([used, unused], [make_track(1, used.id)])
        assert albums == [used]

    def test_consolidation_is_idempotent(self) -> None:
        """Test that a second run changes nothing."""
        album = make_album(100)
        tracks = [
            make_track(1, album.id, GENRE="Jazz", TITLE="A"),
            make_track(2, album.id, source=OTHER_SOURCE, GENRE="Jazz", TITLE="B"),
        ]
        once = consolidate_metadata([album], tracks)
        twice = consolidate_metadata(*once)
        assert twice == once


class TestMergeShelves:
    """Tests for Shelf.merge / merge_shelves."""

    def test_merging_empty_shelf_is_no_op(self) -> None:
        """Test that an empty batch leaves the shelf unchanged."""
        album = make_album(100, TITLE="Album")
        shelf = Shelf(albums=(album,), tracks=(make_track(1, album.id),))
        assert shelf.merge(Shelf.empty()) == shelf
        assert Shelf.empty().merge(shelf) == shelf

    def test_cue_and_whole_file_imports_collapse(self) -> None:
        """Test the album.flac seen via cue sheet and as a whole file."""
        whole_album = make_album(300, TITLE="Album")
        whole = make_track(1, whole_album.id, end=13500, TITLE="Album", ENCODER="libFLAC")
        cue_album = make_album(200, TITLE="Album", ARTIST="Band")
        cue = make_track(2, cue_album.id, end=13485, TITLE="Intro", TRACKNUMBER="1")

        shelf = Shelf(albums=(whole_album,), tracks=(whole,))
        merged = shelf.merge(Shelf(albums=(cue_album,), tracks=(cue,)))

        assert len(merged.tracks) == 1
        track = merged.tracks[0]
        assert track.id == cue.id
        assert track.end == CueTime(13485)
        assert track.metadata == {"TITLE": "Intro", "TRACKNUMBER": "1", "ENCODER": "libFLAC"}
        assert [a.id for a in merged.albums] == [cue_album.id]

    def test_merge_is_commutative_on_survivors(self) -> None:
        """Test that operand order does not change which records survive."""
        album_a = make_album(100, TITLE="Album")
        album_b = make_album(200, TITLE="Album", ARTIST="Band")
        a = Shelf(albums=(album_a,), tracks=(make_track(1, album_a.id, end=13500),))
        b = Shelf(albums=(album_b,), tracks=(make_track(2, album_b.id, end=13485),))
        ab, ba = a.merge(b), b.merge(a)
        assert set(ab.tracks) == set(ba.tracks)
        assert set(ab.albums) == set(ba.albums)

    def test_disjoint_albums_of_same_release_merge(self) -> None:
        """Test that halves of one release end up on one album."""
        first = make_album(100, TITLE="Album", ARTIST="Band")
        second = make_album(200, TITLE="Album", ARTIST="Band")
        a = Shelf(albums=(first,), tracks=(make_track(1, first.id, TRACKNUMBER="1"),))
        b = Shelf(
            albums=(second,),
            tracks=(make_track(2, second.id, source=OTHER_SOURCE, TRACKNUMBER="2"),),
        )
        merged = a.merge(b)
        assert [album.id for album in merged.albums] == [first.id]
        assert len(merged.get_tracks(first.id)) == 2
        merged.check_invariants()

    def test_later_batch_merges_into_consolidated_album(self) -> None:
        """Test that a new batch still joins an album whose DATE was hoisted."""
        first = make_album(100, TITLE="X", ARTIST="A")
        existing = Shelf(
            albums=(first,),
            tracks=tuple(
                make_track(n, first.id, source=f"file:///music/0{n}.flac", TRACKNUMBER=str(n), DATE="2001")
                for n in (1, 2)
            ),
        ).consolidate_metadata()
        assert existing.albums[0].metadata["DATE"] == "2001"
        assert all("DATE" not in t.metadata for t in existing.tracks)

        second = make_album(200, TITLE="X", ARTIST="A")
        batch = Shelf(
            albums=(second,),
            tracks=tuple(
                make_track(n, second.id, source=f"file:///music/0{n}.flac", TRACKNUMBER=str(n), DATE="2001")
                for n in (3, 4)
            ),
        )

        merged = existing.merge(batch).consolidate_metadata()

        assert [album.id for album in merged.albums] == [first.id]
        assert len(merged.get_tracks(first.id)) == 4
        assert merged.albums[0].metadata["DATE"] == "2001"
        merged.check_invariants()

    def test_playlist_follows_merged_track(self) -> None:
        """Test that a playlist item is repointed to the winning track."""
        album = make_album(100, TITLE="Album")
        loser = make_track(1, album.id, end=13500)
        item = PlaylistItem(id=uid(900), track_id=loser.id)
        playlist = Playlist(id=uid(800), title="Favourites", items=(item,))
        shelf = Shelf(albums=(album,), tracks=(loser,), manual_playlists=(playlist,))

        winner = make_track(2, album.id, end=13485)
        merged = shelf.merge(Shelf(albums=(album,), tracks=(winner,)))

        [merged_playlist] = merged.manual_playlists
        assert merged_playlist.id == playlist.id
        assert merged_playlist.items[0].id == item.id
        assert merged_playlist.items[0].track_id == winner.id
        merged.check_invariants()

    def test_unknown_playlist_track_is_kept(self) -> None:
        """Test that a dangling playlist item survives merge untouched."""
        dangling = PlaylistItem(track_id=uid(12345))
        shelf = Shelf(manual_playlists=(Playlist(title="Old", items=(dangling,)),))
        merged = shelf.merge(Shelf.empty())
        assert merged.manual_playlists[0].items == (dangling,)

    def test_duplicate_records_are_deduplicated(self) -> None:
        """Test that merging a shelf with itself is a no-op."""
        album = make_album(100, TITLE="Album")
        shelf = Shelf(albums=(album,), tracks=(make_track(1, album.id),))
        assert merge_shelves(shelf, shelf) == shelf

    def test_resolve_id_follows_chain(self) -> None:
        """Test transitive remap resolution."""
        remap = {uid(1): uid(2), uid(2): uid(3)}
        assert resolve_id(remap, uid(1)) == uid(3)
        assert resolve_id(remap, uid(7)) == uid(7)
