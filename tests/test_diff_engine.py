"""Tests for the three-way playlist diff."""

from datetime import datetime, timezone

import pytest

from jamlist_sync.core.sync.diff_engine import (
    RemoteState,
    compute_diff,
    normalize_description,
)
from jamlist_sync.models import (
    PlaylistLocal,
    RemoteSnapshot,
    RemoteTrack,
    SyncBaseline,
    TrackRef,
)


def make_local(ids, name="Mix", description=None, extra_tracks=()):
    tracks = [
        TrackRef(id=i, external_id=ext, title=ext, artist="A")
        for i, ext in enumerate(ids, start=1)
    ]
    tracks.extend(extra_tracks)
    return PlaylistLocal(
        id=1,
        owner_id=1,
        name=name,
        description=description,
        tracks=tracks,
        remote_id="remote-1",
    )


def make_remote(ids, name="Mix", description=None, in_library=True):
    return RemoteSnapshot(
        remote_id="remote-1",
        name=name,
        description=description,
        tracks=[RemoteTrack(external_id=i, title=i) for i in ids],
        in_library=in_library,
    )


def make_baseline(ids, name="Mix", description=""):
    return SyncBaseline(
        remote_id="remote-1",
        synced_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
        synced_name=name,
        synced_description=description,
        synced_track_external_ids=ids,
    )


class TestNormalizeDescription:
    """Test description normalization."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            (None, ""),
            ("", ""),
            ("   ", ""),
            ("Hello\r\n", "Hello"),
            ("a\r\nb", "a\nb"),
            ("  text  ", "text"),
        ],
    )
    def test_normalize(self, value, expected):
        """Test that whitespace and line endings are normalized."""
        assert normalize_description(value) == expected


class TestRemoteState:
    """Test existence state classification."""

    def test_missing_when_no_remote(self):
        """Test that no snapshot means the remote is missing."""
        diff = compute_diff(None, make_local(["a"]), None)
        assert diff.remote_state == RemoteState.MISSING
        assert diff.requires_create

    def test_missing_when_not_exists(self):
        """Test the exists flag."""
        remote = make_remote(["a"]).model_copy(update={"exists": False})
        assert compute_diff(None, make_local(["a"]), remote).remote_state == (
            RemoteState.MISSING
        )

    def test_orphaned_when_unfollowed(self):
        """Test that an unfollowed remote is orphaned and never in sync."""
        diff = compute_diff(
            make_baseline(["a"]),
            make_local(["a"]),
            make_remote(["a"], in_library=False),
        )
        assert diff.remote_state == RemoteState.ORPHANED
        assert diff.requires_create
        assert not diff.in_sync

    def test_active(self):
        """Test a followed, existing remote."""
        diff = compute_diff(make_baseline(["a"]), make_local(["a"]), make_remote(["a"]))
        assert diff.remote_state == RemoteState.ACTIVE
        assert not diff.requires_create
        assert diff.in_sync


class TestAttribution:
    """Test attribution of changes to local or remote."""

    def test_disjoint_track_changes(self):
        """Test that both sides adding different tracks are both attributed."""
        diff = compute_diff(
            make_baseline(["A", "B"]),
            make_local(["A", "B", "C"]),
            make_remote(["A", "B", "D"]),
        )

        assert [t.external_id for t in diff.only_local] == ["C"]
        assert [t.external_id for t in diff.only_remote] == ["D"]
        assert diff.remote_has_changes.tracks
        assert diff.local_has_changes.tracks
        assert not diff.in_sync

    def test_remote_removal_is_not_a_local_change(self):
        """Test that a track removed remotely is not a local addition."""
        diff = compute_diff(
            make_baseline(["A", "B"]),
            make_local(["A", "B"]),
            make_remote(["A"]),
        )
        assert [t.external_id for t in diff.only_local] == ["B"]
        assert not diff.local_has_changes.tracks
        assert not diff.remote_has_changes.tracks

    def test_remote_name_change_takes_precedence(self):
        """Test that a remote change suppresses local attribution."""
        diff = compute_diff(
            make_baseline([], name="X"),
            make_local([], name="Y"),
            make_remote([], name="Z"),
        )
        assert diff.remote_has_changes.name
        assert not diff.local_has_changes.name
        assert diff.metadata_changes.name

    def test_local_name_change(self):
        """Test a name changed only locally."""
        diff = compute_diff(
            make_baseline([], name="X"),
            make_local([], name="Y"),
            make_remote([], name="X"),
        )
        assert diff.local_has_changes.name
        assert not diff.remote_has_changes.name

    def test_description_line_endings_are_not_divergence(self):
        """Test that CRLF and trailing whitespace do not count."""
        diff = compute_diff(
            make_baseline(["a"], description="Hello\r\n"),
            make_local(["a"], description="Hello\r\n"),
            make_remote(["a"], description="Hello"),
        )
        assert not diff.metadata_changes.description
        assert not diff.remote_has_changes.description
        assert not diff.local_has_changes.description
        assert diff.in_sync

    def test_none_and_empty_description_match(self):
        """Test that null and whitespace-only descriptions are equal."""
        diff = compute_diff(
            make_baseline([]),
            make_local([], description=None),
            make_remote([], description="  "),
        )
        assert not diff.metadata_changes.description

    def test_missing_description_matches_default(self):
        """Test that a playlist without description matches the pushed default."""
        diff = compute_diff(
            make_baseline(["a"], description="Synced from JAMLIST.FM"),
            make_local(["a"], description=None),
            make_remote(["a"], description="Synced from JAMLIST.FM"),
            default_description="Synced from JAMLIST.FM",
        )
        assert not diff.metadata_changes.description
        assert not diff.remote_has_changes.any
        assert not diff.local_has_changes.any
        assert diff.in_sync

    def test_own_description_is_compared_as_is(self):
        """Test that the default only applies to playlists without a description."""
        diff = compute_diff(
            make_baseline(["a"], description="Synced from JAMLIST.FM"),
            make_local(["a"], description="Songs"),
            make_remote(["a"], description="Synced from JAMLIST.FM"),
            default_description="Synced from JAMLIST.FM",
        )
        assert diff.metadata_changes.description
        assert diff.local_has_changes.description
        assert not diff.in_sync


class TestBootstrap:
    """Test first sync without a baseline."""

    def test_no_baseline_no_remote(self):
        """Test that everything is reported as a local change."""
        local = make_local(["a", "b"], description="Desc")
        diff = compute_diff(None, local, None)

        assert [t.external_id for t in diff.only_local] == ["a", "b"]
        assert diff.only_remote == []
        assert diff.local_has_changes.name
        assert diff.local_has_changes.description
        assert diff.local_has_changes.tracks
        assert not diff.remote_has_changes.any
        assert not diff.has_baseline
        assert diff.requires_create

    def test_no_baseline_empty_playlist(self):
        """Test flags for an empty playlist without description."""
        diff = compute_diff(None, make_local([]), None)
        assert diff.local_has_changes.name
        assert not diff.local_has_changes.description
        assert not diff.local_has_changes.tracks

    def test_tracks_without_external_id_are_ignored(self):
        """Test that unsyncable local tracks never appear in the diff."""
        local = make_local(
            ["a"], extra_tracks=[TrackRef(id=9, title="Local file", artist="A")]
        )
        diff = compute_diff(None, local, None)
        assert [t.external_id for t in diff.only_local] == ["a"]
        assert diff.local_track_count == 2

    def test_no_baseline_with_remote_reports_no_remote_attribution(self):
        """Test that an existing remote without baseline attributes nothing remotely."""
        diff = compute_diff(None, make_local(["a", "b"]), make_remote(["a", "c"]))

        assert [t.external_id for t in diff.only_local] == ["b"]
        assert [t.external_id for t in diff.only_remote] == ["c"]
        assert not diff.remote_has_changes.any
        assert diff.local_has_changes.tracks


class TestSerialization:
    """Test diff serialization."""

    def test_to_dict(self):
        """Test that to_dict exposes IDs and flags."""
        diff = compute_diff(
            make_baseline(["A", "B"]),
            make_local(["A", "B", "C"]),
            make_remote(["A", "B", "D"]),
        )
        data = diff.to_dict()

        assert data["remote_state"] == "active"
        assert data["only_local"] == ["C"]
        assert data["only_remote"] == ["D"]
        assert data["local_has_changes"]["tracks"] is True
        assert data["last_synced_at"] == "2024-01-01T00:00:00+00:00"
