"""
Tests for media resolution.
"""
from unittest.mock import MagicMock, patch

import pytest
import requests

from app.config import MediaForm
from app.worker.media_resolver import Candidate, CandidateChain, MediaResolver, http_probe

from conftest import FakeProbe, UUID_A

BASE = "https://media.test/videos"
ALT = "https://media.test/images"

VIDEO = f"{BASE}/{UUID_A}.mp4"
POSTER_JPG = f"{BASE}/{UUID_A}_thumbnail.jpg"
POSTER_PNG = f"{BASE}/{UUID_A}_thumbnail.png"
STATIC = f"{ALT}/{UUID_A}.jpg"


@pytest.fixture
def probe():
    return FakeProbe()


@pytest.fixture
def resolver(probe):
    return MediaResolver(probe=probe, base_url=BASE, alt_base_url=ALT)


class TestCandidateChain:
    """Test the finite fallback list."""

    def _candidates(self, *urls):
        form = MediaForm(name="f", template="{id}")
        return [Candidate(form=form, url=u) for u in urls]

    def test_yields_in_order(self):
        chain = CandidateChain(self._candidates("a", "b", "c"))
        assert [c.url for c in chain] == ["a", "b", "c"]
        assert chain.exhausted

    def test_skips_repeats(self):
        """Test forms pointing at each other are each tried once."""
        chain = CandidateChain(self._candidates("a", "b", "a", "b"))
        assert [c.url for c in chain] == ["a", "b"]

    def test_exhausted_stays_exhausted(self):
        chain = CandidateChain(self._candidates("a"))
        list(chain)
        assert list(chain) == []
        assert chain.exhausted

    def test_resumes_where_it_stopped(self):
        chain = CandidateChain(self._candidates("a", "b", "c"))
        for candidate in chain:
            if candidate.url == "a":
                break
        assert not chain.exhausted
        assert [c.url for c in chain] == ["b", "c"]


class TestResolve:
    """Test resolving an identifier against every form."""

    def test_first_form_wins(self, resolver, probe):
        probe.reachable.update({VIDEO, STATIC})

        resolution = resolver.resolve(UUID_A)
        assert resolution.available
        assert resolution.url == VIDEO
        assert resolution.form.name == "video"
        assert probe.calls == [VIDEO]

    def test_falls_through_in_order(self, resolver, probe):
        probe.reachable.add(POSTER_PNG)

        resolution = resolver.resolve(UUID_A)
        assert resolution.url == POSTER_PNG
        assert probe.calls == [VIDEO, POSTER_JPG, POSTER_PNG]
        assert resolution.attempts == probe.calls

    def test_unavailable_probes_each_form_once(self, resolver, probe):
        """Test a total miss terminates after one probe per form."""
        resolution = resolver.resolve(UUID_A)
        assert not resolution.available
        assert resolution.url is None
        assert probe.calls == [VIDEO, POSTER_JPG, POSTER_PNG, STATIC]

    def test_duplicate_forms_probed_once(self, probe):
        forms = [
            MediaForm(name="a", template="{base}/{id}.mp4"),
            MediaForm(name="b", template="{base}/{id}.webp"),
            MediaForm(name="a_again", template="{base}/{id}.mp4"),
        ]
        resolver = MediaResolver(forms=forms, probe=probe, base_url=BASE, alt_base_url=ALT)

        resolver.resolve(UUID_A)
        assert probe.calls == [VIDEO, f"{BASE}/{UUID_A}.webp"]

    def test_success_is_memoised(self, resolver, probe):
        probe.reachable.add(STATIC)

        first = resolver.resolve(UUID_A)
        calls = len(probe.calls)
        second = resolver.resolve(UUID_A)

        assert second is first
        assert len(probe.calls) == calls

    def test_miss_is_not_memoised(self, resolver, probe):
        resolver.resolve(UUID_A)
        probe.reachable.add(VIDEO)

        assert resolver.resolve(UUID_A).url == VIDEO


class TestResolveStored:
    """Test resolution starting from a stored media url."""

    def test_stored_url_first(self, resolver, probe):
        probe.reachable.update({POSTER_PNG, VIDEO})

        resolution = resolver.resolve_stored(POSTER_PNG)
        assert resolution.url == POSTER_PNG
        assert probe.calls == [POSTER_PNG]

    def test_stored_url_then_remaining_forms(self, resolver, probe):
        probe.reachable.add(STATIC)

        resolution = resolver.resolve_stored(POSTER_PNG)
        assert resolution.url == STATIC
        assert probe.calls == [POSTER_PNG, VIDEO, POSTER_JPG, STATIC]

    def test_stored_url_all_dead(self, resolver, probe):
        resolution = resolver.resolve_stored(POSTER_JPG)
        assert not resolution.available
        assert len(probe.calls) == 4
        assert len(set(probe.calls)) == 4

    def test_unknown_url_probed_alone(self, resolver, probe):
        resolution = resolver.resolve_stored("https://elsewhere.test/cover.gif")
        assert not resolution.available
        assert probe.calls == ["https://elsewhere.test/cover.gif"]

    def test_empty_url(self, resolver, probe):
        resolution = resolver.resolve_stored(None)
        assert not resolution.available
        assert probe.calls == []


class TestMediaRefs:
    """Test the refs stored on a new post."""

    def test_animated(self, resolver, probe):
        probe.reachable.add(VIDEO)
        refs = resolver.media_refs(UUID_A, resolver.resolve(UUID_A))
        assert refs == {"media_video_ref": VIDEO, "media_image_ref": POSTER_JPG}

    def test_static(self, resolver, probe):
        probe.reachable.add(STATIC)
        refs = resolver.media_refs(UUID_A, resolver.resolve(UUID_A))
        assert refs == {"media_video_ref": None, "media_image_ref": STATIC}

    def test_unchecked(self, resolver):
        assert resolver.media_refs(UUID_A) == {"media_video_ref": VIDEO, "media_image_ref": POSTER_JPG}


class TestHttpProbe:
    """Test the HTTP probe."""

    @patch("app.worker.media_resolver.requests.head")
    def test_ok(self, mock_head):
        mock_head.return_value = MagicMock(status_code=200)
        assert http_probe(VIDEO, timeout=1.0)
        mock_head.assert_called_once_with(VIDEO, timeout=1.0, allow_redirects=True)

    @patch("app.worker.media_resolver.requests.head")
    def test_not_found(self, mock_head):
        mock_head.return_value = MagicMock(status_code=404)
        assert not http_probe(VIDEO)

    @patch("app.worker.media_resolver.requests.head", side_effect=requests.Timeout)
    def test_timeout(self, mock_head):
        assert not http_probe(VIDEO)

    @patch("app.worker.media_resolver.requests.head", side_effect=requests.ConnectionError)
    def test_connection_error(self, mock_head):
        assert not http_probe(VIDEO)
